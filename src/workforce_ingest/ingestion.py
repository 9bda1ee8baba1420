from pathlib import Path
from typing import Dict, List, Sequence

import logging
import pandas as pd

from .constants import (
    BASE_SALARY_FIELD,
    COMPANY_FIELD,
    COST_CENTER_FIELD,
    COUNTRY_FIELD,
    DEPARTMENT_FIELD,
    DIVISION_FIELD,
    EMAIL_FIELD,
    EMPLOYEE_ID_FIELD,
    END_DATE_FIELD,
    FTE_FIELD,
    HOURLY_RATE_FIELD,
    NAME_FIELD,
    PAY_SCALE_FIELD,
    REDUCTION_PERCENTAGE_FIELD,
    REDUCTION_STATUS_FIELD,
    ROLE_FIELD,
    START_DATE_FIELD,
    STATUS_FIELD,
)
from .errors import SourceReadError
from .models import ColumnMapping, FieldRule, SourceFile
from .transform import make_rule


logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}

# Normalized header tokens per canonical field, most specific first
COLUMN_PATTERNS: Dict[str, List[str]] = {
    EMPLOYEE_ID_FIELD: [
        "person number", "personnumber", "employee id", "employeeid", "emp id", "empid",
        "personnel number", "personnel no", "pernr", "mitarbeiter id", "mitarbeiternummer",
    ],
    NAME_FIELD: [
        "name", "full name", "fullname", "employee name", "emp name",
        "mitarbeiter name", "nombre", "nome",
    ],
    EMAIL_FIELD: ["email", "e mail", "email address", "mail", "e mail adresse"],
    ROLE_FIELD: [
        "job name", "jobname", "job title", "title", "position", "role", "job",
        "stelle", "funktion", "cargo", "puesto",
    ],
    DEPARTMENT_FIELD: [
        "department name", "departmentname", "department", "dept", "abteilung",
        "departamento", "departement",
    ],
    STATUS_FIELD: ["system person type", "status", "employment status", "emp status", "estado"],
    START_DATE_FIELD: [
        "seniority date", "start date", "hire date", "join date", "eintrittsdatum", "fecha inicio",
    ],
    END_DATE_FIELD: ["termination date", "exit date", "end date", "contract end date"],
    FTE_FIELD: [
        "full time equivalent", "fte", "working time", "arbeitszeit", "tiempo trabajo",
    ],
    COMPANY_FIELD: ["legal employer name", "company", "firma", "unternehmen"],
    COUNTRY_FIELD: ["legislation", "country", "land", "pais"],
    COST_CENTER_FIELD: ["cost center", "costcenter", "kostenstelle"],
    DIVISION_FIELD: ["segment", "division", "bereich"],
    PAY_SCALE_FIELD: ["grade name", "gradename", "pay scale", "pay grade", "gehaltsstufe"],
    BASE_SALARY_FIELD: ["base salary", "basesalary", "annual salary", "salary", "gehalt"],
    HOURLY_RATE_FIELD: ["hourly rate", "hourlyrate", "rate per hour", "stundensatz"],
    REDUCTION_STATUS_FIELD: ["reduction status", "reduction program", "kurzarbeit"],
    REDUCTION_PERCENTAGE_FIELD: ["reduction percentage", "reduction %", "reduction pct"],
}


def read_source(path: Path) -> SourceFile:
    """Load a CSV or Excel extract as string-valued rows."""
    path = Path(path)
    if not path.exists():
        raise SourceReadError(f"Source file not found: {path}")
    try:
        if path.suffix.lower() in EXCEL_SUFFIXES:
            df = pd.read_excel(path, dtype=str)
        else:
            df = pd.read_csv(path, dtype=str, skip_blank_lines=True)
    except (OSError, ValueError) as exc:
        raise SourceReadError(f"Failed to read {path}: {exc}") from exc

    df = df.dropna(how="all")
    df.columns = [str(col).strip() for col in df.columns]
    df = df.astype(object).where(df.notna(), None)
    rows = df.to_dict(orient="records")

    logger.info("Read %s rows and %s columns from %s", len(rows), len(df.columns), path)
    return SourceFile(
        path=path,
        file_name=path.name,
        file_size=path.stat().st_size,
        headers=list(df.columns),
        rows=rows,
    )


def detect_mapping(headers: Sequence[str]) -> ColumnMapping:
    """Guess a column mapping from header names.

    Exact token matches are assigned first; remaining fields then take the
    first unused header containing one of their patterns.
    """
    assigned: Dict[str, str] = {}
    used: set = set()

    for header in headers:
        key = _normalize_token(header)
        for field_name, patterns in COLUMN_PATTERNS.items():
            if field_name in assigned:
                continue
            if key in patterns:
                assigned[field_name] = header
                used.add(header)
                break

    for field_name, patterns in COLUMN_PATTERNS.items():
        if field_name in assigned:
            continue
        for header in headers:
            if header in used:
                continue
            key = _normalize_token(header)
            if any(len(pattern) > 3 and pattern in key for pattern in patterns):
                assigned[field_name] = header
                used.add(header)
                break

    columns: Dict[str, FieldRule] = {header: make_rule(field_name) for field_name, header in assigned.items()}
    unmapped = [h for h in headers if h not in used]
    if unmapped:
        logger.info("Columns left unmapped: %s", unmapped)
    if EMPLOYEE_ID_FIELD not in assigned:
        logger.warning("No employee id column detected among %s", list(headers))
    return ColumnMapping(columns=columns, name="auto-detected")


def _normalize_token(text: str) -> str:
    return " ".join(str(text).strip().lower().replace("-", " ").replace("_", " ").split())
