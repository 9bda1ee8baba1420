from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

import json
import logging
import pandas as pd

from .models import ComparisonResult, SnapshotEntry
from .storage.fields import LOCAL_FIELDS


logger = logging.getLogger(__name__)

DEPARTMENT_COLUMNS = [
    "Department",
    "Baseline Count",
    "Current Count",
    "Change",
    "Change %",
    "Baseline Cost",
    "Current Cost",
    "Cost Change",
]


def write_comparison_workbook(result: ComparisonResult, path: Path) -> Path:
    """Write the Summary and Department Changes sheets for a comparison."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    summary_df = pd.DataFrame(_summary_rows(result), columns=["Item", "Value"])
    departments_df = pd.DataFrame(
        [
            [
                change.department,
                change.baseline_count,
                change.current_count,
                change.change,
                change.change_percent,
                change.baseline_salary,
                change.current_salary,
                change.salary_change,
            ]
            for change in result.department_changes
        ],
        columns=DEPARTMENT_COLUMNS,
    )

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        summary_df.to_excel(writer, sheet_name="Summary", index=False)
        departments_df.to_excel(writer, sheet_name="Department Changes", index=False)

    logger.info("Wrote comparison workbook to %s", path)
    return path


def write_error_log(entry: SnapshotEntry, path: Path) -> Path:
    """Dump a ledger entry's counts and batch error log as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    document = LOCAL_FIELDS.entry_to_storage(entry)
    document["timestamp"] = _date_text(entry.created_at)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(document, handle, indent=2)

    logger.info("Wrote error log for snapshot %s to %s", entry.snapshot_id, path)
    return path


def _summary_rows(result: ComparisonResult) -> List[List[Any]]:
    rows: List[List[Any]] = [
        ["Report", "Workforce Reduction Analysis"],
        ["Generated", datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")],
    ]
    for label, entry in (("Baseline", result.baseline), ("Current", result.current)):
        rows.extend(
            [
                [f"{label} Date", _date_text(entry.created_at)],
                [f"{label} File", entry.file_name],
                [f"{label} Total Employees", entry.total_records],
                [f"{label} Total Cost", entry.total_salary or "N/A"],
            ]
        )
    rows.extend(
        [
            ["Headcount Change", result.headcount_change],
            ["Headcount Change %", result.headcount_change_percent],
            ["Cost Change", result.cost_change],
            ["Cost Change %", result.cost_change_percent],
            ["Status", "Cost Savings Achieved" if result.savings_achieved else "Cost Increase"],
        ]
    )
    return rows


def _date_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
