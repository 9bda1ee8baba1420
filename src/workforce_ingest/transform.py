import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping

from .constants import (
    CANONICAL_FIELDS,
    DEFAULT_FTE,
    DEFAULT_REQUIRED_FIELDS,
    EMAIL_FIELD,
    EMAIL_PATTERN,
    EMPLOYEE_ID_FIELD,
    FTE_FIELD,
    NUMERIC_LIMITS,
    REDUCTION_PERCENTAGE_FIELD,
    REDUCTION_STATUS_ALIASES,
    REDUCTION_STATUS_FIELD,
    STATUS_ALIASES,
    STATUS_FIELD,
    TRANSFORMS,
)
from .errors import ConfigError, RowValidationError
from .models import ColumnMapping, EmployeeRecord, FieldRule, MappingResult, ReductionProgram, RowWarning
from .utils.dates import parse_date
from .utils.mappings import load_yaml_mapping
from .utils.values import clean_text, parse_number, parse_percentage

logger = logging.getLogger(__name__)

_NUMERIC_TRANSFORMS = {"number", "percentage"}
_EMAIL = re.compile(EMAIL_PATTERN)


def load_mapping_preset(path: Path) -> ColumnMapping:
    """Load a named, reusable column mapping preset from YAML."""
    raw = load_yaml_mapping(path, logger=logger, required=True)
    mapping = build_column_mapping(raw)
    if mapping.name is None:
        mapping.name = Path(path).stem
    return mapping


def build_column_mapping(raw: Mapping[str, Any]) -> ColumnMapping:
    """Build a ColumnMapping from a ``{name, columns, required}`` mapping.

    Column entries are either a bare canonical field name or a
    ``{field, transform}`` mapping. The transform defaults to the field's
    declared type.
    """
    columns_cfg = raw.get("columns")
    if not columns_cfg or not isinstance(columns_cfg, Mapping):
        raise ConfigError("Column mapping must define a non-empty 'columns' mapping")

    columns: Dict[str, FieldRule] = {}
    for source, spec in columns_cfg.items():
        if isinstance(spec, Mapping):
            target = spec.get("field")
            transform = spec.get("transform")
        else:
            target, transform = spec, None
        columns[str(source)] = make_rule(target, transform)

    required = tuple(raw.get("required") or DEFAULT_REQUIRED_FIELDS)
    unknown = [name for name in required if name not in CANONICAL_FIELDS]
    if unknown:
        raise ConfigError(f"Unknown required fields in column mapping: {unknown}")

    return ColumnMapping(columns=columns, required_fields=required, name=raw.get("name"))


def make_rule(target: Any, transform: Any = None) -> FieldRule:
    if target not in CANONICAL_FIELDS:
        raise ConfigError(f"Unknown canonical field in column mapping: {target!r}")
    declared = CANONICAL_FIELDS[target]
    transform = transform or declared
    if transform not in TRANSFORMS:
        raise ConfigError(f"Unknown transform {transform!r} for field {target!r}")
    allowed = _NUMERIC_TRANSFORMS if declared in _NUMERIC_TRANSFORMS else {declared}
    if transform not in allowed:
        raise ConfigError(f"Transform {transform!r} cannot produce field {target!r}")
    return FieldRule(target=target, transform=transform)


def map_rows(rows: Iterable[Mapping[str, Any]], mapping: ColumnMapping) -> MappingResult:
    """Map raw rows onto canonical records, collecting row-level errors."""
    result = MappingResult(records=[])
    for index, row in enumerate(rows):
        result.total_rows += 1
        try:
            record = map_row(row, index, mapping)
        except RowValidationError as exc:
            result.errors.append(exc)
            continue
        result.records.append(record)
        result.warnings.extend(check_record(record, index))

    logger.info(
        "Mapped %s rows: %s valid, %s rejected, %s warnings",
        result.total_rows,
        len(result.records),
        len(result.errors),
        len(result.warnings),
    )
    return result


def map_row(row: Mapping[str, Any], index: int, mapping: ColumnMapping) -> EmployeeRecord:
    values: Dict[str, Any] = {}
    for source, rule in mapping.columns.items():
        if source not in row:
            continue
        text = clean_text(row[source])
        if text is None:
            continue
        converter = _CONVERTERS[rule.transform]
        try:
            values[rule.target] = converter(text)
        except (ValueError, OverflowError) as exc:
            raise RowValidationError(index, f"invalid {rule.target} {text!r}: {exc}") from exc
        limit = NUMERIC_LIMITS.get(rule.target)
        if limit is not None and abs(values[rule.target]) >= limit:
            raise RowValidationError(index, f"{rule.target} {text!r} is too large")

    missing = [name for name in mapping.required_fields if values.get(name) in (None, "")]
    if missing:
        raise RowValidationError(index, f"missing required field: {', '.join(missing)}")

    return _build_record(values, index)


def check_record(record: EmployeeRecord, index: int) -> List[RowWarning]:
    """Non-fatal checks on a mapped record."""
    warnings = []
    if record.email and not _EMAIL.match(record.email):
        warnings.append(RowWarning(index, EMAIL_FIELD, f"invalid email format {record.email!r}"))
    return warnings


def _build_record(values: Dict[str, Any], index: int) -> EmployeeRecord:
    fte = values.pop(FTE_FIELD, DEFAULT_FTE)
    _check_range(fte, FTE_FIELD, index)

    reduction_status = values.pop(REDUCTION_STATUS_FIELD, None)
    reduction_percentage = values.pop(REDUCTION_PERCENTAGE_FIELD, 0.0)
    _check_range(reduction_percentage, REDUCTION_PERCENTAGE_FIELD, index)
    if reduction_status is None:
        reduction_status = "active" if reduction_percentage > 0 else "none"

    return EmployeeRecord(
        employee_id=values.pop(EMPLOYEE_ID_FIELD, None) or "",
        status=values.pop(STATUS_FIELD, "active"),
        fte=fte,
        reduction=ReductionProgram(status=reduction_status, percentage=reduction_percentage),
        **values,
    )


def _check_range(value: float, name: str, index: int) -> None:
    if not 0 <= value <= 100:
        raise RowValidationError(index, f"{name} {value:g} outside 0-100")


def _enum_converter(aliases: Mapping[str, str], label: str) -> Callable[[str], str]:
    def convert(text: str) -> str:
        key = text.lower()
        if key not in aliases:
            raise ValueError(f"unknown {label}")
        return aliases[key]

    return convert


_CONVERTERS: Dict[str, Callable[[str], Any]] = {
    "text": lambda text: text,
    "number": parse_number,
    "percentage": parse_percentage,
    "status": _enum_converter(STATUS_ALIASES, "status"),
    "reduction_status": _enum_converter(REDUCTION_STATUS_ALIASES, "reduction status"),
    "date": parse_date,
}
