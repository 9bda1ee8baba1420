"""Explicit field-name maps between canonical models and each backend.

Every canonical attribute has exactly one storage name per backend. Stored
keys that are not in a map are dropped on read; nothing is passed through.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..models import BatchError, DepartmentStats, EmployeeRecord, ReductionProgram, SnapshotEntry

EMPLOYEE_FIELDS: Tuple[str, ...] = (
    "record_id",
    "employee_id",
    "name",
    "email",
    "department",
    "division",
    "company",
    "country",
    "role",
    "status",
    "fte",
    "start_date",
    "end_date",
    "base_salary",
    "hourly_rate",
    "pay_scale",
    "cost_center",
    "reduction_status",
    "reduction_percentage",
    "snapshot_id",
    "created_at",
)

ENTRY_FIELDS: Tuple[str, ...] = (
    "snapshot_id",
    "file_name",
    "file_size",
    "total_records",
    "records_successful",
    "records_failed",
    "records_skipped",
    "processing_time_ms",
    "department_breakdown",
    "total_salary",
    "error_log",
    "status",
    "created_at",
)

LOCAL_EMPLOYEE_KEYS = {
    "record_id": "id",
    "employee_id": "employeeId",
    "name": "name",
    "email": "email",
    "department": "department",
    "division": "division",
    "company": "company",
    "country": "country",
    "role": "role",
    "status": "status",
    "fte": "fte",
    "start_date": "startDate",
    "end_date": "endDate",
    "base_salary": "baseSalary",
    "hourly_rate": "hourlyRate",
    "pay_scale": "payScale",
    "cost_center": "costCenter",
    "reduction_status": "reductionStatus",
    "reduction_percentage": "reductionPercentage",
    "snapshot_id": "uploadId",
    "created_at": "createdAt",
}

RELATIONAL_EMPLOYEE_KEYS = {
    "record_id": "id",
    "employee_id": "employee_id",
    "name": "name",
    "email": "email",
    "department": "department",
    "division": "division",
    "company": "company",
    "country": "country",
    "role": "role",
    "status": "status",
    "fte": "fte",
    "start_date": "start_date",
    "end_date": "end_date",
    "base_salary": "base_salary",
    "hourly_rate": "hourly_rate",
    "pay_scale": "pay_scale",
    "cost_center": "cost_center",
    "reduction_status": "reduction_status",
    "reduction_percentage": "reduction_percentage",
    "snapshot_id": "upload_id",
    "created_at": "created_at",
}

LOCAL_ENTRY_KEYS = {
    "snapshot_id": "id",
    "file_name": "fileName",
    "file_size": "fileSize",
    "total_records": "totalRecords",
    "records_successful": "recordsSuccessful",
    "records_failed": "recordsFailed",
    "records_skipped": "recordsSkipped",
    "processing_time_ms": "processingTime",
    "department_breakdown": "departmentBreakdown",
    "total_salary": "totalSalary",
    "error_log": "errorLog",
    "status": "status",
    "created_at": "timestamp",
}

RELATIONAL_ENTRY_KEYS = {
    "snapshot_id": "id",
    "file_name": "file_name",
    "file_size": "file_size",
    "total_records": "total_records",
    "records_successful": "records_successful",
    "records_failed": "records_failed",
    "records_skipped": "records_skipped",
    "processing_time_ms": "processing_time_ms",
    "department_breakdown": "department_breakdown",
    "total_salary": "total_salary",
    "error_log": "error_log",
    "status": "status",
    "created_at": "created_at",
}


@dataclass(frozen=True)
class FieldMap:
    """Bidirectional mapping for one backend's naming convention."""

    name: str
    employee_keys: Mapping[str, str]
    entry_keys: Mapping[str, str]

    def __post_init__(self) -> None:
        for label, keys, fields in (
            ("employee", self.employee_keys, EMPLOYEE_FIELDS),
            ("entry", self.entry_keys, ENTRY_FIELDS),
        ):
            if set(keys) != set(fields):
                raise ValueError(f"{self.name} {label} field map is not total")
            if len(set(keys.values())) != len(fields):
                raise ValueError(f"{self.name} {label} field map has colliding names")

    def employee_to_storage(self, record: EmployeeRecord, record_id: str) -> Dict[str, Any]:
        canonical = {
            "record_id": record_id,
            "employee_id": record.employee_id,
            "name": record.name,
            "email": record.email,
            "department": record.department,
            "division": record.division,
            "company": record.company,
            "country": record.country,
            "role": record.role,
            "status": record.status,
            "fte": record.fte,
            "start_date": record.start_date,
            "end_date": record.end_date,
            "base_salary": record.base_salary,
            "hourly_rate": record.hourly_rate,
            "pay_scale": record.pay_scale,
            "cost_center": record.cost_center,
            "reduction_status": record.reduction.status,
            "reduction_percentage": record.reduction.percentage,
            "snapshot_id": record.snapshot_id,
            "created_at": record.created_at,
        }
        return {self.employee_keys[key]: value for key, value in canonical.items()}

    def employee_from_storage(self, raw: Mapping[str, Any]) -> EmployeeRecord:
        values = {key: raw.get(stored) for key, stored in self.employee_keys.items()}
        return EmployeeRecord(
            employee_id=str(values["employee_id"]),
            name=values["name"],
            email=values["email"],
            department=values["department"],
            division=values["division"],
            company=values["company"],
            country=values["country"],
            role=values["role"],
            status=values["status"] or "active",
            fte=_as_float(values["fte"], 100.0),
            start_date=_as_iso_date(values["start_date"]),
            end_date=_as_iso_date(values["end_date"]),
            base_salary=_as_optional_float(values["base_salary"]),
            hourly_rate=_as_optional_float(values["hourly_rate"]),
            pay_scale=values["pay_scale"],
            cost_center=values["cost_center"],
            reduction=ReductionProgram(
                status=values["reduction_status"] or "none",
                percentage=_as_float(values["reduction_percentage"], 0.0),
            ),
            snapshot_id=values["snapshot_id"],
            created_at=as_datetime(values["created_at"]),
        )

    def entry_to_storage(self, entry: SnapshotEntry) -> Dict[str, Any]:
        canonical = {
            "snapshot_id": entry.snapshot_id,
            "file_name": entry.file_name,
            "file_size": entry.file_size,
            "total_records": entry.total_records,
            "records_successful": entry.records_successful,
            "records_failed": entry.records_failed,
            "records_skipped": entry.records_skipped,
            "processing_time_ms": entry.processing_time_ms,
            "department_breakdown": breakdown_to_payload(entry.department_breakdown),
            "total_salary": entry.total_salary,
            "error_log": error_log_to_payload(entry.error_log),
            "status": entry.status,
            "created_at": entry.created_at,
        }
        return {self.entry_keys[key]: value for key, value in canonical.items()}

    def entry_from_storage(self, raw: Mapping[str, Any]) -> SnapshotEntry:
        values = {key: raw.get(stored) for key, stored in self.entry_keys.items()}
        return SnapshotEntry(
            snapshot_id=str(values["snapshot_id"]),
            file_name=values["file_name"] or "Unknown",
            file_size=int(values["file_size"] or 0),
            total_records=int(values["total_records"] or 0),
            records_successful=int(values["records_successful"] or 0),
            records_failed=int(values["records_failed"] or 0),
            records_skipped=int(values["records_skipped"] or 0),
            processing_time_ms=int(values["processing_time_ms"] or 0),
            department_breakdown=breakdown_from_payload(values["department_breakdown"]),
            total_salary=_as_float(values["total_salary"], 0.0),
            error_log=error_log_from_payload(values["error_log"]),
            status=values["status"] or "completed",
            created_at=as_datetime(values["created_at"]),
        )

    def overlap(self, raw: Mapping[str, Any]) -> int:
        """Number of entry keys in ``raw`` that belong to this naming scheme."""
        return len(set(raw) & set(self.entry_keys.values()))


LOCAL_FIELDS = FieldMap("local", LOCAL_EMPLOYEE_KEYS, LOCAL_ENTRY_KEYS)
RELATIONAL_FIELDS = FieldMap("relational", RELATIONAL_EMPLOYEE_KEYS, RELATIONAL_ENTRY_KEYS)


def breakdown_to_payload(breakdown: Mapping[str, DepartmentStats]) -> Dict[str, Dict[str, Any]]:
    return {
        dept: {"count": stats.count, "totalSalary": stats.total_salary}
        for dept, stats in breakdown.items()
    }


def breakdown_from_payload(payload: Optional[Mapping[str, Any]]) -> Dict[str, DepartmentStats]:
    """Read a department breakdown, accepting older count-only payloads."""
    result: Dict[str, DepartmentStats] = {}
    for dept, value in (payload or {}).items():
        if isinstance(value, Mapping):
            result[dept] = DepartmentStats(
                count=int(value.get("count") or 0),
                total_salary=_as_float(value.get("totalSalary"), 0.0),
            )
        else:
            result[dept] = DepartmentStats(count=int(value or 0))
    return result


def error_log_to_payload(errors: List[BatchError]) -> List[Dict[str, Any]]:
    return [
        {"batchIndex": err.batch_index, "message": err.message, "recordCount": err.record_count}
        for err in errors
    ]


def error_log_from_payload(payload: Optional[List[Mapping[str, Any]]]) -> List[BatchError]:
    return [
        BatchError(
            batch_index=int(item.get("batchIndex", -1)),
            message=str(item.get("message", "")),
            record_count=int(item.get("recordCount") or 0),
        )
        for item in payload or []
    ]


def as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _as_iso_date(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _as_float(value: Any, default: float) -> float:
    if value is None:
        return default
    return float(value)


def _as_optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)
