from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .constants import DEFAULT_FTE, DEFAULT_REQUIRED_FIELDS, HOURS_PER_YEAR, SNAPSHOT_PROCESSING
from .errors import RowValidationError


@dataclass
class SourceFile:
    """Raw rows read from a tabular extract."""

    path: Path
    file_name: str
    file_size: int
    headers: List[str]
    rows: List[Dict[str, Any]]


@dataclass(frozen=True)
class FieldRule:
    """Target canonical field and value transform for one source column."""

    target: str
    transform: str = "text"


@dataclass
class ColumnMapping:
    """Source column -> canonical field configuration."""

    columns: Dict[str, FieldRule]
    required_fields: Tuple[str, ...] = DEFAULT_REQUIRED_FIELDS
    name: Optional[str] = None


@dataclass(frozen=True)
class ReductionProgram:
    status: str = "none"
    percentage: float = 0.0


@dataclass(frozen=True)
class EmployeeRecord:
    """Canonical employee record."""

    employee_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None
    division: Optional[str] = None
    company: Optional[str] = None
    country: Optional[str] = None
    role: Optional[str] = None
    status: str = "active"
    fte: float = DEFAULT_FTE
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    base_salary: Optional[float] = None
    hourly_rate: Optional[float] = None
    pay_scale: Optional[str] = None
    cost_center: Optional[str] = None
    reduction: ReductionProgram = field(default_factory=ReductionProgram)
    snapshot_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def annual_cost(self) -> float:
        """Base salary, else hourly rate over a full working year."""
        if self.base_salary:
            return float(self.base_salary)
        if self.hourly_rate:
            return float(self.hourly_rate) * HOURS_PER_YEAR
        return 0.0


@dataclass(frozen=True)
class RowWarning:
    """Non-fatal finding on a row that was still mapped."""

    row_index: int
    field: str
    message: str

    def __str__(self) -> str:
        return f"row {self.row_index}: {self.message}"


@dataclass
class MappingResult:
    """Output of the field mapper."""

    records: List[EmployeeRecord]
    errors: List[RowValidationError] = field(default_factory=list)
    warnings: List[RowWarning] = field(default_factory=list)
    total_rows: int = 0


@dataclass
class DedupResult:
    """Result of duplicate removal."""

    records: List[EmployeeRecord]
    duplicates_removed: int = 0
    blank_ids_skipped: int = 0

    @property
    def skipped(self) -> int:
        return self.duplicates_removed + self.blank_ids_skipped


@dataclass(frozen=True)
class BatchError:
    batch_index: int
    message: str
    record_count: int


@dataclass(frozen=True)
class BatchTiming:
    batch_index: int
    record_count: int
    duration_ms: float
    succeeded: bool
    attempts: int = 1


@dataclass
class WriteResult:
    """Outcome of writing a record set in batches."""

    successful: int = 0
    failed: int = 0
    not_attempted: int = 0
    errors: List[BatchError] = field(default_factory=list)
    batches: List[BatchTiming] = field(default_factory=list)
    total_time_ms: float = 0.0

    @property
    def records_per_second(self) -> float:
        processed = self.successful + self.failed
        if self.total_time_ms <= 0:
            return 0.0
        return processed / (self.total_time_ms / 1000)


@dataclass(frozen=True)
class DepartmentStats:
    count: int = 0
    total_salary: float = 0.0


@dataclass
class SnapshotEntry:
    """Metadata for one ingestion run."""

    snapshot_id: str
    file_name: str
    file_size: int = 0
    total_records: int = 0
    records_successful: int = 0
    records_failed: int = 0
    records_skipped: int = 0
    processing_time_ms: int = 0
    department_breakdown: Dict[str, DepartmentStats] = field(default_factory=dict)
    total_salary: float = 0.0
    error_log: List[BatchError] = field(default_factory=list)
    status: str = SNAPSHOT_PROCESSING
    created_at: Optional[datetime] = None

    @property
    def accounted_records(self) -> int:
        return self.records_successful + self.records_failed + self.records_skipped


@dataclass(frozen=True)
class DepartmentChange:
    department: str
    baseline_count: int
    current_count: int
    change: int
    change_percent: float
    baseline_salary: float
    current_salary: float
    salary_change: float


@dataclass
class ComparisonResult:
    """Headcount and cost deltas between two snapshots."""

    baseline: SnapshotEntry
    current: SnapshotEntry
    headcount_change: int
    headcount_change_percent: float
    cost_change: float
    cost_change_percent: float
    department_changes: List[DepartmentChange]
    savings_achieved: bool

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for view and spreadsheet consumers."""
        return {
            "baselineId": self.baseline.snapshot_id,
            "currentId": self.current.snapshot_id,
            "headcountChange": self.headcount_change,
            "headcountChangePercent": self.headcount_change_percent,
            "costChange": self.cost_change,
            "costChangePercent": self.cost_change_percent,
            "savingsAchieved": self.savings_achieved,
            "departmentChanges": [
                {
                    "department": change.department,
                    "baselineCount": change.baseline_count,
                    "currentCount": change.current_count,
                    "change": change.change,
                    "changePercent": change.change_percent,
                    "baselineSalary": change.baseline_salary,
                    "currentSalary": change.current_salary,
                    "salaryChange": change.salary_change,
                }
                for change in self.department_changes
            ],
        }


@dataclass
class IngestionOutcome:
    """Everything produced by one ingestion run."""

    entry: SnapshotEntry
    mapping_result: MappingResult
    dedup_result: DedupResult
    write_result: WriteResult
    report_path: Optional[Path] = None
    error_log_path: Optional[Path] = None
