from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence

from ..constants import DEFAULT_PAGE_SIZE, UNKNOWN_DEPARTMENT
from ..models import DepartmentStats, EmployeeRecord, SnapshotEntry


class StorageBackend(ABC):
    """Record store holding employee records and ledger entries.

    Each ``insert_batch`` call is atomic: the batch persists in full or the
    call raises. Nothing spans more than one call.
    """

    name = "abstract"

    @abstractmethod
    def insert_batch(self, records: Sequence[EmployeeRecord]) -> List[str]:
        """Persist records, returning their storage ids.

        Raises BatchWriteError when the batch is rejected and
        BackendUnavailable for transient failures.
        """

    @abstractmethod
    def count_by_owner(self, snapshot_id: str) -> int:
        ...

    @abstractmethod
    def paginate(self, snapshot_id: str, offset: int, limit: int) -> List[EmployeeRecord]:
        """Return one page of a snapshot's records ordered by business id."""

    @abstractmethod
    def delete_by_owner(self, snapshot_id: str) -> int:
        ...

    def department_totals(self, snapshot_id: str) -> Dict[str, DepartmentStats]:
        """Headcount and cost per department, folded page by page."""
        return fold_departments(self.iter_records(snapshot_id))

    def iter_records(self, snapshot_id: str, page_size: int = DEFAULT_PAGE_SIZE) -> Iterable[EmployeeRecord]:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        offset = 0
        while True:
            page = self.paginate(snapshot_id, offset, page_size)
            yield from page
            if len(page) < page_size:
                return
            offset += page_size

    @abstractmethod
    def create_entry(self, entry: SnapshotEntry) -> SnapshotEntry:
        ...

    @abstractmethod
    def update_entry(self, entry: SnapshotEntry) -> SnapshotEntry:
        ...

    @abstractmethod
    def get_entry(self, snapshot_id: str) -> Optional[SnapshotEntry]:
        ...

    @abstractmethod
    def list_entries(self) -> List[SnapshotEntry]:
        """All ledger entries, newest first."""

    @abstractmethod
    def delete_entry(self, snapshot_id: str) -> bool:
        ...

    def close(self) -> None:
        pass

    def __enter__(self) -> "StorageBackend":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def fold_departments(records: Iterable[EmployeeRecord]) -> Dict[str, DepartmentStats]:
    counts: Dict[str, int] = {}
    salaries: Dict[str, float] = {}
    for record in records:
        dept = record.department or UNKNOWN_DEPARTMENT
        counts[dept] = counts.get(dept, 0) + 1
        salaries[dept] = salaries.get(dept, 0.0) + record.annual_cost
    return {dept: DepartmentStats(count=counts[dept], total_salary=salaries[dept]) for dept in counts}
