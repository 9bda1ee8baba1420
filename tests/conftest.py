import threading
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from workforce_ingest.errors import StorageError
from workforce_ingest.models import EmployeeRecord, SnapshotEntry
from workforce_ingest.storage.base import StorageBackend


class MemoryBackend(StorageBackend):
    """In-process backend with hooks for injecting failures."""

    name = "memory"

    def __init__(self) -> None:
        self.records: List[EmployeeRecord] = []
        self.entries: Dict[str, SnapshotEntry] = {}
        self.insert_calls = 0
        self.batch_hook: Optional[Callable[[Sequence[EmployeeRecord]], None]] = None
        self.accept_limit: Optional[int] = None
        self.failing_updates = 0
        self._lock = threading.Lock()

    def insert_batch(self, records):
        with self._lock:
            self.insert_calls += 1
        if self.batch_hook:
            self.batch_hook(records)
        accepted = list(records)[: self.accept_limit] if self.accept_limit is not None else list(records)
        with self._lock:
            start = len(self.records)
            self.records.extend(accepted)
        return [f"rec-{start + offset}" for offset in range(len(accepted))]

    def count_by_owner(self, snapshot_id):
        return sum(1 for record in self.records if record.snapshot_id == snapshot_id)

    def paginate(self, snapshot_id, offset, limit):
        owned = sorted(
            (record for record in self.records if record.snapshot_id == snapshot_id),
            key=lambda record: record.employee_id,
        )
        return owned[offset:offset + limit]

    def delete_by_owner(self, snapshot_id):
        before = len(self.records)
        self.records = [record for record in self.records if record.snapshot_id != snapshot_id]
        return before - len(self.records)

    def create_entry(self, entry):
        self.entries[entry.snapshot_id] = replace(entry)
        return entry

    def update_entry(self, entry):
        if self.failing_updates:
            self.failing_updates -= 1
            raise StorageError("ledger table is read-only")
        if entry.snapshot_id not in self.entries:
            raise StorageError(f"Ledger entry {entry.snapshot_id} does not exist")
        self.entries[entry.snapshot_id] = replace(entry)
        return entry

    def get_entry(self, snapshot_id):
        return self.entries.get(snapshot_id)

    def list_entries(self):
        return sorted(self.entries.values(), key=lambda entry: entry.created_at, reverse=True)

    def delete_entry(self, snapshot_id):
        return self.entries.pop(snapshot_id, None) is not None


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def make_records():
    def _make(count: int, department: str = "Sales", base_salary: float = 50000.0, start: int = 0):
        return [
            EmployeeRecord(
                employee_id=f"E{index:05d}",
                name=f"Employee {index}",
                department=department,
                base_salary=base_salary,
            )
            for index in range(start, start + count)
        ]

    return _make
