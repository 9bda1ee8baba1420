import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

from ..errors import BackendUnavailable, BatchWriteError, StorageError
from ..models import EmployeeRecord, SnapshotEntry
from .base import StorageBackend
from .fields import LOCAL_FIELDS

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS import_history (
    id TEXT PRIMARY KEY,
    created_at TEXT,
    document TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS employees (
    id TEXT PRIMARY KEY,
    upload_id TEXT NOT NULL REFERENCES import_history(id) ON DELETE CASCADE,
    employee_id TEXT NOT NULL,
    document TEXT NOT NULL,
    UNIQUE (upload_id, employee_id)
);
CREATE INDEX IF NOT EXISTS idx_employees_upload_id ON employees(upload_id);
"""


class LocalStore(StorageBackend):
    """Embedded single-file store keeping camelCase JSON documents."""

    name = "local"

    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        with self._guard("open store"):
            self._conn = sqlite3.connect(self.path, check_same_thread=False, timeout=5.0)
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
        logger.info("Opened local store at %s", self.path)

    def insert_batch(self, records: Sequence[EmployeeRecord]) -> List[str]:
        ids = [uuid.uuid4().hex for _ in records]
        rows = []
        for record_id, record in zip(ids, records):
            if not record.snapshot_id:
                raise BatchWriteError(f"Record {record.employee_id} has no snapshot id")
            document = LOCAL_FIELDS.employee_to_storage(record, record_id)
            rows.append((record_id, record.snapshot_id, record.employee_id, _dumps(document)))
        with self._guard("insert batch"):
            with self._conn:
                self._conn.executemany(
                    "INSERT INTO employees (id, upload_id, employee_id, document) VALUES (?, ?, ?, ?)",
                    rows,
                )
        return ids

    def count_by_owner(self, snapshot_id: str) -> int:
        with self._guard("count records"):
            row = self._conn.execute(
                "SELECT COUNT(*) FROM employees WHERE upload_id = ?", (snapshot_id,)
            ).fetchone()
        return int(row[0])

    def paginate(self, snapshot_id: str, offset: int, limit: int) -> List[EmployeeRecord]:
        with self._guard("paginate records"):
            rows = self._conn.execute(
                "SELECT document FROM employees WHERE upload_id = ? "
                "ORDER BY employee_id LIMIT ? OFFSET ?",
                (snapshot_id, limit, offset),
            ).fetchall()
        return [LOCAL_FIELDS.employee_from_storage(json.loads(row[0])) for row in rows]

    def delete_by_owner(self, snapshot_id: str) -> int:
        with self._guard("delete records"):
            with self._conn:
                cursor = self._conn.execute("DELETE FROM employees WHERE upload_id = ?", (snapshot_id,))
        return cursor.rowcount

    def create_entry(self, entry: SnapshotEntry) -> SnapshotEntry:
        document = LOCAL_FIELDS.entry_to_storage(entry)
        with self._guard("create ledger entry"):
            with self._conn:
                self._conn.execute(
                    "INSERT INTO import_history (id, created_at, document) VALUES (?, ?, ?)",
                    (entry.snapshot_id, _iso(entry.created_at), _dumps(document)),
                )
        return entry

    def update_entry(self, entry: SnapshotEntry) -> SnapshotEntry:
        document = LOCAL_FIELDS.entry_to_storage(entry)
        with self._guard("update ledger entry"):
            with self._conn:
                cursor = self._conn.execute(
                    "UPDATE import_history SET document = ? WHERE id = ?",
                    (_dumps(document), entry.snapshot_id),
                )
        if cursor.rowcount == 0:
            raise StorageError(f"Ledger entry {entry.snapshot_id} does not exist")
        return entry

    def get_entry(self, snapshot_id: str) -> Optional[SnapshotEntry]:
        with self._guard("read ledger entry"):
            row = self._conn.execute(
                "SELECT document FROM import_history WHERE id = ?", (snapshot_id,)
            ).fetchone()
        if row is None:
            return None
        return LOCAL_FIELDS.entry_from_storage(json.loads(row[0]))

    def list_entries(self) -> List[SnapshotEntry]:
        with self._guard("list ledger entries"):
            rows = self._conn.execute(
                "SELECT document FROM import_history ORDER BY created_at DESC"
            ).fetchall()
        return [LOCAL_FIELDS.entry_from_storage(json.loads(row[0])) for row in rows]

    def delete_entry(self, snapshot_id: str) -> bool:
        with self._guard("delete ledger entry"):
            with self._conn:
                cursor = self._conn.execute("DELETE FROM import_history WHERE id = ?", (snapshot_id,))
        return cursor.rowcount > 0

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Serialize access to the shared connection and translate sqlite errors."""
        with self._lock:
            try:
                yield
            except sqlite3.OperationalError as exc:
                raise BackendUnavailable(f"Local store unavailable during {action}: {exc}") from exc
            except sqlite3.DatabaseError as exc:
                raise BatchWriteError(f"Local store rejected {action}: {exc}") from exc


def _dumps(document: Any) -> str:
    return json.dumps(document, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
