import logging
import uuid
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    case,
    create_engine,
    delete,
    event,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..constants import HOURS_PER_YEAR, UNKNOWN_DEPARTMENT
from ..errors import BackendUnavailable, BatchWriteError, StorageError
from ..models import DepartmentStats, EmployeeRecord, SnapshotEntry
from .base import StorageBackend
from .fields import RELATIONAL_FIELDS

logger = logging.getLogger(__name__)

metadata = MetaData()

uploads = Table(
    "uploads",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("file_name", Text, nullable=False),
    Column("file_size", BigInteger),
    Column("total_records", Integer, nullable=False, default=0),
    Column("records_successful", Integer, nullable=False, default=0),
    Column("records_failed", Integer, nullable=False, default=0),
    Column("records_skipped", Integer, nullable=False, default=0),
    Column("processing_time_ms", Integer),
    Column("error_log", JSON),
    Column("department_breakdown", JSON),
    Column("total_salary", Numeric(15, 2, asdecimal=False), default=0),
    Column("status", String(20), default="completed"),
    Column("created_at", DateTime(timezone=True), index=True),
)

employees = Table(
    "employees",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("upload_id", String(36), ForeignKey("uploads.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("employee_id", Text, nullable=False),
    Column("name", Text),
    Column("email", Text),
    Column("department", Text, index=True),
    Column("division", Text),
    Column("company", Text),
    Column("country", Text),
    Column("role", Text),
    Column("status", String(20)),
    Column("fte", Numeric(5, 2, asdecimal=False)),
    Column("start_date", Date),
    Column("end_date", Date),
    Column("base_salary", Numeric(15, 2, asdecimal=False)),
    Column("hourly_rate", Numeric(10, 2, asdecimal=False)),
    Column("pay_scale", Text),
    Column("cost_center", Text),
    Column("reduction_status", String(20)),
    Column("reduction_percentage", Numeric(5, 2, asdecimal=False)),
    Column("created_at", DateTime(timezone=True)),
    UniqueConstraint("upload_id", "employee_id", name="uq_employees_upload_employee"),
)

DATE_COLUMNS = ("start_date", "end_date")


class RelationalStore(StorageBackend):
    """SQL database store with snake_case columns, via SQLAlchemy Core."""

    name = "relational"

    def __init__(self, url: str | None = None, engine: Engine | None = None, echo: bool = False) -> None:
        if engine is None:
            if not url:
                raise ValueError("RelationalStore needs a database url or an engine")
            engine = create_engine(url, echo=echo, future=True)
        self._engine = engine
        if engine.dialect.name == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        with self._guard("create schema"):
            metadata.create_all(self._engine)
        logger.info("Connected relational store %s", self._engine.url.render_as_string(hide_password=True))

    def insert_batch(self, records: Sequence[EmployeeRecord]) -> List[str]:
        ids = [str(uuid.uuid4()) for _ in records]
        rows = [self._employee_row(record, record_id) for record_id, record in zip(ids, records)]
        if not rows:
            return []
        with self._guard("insert batch"):
            with self._engine.begin() as conn:
                conn.execute(insert(employees), rows)
        return ids

    def count_by_owner(self, snapshot_id: str) -> int:
        query = select(func.count()).select_from(employees).where(employees.c.upload_id == snapshot_id)
        with self._guard("count records"):
            with self._engine.connect() as conn:
                return int(conn.execute(query).scalar_one())

    def paginate(self, snapshot_id: str, offset: int, limit: int) -> List[EmployeeRecord]:
        query = (
            select(employees)
            .where(employees.c.upload_id == snapshot_id)
            .order_by(employees.c.employee_id)
            .offset(offset)
            .limit(limit)
        )
        with self._guard("paginate records"):
            with self._engine.connect() as conn:
                rows = conn.execute(query).mappings().all()
        return [RELATIONAL_FIELDS.employee_from_storage(row) for row in rows]

    def delete_by_owner(self, snapshot_id: str) -> int:
        with self._guard("delete records"):
            with self._engine.begin() as conn:
                result = conn.execute(delete(employees).where(employees.c.upload_id == snapshot_id))
        return result.rowcount

    def department_totals(self, snapshot_id: str) -> Dict[str, DepartmentStats]:
        """Grouped query instead of streaming every record back."""
        department = func.coalesce(func.nullif(employees.c.department, ""), UNKNOWN_DEPARTMENT)
        cost = case(
            (func.coalesce(employees.c.base_salary, 0) != 0, employees.c.base_salary),
            else_=func.coalesce(employees.c.hourly_rate, 0) * HOURS_PER_YEAR,
        )
        query = (
            select(department.label("department"), func.count().label("headcount"), func.sum(cost).label("cost"))
            .where(employees.c.upload_id == snapshot_id)
            .group_by(department)
            .order_by(department)
        )
        with self._guard("aggregate departments"):
            with self._engine.connect() as conn:
                rows = conn.execute(query).all()
        return {
            row.department: DepartmentStats(count=int(row.headcount), total_salary=float(row.cost or 0))
            for row in rows
        }

    def create_entry(self, entry: SnapshotEntry) -> SnapshotEntry:
        with self._guard("create ledger entry"):
            with self._engine.begin() as conn:
                conn.execute(insert(uploads).values(**RELATIONAL_FIELDS.entry_to_storage(entry)))
        return entry

    def update_entry(self, entry: SnapshotEntry) -> SnapshotEntry:
        values = RELATIONAL_FIELDS.entry_to_storage(entry)
        values.pop("id")
        with self._guard("update ledger entry"):
            with self._engine.begin() as conn:
                result = conn.execute(update(uploads).where(uploads.c.id == entry.snapshot_id).values(**values))
        if result.rowcount == 0:
            raise StorageError(f"Ledger entry {entry.snapshot_id} does not exist")
        return entry

    def get_entry(self, snapshot_id: str) -> Optional[SnapshotEntry]:
        with self._guard("read ledger entry"):
            with self._engine.connect() as conn:
                row = conn.execute(select(uploads).where(uploads.c.id == snapshot_id)).mappings().first()
        return RELATIONAL_FIELDS.entry_from_storage(row) if row is not None else None

    def list_entries(self) -> List[SnapshotEntry]:
        with self._guard("list ledger entries"):
            with self._engine.connect() as conn:
                rows = conn.execute(select(uploads).order_by(uploads.c.created_at.desc())).mappings().all()
        return [RELATIONAL_FIELDS.entry_from_storage(row) for row in rows]

    def delete_entry(self, snapshot_id: str) -> bool:
        with self._guard("delete ledger entry"):
            with self._engine.begin() as conn:
                result = conn.execute(delete(uploads).where(uploads.c.id == snapshot_id))
        return result.rowcount > 0

    def close(self) -> None:
        self._engine.dispose()

    def _employee_row(self, record: EmployeeRecord, record_id: str) -> Dict[str, Any]:
        if not record.snapshot_id:
            raise BatchWriteError(f"Record {record.employee_id} has no snapshot id")
        row = RELATIONAL_FIELDS.employee_to_storage(record, record_id)
        for column in DATE_COLUMNS:
            if row[column]:
                row[column] = date.fromisoformat(row[column])
        return row

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Translate driver errors into the ingestion error taxonomy."""
        try:
            yield
        except (OperationalError, DisconnectionError, PoolTimeoutError) as exc:
            raise BackendUnavailable(f"Relational store unavailable during {action}: {exc}") from exc
        except SQLAlchemyError as exc:
            raise BatchWriteError(f"Relational store rejected {action}: {exc}") from exc


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite leaves foreign keys off unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
