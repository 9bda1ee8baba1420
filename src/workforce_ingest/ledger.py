import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from itertools import count
from typing import Dict, Iterable, List

from .constants import DEFAULT_PAGE_SIZE, SNAPSHOT_COMPLETED, SNAPSHOT_FAILED, SNAPSHOT_PROCESSING, TERMINAL_STATUSES
from .errors import LedgerFinalizationError, SnapshotNotFound, StorageError
from .models import BatchError, DepartmentStats, EmployeeRecord, SnapshotEntry, WriteResult
from .storage.base import StorageBackend
from .utils.values import round_half_up

logger = logging.getLogger(__name__)


class SnapshotLedger:
    """Lifecycle of ledger entries: one per ingestion run."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    def open(self, file_name: str, file_size: int, total_records: int) -> SnapshotEntry:
        entry = SnapshotEntry(
            snapshot_id=str(uuid.uuid4()),
            file_name=file_name,
            file_size=file_size,
            total_records=total_records,
            status=SNAPSHOT_PROCESSING,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self.backend.create_entry(entry)
        except StorageError as exc:
            raise LedgerFinalizationError(f"Could not create ledger entry for {file_name}: {exc}") from exc
        logger.info("Opened snapshot %s for %s (%s rows)", entry.snapshot_id, file_name, total_records)
        return entry

    def finalize(
        self,
        entry: SnapshotEntry,
        skipped: int,
        write_result: WriteResult,
        duration_ms: float,
    ) -> SnapshotEntry:
        """Record final counts, rollups and the error log; the entry is frozen afterwards."""
        if entry.status in TERMINAL_STATUSES:
            raise LedgerFinalizationError(
                f"Snapshot {entry.snapshot_id} is already {entry.status} and cannot be finalized again"
            )

        error_log = list(write_result.errors)
        records_skipped = skipped + write_result.not_attempted
        if write_result.not_attempted:
            error_log.append(
                BatchError(
                    batch_index=_first_unattempted_batch(write_result),
                    message=f"Cancelled before writing; {write_result.not_attempted} records not attempted",
                    record_count=write_result.not_attempted,
                )
            )

        accounted = write_result.successful + write_result.failed + records_skipped
        if accounted != entry.total_records:
            logger.warning(
                "Snapshot %s accounts for %s of %s rows; treating the difference as skipped",
                entry.snapshot_id,
                accounted,
                entry.total_records,
            )
            records_skipped = max(0, entry.total_records - write_result.successful - write_result.failed)

        if write_result.successful == 0 and entry.total_records:
            logger.warning("Snapshot %s stored no records", entry.snapshot_id)

        finalized = replace(
            entry,
            records_successful=write_result.successful,
            records_failed=write_result.failed,
            records_skipped=records_skipped,
            processing_time_ms=int(round(duration_ms)),
            error_log=error_log,
            status=SNAPSHOT_COMPLETED,
        )

        try:
            breakdown = self._department_breakdown(entry.snapshot_id)
            finalized = replace(
                finalized,
                department_breakdown=breakdown,
                total_salary=round_half_up(sum(stats.total_salary for stats in breakdown.values())),
            )
            self.backend.update_entry(finalized)
        except Exception as exc:
            # Never leave the entry in processing
            self.mark_failed(finalized)
            raise LedgerFinalizationError(f"Could not finalize snapshot {entry.snapshot_id}: {exc}") from exc

        logger.info(
            "Finalized snapshot %s: %s successful, %s failed, %s skipped, total salary %s",
            finalized.snapshot_id,
            finalized.records_successful,
            finalized.records_failed,
            finalized.records_skipped,
            finalized.total_salary,
        )
        return finalized

    def mark_failed(self, entry: SnapshotEntry) -> SnapshotEntry:
        """Single best-effort attempt to leave the entry in the failed state."""
        failed = replace(entry, status=SNAPSHOT_FAILED)
        try:
            self.backend.update_entry(failed)
        except Exception:
            logger.exception("Could not mark snapshot %s as failed", entry.snapshot_id)
        else:
            logger.warning("Marked snapshot %s as failed", entry.snapshot_id)
        return failed

    def get(self, snapshot_id: str) -> SnapshotEntry:
        entry = self.backend.get_entry(snapshot_id)
        if entry is None:
            raise SnapshotNotFound(f"No snapshot with id {snapshot_id}")
        return entry

    def list_entries(self) -> List[SnapshotEntry]:
        return self.backend.list_entries()

    def count_records(self, snapshot_id: str) -> int:
        return self.backend.count_by_owner(snapshot_id)

    def iter_records(self, snapshot_id: str, page_size: int = DEFAULT_PAGE_SIZE) -> Iterable[EmployeeRecord]:
        return self.backend.iter_records(snapshot_id, page_size)

    def delete(self, snapshot_id: str) -> int:
        """Delete a snapshot's employee records, then its entry. Irreversible."""
        self.get(snapshot_id)
        deleted = self.backend.delete_by_owner(snapshot_id)
        self.backend.delete_entry(snapshot_id)
        logger.info("Deleted snapshot %s and %s employee records", snapshot_id, deleted)
        return deleted

    def _department_breakdown(self, snapshot_id: str) -> Dict[str, DepartmentStats]:
        totals = self.backend.department_totals(snapshot_id)
        return {
            dept: DepartmentStats(count=stats.count, total_salary=round_half_up(stats.total_salary, 2))
            for dept, stats in totals.items()
        }


def _first_unattempted_batch(write_result: WriteResult) -> int:
    attempted = {timing.batch_index for timing in write_result.batches}
    return next(index for index in count() if index not in attempted)
