import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Sequence

from .constants import DEFAULT_BATCH_SIZE, DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_BACKOFF_SECONDS
from .errors import BackendUnavailable
from .models import BatchError, BatchTiming, EmployeeRecord, WriteResult
from .storage.base import StorageBackend

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retries for transient backend failures, per batch."""

    max_attempts: int = DEFAULT_RETRY_ATTEMPTS
    backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    def delay(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** (attempt - 1))


@dataclass
class _BatchOutcome:
    index: int
    size: int
    attempted: bool
    accepted: int = 0
    error: Optional[BatchError] = None
    timing: Optional[BatchTiming] = None


def write_batches(
    records: Sequence[EmployeeRecord],
    snapshot_id: str,
    backend: StorageBackend,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    max_workers: int = 1,
    retry: RetryPolicy = RetryPolicy(),
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> WriteResult:
    """Write records to the backend in contiguous, fixed-size batches.

    A failed batch is recorded and skipped; the remaining batches still run.
    ``on_progress(processed, total)`` fires after every attempted batch with a
    running total. Once ``cancel_event`` is set no new batch is started and
    the records left over are reported as ``not_attempted``.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be greater than 0")

    created_at = datetime.now(timezone.utc)
    stamped = [replace(record, snapshot_id=snapshot_id, created_at=created_at) for record in records]
    batches = list(_partition(stamped, batch_size))
    total = len(stamped)
    result = WriteResult()
    processed = 0

    def attempt(index: int, batch: List[EmployeeRecord]) -> _BatchOutcome:
        if cancel_event is not None and cancel_event.is_set():
            return _BatchOutcome(index=index, size=len(batch), attempted=False)
        return _write_batch(backend, index, batch, retry, sleep)

    started = time.perf_counter()
    logger.info(
        "Writing %s records for snapshot %s in %s batches of up to %s",
        total,
        snapshot_id,
        len(batches),
        batch_size,
    )

    if max_workers <= 1:
        outcomes: Iterator[_BatchOutcome] = (attempt(index, batch) for index, batch in enumerate(batches))
        for outcome in outcomes:
            processed = _apply(result, outcome, processed, total, on_progress)
    else:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="batch-writer") as pool:
            futures = [pool.submit(attempt, index, batch) for index, batch in enumerate(batches)]
            # Callbacks run on this thread only, so the running total never goes backwards
            for future in as_completed(futures):
                processed = _apply(result, future.result(), processed, total, on_progress)

    if total == 0 and on_progress:
        on_progress(0, 0)

    result.errors.sort(key=lambda err: err.batch_index)
    result.batches.sort(key=lambda timing: timing.batch_index)
    result.total_time_ms = (time.perf_counter() - started) * 1000

    logger.info(
        "Write complete for snapshot %s: %s successful, %s failed, %s not attempted in %.0fms (%.0f records/s)",
        snapshot_id,
        result.successful,
        result.failed,
        result.not_attempted,
        result.total_time_ms,
        result.records_per_second,
    )
    return result


def _apply(
    result: WriteResult,
    outcome: _BatchOutcome,
    processed: int,
    total: int,
    on_progress: Optional[ProgressCallback],
) -> int:
    if not outcome.attempted:
        result.not_attempted += outcome.size
        return processed

    result.successful += outcome.accepted
    result.failed += outcome.size - outcome.accepted
    if outcome.error is not None:
        result.errors.append(outcome.error)
    if outcome.timing is not None:
        result.batches.append(outcome.timing)

    processed += outcome.size
    if on_progress:
        on_progress(processed, total)
    return processed


def _write_batch(
    backend: StorageBackend,
    index: int,
    batch: List[EmployeeRecord],
    retry: RetryPolicy,
    sleep: Callable[[float], None],
) -> _BatchOutcome:
    started = time.perf_counter()
    attempts = 0
    accepted = 0
    error: Optional[BatchError] = None

    while True:
        attempts += 1
        try:
            inserted = backend.insert_batch(batch)
            accepted = min(len(inserted), len(batch))
        except BackendUnavailable as exc:
            if attempts < retry.max_attempts:
                delay = retry.delay(attempts)
                logger.warning(
                    "Batch %s: backend unavailable (attempt %s/%s), retrying in %.2fs: %s",
                    index,
                    attempts,
                    retry.max_attempts,
                    delay,
                    exc,
                )
                sleep(delay)
                continue
            error = BatchError(index, f"Backend unavailable after {attempts} attempts: {exc}", len(batch))
        except Exception as exc:
            # A failing batch never aborts the run
            error = BatchError(index, str(exc) or type(exc).__name__, len(batch))
        else:
            if accepted < len(batch):
                error = BatchError(
                    index,
                    f"Backend accepted {accepted} of {len(batch)} records",
                    len(batch) - accepted,
                )
        break

    duration_ms = (time.perf_counter() - started) * 1000
    if error is not None:
        logger.error("Batch %s failed (%s records): %s", index, error.record_count, error.message)
    else:
        logger.debug("Batch %s wrote %s records in %.2fms", index, accepted, duration_ms)

    timing = BatchTiming(
        batch_index=index,
        record_count=len(batch),
        duration_ms=duration_ms,
        succeeded=error is None,
        attempts=attempts,
    )
    return _BatchOutcome(index=index, size=len(batch), attempted=True, accepted=accepted, error=error, timing=timing)


def _partition(records: Sequence[EmployeeRecord], batch_size: int) -> Iterator[List[EmployeeRecord]]:
    for start in range(0, len(records), batch_size):
        yield list(records[start:start + batch_size])
