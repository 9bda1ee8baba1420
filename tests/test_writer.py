import threading

from workforce_ingest.errors import BackendUnavailable, BatchWriteError
from workforce_ingest.writer import RetryPolicy, write_batches


def _fail_batch_starting_at(employee_id, exc_type=BatchWriteError):
    def hook(records):
        if records[0].employee_id == employee_id:
            raise exc_type(f"rejected batch starting at {employee_id}")

    return hook


def test_failed_middle_batch_is_isolated(memory_backend, make_records):
    memory_backend.batch_hook = _fail_batch_starting_at("E00500")
    progress = []

    result = write_batches(
        make_records(1200), "snap-1", memory_backend, batch_size=500, on_progress=lambda p, t: progress.append((p, t))
    )

    assert result.successful == 700
    assert result.failed == 500
    assert len(result.errors) == 1
    assert result.errors[0].batch_index == 1
    assert result.errors[0].record_count == 500
    assert [timing.record_count for timing in result.batches] == [500, 500, 200]
    assert [timing.succeeded for timing in result.batches] == [True, False, True]
    assert progress == [(500, 1200), (1000, 1200), (1200, 1200)]
    assert len(memory_backend.records) == 700
    assert {record.snapshot_id for record in memory_backend.records} == {"snap-1"}
    assert all(record.created_at is not None for record in memory_backend.records)


def test_unhandled_exception_fails_only_its_batch(memory_backend, make_records):
    memory_backend.batch_hook = _fail_batch_starting_at("E00000", exc_type=RuntimeError)

    result = write_batches(make_records(30), "snap-1", memory_backend, batch_size=10)

    assert result.successful == 20
    assert result.failed == 10
    assert result.errors[0].batch_index == 0
    assert "rejected batch" in result.errors[0].message


def test_transient_failures_are_retried_with_backoff(memory_backend, make_records):
    failures = {"left": 2}

    def flaky(records):
        if failures["left"]:
            failures["left"] -= 1
            raise BackendUnavailable("connection reset")

    memory_backend.batch_hook = flaky
    delays = []

    result = write_batches(
        make_records(5),
        "snap-1",
        memory_backend,
        retry=RetryPolicy(max_attempts=3, backoff_seconds=0.5),
        sleep=delays.append,
    )

    assert result.successful == 5
    assert result.errors == []
    assert delays == [0.5, 1.0]
    assert result.batches[0].attempts == 3


def test_exhausted_retries_fail_the_batch(memory_backend, make_records):
    def down(records):
        raise BackendUnavailable("database is locked")

    memory_backend.batch_hook = down
    delays = []

    result = write_batches(
        make_records(4),
        "snap-1",
        memory_backend,
        batch_size=2,
        retry=RetryPolicy(max_attempts=2, backoff_seconds=0.1),
        sleep=delays.append,
    )

    assert result.successful == 0
    assert result.failed == 4
    assert [err.batch_index for err in result.errors] == [0, 1]
    assert "after 2 attempts" in result.errors[0].message
    assert delays == [0.1, 0.1]


def test_partial_accept_counts_remainder_as_failed(memory_backend, make_records):
    memory_backend.accept_limit = 8

    result = write_batches(make_records(10), "snap-1", memory_backend, batch_size=10)

    assert result.successful == 8
    assert result.failed == 2
    assert result.errors[0].record_count == 2


def test_backend_returning_no_ids_fails_only_its_batch(memory_backend, make_records, monkeypatch):
    insert = memory_backend.insert_batch

    def drop_ids_for_first(records):
        ids = insert(records)
        return None if records[0].employee_id == "E00000" else ids

    monkeypatch.setattr(memory_backend, "insert_batch", drop_ids_for_first)

    result = write_batches(make_records(20), "snap-1", memory_backend, batch_size=10)

    assert result.successful == 10
    assert result.failed == 10
    assert [err.batch_index for err in result.errors] == [0]
    assert len(result.batches) == 2


def test_worker_pool_keeps_progress_monotonic(memory_backend, make_records):
    memory_backend.batch_hook = _fail_batch_starting_at("E00300")
    progress = []

    result = write_batches(
        make_records(1000),
        "snap-1",
        memory_backend,
        batch_size=100,
        max_workers=4,
        on_progress=lambda p, t: progress.append(p),
    )

    assert result.successful == 900
    assert result.failed == 100
    assert [err.batch_index for err in result.errors] == [3]
    assert progress == sorted(progress)
    assert progress[-1] == 1000
    assert [timing.batch_index for timing in result.batches] == list(range(10))
    assert len(memory_backend.records) == 900


def test_cancellation_stops_new_batches(memory_backend, make_records):
    cancel = threading.Event()

    def cancel_after_first(records):
        cancel.set()

    memory_backend.batch_hook = cancel_after_first
    progress = []

    result = write_batches(
        make_records(1200),
        "snap-1",
        memory_backend,
        batch_size=500,
        on_progress=lambda p, t: progress.append((p, t)),
        cancel_event=cancel,
    )

    assert result.successful == 500
    assert result.not_attempted == 700
    assert result.failed == 0
    assert memory_backend.insert_calls == 1
    assert progress == [(500, 1200)]


def test_empty_input_reports_completion(memory_backend):
    progress = []

    result = write_batches([], "snap-1", memory_backend, on_progress=lambda p, t: progress.append((p, t)))

    assert result.successful == 0
    assert memory_backend.insert_calls == 0
    assert progress == [(0, 0)]
