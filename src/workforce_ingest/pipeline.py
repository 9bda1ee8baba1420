import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import logging

from . import dedup, export, ingestion, qa, transform, writer
from .config_loader import ingest_settings
from .ledger import SnapshotLedger
from .models import ColumnMapping, IngestionOutcome, SourceFile
from .storage.base import StorageBackend
from .writer import ProgressCallback, RetryPolicy

logger = logging.getLogger(__name__)


def run_ingestion(
    source: Union[SourceFile, Path],
    mapping: Optional[ColumnMapping],
    backend: StorageBackend,
    config: Mapping[str, Any],
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> IngestionOutcome:
    """Top-level orchestration of one ingestion run."""
    started = time.perf_counter()
    settings = ingest_settings(config)

    # 1. Read the extract
    if not isinstance(source, SourceFile):
        source = ingestion.read_source(Path(source))

    # 2. Map source columns onto canonical records
    if mapping is None:
        mapping = replace(ingestion.detect_mapping(source.headers), required_fields=settings.required_fields)
    logger.info("Ingesting %s with mapping %s", source.file_name, mapping.name or "custom")
    mapping_result = transform.map_rows(source.rows, mapping)

    ledger = SnapshotLedger(backend)
    entry = ledger.open(source.file_name, source.file_size, mapping_result.total_rows)

    try:
        # 3. Collapse duplicate business ids
        dedup_result = dedup.remove_duplicates(mapping_result.records)

        # 4. Write in batches
        write_result = writer.write_batches(
            dedup_result.records,
            entry.snapshot_id,
            backend,
            batch_size=settings.batch_size,
            on_progress=on_progress,
            max_workers=settings.max_workers,
            retry=RetryPolicy(settings.retry_attempts, settings.retry_backoff_seconds),
            cancel_event=cancel_event,
        )
    except Exception:
        ledger.mark_failed(entry)
        raise

    # 5. Finalize the ledger entry
    entry = ledger.finalize(
        entry,
        skipped=len(mapping_result.errors) + dedup_result.skipped,
        write_result=write_result,
        duration_ms=(time.perf_counter() - started) * 1000,
    )

    # 6. Report
    report_path = qa.generate_report(entry, mapping_result, dedup_result, write_result, config)
    error_log_path = None
    if entry.error_log:
        output_root = Path(config.get("paths", {}).get("output_root", "output"))
        error_log_path = export.write_error_log(entry, output_root / f"Import Errors {entry.snapshot_id}.json")

    return IngestionOutcome(
        entry=entry,
        mapping_result=mapping_result,
        dedup_result=dedup_result,
        write_result=write_result,
        report_path=report_path,
        error_log_path=error_log_path,
    )
