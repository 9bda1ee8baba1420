from pathlib import Path
from typing import Any, List, Mapping, Sequence

import logging

from .models import DedupResult, MappingResult, SnapshotEntry, WriteResult


logger = logging.getLogger(__name__)

MAX_ROW_ERRORS = 50


def generate_report(
    entry: SnapshotEntry,
    mapping_result: MappingResult,
    dedup_result: DedupResult,
    write_result: WriteResult,
    config: Mapping[str, Any],
) -> Path:
    """Write a plain-text report summarizing one ingestion run."""
    paths_cfg = config.get("paths", {}) if isinstance(config, Mapping) else {}
    output_root = Path(paths_cfg.get("output_root", "output"))
    output_root.mkdir(parents=True, exist_ok=True)

    report_path = output_root / f"Import Report {entry.snapshot_id}.txt"

    lines = [
        f"Import report for {entry.file_name}",
        f"Snapshot: {entry.snapshot_id} ({entry.status})",
        "",
        f"Rows submitted: {entry.total_records}",
        f"Rows mapped: {len(mapping_result.records)}",
        f"Rows rejected: {len(mapping_result.errors)}",
        f"Row warnings: {len(mapping_result.warnings)}",
        f"Duplicates removed: {dedup_result.duplicates_removed}",
        f"Blank ids skipped: {dedup_result.blank_ids_skipped}",
        "",
        f"Records successful: {entry.records_successful}",
        f"Records failed: {entry.records_failed}",
        f"Records skipped: {entry.records_skipped}",
        f"Not attempted: {write_result.not_attempted}",
        f"Batches: {len(write_result.batches)}",
        f"Processing time: {entry.processing_time_ms} ms",
        f"Throughput: {write_result.records_per_second:.0f} records/s",
        f"Total salary: {entry.total_salary:,.0f}",
        "",
        "Departments:",
    ]
    for dept, stats in sorted(entry.department_breakdown.items()):
        lines.append(f"- {dept}: {stats.count} employees, {stats.total_salary:,.2f}")
    if not entry.department_breakdown:
        lines.append("- none")

    lines.extend(["", "Row errors:"])
    lines.extend(_capped(mapping_result.errors))

    lines.extend(["", "Row warnings:"])
    lines.extend(_capped(mapping_result.warnings))

    lines.extend(["", "Batch errors:"])
    for batch_error in entry.error_log:
        lines.append(f"- batch {batch_error.batch_index} ({batch_error.record_count} records): {batch_error.message}")
    if not entry.error_log:
        lines.append("- none")

    with report_path.open("w", encoding="utf-8") as handle:
        handle.write("\n".join(lines))

    logger.info("Import report written to %s", report_path)
    return report_path


def _capped(items: Sequence[Any]) -> List[str]:
    lines = [f"- {item}" for item in items[:MAX_ROW_ERRORS]]
    hidden = len(items) - MAX_ROW_ERRORS
    if hidden > 0:
        lines.append(f"- ... and {hidden} more")
    return lines or ["- none"]
