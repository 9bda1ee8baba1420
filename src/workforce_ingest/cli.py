import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from .compare import compare_snapshots
from .config_loader import load_config
from .errors import IngestError
from .export import write_comparison_workbook
from .ledger import SnapshotLedger
from .logging_config import configure_logging
from .pipeline import run_ingestion
from .storage.factory import create_backend
from .transform import load_mapping_preset

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Workforce snapshot ingestion and comparison"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser("ingest", help="Import an HR extract as a new snapshot")
    _add_config_argument(ingest_parser)
    ingest_parser.add_argument(
        "--source",
        required=True,
        type=Path,
        help="CSV or Excel extract to import",
    )
    ingest_parser.add_argument(
        "--mapping",
        type=Path,
        help="YAML column mapping preset (auto-detected from headers when omitted)",
    )

    list_parser = subparsers.add_parser("list", help="List snapshots, newest first")
    _add_config_argument(list_parser)

    compare_parser = subparsers.add_parser("compare", help="Compare two snapshots")
    _add_config_argument(compare_parser)
    compare_parser.add_argument("--baseline", required=True, help="Baseline snapshot id")
    compare_parser.add_argument("--current", required=True, help="Current snapshot id")
    compare_parser.add_argument(
        "--output",
        type=Path,
        help="Write the comparison to this .xlsx workbook",
    )

    delete_parser = subparsers.add_parser("delete", help="Delete a snapshot and its employee records")
    _add_config_argument(delete_parser)
    delete_parser.add_argument("--snapshot", required=True, help="Snapshot id to delete")
    delete_parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the deletion; it cannot be undone",
    )

    return parser


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        required=True,
        type=Path,
        help="Path to YAML configuration file",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "delete" and not args.yes:
        parser.error("delete is irreversible; pass --yes to confirm")

    try:
        config = load_config(args.config)
        configure_logging(config)
        with create_backend(config) as backend:
            if args.command == "ingest":
                mapping = load_mapping_preset(args.mapping) if args.mapping else None
                outcome = run_ingestion(args.source, mapping, backend, config, on_progress=_log_progress)
                entry = outcome.entry
                print(
                    f"Snapshot {entry.snapshot_id}: {entry.records_successful} successful, "
                    f"{entry.records_failed} failed, {entry.records_skipped} skipped"
                )
                if outcome.report_path:
                    print(f"Report: {outcome.report_path}")
            elif args.command == "list":
                for entry in SnapshotLedger(backend).list_entries():
                    created = entry.created_at.isoformat() if entry.created_at else "-"
                    print(f"{entry.snapshot_id}  {created}  {entry.status:<10}  {entry.total_records:>7}  {entry.file_name}")
            elif args.command == "compare":
                ledger = SnapshotLedger(backend)
                result = compare_snapshots(ledger.get(args.baseline), ledger.get(args.current))
                print(json.dumps(result.to_dict(), indent=2))
                if args.output:
                    write_comparison_workbook(result, args.output)
            elif args.command == "delete":
                deleted = SnapshotLedger(backend).delete(args.snapshot)
                print(f"Deleted snapshot {args.snapshot} ({deleted} employee records)")
    except IngestError as exc:
        logger.error("%s", exc)
        return 1
    return 0


def _log_progress(processed: int, total: int) -> None:
    logger.info("Progress: %s/%s records", processed, total)


if __name__ == "__main__":
    raise SystemExit(main())
