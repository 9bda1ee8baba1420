import json

import pandas as pd

from workforce_ingest import export
from workforce_ingest.compare import compare_snapshots
from workforce_ingest.models import BatchError, DepartmentStats, SnapshotEntry


def _entry(snapshot_id, total, salary, breakdown):
    return SnapshotEntry(
        snapshot_id=snapshot_id,
        file_name=f"{snapshot_id}.xlsx",
        total_records=total,
        total_salary=salary,
        department_breakdown=breakdown,
        status="completed",
    )


def test_comparison_workbook_has_summary_and_departments(tmp_path):
    result = compare_snapshots(
        _entry("jan", 100, 1_000_000, {"Sales": DepartmentStats(60, 600_000), "Ops": DepartmentStats(40, 400_000)}),
        _entry("feb", 90, 950_000, {"Sales": DepartmentStats(50, 550_000), "Ops": DepartmentStats(40, 400_000)}),
    )

    path = export.write_comparison_workbook(result, tmp_path / "out" / "comparison.xlsx")

    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets) == ["Summary", "Department Changes"]
    summary = dict(zip(sheets["Summary"]["Item"], sheets["Summary"]["Value"]))
    assert summary["Baseline File"] == "jan.xlsx"
    assert summary["Status"] == "Cost Savings Achieved"
    departments = sheets["Department Changes"]
    assert list(departments.columns) == export.DEPARTMENT_COLUMNS
    assert departments.iloc[0]["Department"] == "Sales"
    assert departments.iloc[0]["Change"] == -10


def test_error_log_json(tmp_path):
    entry = _entry("jan", 1200, 0, {})
    entry.records_successful = 700
    entry.records_failed = 500
    entry.error_log = [BatchError(1, "constraint violation", 500)]

    path = export.write_error_log(entry, tmp_path / "errors.json")

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["id"] == "jan"
    assert document["recordsFailed"] == 500
    assert document["errorLog"] == [{"batchIndex": 1, "message": "constraint violation", "recordCount": 500}]
