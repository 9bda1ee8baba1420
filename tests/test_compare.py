import pytest

from workforce_ingest.compare import coerce_entry, compare_snapshots
from workforce_ingest.models import DepartmentStats, SnapshotEntry


def _entry(snapshot_id, total, salary, breakdown=None):
    return SnapshotEntry(
        snapshot_id=snapshot_id,
        file_name=f"{snapshot_id}.xlsx",
        total_records=total,
        total_salary=salary,
        department_breakdown=breakdown or {},
        status="completed",
    )


def test_headcount_reduction_scenario():
    baseline = _entry("jan", 100, 1_000_000)
    current = _entry("feb", 90, 950_000)

    result = compare_snapshots(baseline, current)

    assert result.headcount_change == -10
    assert result.headcount_change_percent == -10.0
    assert result.cost_change == -50_000
    assert result.cost_change_percent == -5.0
    assert result.savings_achieved is True


def test_zero_baseline_yields_zero_percentages():
    result = compare_snapshots(_entry("empty", 0, 0), _entry("feb", 12, 600_000))

    assert result.headcount_change == 12
    assert result.headcount_change_percent == 0
    assert result.cost_change_percent == 0
    assert result.savings_achieved is False


def test_comparing_snapshot_with_itself_is_neutral():
    entry = _entry(
        "jan",
        3,
        150_000,
        {"Sales": DepartmentStats(2, 100_000), "Ops": DepartmentStats(1, 50_000)},
    )

    result = compare_snapshots(entry, entry)

    assert result.headcount_change == 0
    assert result.cost_change == 0
    assert all(change.change == 0 for change in result.department_changes)


def test_department_changes_sorted_by_magnitude():
    baseline = _entry(
        "jan",
        60,
        0,
        {
            "Sales": DepartmentStats(10, 500_000),
            "Ops": DepartmentStats(30, 900_000),
            "Legal": DepartmentStats(20, 1_000_000),
        },
    )
    current = _entry(
        "feb",
        55,
        0,
        {
            "Sales": DepartmentStats(12, 600_000),
            "Ops": DepartmentStats(25, 750_000),
            "Legal": DepartmentStats(18, 900_000),
            "R&D": DepartmentStats(2, 150_000),
        },
    )

    result = compare_snapshots(baseline, current)

    assert [c.department for c in result.department_changes] == ["Ops", "Sales", "Legal", "R&D"]
    ops = result.department_changes[0]
    assert (ops.change, ops.change_percent, ops.salary_change) == (-5, -16.7, -150_000)
    new_dept = result.department_changes[-1]
    assert (new_dept.baseline_count, new_dept.change_percent) == (0, 0)


def test_change_percent_rounds_half_up():
    # 1 / 16 = 6.25%
    assert compare_snapshots(_entry("a", 16, 0), _entry("b", 17, 0)).headcount_change_percent == 6.3
    assert compare_snapshots(_entry("a", 16, 0), _entry("b", 15, 0)).headcount_change_percent == -6.3


def test_inputs_are_not_mutated():
    baseline = _entry("jan", 10, 100, {"Sales": DepartmentStats(10, 100)})
    current = _entry("feb", 8, 80, {"Sales": DepartmentStats(8, 80)})

    compare_snapshots(baseline, current)

    assert baseline.department_breakdown == {"Sales": DepartmentStats(10, 100)}
    assert current.total_records == 8


def test_stored_mappings_from_both_backends():
    local = {
        "id": "jan",
        "fileName": "jan.xlsx",
        "totalRecords": 100,
        "totalSalary": 1_000_000,
        "timestamp": "2024-01-31T10:00:00+00:00",
        "departmentBreakdown": {"Sales": 100},
        "someLegacyFlag": True,
    }
    relational = {
        "id": "feb",
        "file_name": "feb.xlsx",
        "total_records": 90,
        "total_salary": 950_000,
        "created_at": "2024-02-29T10:00:00+00:00",
        "department_breakdown": {"Sales": {"count": 90, "totalSalary": 950_000}},
    }

    result = compare_snapshots(local, relational)

    assert result.baseline.file_name == "jan.xlsx"
    assert result.current.file_name == "feb.xlsx"
    assert result.headcount_change == -10
    sales = result.department_changes[0]
    assert (sales.baseline_count, sales.baseline_salary, sales.current_salary) == (100, 0.0, 950_000)


def test_to_dict_uses_camel_case():
    payload = compare_snapshots(_entry("jan", 100, 1_000_000), _entry("feb", 90, 950_000)).to_dict()

    assert payload["headcountChange"] == -10
    assert payload["savingsAchieved"] is True
    assert payload["baselineId"] == "jan"


def test_coerce_entry_rejects_unknown_shapes():
    with pytest.raises(ValueError):
        coerce_entry({"foo": 1})
    with pytest.raises(TypeError):
        coerce_entry(42)
