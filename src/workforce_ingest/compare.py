import logging
from typing import Any, List, Mapping, Union

from .models import ComparisonResult, DepartmentChange, DepartmentStats, SnapshotEntry
from .storage.fields import LOCAL_FIELDS, RELATIONAL_FIELDS
from .utils.values import round_half_up

logger = logging.getLogger(__name__)

EntryLike = Union[SnapshotEntry, Mapping[str, Any]]


def coerce_entry(raw: EntryLike) -> SnapshotEntry:
    """Normalize a ledger entry or a stored mapping from either backend."""
    if isinstance(raw, SnapshotEntry):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"Cannot compare {type(raw).__name__}; expected a snapshot entry or mapping")

    field_map = max((RELATIONAL_FIELDS, LOCAL_FIELDS), key=lambda candidate: candidate.overlap(raw))
    if field_map.overlap(raw) == 0:
        raise ValueError("Mapping does not look like a stored snapshot entry")
    return field_map.entry_from_storage(raw)


def compare_snapshots(baseline: EntryLike, current: EntryLike) -> ComparisonResult:
    """Headcount and cost deltas from ``baseline`` to ``current``."""
    base = coerce_entry(baseline)
    cur = coerce_entry(current)

    headcount_change = cur.total_records - base.total_records
    cost_change = round_half_up(cur.total_salary - base.total_salary, 2)

    result = ComparisonResult(
        baseline=base,
        current=cur,
        headcount_change=headcount_change,
        headcount_change_percent=_percent(headcount_change, base.total_records),
        cost_change=cost_change,
        cost_change_percent=_percent(cost_change, base.total_salary),
        department_changes=_department_changes(base, cur),
        savings_achieved=cost_change < 0,
    )
    logger.info(
        "Compared %s -> %s: headcount %+d (%s%%), cost %+.2f",
        base.snapshot_id,
        cur.snapshot_id,
        headcount_change,
        result.headcount_change_percent,
        cost_change,
    )
    return result


def _department_changes(base: SnapshotEntry, cur: SnapshotEntry) -> List[DepartmentChange]:
    departments = list(base.department_breakdown)
    departments += [dept for dept in cur.department_breakdown if dept not in base.department_breakdown]

    changes = []
    for dept in departments:
        before = base.department_breakdown.get(dept, DepartmentStats())
        after = cur.department_breakdown.get(dept, DepartmentStats())
        change = after.count - before.count
        changes.append(
            DepartmentChange(
                department=dept,
                baseline_count=before.count,
                current_count=after.count,
                change=change,
                change_percent=_percent(change, before.count),
                baseline_salary=before.total_salary,
                current_salary=after.total_salary,
                salary_change=round_half_up(after.total_salary - before.total_salary, 2),
            )
        )

    # sort is stable, ties keep union order
    changes.sort(key=lambda item: abs(item.change), reverse=True)
    return changes


def _percent(change: float, baseline: float) -> float:
    if baseline <= 0:
        return 0.0
    return round_half_up(change / baseline * 100, 1)
