from typing import Dict, Iterable

import logging

from .models import DedupResult, EmployeeRecord

logger = logging.getLogger(__name__)


def remove_duplicates(records: Iterable[EmployeeRecord]) -> DedupResult:
    """Keep one record per business id, the last one seen winning.

    Ids are compared after trimming surrounding whitespace and are
    case-sensitive. Survivors keep the position of their id's first
    appearance. Records with blank ids are dropped and counted.
    """
    kept: Dict[str, EmployeeRecord] = {}
    input_rows = 0
    duplicates = 0
    blank = 0

    for record in records:
        input_rows += 1
        key = normalize_id(record.employee_id)
        if not key:
            blank += 1
            continue
        if key in kept:
            duplicates += 1
        kept[key] = record

    logger.info(
        "Dedup completed. In: %s, out: %s, duplicates: %s, blank ids: %s",
        input_rows,
        len(kept),
        duplicates,
        blank,
    )
    return DedupResult(records=list(kept.values()), duplicates_removed=duplicates, blank_ids_skipped=blank)


def normalize_id(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()
