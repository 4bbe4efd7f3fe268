from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from gym_admin.db.models import OrderedRecord


def display_sort_key(record: OrderedRecord) -> tuple[int, int, float]:
    """
    Display order of a collection: `order` ascending, then `created_at` descending.

    Records without `order` (never reordered) go after all ordered ones,
    newest first. Records without `created_at` sort last within their group.
    """

    created = record.created_at.timestamp() if record.created_at else float("-inf")
    if record.order is None:
        return (1, 0, -created)
    return (0, record.order, -created)


def sort_records(records: Iterable[OrderedRecord]) -> list[OrderedRecord]:
    return sorted(records, key=display_sort_key)


def next_order(records: Iterable[OrderedRecord]) -> int:
    """
    Order for a record appended to `records`: 0 when empty, otherwise max + 1.

    Legacy records without `order` count as 0.
    """

    return max((record.order or 0 for record in records), default=-1) + 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
