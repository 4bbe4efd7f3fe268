from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, TypeVar

from gym_admin.core.errors import RangeError
from gym_admin.db.models import OrderedRecord, ReorderOperation

T = TypeVar("T")


@dataclass(frozen=True)
class ReorderPlan:
    """
    Outcome of one move: the new display sequence and the write that persists it.
    """

    records: list[OrderedRecord]
    operation: ReorderOperation
    is_noop: bool


def _check_index(index: int, length: int) -> None:
    if not 0 <= index < length:
        raise RangeError(index, length)


def move_item(sequence: Sequence[T], source: int, destination: int) -> list[T]:
    """
    Take the item at `source` out and re-insert it at `destination`.

    Items between the two positions shift by one; this is not a swap.
    """

    _check_index(source, len(sequence))
    _check_index(destination, len(sequence))
    items = list(sequence)
    item = items.pop(source)
    items.insert(destination, item)
    return items


def build_operation(records: Sequence[OrderedRecord]) -> ReorderOperation:
    """
    Assign orders 0, 1, 2, ... by position.
    """

    return ReorderOperation.from_ids([record.id for record in records if record.id])


def plan_reorder(records: Sequence[OrderedRecord], source: int, destination: int) -> ReorderPlan:
    """
    Plan a move over the displayed sequence.

    Records without an id are not persisted yet and are left out before
    indexing, so `source`/`destination` refer to persisted records only.
    """

    persisted = [record for record in records if record.id]
    moved = move_item(persisted, source, destination)
    operation = build_operation(moved)
    renumbered = [
        record if record.order == entry.order else record.model_copy(update={"order": entry.order})
        for record, entry in zip(moved, operation.entries)
    ]
    return ReorderPlan(records=renumbered, operation=operation, is_noop=source == destination)


def operation_applied(records: Sequence[OrderedRecord], operation: ReorderOperation) -> bool:
    """
    True when every record named by `operation` carries its new order in `records`.
    """

    current = {record.id: record.order for record in records if record.id}
    return all(current.get(entry.id) == entry.order for entry in operation.entries)
