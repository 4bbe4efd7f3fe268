from __future__ import annotations

import logging
import uuid
from collections import defaultdict, deque
from datetime import datetime
from typing import Any, Callable

from gym_admin.core.errors import NotFoundError, SubscriptionError, WriteError
from gym_admin.db.base import ErrorCallback, SnapshotCallback, Unsubscribe
from gym_admin.db.models import OrderedRecord, ReorderOperation
from gym_admin.db.ordering import next_order, sort_records, utcnow

logger = logging.getLogger(__name__)


class InMemoryDocumentStore:
    """
    In-process document store with the same contract as the Supabase backend.

    Used by tests and local runs. Every mutation pushes a fresh snapshot to the
    collection's watchers synchronously, so a write's confirming snapshot is
    delivered before the write coroutine returns.

    Failures can be injected with `fail_next()` (writes) and `break_feed()`
    (live feeds).
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._rows: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._watchers: dict[str, list[tuple[SnapshotCallback, ErrorCallback]]] = defaultdict(list)
        self._faults: dict[str, deque[Exception]] = defaultdict(deque)

    # Test hooks

    def seed(self, collection: str, rows: list[dict[str, Any]]) -> None:
        """
        Insert rows verbatim (no order assignment), e.g. legacy records without `order`.
        """

        for row in rows:
            row = dict(row)
            row.setdefault("id", self._id_factory())
            self._rows[collection][row["id"]] = row
        self._publish(collection)

    def fail_next(self, operation: str, exc: Exception | None = None) -> None:
        """
        Make the next call of `operation` ("create", "update", "delete", "reorder") fail.
        """

        self._faults[operation].append(exc or WriteError(f"Injected {operation} failure"))

    def break_feed(self, collection: str, exc: SubscriptionError | None = None) -> None:
        """
        Fail every live feed of `collection`; watchers are dropped.
        """

        error = exc or SubscriptionError("Live feed lost", collection=collection)
        watchers = self._watchers.pop(collection, [])
        for _, on_error in watchers:
            on_error(error)

    def watcher_count(self, collection: str) -> int:
        return len(self._watchers.get(collection, []))

    def _raise_injected(self, operation: str) -> None:
        faults = self._faults.get(operation)
        if faults:
            raise faults.popleft()

    # DocumentStore

    async def create(self, collection: str, payload: dict[str, Any]) -> str:
        self._raise_injected("create")
        rows = self._rows[collection]
        now = self._clock()
        record_id = self._id_factory()
        rows[record_id] = {
            **payload,
            "id": record_id,
            "order": next_order(self._records(collection)),
            "created_at": now,
            "updated_at": now,
        }
        self._publish(collection)
        return record_id

    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        self._raise_injected("update")
        row = self._rows[collection].get(record_id)
        if row is None:
            raise NotFoundError(f"Record '{record_id}' not found", collection=collection, status_code=404)
        row.update(fields)
        row["updated_at"] = self._clock()
        self._publish(collection)

    async def delete(self, collection: str, record_id: str) -> None:
        self._raise_injected("delete")
        if self._rows[collection].pop(record_id, None) is not None:
            self._publish(collection)

    async def get(self, collection: str, record_id: str) -> OrderedRecord | None:
        row = self._rows[collection].get(record_id)
        if row is None:
            return None
        return OrderedRecord.model_validate(row)

    async def list(self, collection: str) -> list[OrderedRecord]:
        return sort_records(self._records(collection))

    async def reorder(self, collection: str, operation: ReorderOperation) -> None:
        self._raise_injected("reorder")
        rows = self._rows[collection]
        missing = [record_id for record_id in operation.ids if record_id not in rows]
        if missing:
            # Nothing is written when any record is gone
            raise NotFoundError(
                f"Records not found: {', '.join(missing)}",
                collection=collection,
                status_code=404,
            )
        now = self._clock()
        for entry in operation.entries:
            rows[entry.id]["order"] = entry.order
            rows[entry.id]["updated_at"] = now
        self._publish(collection)

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        watcher = (on_snapshot, on_error)
        self._watchers[collection].append(watcher)
        on_snapshot(sort_records(self._records(collection)))

        def unsubscribe() -> None:
            watchers = self._watchers.get(collection, [])
            if watcher in watchers:
                watchers.remove(watcher)

        return unsubscribe

    async def close(self) -> None:
        self._watchers.clear()

    def _records(self, collection: str) -> list[OrderedRecord]:
        return [OrderedRecord.model_validate(row) for row in self._rows[collection].values()]

    def _publish(self, collection: str) -> None:
        watchers = list(self._watchers.get(collection, []))
        if not watchers:
            return
        snapshot = sort_records(self._records(collection))
        logger.debug("Publishing %d records of '%s' to %d watchers", len(snapshot), collection, len(watchers))
        for on_snapshot, _ in watchers:
            on_snapshot(list(snapshot))
