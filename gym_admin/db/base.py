from __future__ import annotations

from typing import Any, Callable, Protocol

from gym_admin.core.errors import SubscriptionError
from gym_admin.db.models import OrderedRecord, ReorderOperation

SnapshotCallback = Callable[[list[OrderedRecord]], None]
ErrorCallback = Callable[[SubscriptionError], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """
    Backend contract shared by the Supabase and in-memory stores.

    Every method takes the collection name; `CollectionStore` binds one.
    Snapshots passed to `on_snapshot` are complete and already sorted.
    """

    async def create(self, collection: str, payload: dict[str, Any]) -> str: ...

    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None: ...

    async def delete(self, collection: str, record_id: str) -> None: ...

    async def get(self, collection: str, record_id: str) -> OrderedRecord | None: ...

    async def list(self, collection: str) -> list[OrderedRecord]: ...

    async def reorder(self, collection: str, operation: ReorderOperation) -> None: ...

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe: ...

    async def close(self) -> None: ...
