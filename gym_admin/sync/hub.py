from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from gym_admin.core.errors import SubscriptionError
from gym_admin.db.base import DocumentStore
from gym_admin.db.models import COLLECTIONS
from gym_admin.sync.coordinator import SyncCoordinator
from gym_admin.sync.live import LiveSubscription
from gym_admin.sync.store import CollectionStore, collection_store

logger = logging.getLogger(__name__)

FeedErrorHook = Callable[[str, SubscriptionError], None]


class SyncHub:
    """
    One coordinator per collection over a shared `LiveSubscription`.

    Coordinators are created and subscribed lazily. When a live feed fails the
    hub calls `on_feed_error(collection, error)`; the caller decides when to
    `reopen()` it.
    """

    def __init__(
        self,
        backend: DocumentStore,
        collections: Iterable[str] = COLLECTIONS,
        *,
        on_feed_error: Optional[FeedErrorHook] = None,
    ) -> None:
        self.backend = backend
        self.live = LiveSubscription(backend)
        self.collections = tuple(collections)
        self._on_feed_error = on_feed_error
        self._stores: dict[str, CollectionStore] = {}
        self._coordinators: dict[str, SyncCoordinator] = {}

    def set_feed_error_hook(self, hook: Optional[FeedErrorHook]) -> None:
        self._on_feed_error = hook

    def _check(self, collection: str) -> None:
        if collection not in self.collections:
            raise KeyError(f"Unknown collection '{collection}'")

    def store(self, collection: str) -> CollectionStore:
        self._check(collection)
        store = self._stores.get(collection)
        if store is None:
            store = self._stores[collection] = collection_store(self.backend, collection)
        return store

    def coordinator(self, collection: str) -> SyncCoordinator:
        """
        Coordinator for `collection`, subscribed on first use.
        """

        self._check(collection)
        coordinator = self._coordinators.get(collection)
        if coordinator is None:
            coordinator = SyncCoordinator(
                self.store(collection),
                self.live,
                on_error=lambda exc: self._handle_error(collection, exc),
            )
            self._coordinators[collection] = coordinator
            coordinator.open()
        return coordinator

    def reopen(self, collection: str) -> SyncCoordinator:
        coordinator = self.coordinator(collection)
        if not coordinator.is_live:
            logger.info("Resubscribing to '%s'", collection)
            coordinator.open()
        return coordinator

    def failed_collections(self) -> list[str]:
        return [
            name for name, coordinator in self._coordinators.items() if coordinator.feed_error is not None
        ]

    def _handle_error(self, collection: str, exc: Exception) -> None:
        if isinstance(exc, SubscriptionError) and self._on_feed_error is not None:
            self._on_feed_error(collection, exc)

    def close(self) -> None:
        for coordinator in self._coordinators.values():
            coordinator.close()
        self._coordinators.clear()
        self.live.close()
