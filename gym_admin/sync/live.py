from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from gym_admin.core.errors import SubscriptionError
from gym_admin.db.base import DocumentStore, ErrorCallback, SnapshotCallback, Unsubscribe
from gym_admin.db.models import OrderedRecord

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class _Listener:
    on_snapshot: SnapshotCallback
    on_error: Optional[ErrorCallback]


class SnapshotChannel:
    """
    Broadcast of one collection's upstream feed to any number of listeners.

    The upstream feed is opened with the first listener and closed when the
    last one leaves. The latest snapshot is cached so late listeners get it at
    once. A failed upstream notifies every listener and closes the channel.
    """

    def __init__(
        self,
        backend: DocumentStore,
        collection: str,
        on_closed: Callable[["SnapshotChannel"], None],
    ) -> None:
        self.backend = backend
        self.collection = collection
        self._on_closed = on_closed
        self._listeners: list[_Listener] = []
        self._upstream: Unsubscribe | None = None
        self._snapshot: list[OrderedRecord] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def snapshot(self) -> list[OrderedRecord] | None:
        return list(self._snapshot) if self._snapshot is not None else None

    def add(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback | None = None) -> Unsubscribe:
        if self._closed:
            raise RuntimeError(f"Channel for '{self.collection}' is closed")

        listener = _Listener(on_snapshot, on_error)
        self._listeners.append(listener)

        if self._upstream is None:
            logger.debug("Opening live feed for '%s'", self.collection)
            upstream = self.backend.subscribe(self.collection, self._deliver, self._fail)
            if self._closed:
                # Upstream failed while opening
                upstream()
            else:
                self._upstream = upstream
        elif self._snapshot is not None:
            self._notify(listener, list(self._snapshot))

        def unsubscribe() -> None:
            self._remove(listener)

        return unsubscribe

    def _remove(self, listener: _Listener) -> None:
        if listener not in self._listeners:
            return
        self._listeners.remove(listener)
        if not self._listeners:
            self.close()

    def _notify(self, listener: _Listener, records: list[OrderedRecord]) -> None:
        try:
            listener.on_snapshot(records)
        except Exception:
            logger.exception("Snapshot listener error (collection=%s)", self.collection)

    def _deliver(self, records: list[OrderedRecord]) -> None:
        if self._closed:
            return
        self._snapshot = list(records)
        for listener in list(self._listeners):
            if listener in self._listeners:
                self._notify(listener, list(records))

    def _fail(self, error: SubscriptionError) -> None:
        if self._closed:
            return
        logger.warning("Live feed for '%s' failed: %s", self.collection, error)
        listeners = list(self._listeners)
        upstream = self._upstream
        self._teardown()
        if upstream is not None:
            upstream()
        for listener in listeners:
            if listener.on_error is None:
                continue
            try:
                listener.on_error(error)
            except Exception:
                logger.exception("Feed error listener failed (collection=%s)", self.collection)

    def close(self) -> None:
        if self._closed:
            return
        upstream = self._upstream
        self._teardown()
        if upstream is not None:
            upstream()
        logger.debug("Closed live feed for '%s'", self.collection)

    def _teardown(self) -> None:
        self._closed = True
        self._listeners.clear()
        self._upstream = None
        self._snapshot = None
        self._on_closed(self)


class LiveSubscription:
    """
    Live feeds for any number of collections, one channel per collection.
    """

    def __init__(self, backend: DocumentStore) -> None:
        self.backend = backend
        self._channels: dict[str, SnapshotChannel] = {}

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        """
        Deliver every snapshot of `collection` to `on_snapshot` until unsubscribed.

        After a feed failure `on_error` is called once and nothing more is
        delivered; subscribe again to reopen the feed.
        """

        channel = self._channels.get(collection)
        if channel is None or channel.closed:
            channel = SnapshotChannel(self.backend, collection, self._forget)
            self._channels[collection] = channel
        return channel.add(on_snapshot, on_error)

    def channel(self, collection: str) -> SnapshotChannel | None:
        return self._channels.get(collection)

    def _forget(self, channel: SnapshotChannel) -> None:
        if self._channels.get(channel.collection) is channel:
            del self._channels[channel.collection]

    def close(self) -> None:
        for channel in list(self._channels.values()):
            channel.close()
        self._channels.clear()
