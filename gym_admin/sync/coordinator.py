from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel

from gym_admin.core.errors import (
    CoordinatorClosedError,
    ReorderPendingError,
    SubscriptionError,
)
from gym_admin.db.base import Unsubscribe
from gym_admin.db.models import OrderedRecord, ReorderOperation
from gym_admin.db.ordering import sort_records
from gym_admin.sync.live import LiveSubscription
from gym_admin.sync.reorder import operation_applied, plan_reorder
from gym_admin.sync.store import CollectionStore

logger = logging.getLogger(__name__)

DisplayCallback = Callable[[list[OrderedRecord]], None]
ErrorNotifier = Callable[[Exception], None]


class SyncState(str, Enum):
    SYNCED = "synced"
    OPTIMISTIC_PENDING = "optimistic_pending"
    REVERTING = "reverting"
    CLOSED = "closed"


class SyncCoordinator:
    """
    Keeps the displayed sequence of one collection consistent with its store.

    Moves are applied to the display at once and written with one atomic
    `reorder()`. While that write is in flight, incoming snapshots are held
    back so a push taken before the write landed cannot snap the display back.
    When the write settles:

    - success: a held snapshot is dropped only when it is the very state the
      move started from; the push that follows the write reconciles the
      display. Any other held snapshot (ours, or a later write by someone
      else) is shown.
    - failure: the display returns to the latest snapshot received, the error
      is reported and re-raised, and the next snapshot marks the state synced.

    Only one move may be in flight; another one is rejected with
    `ReorderPendingError`.
    """

    def __init__(
        self,
        store: CollectionStore,
        live: LiveSubscription,
        *,
        on_display: Optional[DisplayCallback] = None,
        on_error: Optional[ErrorNotifier] = None,
    ) -> None:
        self.store = store
        self._live = live
        self._on_display = on_display
        self._on_error = on_error

        self._state = SyncState.SYNCED
        self._displayed: list[OrderedRecord] = []
        self._authoritative: list[OrderedRecord] | None = None
        self._in_flight: ReorderOperation | None = None
        self._held: list[OrderedRecord] | None = None
        self._baseline: list[dict[str, Any]] | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._feed_error: SubscriptionError | None = None

    @property
    def collection(self) -> str:
        return self.store.name

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def displayed(self) -> list[OrderedRecord]:
        return list(self._displayed)

    @property
    def write_in_flight(self) -> bool:
        return self._in_flight is not None

    @property
    def is_live(self) -> bool:
        return self._unsubscribe is not None

    @property
    def has_snapshot(self) -> bool:
        return self._authoritative is not None

    @property
    def feed_error(self) -> SubscriptionError | None:
        return self._feed_error

    # Live feed

    def open(self) -> None:
        """
        Subscribe to the collection's live feed. Also used to resubscribe after a feed error.
        """

        self._ensure_open()
        if self._unsubscribe is not None:
            return
        self._feed_error = None
        logger.debug("Subscribing coordinator to '%s'", self.collection)
        unsubscribe = self._live.subscribe(self.collection, self.handle_snapshot, self.handle_feed_error)
        if self._feed_error is None and self._state is not SyncState.CLOSED:
            self._unsubscribe = unsubscribe

    def close(self) -> None:
        if self._state is SyncState.CLOSED:
            return
        self._state = SyncState.CLOSED
        self._held = None
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        logger.debug("Coordinator for '%s' closed", self.collection)

    def handle_snapshot(self, records: list[OrderedRecord]) -> None:
        if self._state is SyncState.CLOSED:
            return
        snapshot = sort_records(records)
        self._authoritative = snapshot
        if self._in_flight is not None:
            logger.debug(
                "Holding snapshot of '%s' (%d records) while a reorder is in flight",
                self.collection,
                len(snapshot),
            )
            self._held = snapshot
            return
        self._state = SyncState.SYNCED
        self._show(snapshot)

    def handle_feed_error(self, error: SubscriptionError) -> None:
        if self._state is SyncState.CLOSED:
            return
        self._unsubscribe = None
        self._feed_error = error
        logger.warning("Live feed of '%s' stopped: %s", self.collection, error)
        self._report(error)

    # Reorder

    async def move(self, source_index: int, destination_index: int) -> ReorderOperation | None:
        """
        Move one displayed record and persist the new order.

        Returns the written operation, or None when nothing needed writing
        (same position, or the coordinator was closed while writing).
        """

        self._ensure_open()
        if self._in_flight is not None:
            raise ReorderPendingError(self.collection)

        plan = plan_reorder(self._displayed, source_index, destination_index)
        if plan.is_noop:
            return None

        operation = plan.operation
        self._in_flight = operation
        self._baseline = _view(self._authoritative or [])
        self._state = SyncState.OPTIMISTIC_PENDING
        self._show(plan.records)

        try:
            await self.store.reorder(operation)
        except Exception as exc:
            self._in_flight = None
            if self._state is SyncState.CLOSED:
                logger.info("Discarding failed reorder of closed '%s': %s", self.collection, exc)
                return None
            self._revert(exc)
            raise
        except BaseException:
            # Cancelled: outcome unknown, fall back to the server's view
            self._in_flight = None
            if self._state is not SyncState.CLOSED:
                self._revert(None)
            raise

        self._in_flight = None
        if self._state is SyncState.CLOSED:
            return None
        self._settle(operation)
        return operation

    def _settle(self, operation: ReorderOperation) -> None:
        self._state = SyncState.SYNCED
        held, self._held = self._held, None
        baseline, self._baseline = self._baseline, None
        if held is None:
            return
        if not operation_applied(held, operation) and _view(held) == baseline:
            # Same state the move started from; the confirming push follows
            logger.debug("Dropping snapshot of '%s' taken before the reorder landed", self.collection)
            return
        self._show(held)

    def _revert(self, error: Exception | None) -> None:
        self._held = None
        self._baseline = None
        self._state = SyncState.REVERTING
        self._show(list(self._authoritative or []))
        if error is not None:
            logger.warning("Reorder of '%s' failed, reverting: %s", self.collection, error)
            self._report(error)

    # Record edits; the display follows the next snapshot

    async def create(self, payload: BaseModel | dict[str, Any]) -> str:
        self._ensure_open()
        try:
            return await self.store.create(payload)
        except Exception as exc:
            logger.warning("Create in '%s' failed: %s", self.collection, exc)
            self._report(exc)
            raise

    async def update(self, record_id: str, fields: BaseModel | dict[str, Any]) -> None:
        self._ensure_open()
        try:
            await self.store.update(record_id, fields)
        except Exception as exc:
            logger.warning("Update of %s/%s failed: %s", self.collection, record_id, exc)
            self._report(exc)
            raise

    async def delete(self, record_id: str) -> None:
        self._ensure_open()
        try:
            await self.store.delete(record_id)
        except Exception as exc:
            logger.warning("Delete of %s/%s failed: %s", self.collection, record_id, exc)
            self._report(exc)
            raise

    def _ensure_open(self) -> None:
        if self._state is SyncState.CLOSED:
            raise CoordinatorClosedError(f"Coordinator for '{self.collection}' is closed")

    def _show(self, records: list[OrderedRecord]) -> None:
        unchanged = _view(records) == _view(self._displayed)
        self._displayed = list(records)
        if unchanged or self._on_display is None:
            return
        try:
            self._on_display(list(records))
        except Exception:
            logger.exception("Display callback error (collection=%s)", self.collection)

    def _report(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Error notifier failed (collection=%s)", self.collection)


def _view(records: list[OrderedRecord]) -> list[dict[str, Any]]:
    # What a user sees; a confirming write only bumps updated_at
    return [record.model_dump(exclude={"updated_at"}) for record in records]
