from __future__ import annotations

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from gym_admin.core import get_settings
from gym_admin.core.errors import SubscriptionError
from gym_admin.sync.hub import SyncHub

logger = logging.getLogger(__name__)


class FeedRecoveryScheduler:
    """
    APScheduler manager that resubscribes collections whose live feed failed.

    Feeds never retry on their own; each failure schedules one reopen after
    `resubscribe_delay_s`. A reopen that fails again schedules the next one.
    """

    def __init__(self, hub: SyncHub, delay_s: float | None = None) -> None:
        self.hub = hub
        self.delay_s = delay_s if delay_s is not None else get_settings().resubscribe_delay_s
        self.scheduler: AsyncIOScheduler | None = None

    async def start(self) -> None:
        """
        Initialize the scheduler and hook into the hub's feed errors.
        """
        self.scheduler = AsyncIOScheduler()
        self.scheduler.start()
        self.hub.set_feed_error_hook(self.on_feed_error)
        logger.info("Feed recovery scheduler started")

    async def stop(self) -> None:
        """
        Stop the scheduler gracefully.
        """
        self.hub.set_feed_error_hook(None)
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            logger.info("Feed recovery scheduler stopped")

    def on_feed_error(self, collection: str, error: SubscriptionError) -> None:
        if self.scheduler is None:
            logger.warning("Feed of '%s' failed before the scheduler started: %s", collection, error)
            return

        run_at = datetime.now() + timedelta(seconds=self.delay_s)
        self.scheduler.add_job(
            self._reopen,
            DateTrigger(run_date=run_at),
            args=[collection],
            id=f"reopen:{collection}",
            name=f"Resubscribe {collection}",
            replace_existing=True,
        )
        logger.info("Scheduled resubscribe of '%s' in %.0fs", collection, self.delay_s)

    async def _reopen(self, collection: str) -> None:
        try:
            self.hub.reopen(collection)
        except Exception as exc:
            logger.exception("Error resubscribing to '%s': %s", collection, exc)
