from __future__ import annotations

import pytest

from gym_admin.bot.scheduler import FeedRecoveryScheduler
from gym_admin.core.errors import SubscriptionError, WriteError
from gym_admin.sync.hub import SyncHub
from gym_admin.sync.store import TrainerStore


@pytest.mark.asyncio
async def test_coordinators_are_created_once_and_subscribed(store):
    hub = SyncHub(store)

    first = hub.coordinator("gyms")

    assert hub.coordinator("gyms") is first
    assert first.is_live
    assert store.watcher_count("gyms") == 1
    assert isinstance(hub.store("trainers"), TrainerStore)
    hub.close()
    assert store.watcher_count("gyms") == 0


def test_unknown_collection_is_rejected(store):
    hub = SyncHub(store)
    with pytest.raises(KeyError):
        hub.coordinator("payments")
    with pytest.raises(KeyError):
        hub.store("payments")


@pytest.mark.asyncio
async def test_feed_errors_reach_the_hook_and_reopen_resubscribes(store):
    failures: list[tuple[str, SubscriptionError]] = []
    hub = SyncHub(store, on_feed_error=lambda collection, error: failures.append((collection, error)))
    coordinator = hub.coordinator("gyms")

    store.break_feed("gyms")

    assert [collection for collection, _ in failures] == ["gyms"]
    assert hub.failed_collections() == ["gyms"]

    assert hub.reopen("gyms") is coordinator
    assert coordinator.is_live
    assert hub.failed_collections() == []


@pytest.mark.asyncio
async def test_write_errors_do_not_trigger_resubscribe(store):
    failures = []
    hub = SyncHub(store, on_feed_error=lambda collection, error: failures.append(collection))
    coordinator = hub.coordinator("gyms")
    store.fail_next("create")

    with pytest.raises(WriteError):
        await coordinator.create({"name": "Downtown"})

    assert failures == []


@pytest.mark.asyncio
async def test_scheduler_schedules_one_reopen_per_collection(store):
    hub = SyncHub(store)
    recovery = FeedRecoveryScheduler(hub, delay_s=60)
    await recovery.start()
    coordinator = hub.coordinator("gyms")

    store.break_feed("gyms")
    coordinator.open()
    store.break_feed("gyms")

    jobs = recovery.scheduler.get_jobs()
    assert [job.id for job in jobs] == ["reopen:gyms"]

    await recovery._reopen("gyms")
    assert coordinator.is_live

    await recovery.stop()
    store.break_feed("gyms")
    hub.close()


@pytest.mark.asyncio
async def test_reopen_failures_are_logged_not_raised(store, caplog):
    hub = SyncHub(store)
    recovery = FeedRecoveryScheduler(hub, delay_s=60)

    await recovery._reopen("payments")

    assert "payments" in caplog.text
