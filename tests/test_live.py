from __future__ import annotations

import pytest

from conftest import ids_of
from gym_admin.core.errors import SubscriptionError
from gym_admin.sync.live import LiveSubscription


class Recorder:
    def __init__(self) -> None:
        self.snapshots = []
        self.errors = []

    def on_snapshot(self, records) -> None:
        self.snapshots.append(ids_of(records))

    def on_error(self, error) -> None:
        self.errors.append(error)


@pytest.mark.asyncio
async def test_subscriber_gets_snapshot_immediately_and_after_changes(store):
    live = LiveSubscription(store)
    rec = Recorder()

    live.subscribe("gyms", rec.on_snapshot, rec.on_error)
    new_id = await store.create("gyms", {"name": "Downtown"})

    assert rec.snapshots == [[], [new_id]]


@pytest.mark.asyncio
async def test_subscribers_share_one_upstream_feed(store):
    live = LiveSubscription(store)
    first, second = Recorder(), Recorder()
    await store.create("gyms", {"name": "A"})

    live.subscribe("gyms", first.on_snapshot)
    live.subscribe("gyms", second.on_snapshot)

    assert store.watcher_count("gyms") == 1
    assert first.snapshots == [["r1"]]
    # A late subscriber receives the cached snapshot at once
    assert second.snapshots == [["r1"]]


@pytest.mark.asyncio
async def test_unsubscribe_is_independent_and_last_one_closes_the_channel(store):
    live = LiveSubscription(store)
    first, second = Recorder(), Recorder()
    stop_first = live.subscribe("gyms", first.on_snapshot)
    stop_second = live.subscribe("gyms", second.on_snapshot)

    stop_first()
    stop_first()
    await store.create("gyms", {"name": "A"})

    assert first.snapshots == [[]]
    assert second.snapshots == [[], ["r1"]]
    assert store.watcher_count("gyms") == 1

    stop_second()
    assert store.watcher_count("gyms") == 0
    assert live.channel("gyms") is None
    # Data is untouched by unsubscribing
    assert ids_of(await store.list("gyms")) == ["r1"]


@pytest.mark.asyncio
async def test_listener_errors_do_not_reach_other_listeners(store):
    live = LiveSubscription(store)
    rec = Recorder()

    def broken(records):
        raise RuntimeError("boom")

    live.subscribe("gyms", broken)
    live.subscribe("gyms", rec.on_snapshot)
    await store.create("gyms", {"name": "A"})

    assert rec.snapshots[-1] == ["r1"]


@pytest.mark.asyncio
async def test_feed_failure_notifies_everyone_once_and_stops(store):
    live = LiveSubscription(store)
    first, second = Recorder(), Recorder()
    live.subscribe("gyms", first.on_snapshot, first.on_error)
    live.subscribe("gyms", second.on_snapshot, second.on_error)

    store.break_feed("gyms")
    await store.create("gyms", {"name": "A"})

    assert len(first.errors) == 1 and isinstance(first.errors[0], SubscriptionError)
    assert len(second.errors) == 1
    assert first.snapshots == [[]]
    assert live.channel("gyms") is None


@pytest.mark.asyncio
async def test_subscribing_again_after_failure_opens_a_new_feed(store):
    live = LiveSubscription(store)
    rec = Recorder()
    live.subscribe("gyms", rec.on_snapshot, rec.on_error)
    store.break_feed("gyms")
    await store.create("gyms", {"name": "A"})

    again = Recorder()
    live.subscribe("gyms", again.on_snapshot, again.on_error)

    assert again.snapshots == [["r1"]]
    assert store.watcher_count("gyms") == 1


@pytest.mark.asyncio
async def test_channels_are_per_collection(store):
    live = LiveSubscription(store)
    gyms, trainers = Recorder(), Recorder()
    live.subscribe("gyms", gyms.on_snapshot)
    live.subscribe("trainers", trainers.on_snapshot)

    await store.create("trainers", {"name": "Rahul"})

    assert gyms.snapshots == [[]]
    assert trainers.snapshots == [[], ["r1"]]

    live.close()
    assert store.watcher_count("gyms") == 0
    assert store.watcher_count("trainers") == 0
