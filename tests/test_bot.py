from __future__ import annotations

import asyncio

import pytest

from conftest import StepClock, make_record
from gym_admin.bot.handlers.reorder import apply_move, on_move_button
from gym_admin.bot.keyboards import (
    Keyboards,
    MessageTemplates,
    move_callback,
    parse_move_callback,
    record_label,
)
from gym_admin.db.memory import InMemoryDocumentStore
from gym_admin.db.models import COLLECTIONS
from gym_admin.sync.hub import SyncHub


def test_move_callback_round_trip_and_size():
    data = move_callback("service_bookings", 12, 3)

    assert parse_move_callback(data) == ("service_bookings", 12, 3)
    for name in COLLECTIONS:
        assert len(move_callback(name, 999, 999).encode()) <= 64


@pytest.mark.parametrize("data", ["mv:gyms:1", "list:gyms", "mv:gyms:a:1", "noop"])
def test_parse_move_callback_rejects_other_data(data):
    assert parse_move_callback(data) is None


def test_record_label_prefers_human_fields():
    assert record_label(make_record("g1", 0, name="Downtown")) == "Downtown"
    assert record_label(make_record("p1", 0, title="Leg day")) == "Leg day"
    assert record_label(make_record("b1", 0)) == "b1"


def test_reorder_controls_offer_one_step_moves():
    records = [make_record("a", 0, name="A"), make_record("b", 1, name="B"), make_record("c", 2, name="C")]

    markup = Keyboards.reorder_controls("gyms", records)

    callbacks = [[button.callback_data for button in row] for row in markup.inline_keyboard]
    assert callbacks[0] == ["noop", "mv:gyms:0:1"]
    assert callbacks[1] == ["noop", "mv:gyms:1:0", "mv:gyms:1:2"]
    assert callbacks[2] == ["noop", "mv:gyms:2:1"]
    assert callbacks[3] == ["list:gyms", "menu_main"]


def test_collection_listing_escapes_and_marks_legacy_records():
    text = MessageTemplates.collection_listing(
        "gyms", [make_record("a", 0, name="<Gym & Co>"), make_record("b", None, name="Old")]
    )

    assert "1. &lt;Gym &amp; Co&gt; <code>[0]</code>" in text
    assert "2. Old <code>[–]</code>" in text
    assert "Nothing here yet." in MessageTemplates.collection_listing("gyms", [])


@pytest.mark.asyncio
async def test_apply_move_reports_user_errors(store):
    hub = SyncHub(store)
    coordinator = hub.coordinator("gyms")
    for name in ("A", "B", "C"):
        await coordinator.create({"name": name})

    assert await apply_move(coordinator, 0, 2) is None
    assert [record.payload["name"] for record in coordinator.displayed] == ["B", "C", "A"]

    assert "between 1 and 3" in await apply_move(coordinator, 0, 7)

    store.fail_next("reorder")
    assert "restored" in await apply_move(coordinator, 2, 0)
    assert [record.payload["name"] for record in coordinator.displayed] == ["B", "C", "A"]
    hub.close()


class FakeMessage:
    def __init__(self) -> None:
        self.edits: list[dict] = []

    async def edit_text(self, **kwargs) -> None:
        self.edits.append(kwargs)


class FakeQuery:
    def __init__(self, data: str) -> None:
        self.data = data
        self.message = FakeMessage()
        self.answers: list[tuple[str | None, bool]] = []

    async def answer(self, text: str | None = None, show_alert: bool = False) -> None:
        self.answers.append((text, show_alert))


class GatedStore(InMemoryDocumentStore):
    def __init__(self) -> None:
        super().__init__(clock=StepClock())
        self.gate = asyncio.Event()
        self.reorder_started = asyncio.Event()

    async def reorder(self, collection, operation):
        self.reorder_started.set()
        await self.gate.wait()
        await super().reorder(collection, operation)


async def _hub_with(backend, *names: str) -> SyncHub:
    hub = SyncHub(backend)
    for name in names:
        await hub.coordinator("gyms").create({"name": name})
    return hub


@pytest.mark.asyncio
async def test_move_button_redraws_the_list(store):
    hub = await _hub_with(store, "A", "B")
    query = FakeQuery("mv:gyms:1:0")

    await on_move_button(query, hub)

    assert len(query.message.edits) == 1
    assert query.message.edits[0]["text"].index("B") < query.message.edits[0]["text"].index("A")
    assert query.answers == [(None, False)]
    hub.close()


@pytest.mark.asyncio
async def test_tap_while_a_move_is_saving_only_alerts():
    backend = GatedStore()
    hub = await _hub_with(backend, "A", "B", "C")

    first = FakeQuery("mv:gyms:0:1")
    pending = asyncio.create_task(on_move_button(first, hub))
    await backend.reorder_started.wait()

    second = FakeQuery("mv:gyms:1:2")
    await on_move_button(second, hub)

    assert second.message.edits == []
    assert second.answers == [("The previous move is still being saved.", True)]

    backend.gate.set()
    await pending
    assert len(first.message.edits) == 1
    hub.close()


@pytest.mark.asyncio
async def test_failed_move_that_restores_the_list_only_alerts(store):
    hub = await _hub_with(store, "A", "B")
    store.fail_next("reorder")
    query = FakeQuery("mv:gyms:0:1")

    await on_move_button(query, hub)

    assert query.message.edits == []
    assert query.answers == [("Saving the new order failed; the list was restored.", True)]

    stale = FakeQuery("mv:gyms:0:9")
    await on_move_button(stale, hub)
    assert stale.message.edits == []
    assert stale.answers[0][1] is True
    hub.close()
