from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import ids_of
from gym_admin.core.errors import NotFoundError, WriteError
from gym_admin.db.models import Gym, ReorderOperation
from gym_admin.sync.reorder import plan_reorder
from gym_admin.sync.store import CollectionStore, TrainerStore, collection_store


@pytest.fixture
def gyms(store) -> CollectionStore:
    return CollectionStore(store, "gyms")


@pytest.mark.asyncio
async def test_create_appends_with_increasing_order(gyms):
    first = await gyms.create({"name": "Downtown"})
    second = await gyms.create(Gym(name="Uptown"))

    records = await gyms.list()
    assert ids_of(records) == [first, second]
    assert [r.order for r in records] == [0, 1]
    assert records[0].created_at is not None
    assert records[0].created_at == records[0].updated_at


@pytest.mark.asyncio
async def test_create_after_gaps_uses_max_plus_one(store, gyms):
    store.seed("gyms", [{"id": "a", "order": 0, "name": "A"}, {"id": "b", "order": 7, "name": "B"}])

    new_id = await gyms.create({"name": "C"})

    assert (await gyms.get(new_id)).order == 8


@pytest.mark.asyncio
async def test_create_next_to_legacy_records(store, gyms):
    store.seed("gyms", [{"id": "old", "name": "Legacy gym"}])

    new_id = await gyms.create({"name": "New gym"})

    assert (await gyms.get(new_id)).order == 1
    assert ids_of(await gyms.list()) == [new_id, "old"]


@pytest.mark.asyncio
async def test_create_validates_payload_and_rejects_reserved_fields(gyms):
    with pytest.raises(ValidationError):
        await gyms.create({"address": "no name"})
    with pytest.raises(ValueError):
        await gyms.create({"name": "X", "order": 3})


@pytest.mark.asyncio
async def test_create_failure_is_a_write_error(store, gyms):
    store.fail_next("create")
    with pytest.raises(WriteError):
        await gyms.create({"name": "Downtown"})
    assert await gyms.list() == []


@pytest.mark.asyncio
async def test_update_merges_fields_and_keeps_order(gyms):
    record_id = await gyms.create({"name": "Downtown", "phone": "111"})
    before = await gyms.get(record_id)

    await gyms.update(record_id, {"phone": "222"})

    after = await gyms.get(record_id)
    assert after.payload["phone"] == "222"
    assert after.payload["name"] == "Downtown"
    assert after.order == before.order
    assert after.updated_at > before.updated_at


@pytest.mark.asyncio
async def test_update_missing_record_raises_not_found(gyms):
    with pytest.raises(NotFoundError):
        await gyms.update("missing", {"phone": "1"})


@pytest.mark.asyncio
async def test_update_cannot_change_identity(gyms):
    record_id = await gyms.create({"name": "Downtown"})
    with pytest.raises(ValueError):
        await gyms.update(record_id, {"id": "other"})


@pytest.mark.asyncio
async def test_update_validates_known_fields_only(store):
    memberships = CollectionStore(store, "memberships")
    record_id = await memberships.create({"name": "Gold", "price": {"monthly": "1999"}})

    await memberships.update(record_id, {"is_popular": True, "badge": "hot"})
    with pytest.raises(ValidationError):
        await memberships.update(record_id, {"features": "not a list"})

    record = await memberships.get(record_id)
    assert record.payload["is_popular"] is True
    assert record.payload["badge"] == "hot"
    assert record.payload["price"]["monthly"] == "1999"


@pytest.mark.asyncio
async def test_delete_keeps_sibling_orders_and_is_idempotent(gyms):
    ids = [await gyms.create({"name": name}) for name in ("A", "B", "C")]

    await gyms.delete(ids[1])
    await gyms.delete(ids[1])

    records = await gyms.list()
    assert ids_of(records) == [ids[0], ids[2]]
    assert [r.order for r in records] == [0, 2]


@pytest.mark.asyncio
async def test_list_after_reorder_follows_the_operation(gyms):
    for name in ("A", "B", "C"):
        await gyms.create({"name": name})
    records = await gyms.list()
    plan = plan_reorder(records, 0, 2)

    await gyms.reorder(plan.operation)

    listed = await gyms.list()
    assert ids_of(listed) == ids_of(plan.records)
    assert [r.payload["name"] for r in listed] == ["B", "C", "A"]
    assert [r.order for r in listed] == [0, 1, 2]


@pytest.mark.asyncio
async def test_reorder_is_all_or_nothing(store, gyms):
    ids = [await gyms.create({"name": name}) for name in ("A", "B")]
    operation = ReorderOperation.from_ids([ids[1], "ghost", ids[0]])

    with pytest.raises(NotFoundError):
        await gyms.reorder(operation)

    assert [r.order for r in await gyms.list()] == [0, 1]

    store.fail_next("reorder")
    with pytest.raises(WriteError):
        await gyms.reorder(ReorderOperation.from_ids([ids[1], ids[0]]))
    assert ids_of(await gyms.list()) == ids


@pytest.mark.asyncio
async def test_trainer_store_assigns_unique_slugs(store):
    trainers = collection_store(store, "trainers")
    assert isinstance(trainers, TrainerStore)

    first = await trainers.create({"name": "Rahul Sharma"})
    second = await trainers.create({"name": "Rahul  Sharma"})
    third = await trainers.create({"name": "Priya", "slug": "coach-priya"})

    assert (await trainers.get(first)).payload["slug"] == "rahul-sharma"
    assert (await trainers.get(second)).payload["slug"] == "rahul-sharma-1"
    assert (await trainers.get(third)).payload["slug"] == "coach-priya"

    await trainers.update(first, {"name": "Priya"})
    assert (await trainers.get(first)).payload["slug"] == "priya"
