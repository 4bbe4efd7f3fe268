from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from gym_admin.bot.keyboards import Keyboards, MessageTemplates
from gym_admin.core.errors import StoreError
from gym_admin.db.models import OrderedRecord
from gym_admin.sync.coordinator import SyncCoordinator
from gym_admin.sync.hub import SyncHub

router = Router(name="collections")
logger = logging.getLogger(__name__)


def resolve_coordinator(hub: SyncHub, name: str) -> SyncCoordinator | None:
    if name not in hub.collections:
        return None
    return hub.coordinator(name)


async def current_records(coordinator: SyncCoordinator) -> list[OrderedRecord]:
    """
    What the coordinator displays, or a one-shot read while the first snapshot is pending.
    """

    if coordinator.has_snapshot:
        return coordinator.displayed
    return await coordinator.store.list()


@router.message(Command("list"))
async def cmd_list(message: Message, hub: SyncHub) -> None:
    """
    Show a collection in display order.
    Usage: /list gyms
    """

    parts = (message.text or "").split()
    if len(parts) != 2:
        await message.answer("Usage: /list &lt;collection&gt;", parse_mode="HTML")
        return

    coordinator = resolve_coordinator(hub, parts[1])
    if coordinator is None:
        await message.answer(MessageTemplates.error(f"Unknown collection '{parts[1]}'"), parse_mode="HTML")
        return

    try:
        records = await current_records(coordinator)
    except StoreError as exc:
        logger.warning("Listing %s failed: %s", coordinator.collection, exc)
        await message.answer(MessageTemplates.error("Could not load the collection."), parse_mode="HTML")
        return

    await message.answer(
        MessageTemplates.collection_listing(coordinator.collection, records),
        reply_markup=Keyboards.reorder_controls(coordinator.collection, records),
        parse_mode="HTML",
    )


@router.callback_query(F.data.startswith("list:"))
async def show_collection(query: CallbackQuery, hub: SyncHub) -> None:
    name = query.data.split(":", 1)[1]
    coordinator = resolve_coordinator(hub, name)
    if coordinator is None:
        await query.answer("Unknown collection", show_alert=True)
        return

    try:
        records = await current_records(coordinator)
    except StoreError as exc:
        logger.warning("Listing %s failed: %s", name, exc)
        await query.answer("Could not load the collection", show_alert=True)
        return

    await query.message.edit_text(
        text=MessageTemplates.collection_listing(name, records),
        reply_markup=Keyboards.reorder_controls(name, records),
        parse_mode="HTML",
    )
    await query.answer()


@router.message(Command("delete"))
async def cmd_delete(message: Message, hub: SyncHub) -> None:
    """
    Delete a record by its displayed position. Siblings keep their order values.
    Usage: /delete gyms 3
    """

    parts = (message.text or "").split()
    if len(parts) != 3:
        await message.answer("Usage: /delete &lt;collection&gt; &lt;position&gt;", parse_mode="HTML")
        return

    coordinator = resolve_coordinator(hub, parts[1])
    if coordinator is None:
        await message.answer(MessageTemplates.error(f"Unknown collection '{parts[1]}'"), parse_mode="HTML")
        return

    try:
        position = int(parts[2])
    except ValueError:
        await message.answer("Position must be a number.")
        return

    records = coordinator.displayed
    if not 1 <= position <= len(records) or records[position - 1].id is None:
        await message.answer(MessageTemplates.error(f"No record at position {position}"), parse_mode="HTML")
        return

    record = records[position - 1]
    try:
        await coordinator.delete(record.id)
    except StoreError:
        await message.answer(MessageTemplates.error("Delete failed, nothing was changed."), parse_mode="HTML")
        return

    await message.answer(MessageTemplates.success(f"Deleted #{position}."), parse_mode="HTML")


@router.message(Command("refresh"))
async def cmd_refresh(message: Message, hub: SyncHub) -> None:
    """
    Resubscribe to a collection's live feed after it failed.
    Usage: /refresh gyms
    """

    parts = (message.text or "").split()
    if len(parts) != 2 or parts[1] not in hub.collections:
        await message.answer("Usage: /refresh &lt;collection&gt;", parse_mode="HTML")
        return

    coordinator = hub.reopen(parts[1])
    if coordinator.is_live:
        await message.answer(MessageTemplates.success(f"Live feed of {parts[1]} is running."), parse_mode="HTML")
    else:
        await message.answer(MessageTemplates.warning(f"Live feed of {parts[1]} is still down."), parse_mode="HTML")
