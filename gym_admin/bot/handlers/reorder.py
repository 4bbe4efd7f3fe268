from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from gym_admin.bot.handlers.collections import resolve_coordinator
from gym_admin.bot.keyboards import Keyboards, MessageTemplates, parse_move_callback
from gym_admin.core.errors import RangeError, ReorderPendingError, StoreError
from gym_admin.sync.coordinator import SyncCoordinator
from gym_admin.sync.hub import SyncHub

router = Router(name="reorder")
logger = logging.getLogger(__name__)


async def apply_move(coordinator: SyncCoordinator, source: int, destination: int) -> str | None:
    """
    Run one move through the coordinator. Returns an error text for the user, or None.
    """

    if not coordinator.has_snapshot:
        return "Still syncing this collection, try again in a moment."
    try:
        await coordinator.move(source, destination)
    except RangeError:
        return f"Positions must be between 1 and {len(coordinator.displayed)}."
    except ReorderPendingError:
        return "The previous move is still being saved."
    except StoreError as exc:
        logger.warning("Move in %s failed: %s", coordinator.collection, exc)
        return "Saving the new order failed; the list was restored."
    return None


@router.message(Command("move"))
async def cmd_move(message: Message, hub: SyncHub) -> None:
    """
    Move a record to another position (positions start at 1).
    Usage: /move trainers 4 1
    """

    parts = (message.text or "").split()
    if len(parts) != 4:
        await message.answer("Usage: /move &lt;collection&gt; &lt;from&gt; &lt;to&gt;", parse_mode="HTML")
        return

    coordinator = resolve_coordinator(hub, parts[1])
    if coordinator is None:
        await message.answer(MessageTemplates.error(f"Unknown collection '{parts[1]}'"), parse_mode="HTML")
        return

    try:
        source, destination = int(parts[2]) - 1, int(parts[3]) - 1
    except ValueError:
        await message.answer("Positions must be numbers.")
        return

    error = await apply_move(coordinator, source, destination)
    if error is not None:
        await message.answer(MessageTemplates.error(error), parse_mode="HTML")
        return

    records = coordinator.displayed
    await message.answer(
        MessageTemplates.collection_listing(coordinator.collection, records),
        reply_markup=Keyboards.reorder_controls(coordinator.collection, records),
        parse_mode="HTML",
    )


@router.callback_query(F.data.startswith("mv:"))
async def on_move_button(query: CallbackQuery, hub: SyncHub) -> None:
    parsed = parse_move_callback(query.data or "")
    if parsed is None:
        await query.answer()
        return

    name, source, destination = parsed
    coordinator = resolve_coordinator(hub, name)
    if coordinator is None:
        await query.answer("Unknown collection", show_alert=True)
        return

    shown = MessageTemplates.collection_listing(name, coordinator.displayed)
    error = await apply_move(coordinator, source, destination)
    records = coordinator.displayed
    text = MessageTemplates.collection_listing(name, records)
    # Telegram rejects an edit that changes nothing
    if text != shown:
        await query.message.edit_text(
            text=text,
            reply_markup=Keyboards.reorder_controls(name, records),
            parse_mode="HTML",
        )
    if error is not None:
        await query.answer(error, show_alert=True)
    else:
        await query.answer()
