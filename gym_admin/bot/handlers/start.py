from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message

from gym_admin.bot.keyboards import Keyboards
from gym_admin.core import get_settings
from gym_admin.sync.hub import SyncHub

router = Router(name="start")


@router.message(CommandStart())
@router.message(Command("menu"))
async def cmd_start(message: Message, hub: SyncHub) -> None:
    """
    /start and /menu: show the collections that can be browsed and reordered.
    """

    settings = get_settings()
    lines = [
        "🏋️ <b>Gym admin</b>",
        "",
        "Pick a collection to view and reorder it.",
    ]
    if settings.is_debug:
        failed = hub.failed_collections()
        lines.append("")
        lines.append(f"Mode: <b>DEBUG</b> | live feeds down: {', '.join(failed) or 'none'}")

    await message.answer(
        "\n".join(lines),
        reply_markup=Keyboards.collections_menu(hub.collections),
        parse_mode="HTML",
    )


@router.callback_query(F.data == "menu_main")
async def show_main_menu(query: CallbackQuery, hub: SyncHub) -> None:
    """Show main menu."""
    await query.message.edit_text(
        text="🏋️ <b>Gym admin</b>\n\nPick a collection:",
        reply_markup=Keyboards.collections_menu(hub.collections),
        parse_mode="HTML",
    )
    await query.answer()


@router.callback_query(F.data == "noop")
async def ignore_label_press(query: CallbackQuery) -> None:
    await query.answer()


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    """
    Show help with available commands.
    """

    help_text = """
<b>📋 Available commands:</b>

/menu — pick a collection
/list &lt;collection&gt; — show a collection in display order
/move &lt;collection&gt; &lt;from&gt; &lt;to&gt; — move a record (positions start at 1)
/delete &lt;collection&gt; &lt;position&gt; — delete a record
/refresh &lt;collection&gt; — resubscribe to a collection's live feed
/help — this help

Collections: gyms, trainers, memberships, blog_posts, add_on_services,
transformations, contact_requests, service_bookings
    """.strip()

    await message.answer(help_text, parse_mode="HTML")
