from __future__ import annotations

from html import escape
from typing import Iterable

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from gym_admin.db.models import OrderedRecord

COLLECTION_TITLES = {
    "gyms": "🏋️ Gyms",
    "trainers": "🧑‍🏫 Trainers",
    "memberships": "💳 Memberships",
    "blog_posts": "📰 Blog posts",
    "add_on_services": "➕ Add-on services",
    "transformations": "📸 Transformations",
    "contact_requests": "✉️ Contact requests",
    "service_bookings": "📅 Service bookings",
}

# Telegram rejects callback_data longer than 64 bytes
_CALLBACK_LIMIT = 64


def record_label(record: OrderedRecord) -> str:
    payload = record.payload
    for key in ("name", "title", "customer_name"):
        if payload.get(key):
            return str(payload[key])
    return record.id or "(unsaved)"


def move_callback(collection: str, source: int, destination: int) -> str:
    data = f"mv:{collection}:{source}:{destination}"
    if len(data.encode()) > _CALLBACK_LIMIT:
        raise ValueError(f"Callback data too long: {data}")
    return data


def parse_move_callback(data: str) -> tuple[str, int, int] | None:
    parts = data.split(":")
    if len(parts) != 4 or parts[0] != "mv":
        return None
    try:
        return parts[1], int(parts[2]), int(parts[3])
    except ValueError:
        return None


class Keyboards:
    """
    Centralized keyboard/button builder for consistent UI.
    """

    @staticmethod
    def collections_menu(collections: Iterable[str]) -> InlineKeyboardMarkup:
        """One button per collection, two per row."""
        buttons = [
            InlineKeyboardButton(
                text=COLLECTION_TITLES.get(name, name),
                callback_data=f"list:{name}",
            )
            for name in collections
        ]
        rows = [buttons[idx:idx + 2] for idx in range(0, len(buttons), 2)]
        return InlineKeyboardMarkup(inline_keyboard=rows)

    @staticmethod
    def reorder_controls(collection: str, records: list[OrderedRecord]) -> InlineKeyboardMarkup:
        """
        Up/down buttons per record; each press is a one-step move.
        """
        rows: list[list[InlineKeyboardButton]] = []
        last = len(records) - 1
        for idx, record in enumerate(records):
            row = [InlineKeyboardButton(text=f"{idx + 1}. {record_label(record)}"[:40], callback_data="noop")]
            if idx > 0:
                row.append(InlineKeyboardButton(text="⬆️", callback_data=move_callback(collection, idx, idx - 1)))
            if idx < last:
                row.append(InlineKeyboardButton(text="⬇️", callback_data=move_callback(collection, idx, idx + 1)))
            rows.append(row)
        rows.append(
            [
                InlineKeyboardButton(text="🔄 Refresh", callback_data=f"list:{collection}"),
                InlineKeyboardButton(text="⬅️ Back", callback_data="menu_main"),
            ]
        )
        return InlineKeyboardMarkup(inline_keyboard=rows)


class MessageTemplates:
    """
    Standardized message templates for consistent formatting.
    """

    @staticmethod
    def header(title: str, emoji: str = "📋") -> str:
        """Format a header."""
        return f"\n<b>{emoji} {title}</b>\n"

    @staticmethod
    def error(message: str) -> str:
        """Format an error message."""
        return f"❌ <b>Error:</b> {escape(message)}"

    @staticmethod
    def success(message: str) -> str:
        """Format a success message."""
        return f"✅ <b>Done!</b> {escape(message)}"

    @staticmethod
    def warning(message: str) -> str:
        """Format a warning message."""
        return f"⚠️ <b>Warning:</b> {escape(message)}"

    @staticmethod
    def collection_listing(collection: str, records: list[OrderedRecord]) -> str:
        lines = [f"<b>{COLLECTION_TITLES.get(collection, collection)}</b>", ""]
        if not records:
            lines.append("Nothing here yet.")
        for idx, record in enumerate(records, start=1):
            order = "–" if record.order is None else str(record.order)
            lines.append(f"{idx}. {escape(record_label(record))} <code>[{order}]</code>")
        return "\n".join(lines)
