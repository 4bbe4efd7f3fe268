from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from gym_admin.sync.hub import SyncHub


class SyncContextMiddleware(BaseMiddleware):
    """
    Middleware that attaches the application's SyncHub to handler data.

    Works for both Message and CallbackQuery events.
    """

    def __init__(self, hub: SyncHub) -> None:
        self.hub = hub

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data["hub"] = self.hub
        return await handler(event, data)
