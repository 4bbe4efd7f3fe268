from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage

from gym_admin.bot.handlers import setup_routers
from gym_admin.bot.middlewares import SyncContextMiddleware
from gym_admin.bot.scheduler import FeedRecoveryScheduler
from gym_admin.core import get_settings
from gym_admin.core.logging import configure_logging
from gym_admin.db import close_document_store, get_document_store
from gym_admin.sync.hub import SyncHub


async def _run_bot() -> None:
    settings = get_settings()
    logger = configure_logging(settings)

    if not settings.bot_token:
        raise RuntimeError("Missing required environment variables: BOT_TOKEN")

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    hub = SyncHub(get_document_store())

    dp = Dispatcher(storage=MemoryStorage())
    dp.message.middleware(SyncContextMiddleware(hub))
    dp.callback_query.middleware(SyncContextMiddleware(hub))
    dp.include_router(setup_routers())

    logger.info("Starting admin bot in %s environment", settings.environment)

    # Resubscribes collections whose live feed dropped
    scheduler = FeedRecoveryScheduler(hub, settings.resubscribe_delay_s)
    await scheduler.start()

    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        # Graceful shutdown
        await scheduler.stop()
        hub.close()
        await close_document_store()
        await bot.session.close()


def main() -> None:
    asyncio.run(_run_bot())


if __name__ == "__main__":
    main()
