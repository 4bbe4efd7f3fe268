from aiogram import Router

from . import (
    collections,
    reorder,
    start,
)


def setup_routers() -> Router:
    """
    Aggregate and return root router for the bot.
    """

    router = Router(name="root")
    router.include_router(start.router)
    router.include_router(collections.router)
    router.include_router(reorder.router)
    return router
