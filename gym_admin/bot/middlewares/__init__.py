"""
Middlewares for the Telegram admin bot.

Currently includes:
- SyncContextMiddleware: attaches the SyncHub to handler data.
"""

from .sync_context import SyncContextMiddleware

__all__ = ["SyncContextMiddleware"]
