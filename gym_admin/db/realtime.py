from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlencode

from websockets.asyncio.client import connect as ws_connect  # type: ignore

from gym_admin.core.errors import StoreError, SubscriptionError
from gym_admin.db.base import ErrorCallback, SnapshotCallback
from gym_admin.db.models import OrderedRecord

logger = logging.getLogger(__name__)


class RealtimeFeed:
    """
    Supabase Realtime (Phoenix channel) feed for one table.

    Change events only signal that something changed; every signal triggers a
    full REST re-fetch so subscribers always get a complete, sorted snapshot.
    Bursts of events during a fetch are coalesced into one more fetch.

    The feed does not reconnect: any channel or transport failure calls
    `on_error` once and the feed stops.
    """

    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        collection: str,
        fetch: Callable[[], Awaitable[list[OrderedRecord]]],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        heartbeat_interval_s: float = 25.0,
        schema: str = "public",
        on_stopped: Optional[Callable[["RealtimeFeed"], None]] = None,
    ) -> None:
        self.url = url
        self.collection = collection
        self.schema = schema
        self._api_key = api_key
        self._fetch = fetch
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._on_stopped = on_stopped
        self.heartbeat_interval_s = max(1.0, float(heartbeat_interval_s))

        self._ref = 0
        self._join_ref: str | None = None
        self._refresh = asyncio.Event()
        self._stopped = False
        self._task: asyncio.Task[None] | None = None

    @property
    def topic(self) -> str:
        return f"realtime:{self.collection}"

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError(f"Feed for '{self.collection}' already started")
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"realtime-feed:{self.collection}"
        )

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._notify_stopped()
        logger.debug("Realtime feed for '%s' stopped", self.collection)

    def _notify_stopped(self) -> None:
        if self._on_stopped is not None:
            self._on_stopped(self)

    def _socket_url(self) -> str:
        return f"{self.url}?{urlencode({'apikey': self._api_key, 'vsn': '1.0.0'})}"

    def _join_payload(self) -> dict[str, Any]:
        return {
            "config": {
                "broadcast": {"self": False},
                "presence": {"key": ""},
                "postgres_changes": [
                    {"event": "*", "schema": self.schema, "table": self.collection},
                ],
            },
            "access_token": self._api_key,
        }

    async def _send(self, ws: Any, topic: str, event: str, payload: dict[str, Any]) -> str:
        self._ref += 1
        ref = str(self._ref)
        await ws.send(json.dumps({"topic": topic, "event": event, "payload": payload, "ref": ref}))
        return ref

    async def _run(self) -> None:
        error: SubscriptionError | None = None
        try:
            async with ws_connect(self._socket_url(), ping_interval=None, close_timeout=5) as ws:
                self._join_ref = await self._send(ws, self.topic, "phx_join", self._join_payload())
                tasks = {
                    asyncio.create_task(self._read_loop(ws)),
                    asyncio.create_task(self._refresh_loop()),
                    asyncio.create_task(self._heartbeat_loop(ws)),
                }
                try:
                    done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    for task in tasks:
                        task.cancel()
                    await asyncio.gather(*tasks, return_exceptions=True)
                error = self._outcome(done.pop())
        except Exception as exc:
            error = SubscriptionError(
                f"Realtime connection for '{self.collection}' failed",
                collection=self.collection,
                detail=str(exc),
            )
        self._fail(error)

    def _outcome(self, task: asyncio.Task[Any]) -> SubscriptionError:
        exc = task.exception()
        if exc is not None:
            return SubscriptionError(
                f"Realtime feed for '{self.collection}' lost",
                collection=self.collection,
                detail=str(exc),
            )
        result = task.result()
        if isinstance(result, SubscriptionError):
            return result
        return SubscriptionError(
            f"Realtime feed for '{self.collection}' ended unexpectedly",
            collection=self.collection,
        )

    async def _read_loop(self, ws: Any) -> SubscriptionError:
        while True:
            raw = await ws.recv()
            try:
                message = json.loads(raw)
            except ValueError:
                logger.warning("Skipping malformed Realtime message for '%s'", self.collection)
                continue
            error = self._handle_message(message)
            if error is not None:
                return error

    def _handle_message(self, message: dict[str, Any]) -> SubscriptionError | None:
        topic = message.get("topic")
        event = message.get("event")
        payload = message.get("payload") or {}

        if topic == "phoenix":
            if event == "phx_reply" and payload.get("status") not in (None, "ok"):
                return SubscriptionError(
                    "Realtime heartbeat rejected",
                    collection=self.collection,
                    detail=json.dumps(payload),
                )
            return None
        if topic != self.topic:
            return None

        if event == "phx_reply":
            if message.get("ref") != self._join_ref:
                return None
            if payload.get("status") == "ok":
                logger.debug("Joined %s", self.topic)
                self._refresh.set()
                return None
            return SubscriptionError(
                f"Realtime join rejected for '{self.collection}'",
                collection=self.collection,
                detail=json.dumps(payload.get("response")),
            )
        if event == "postgres_changes":
            self._refresh.set()
            return None
        if event in ("phx_error", "phx_close"):
            return SubscriptionError(
                f"Realtime channel for '{self.collection}' closed ({event})",
                collection=self.collection,
                detail=json.dumps(payload),
            )
        if event == "system" and payload.get("status") == "error":
            return SubscriptionError(
                f"Realtime system error for '{self.collection}'",
                collection=self.collection,
                detail=str(payload.get("message")),
            )
        return None

    async def _refresh_loop(self) -> SubscriptionError:
        while True:
            await self._refresh.wait()
            self._refresh.clear()
            try:
                records = await self._fetch()
            except StoreError as exc:
                return SubscriptionError(
                    f"Snapshot fetch failed for '{self.collection}'",
                    collection=self.collection,
                    status_code=exc.status_code,
                    detail=exc.detail,
                )
            if self._stopped:
                continue
            try:
                self._on_snapshot(records)
            except Exception:
                logger.exception("Snapshot callback error (collection=%s)", self.collection)

    async def _heartbeat_loop(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval_s)
            await self._send(ws, "phoenix", "heartbeat", {})

    def _fail(self, error: SubscriptionError) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._notify_stopped()
        logger.warning("Realtime feed for '%s' failed: %s (%s)", self.collection, error, error.detail)
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Feed error callback failed (collection=%s)", self.collection)
