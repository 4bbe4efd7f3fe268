from __future__ import annotations

import logging
from typing import Any

import httpx

from gym_admin.core import Settings, get_settings
from gym_admin.core.errors import (
    NotFoundError,
    ReadError,
    StoreError,
    WriteError,
)
from gym_admin.db.base import ErrorCallback, SnapshotCallback, Unsubscribe
from gym_admin.db.models import OrderedRecord, ReorderOperation
from gym_admin.db.ordering import next_order, sort_records, utcnow
from gym_admin.db.realtime import RealtimeFeed

logger = logging.getLogger(__name__)

# PostgREST ordering matching the display contract; re-sorted client side anyway
_DISPLAY_ORDER = "order.asc.nullslast,created_at.desc.nullslast"


class SupabaseDocumentStore:
    """
    Async Supabase backend for the synchronized collections.

    REST calls go through PostgREST; live feeds through Supabase Realtime.
    Service role key is used, so RLS is bypassed.

    Expected Supabase schema, per collection (`gyms`, `trainers`, ...):
    - table `<collection>` with columns
      id (uuid, default gen_random_uuid()), "order" (int, nullable),
      created_at (timestamptz), updated_at (timestamptz), plus domain columns
    - the table added to the `supabase_realtime` publication

    and one function used for atomic reorders (runs in a single transaction):

        create or replace function public.reorder_records(p_table text, p_entries jsonb)
        returns void language plpgsql as $$
        declare
          entry jsonb;
          affected int;
        begin
          for entry in select * from jsonb_array_elements(p_entries) loop
            execute format(
              'update public.%I set "order" = $1, updated_at = now() where id::text = $2',
              p_table
            ) using (entry->>'order')::int, entry->>'id';
            get diagnostics affected = row_count;
            if affected = 0 then
              raise exception 'record % not found in %', entry->>'id', p_table
                using errcode = 'P0002';
            end if;
          end loop;
        end $$;
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._rest = httpx.AsyncClient(
            base_url=self._settings.rest_url,
            headers={
                "apikey": self._settings.supabase_service_key,
                "Authorization": f"Bearer {self._settings.supabase_service_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self._settings.request_timeout_s,
            transport=transport,
        )
        self._feeds: set[RealtimeFeed] = set()

    async def close(self) -> None:
        for feed in list(self._feeds):
            feed.stop()
        self._feeds.clear()
        await self._rest.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        collection: str,
        error_cls: type[StoreError],
        action: str,
        missing_is_not_found: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._rest.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise error_cls(
                f"Supabase REST {action} failed for '{collection}'",
                collection=collection,
                detail=str(exc),
            ) from exc
        if response.status_code == 404 and missing_is_not_found:
            raise NotFoundError(
                f"Supabase REST {action} found no record in '{collection}'",
                collection=collection,
                status_code=response.status_code,
                detail=response.text,
            )
        if response.status_code >= 400:
            raise error_cls(
                f"Supabase REST {action} failed for '{collection}'",
                collection=collection,
                status_code=response.status_code,
                detail=response.text,
            )
        return response

    async def _max_order_row(self, collection: str) -> list[OrderedRecord]:
        response = await self._request(
            "GET",
            f"/{collection}",
            collection=collection,
            error_cls=WriteError,
            action="max order lookup",
            params={"select": "id,order", "order": "order.desc.nullslast", "limit": 1},
        )
        items: list[dict[str, Any]] = response.json()
        return [OrderedRecord.model_validate(item) for item in items]

    async def create(self, collection: str, payload: dict[str, Any]) -> str:
        """
        Insert a record appended after the current last one.
        """

        # Highest order only; equivalent to scanning the full list
        order = next_order(await self._max_order_row(collection))
        now = utcnow().isoformat()
        response = await self._request(
            "POST",
            f"/{collection}",
            collection=collection,
            error_cls=WriteError,
            action="INSERT",
            json={**payload, "order": order, "created_at": now, "updated_at": now},
            headers={"Prefer": "return=representation"},
        )
        items: list[dict[str, Any]] = response.json()
        if not items or not items[0].get("id"):
            raise WriteError(
                f"Empty insert response for '{collection}'",
                collection=collection,
                detail=response.text,
            )
        record_id = str(items[0]["id"])
        logger.debug("Created %s/%s with order %d", collection, record_id, order)
        return record_id

    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        response = await self._request(
            "PATCH",
            f"/{collection}",
            collection=collection,
            error_cls=WriteError,
            action="UPDATE",
            params={"id": f"eq.{record_id}"},
            json={**fields, "updated_at": utcnow().isoformat()},
            headers={"Prefer": "return=representation"},
        )
        items: list[dict[str, Any]] = response.json()
        if not items:
            raise NotFoundError(
                f"Record '{record_id}' not found",
                collection=collection,
                status_code=404,
            )

    async def delete(self, collection: str, record_id: str) -> None:
        # PostgREST answers 204 whether or not a row matched
        await self._request(
            "DELETE",
            f"/{collection}",
            collection=collection,
            error_cls=WriteError,
            action="DELETE",
            params={"id": f"eq.{record_id}"},
        )

    async def get(self, collection: str, record_id: str) -> OrderedRecord | None:
        response = await self._request(
            "GET",
            f"/{collection}",
            collection=collection,
            error_cls=ReadError,
            action="GET",
            params={"id": f"eq.{record_id}", "select": "*", "limit": 1},
        )
        items: list[dict[str, Any]] = response.json()
        if not items:
            return None
        return OrderedRecord.model_validate(items[0])

    async def list(self, collection: str) -> list[OrderedRecord]:
        response = await self._request(
            "GET",
            f"/{collection}",
            collection=collection,
            error_cls=ReadError,
            action="GET",
            params={"select": "*", "order": _DISPLAY_ORDER},
        )
        items: list[dict[str, Any]] = response.json()
        return sort_records(OrderedRecord.model_validate(item) for item in items)

    async def reorder(self, collection: str, operation: ReorderOperation) -> None:
        """
        Apply every (id, order) pair in one transaction via `reorder_records`.
        """

        if not operation.entries:
            return
        await self._request(
            "POST",
            "/rpc/reorder_records",
            collection=collection,
            error_cls=WriteError,
            action="reorder",
            # P0002 raised by reorder_records surfaces as 404
            missing_is_not_found=True,
            json={
                "p_table": collection,
                "p_entries": [entry.model_dump() for entry in operation.entries],
            },
        )
        logger.debug("Reordered %d records of '%s'", len(operation), collection)

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """
        Start a Realtime feed for `collection`. Must be called from a running event loop.
        """

        feed = RealtimeFeed(
            url=self._settings.realtime_url,
            api_key=self._settings.supabase_service_key,
            collection=collection,
            fetch=lambda: self.list(collection),
            on_snapshot=on_snapshot,
            on_error=on_error,
            heartbeat_interval_s=self._settings.realtime_heartbeat_s,
            on_stopped=self._feeds.discard,
        )
        self._feeds.add(feed)
        feed.start()
        return feed.stop
