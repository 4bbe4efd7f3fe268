from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from gym_admin.core.validation import unique_slug
from gym_admin.db.base import DocumentStore, ErrorCallback, SnapshotCallback, Unsubscribe
from gym_admin.db.models import COLLECTIONS, RESERVED_FIELDS, OrderedRecord, ReorderOperation

logger = logging.getLogger(__name__)


class CollectionStore:
    """
    CRUD and reorder over one named collection of a `DocumentStore`.

    Payloads are validated against the collection's schema from `COLLECTIONS`
    when one is registered; unknown collections accept any flat mapping.
    """

    def __init__(self, backend: DocumentStore, name: str) -> None:
        self.backend = backend
        self.name = name
        self.schema: type[BaseModel] | None = COLLECTIONS.get(name)

    def __repr__(self) -> str:
        return f"CollectionStore({self.name!r})"

    def _validated(self, payload: BaseModel | dict[str, Any], *, partial: bool) -> dict[str, Any]:
        if isinstance(payload, BaseModel):
            data = payload.model_dump(mode="json", exclude_none=True)
        else:
            data = dict(payload)

        reserved = RESERVED_FIELDS & data.keys()
        if not partial and reserved:
            raise ValueError(f"Reserved fields cannot be set on create: {', '.join(sorted(reserved))}")
        if partial and reserved - {"order"}:
            raise ValueError(f"Fields cannot be changed: {', '.join(sorted(reserved - {'order'}))}")

        if self.schema is None:
            return data
        if partial:
            known = [name for name in data if name in self.schema.model_fields]
            if not known:
                return data
            checked = self.schema.model_validate({**_required_placeholders(self.schema), **data})
            dumped = checked.model_dump(mode="json")
            return {**data, **{name: dumped[name] for name in known}}
        return self.schema.model_validate(data).model_dump(mode="json", exclude_none=True)

    async def create(self, payload: BaseModel | dict[str, Any]) -> str:
        data = self._validated(payload, partial=False)
        record_id = await self.backend.create(self.name, data)
        logger.info("Created %s/%s", self.name, record_id)
        return record_id

    async def update(self, record_id: str, fields: BaseModel | dict[str, Any]) -> None:
        data = self._validated(fields, partial=True)
        await self.backend.update(self.name, record_id, data)
        logger.info("Updated %s/%s (%s)", self.name, record_id, ", ".join(sorted(data)))

    async def delete(self, record_id: str) -> None:
        await self.backend.delete(self.name, record_id)
        logger.info("Deleted %s/%s", self.name, record_id)

    async def get(self, record_id: str) -> OrderedRecord | None:
        return await self.backend.get(self.name, record_id)

    async def list(self) -> list[OrderedRecord]:
        return await self.backend.list(self.name)

    async def reorder(self, operation: ReorderOperation) -> None:
        await self.backend.reorder(self.name, operation)
        logger.info("Reordered %d records of %s", len(operation), self.name)

    def subscribe(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        return self.backend.subscribe(self.name, on_snapshot, on_error)


def _required_placeholders(schema: type[BaseModel]) -> dict[str, Any]:
    # Required payload fields are all names/titles, so "" stands in for them
    return {
        name: "" for name, field in schema.model_fields.items() if field.is_required()
    }


class TrainerStore(CollectionStore):
    """
    Trainers collection; public profile pages are addressed by a unique slug.
    """

    def __init__(self, backend: DocumentStore, name: str = "trainers") -> None:
        super().__init__(backend, name)

    async def _taken_slugs(self, exclude_id: str | None = None) -> set[str]:
        records = await self.list()
        return {
            str(record.payload["slug"])
            for record in records
            if record.payload.get("slug") and record.id != exclude_id
        }

    async def create(self, payload: BaseModel | dict[str, Any]) -> str:
        """
        Create a trainer, deriving `slug` from the name unless one is given.
        """

        data = self._validated(payload, partial=False)
        if not data.get("slug"):
            data["slug"] = unique_slug(data["name"], await self._taken_slugs())
        return await super().create(data)

    async def update(self, record_id: str, fields: BaseModel | dict[str, Any]) -> None:
        """
        Update a trainer; a new name without an explicit slug gets a fresh slug.
        """

        data = self._validated(fields, partial=True)
        if data.get("name") and not data.get("slug"):
            data["slug"] = unique_slug(data["name"], await self._taken_slugs(exclude_id=record_id))
        await super().update(record_id, data)


def collection_store(backend: DocumentStore, name: str) -> CollectionStore:
    if name == "trainers":
        return TrainerStore(backend, name)
    return CollectionStore(backend, name)
