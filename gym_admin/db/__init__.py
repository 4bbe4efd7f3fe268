from __future__ import annotations

from .base import DocumentStore
from .memory import InMemoryDocumentStore
from .supabase import SupabaseDocumentStore

_document_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """
    Lazy singleton for the Supabase-backed document store.

    Call `close_document_store()` on shutdown to release the HTTP client
    and stop live feeds.
    """

    global _document_store
    if _document_store is None:
        _document_store = SupabaseDocumentStore()
    return _document_store


async def close_document_store() -> None:
    global _document_store
    if _document_store is not None:
        await _document_store.close()
        _document_store = None


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "SupabaseDocumentStore",
    "close_document_store",
    "get_document_store",
]
