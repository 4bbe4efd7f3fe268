from __future__ import annotations


class StoreError(RuntimeError):
    """Base error for document store operations."""

    def __init__(
        self,
        message: str,
        *,
        collection: str | None = None,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.collection = collection
        self.status_code = status_code
        self.detail = detail


class NotFoundError(StoreError):
    """The record addressed by id does not exist."""


class WriteError(StoreError):
    """The store rejected a mutation (permissions, network, validation)."""


class ReadError(StoreError):
    """A one-shot read failed."""


class SubscriptionError(StoreError):
    """The live feed of a collection failed and stopped delivering snapshots."""


class RangeError(IndexError):
    """Move indices fall outside the displayed sequence."""

    def __init__(self, index: int, length: int) -> None:
        super().__init__(f"Index {index} is outside [0, {length - 1}]")
        self.index = index
        self.length = length


class ReorderPendingError(RuntimeError):
    """A reorder was requested while another one is still being written."""

    def __init__(self, collection: str) -> None:
        super().__init__(f"A reorder of '{collection}' is still in flight")
        self.collection = collection


class CoordinatorClosedError(RuntimeError):
    pass
