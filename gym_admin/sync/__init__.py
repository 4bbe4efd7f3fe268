"""
Ordered-collection synchronization.

- `store`: CRUD and atomic reorder over one collection
- `live`: per-collection snapshot broadcast
- `reorder`: pure move/renumber logic
- `coordinator`: optimistic reorders reconciled with live snapshots
- `hub`: coordinators for a running application
"""

from .coordinator import SyncCoordinator, SyncState
from .hub import SyncHub
from .live import LiveSubscription, SnapshotChannel
from .reorder import ReorderPlan, build_operation, move_item, operation_applied, plan_reorder
from .store import CollectionStore, TrainerStore, collection_store

__all__ = [
    "CollectionStore",
    "LiveSubscription",
    "ReorderPlan",
    "SnapshotChannel",
    "SyncCoordinator",
    "SyncHub",
    "SyncState",
    "TrainerStore",
    "build_operation",
    "collection_store",
    "move_item",
    "operation_applied",
    "plan_reorder",
]
