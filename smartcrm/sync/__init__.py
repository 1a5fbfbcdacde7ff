"""
Offline/online data synchronization.

Usage:
    from smartcrm.sync.factory import build_engine
    engine = build_engine()
    engine.queue_operation("create", "contact", "c_1", {"firstName": "Jane"})
"""

from smartcrm.sync.engine import SyncEngine
from smartcrm.sync.errors import (
    ConflictError, InvalidOperationError, ManualResolutionRequired,
    PersistenceError, SyncError, UnknownEntityTypeError,
)
from smartcrm.sync.models import (
    ConflictStrategy, EntityType, OperationType, SyncOperation, SyncResult, SyncStatus,
)

__all__ = [
    "SyncEngine",
    "SyncError", "PersistenceError", "InvalidOperationError", "UnknownEntityTypeError",
    "ConflictError", "ManualResolutionRequired",
    "ConflictStrategy", "EntityType", "OperationType",
    "SyncOperation", "SyncResult", "SyncStatus",
]
