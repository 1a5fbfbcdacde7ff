"""
Conflict resolution between the server copy and the local copy of a record.

Strategies:
- server-wins: keep the server record
- local-wins: keep the local record
- merge: field-level merge, local non-null fields override server fields
- manual: needs an interactive prompt; always raises
"""

from datetime import datetime, timezone
from typing import Any

from smartcrm.sync.errors import ManualResolutionRequired
from smartcrm.sync.models import ConflictStrategy, SyncOperation


def _iso(now_ms: int) -> str:
    return datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def merge_data(server_data: dict, local_data: dict, now_ms: int) -> dict:
    """Start from the server record, overlay every local field that is not None.

    The result is tagged with ``_conflictResolved`` and ``_resolvedAt``.
    """
    merged = dict(server_data or {})
    for key, value in (local_data or {}).items():
        if value is not None:
            merged[key] = value

    merged["_conflictResolved"] = True
    merged["_resolvedAt"] = _iso(now_ms)
    return merged


def resolve_conflict(operation: SyncOperation, server_data: Any, local_data: Any,
                     strategy, now_ms: int) -> Any:
    """Reconcile divergent versions of the record ``operation`` targets.

    Raises:
        ManualResolutionRequired: for the manual strategy.
        ValueError: for an unknown strategy.
    """
    try:
        strategy = ConflictStrategy(strategy)
    except ValueError:
        raise ValueError(f"Unknown conflict resolution strategy: {strategy}")

    if strategy is ConflictStrategy.SERVER_WINS:
        return server_data
    if strategy is ConflictStrategy.LOCAL_WINS:
        return local_data
    if strategy is ConflictStrategy.MERGE:
        return merge_data(server_data, local_data, now_ms)

    op_id = operation.id if operation is not None else "unknown"
    raise ManualResolutionRequired(
        f"Manual conflict resolution not implemented (operation {op_id})"
    )
