"""
Sync data model: operations, flush results, and status snapshots.

Operations are persisted as JSON with camelCase keys so a queue written by
the browser client and one written here are interchangeable.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class OperationType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntityType(str, Enum):
    CONTACT = "contact"
    FILE = "file"
    AUTOMATION = "automation"


class ConflictStrategy(str, Enum):
    SERVER_WINS = "server-wins"
    LOCAL_WINS = "local-wins"
    MERGE = "merge"
    MANUAL = "manual"


def _value(v) -> str:
    return v.value if isinstance(v, Enum) else str(v)


@dataclass
class SyncOperation:
    """A single pending mutation against the remote entity store."""

    id: str
    type: str
    entity_type: str
    entity_id: str
    timestamp: int
    data: Any = None
    retry_count: int = 0
    max_retries: int = 3

    @staticmethod
    def make_id(op_type, entity_type, entity_id: str, timestamp: int) -> str:
        return f"{_value(op_type)}_{_value(entity_type)}_{entity_id}_{timestamp}"

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "data": self.data,
            "timestamp": self.timestamp,
            "retryCount": self.retry_count,
            "maxRetries": self.max_retries,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "SyncOperation":
        return cls(
            id=d["id"],
            type=d["type"],
            entity_type=d["entityType"],
            entity_id=str(d["entityId"]),
            data=d.get("data"),
            timestamp=int(d["timestamp"]),
            retry_count=int(d.get("retryCount", 0)),
            max_retries=int(d.get("maxRetries", 3)),
        )


@dataclass
class SyncResult:
    """Outcome of one flush cycle."""

    success: bool = True
    synced: int = 0
    failed: int = 0
    conflicts: int = 0
    errors: List[str] = field(default_factory=list)

    @classmethod
    def unavailable(cls, reason: str) -> "SyncResult":
        return cls(success=False, errors=[reason])

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "synced": self.synced,
            "failed": self.failed,
            "conflicts": self.conflicts,
            "errors": list(self.errors),
        }


@dataclass
class SyncStatus:
    is_online: bool
    sync_in_progress: bool
    queue_size: int
    last_sync_timestamp: Optional[int]

    def to_dict(self) -> dict:
        return {
            "is_online": self.is_online,
            "sync_in_progress": self.sync_in_progress,
            "queue_size": self.queue_size,
            "last_sync_timestamp": self.last_sync_timestamp,
        }
