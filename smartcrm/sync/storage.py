"""
Durable key/value storage for the sync queue.

The queue is always read and written as a whole: load the full list, mutate
it in memory, write the full list back. A write replaces the stored value in
a single statement, so a reader never sees a partially written queue.

Usage:
    store = SyncQueueStore(SQLiteKeyValueStore("smartcrm.db"))
    queue = store.load_queue(strict=True)
    queue.append(op)
    store.save_queue(queue)
"""

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from typing import List, Optional

from smartcrm.db.connection import get_db_conn
from smartcrm.db.init_db import init_db
from smartcrm.sync.errors import PersistenceError
from smartcrm.sync.models import SyncOperation

logger = logging.getLogger("smartcrm.sync.storage")

SYNC_QUEUE_KEY = "sync_queue"
LAST_SYNC_KEY = "last_sync_timestamp"


class KeyValueStore:
    """Interface for string key/value persistence."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str):
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for tests and hosts without a disk."""

    def __init__(self, initial: dict = None):
        self._data = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str):
        with self._lock:
            self._data[key] = value

    def delete(self, key: str):
        with self._lock:
            self._data.pop(key, None)


class SQLiteKeyValueStore(KeyValueStore):
    """kv_store table in the local SQLite database."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    def get(self, key: str) -> Optional[str]:
        with get_db_conn(self.db_path) as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key=?", (key,)).fetchone()
            return row["value"] if row else None

    def set(self, key: str, value: str):
        now = datetime.now(timezone.utc).isoformat()
        with get_db_conn(self.db_path) as conn:
            with conn:
                conn.execute("""
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value,
                        updated_at=excluded.updated_at
                """, (key, value, now))

    def delete(self, key: str):
        with get_db_conn(self.db_path) as conn:
            with conn:
                conn.execute("DELETE FROM kv_store WHERE key=?", (key,))


class SyncQueueStore:
    """Typed access to the persisted queue and the last sync timestamp."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def load_queue(self, strict: bool = False) -> List[SyncOperation]:
        """Load the full queue in insertion order.

        Args:
            strict: Raise PersistenceError on unreadable data instead of
                returning an empty queue.
        """
        try:
            stored = self.kv.get(SYNC_QUEUE_KEY)
            if not stored:
                return []
            return [SyncOperation.from_dict(item) for item in json.loads(stored)]
        except (sqlite3.Error, OSError, ValueError, KeyError, TypeError) as e:
            logger.error("Failed to get sync queue: %s", e)
            if strict:
                raise PersistenceError(f"Failed to read sync queue: {e}") from e
            return []

    def save_queue(self, queue: List[SyncOperation]):
        try:
            payload = json.dumps([op.to_dict() for op in queue])
            self.kv.set(SYNC_QUEUE_KEY, payload)
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error("Failed to save sync queue: %s", e)
            raise PersistenceError(f"Failed to save sync queue: {e}") from e

    def get_last_sync(self) -> Optional[int]:
        try:
            stored = self.kv.get(LAST_SYNC_KEY)
            return int(stored) if stored else None
        except (sqlite3.Error, OSError, ValueError) as e:
            logger.error("Failed to get last sync timestamp: %s", e)
            return None

    def set_last_sync(self, timestamp_ms: int):
        try:
            self.kv.set(LAST_SYNC_KEY, str(int(timestamp_ms)))
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to update last sync timestamp: %s", e)
