"""
Unit tests for queue persistence (SQLite and in-memory key/value stores).
"""

import os
import sqlite3
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

from smartcrm.sync.errors import PersistenceError
from smartcrm.sync.models import SyncOperation
from smartcrm.sync.storage import (
    LAST_SYNC_KEY, SYNC_QUEUE_KEY, MemoryKeyValueStore, SQLiteKeyValueStore, SyncQueueStore,
)


def _op(entity_id, ts=1000, retry=0):
    return SyncOperation(id=f"update_contact_{entity_id}_{ts}", type="update",
                         entity_type="contact", entity_id=entity_id,
                         data={"id": entity_id}, timestamp=ts, retry_count=retry)


def test_sqlite_kv_overwrites(db_path):
    kv = SQLiteKeyValueStore(db_path)
    assert kv.get("k") is None
    kv.set("k", "one")
    kv.set("k", "two")
    assert kv.get("k") == "two"
    kv.delete("k")
    assert kv.get("k") is None


def test_queue_survives_reopen(db_path):
    SyncQueueStore(SQLiteKeyValueStore(db_path)).save_queue([_op("c1"), _op("c2", retry=2)])

    reopened = SyncQueueStore(SQLiteKeyValueStore(db_path)).load_queue()
    assert [op.entity_id for op in reopened] == ["c1", "c2"]
    assert reopened[1].retry_count == 2


def test_queue_uses_camel_case_json():
    kv = MemoryKeyValueStore()
    SyncQueueStore(kv).save_queue([_op("c1")])
    raw = kv.get(SYNC_QUEUE_KEY)
    assert '"entityType": "contact"' in raw
    assert '"retryCount": 0' in raw
    assert '"maxRetries": 3' in raw


def test_reads_queue_written_by_browser_client():
    kv = MemoryKeyValueStore({SYNC_QUEUE_KEY: (
        '[{"id":"create_contact_7_1700000000000","type":"create","entityType":"contact",'
        '"entityId":"7","data":{"firstName":"Jane"},"timestamp":1700000000000,'
        '"retryCount":1,"maxRetries":3}]'
    )})
    op = SyncQueueStore(kv).load_queue()[0]
    assert op.entity_id == "7"
    assert op.data == {"firstName": "Jane"}
    assert op.retry_count == 1


def test_corrupt_queue_lenient_returns_empty():
    store = SyncQueueStore(MemoryKeyValueStore({SYNC_QUEUE_KEY: "[{broken"}))
    assert store.load_queue() == []


def test_corrupt_queue_strict_raises():
    store = SyncQueueStore(MemoryKeyValueStore({SYNC_QUEUE_KEY: "[{broken"}))
    with pytest.raises(PersistenceError):
        store.load_queue(strict=True)


def test_save_failure_raises_persistence_error():
    class ReadOnlyKV(MemoryKeyValueStore):
        def set(self, key, value):
            raise sqlite3.OperationalError("attempt to write a readonly database")

    with pytest.raises(PersistenceError):
        SyncQueueStore(ReadOnlyKV()).save_queue([_op("c1")])


def test_last_sync_round_trip_and_bad_value():
    kv = MemoryKeyValueStore()
    store = SyncQueueStore(kv)
    assert store.get_last_sync() is None
    store.set_last_sync(1234)
    assert store.get_last_sync() == 1234

    kv.set(LAST_SYNC_KEY, "not-a-number")
    assert store.get_last_sync() is None
