"""
Shared pytest fixtures for the sync test suite.
"""

import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("SMARTCRM_JOURNAL_MODE", "DELETE")

from smartcrm.sync.connectivity import ManualConnectivity
from smartcrm.sync.engine import SyncEngine
from smartcrm.sync.error_handler import SyncFailureLog
from smartcrm.sync.handlers import EntityHandler, HandlerRegistry, LoggingStubHandler
from smartcrm.sync.storage import MemoryKeyValueStore, SQLiteKeyValueStore, SyncQueueStore

BASE_TIME_MS = 1_760_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = BASE_TIME_MS):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class RecordingHandler(EntityHandler):
    """Records every call; fails for entity ids in ``failing``."""

    def __init__(self):
        self.calls = []
        self.failing = set()
        self.conflicts = {}  # entity_id -> server_data, raised once
        self.gate = None  # threading.Event the handler waits on before returning
        self.entered = threading.Event()
        self._lock = threading.Lock()

    def _call(self, action, entity_id, data=None):
        from smartcrm.sync.errors import ConflictError

        with self._lock:
            self.calls.append((action, entity_id, data))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if entity_id in self.conflicts:
            raise ConflictError("server copy changed", self.conflicts.pop(entity_id))
        if entity_id in self.failing:
            raise RuntimeError(f"remote rejected {entity_id}")

    def create(self, entity_id, data):
        self._call("create", entity_id, data)

    def update(self, entity_id, data):
        self._call("update", entity_id, data)

    def delete(self, entity_id):
        self._call("delete", entity_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def contacts():
    return RecordingHandler()


@pytest.fixture
def registry(contacts):
    reg = HandlerRegistry()
    reg.register("contact", contacts)
    reg.register("file", LoggingStubHandler("file"))
    reg.register("automation", LoggingStubHandler("automation"))
    return reg


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return SyncQueueStore(kv)


@pytest.fixture
def network():
    """Starts offline so queued operations stay put until a test flushes."""
    return ManualConnectivity(initial=False)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "sync.db")


@pytest.fixture
def failure_log(db_path):
    return SyncFailureLog(db_path)


@pytest.fixture
def engine(store, registry, network, clock, failure_log):
    eng = SyncEngine(
        store=store,
        handlers=registry,
        connectivity=network,
        failure_log=failure_log,
        clock=clock,
        max_retries=3,
        sync_interval=3600,
        start_timer=False,
    )
    yield eng
    eng.close()


@pytest.fixture
def sqlite_store(db_path):
    return SyncQueueStore(SQLiteKeyValueStore(db_path))
