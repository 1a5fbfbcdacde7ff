"""
API tests for the sync routes, run against an injected engine.
"""

import os
import sys

import pytest
from starlette.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from smartcrm.api.app import create_app
from smartcrm.sync.connectivity import HttpProbeConnectivity
from smartcrm.sync.engine import DAY_MS, SyncEngine


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine=engine))


class TestStatus:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["online"] is False

    def test_status_shape(self, client):
        data = client.get("/api/sync/status").json()
        assert data == {
            "is_online": False,
            "sync_in_progress": False,
            "queue_size": 0,
            "last_sync_timestamp": None,
            "failed_count": 0,
        }


class TestQueueRoutes:

    def test_queue_and_list(self, client):
        resp = client.post("/api/sync/operations", json={
            "type": "create", "entity_type": "contact", "entity_id": "c1",
            "data": {"firstName": "Jane"},
        })
        assert resp.status_code == 201
        assert resp.json()["entityType"] == "contact"
        assert resp.json()["retryCount"] == 0

        queue = client.get("/api/sync/queue").json()
        assert [op["entityId"] for op in queue] == ["c1"]
        assert client.get("/api/sync/status").json()["queue_size"] == 1

    def test_invalid_operation_is_400(self, client):
        resp = client.post("/api/sync/operations", json={
            "type": "create", "entity_type": "deal", "entity_id": "d1", "data": {},
        })
        assert resp.status_code == 400

    def test_bad_type_is_422(self, client):
        resp = client.post("/api/sync/operations", json={
            "type": "upsert", "entity_type": "contact", "entity_id": "c1", "data": {},
        })
        assert resp.status_code == 422

    def test_flush_while_offline(self, client):
        data = client.post("/api/sync/flush").json()
        assert data["success"] is False
        assert data["synced"] == 0

    def test_connectivity_then_flush(self, client, engine, contacts):
        client.post("/api/sync/operations", json={
            "type": "update", "entity_type": "contact", "entity_id": "c1", "data": {"title": "VP"},
        })
        resp = client.post("/api/sync/connectivity", json={"online": True})
        assert resp.status_code == 200
        assert resp.json()["is_online"] is True
        engine.wait_for_idle(5)

        assert contacts.calls == [("update", "c1", {"title": "VP"})]
        assert client.get("/api/sync/status").json()["queue_size"] == 0

        data = client.post("/api/sync/flush").json()
        assert data["success"] is True
        assert data["synced"] == 0

    def test_clear_queue(self, client):
        client.post("/api/sync/operations", json={
            "type": "delete", "entity_type": "contact", "entity_id": "c1",
        })
        assert client.delete("/api/sync/queue").json() == {"cleared": True}
        assert client.get("/api/sync/queue").json() == []

    def test_cleanup(self, client, clock):
        client.post("/api/sync/operations", json={
            "type": "delete", "entity_type": "contact", "entity_id": "c1",
        })
        clock.advance(3 * DAY_MS)
        data = client.post("/api/sync/cleanup", json={"max_age_days": 2}).json()
        assert data == {"removed": 1, "queue_size": 0}

    def test_cleanup_rejects_non_positive_age(self, client):
        assert client.post("/api/sync/cleanup", json={"max_age_days": 0}).status_code == 400


class TestConflictRoutes:

    def test_merge(self, client):
        resp = client.post("/api/sync/resolve", json={
            "strategy": "merge", "server_data": {"a": 1, "b": 2}, "local_data": {"b": 3, "c": 4},
        })
        resolved = resp.json()["resolved"]
        assert resolved["a"] == 1 and resolved["b"] == 3 and resolved["c"] == 4
        assert resolved["_conflictResolved"] is True

    def test_manual_is_501(self, client):
        resp = client.post("/api/sync/resolve", json={
            "strategy": "manual", "server_data": {}, "local_data": {},
        })
        assert resp.status_code == 501

    def test_unknown_strategy_is_400(self, client):
        resp = client.post("/api/sync/resolve", json={"strategy": "coin-flip"})
        assert resp.status_code == 400


class TestFailureRoutes:

    def test_failures_listed_and_resolved(self, client, engine, contacts, network):
        engine.max_retries = 0
        contacts.failing.add("c1")
        client.post("/api/sync/operations", json={
            "type": "update", "entity_type": "contact", "entity_id": "c1", "data": {"a": 1},
        })
        client.post("/api/sync/connectivity", json={"online": True})
        engine.wait_for_idle(5)

        failures = client.get("/api/sync/failures").json()
        assert len(failures) == 1
        assert client.get("/api/sync/status").json()["failed_count"] == 1

        resp = client.post(f"/api/sync/failures/{failures[0]['id']}/resolve")
        assert resp.status_code == 200
        assert client.get("/api/sync/failures").json() == []
        assert client.post(f"/api/sync/failures/{failures[0]['id']}/resolve").status_code == 404


def test_connectivity_rejected_for_probe_observer(store, registry, clock):
    probe = HttpProbeConnectivity("http://crm.local/api/health", initial=True)
    eng = SyncEngine(store, registry, probe, clock=clock, start_timer=False)
    try:
        resp = TestClient(create_app(engine=eng)).post(
            "/api/sync/connectivity", json={"online": False},
        )
        assert resp.status_code == 409
    finally:
        eng.close()
