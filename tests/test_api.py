"""
test_api.py — HTTP API tests through FastAPI's TestClient.

The database, log store and geocoder dependencies are overridden with
per-test instances; no network access is needed.

Run with:
    pytest tests/test_api.py -v
"""

from __future__ import annotations

import asyncio
import inspect

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from backend.app.alerts.log_store import LocalLogStore
from backend.app.api.dependencies import get_geocoder, get_log_store
from backend.app.api.v1.logs import router as log_router
from backend.app.core.config import settings
from backend.app.core.database import (
    build_engine,
    build_session_factory,
    get_db,
    get_session_factory,
    init_db,
)
from backend.app.main import app
from backend.app.spatial.location import FallbackGeocoder
from backend.app.storage.repository import ADMIN_ROLE, EmergencyRepository

from conftest import NYC_LAT, NYC_LON, sqlite_url

USER = {"X-User-Id": "user-1"}
OTHER = {"X-User-Id": "user-2"}
ADMIN = {"X-User-Id": "admin-1"}


async def _grant_admin(factory, user_id: str) -> None:
    async with factory() as session:
        await EmergencyRepository(session).grant_role(user_id, ADMIN_ROLE)
        await session.commit()


@pytest.fixture
def log_store(tmp_path) -> LocalLogStore:
    return LocalLogStore(tmp_path / "emergency_logs.json")


@pytest.fixture
def client(tmp_path, log_store):
    engine = build_engine(sqlite_url(tmp_path), poolclass=NullPool)
    factory = build_session_factory(engine)
    asyncio.run(init_db(engine))
    asyncio.run(_grant_admin(factory, "admin-1"))

    async def _test_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_session_factory] = lambda: factory
    app.dependency_overrides[get_log_store] = lambda: log_store
    app.dependency_overrides[get_geocoder] = lambda: FallbackGeocoder()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        asyncio.run(engine.dispose())


def _raise(client, headers=USER, **overrides):
    body = {
        "category": "medical",
        "message": "Chest pain",
        "latitude": NYC_LAT,
        "longitude": NYC_LON,
        "address": "City Hall Park",
    }
    body.update(overrides)
    return client.post("/api/v1/alerts", json=body, headers=headers)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Root, health, identity
# ═══════════════════════════════════════════════════════════════════════════

class TestRootAndIdentity:

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["service"] == "Emergency Alert Service"

    def test_liveness(self, client):
        resp = client.get("/health/live")
        assert resp.json() == {"status": "alive"}
        assert "X-Request-ID" in resp.headers
        assert "X-Process-Time" in resp.headers

    def test_missing_identity_is_401(self, client):
        resp = client.get("/api/v1/contacts")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHORIZED"


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Contacts
# ═══════════════════════════════════════════════════════════════════════════

class TestContacts:

    def test_add_list_delete(self, client):
        resp = client.post(
            "/api/v1/contacts",
            json={"name": "Priya", "phone": "+12125550100", "priority": 3},
            headers=USER,
        )
        assert resp.status_code == 201
        contact_id = resp.json()["id"]

        listed = client.get("/api/v1/contacts", headers=USER).json()
        assert [c["id"] for c in listed] == [contact_id]
        assert client.get("/api/v1/contacts", headers=OTHER).json() == []

        assert client.delete(f"/api/v1/contacts/{contact_id}", headers=OTHER).status_code == 404
        assert client.delete(f"/api/v1/contacts/{contact_id}", headers=USER).json() == {
            "success": True,
        }

    def test_contact_needs_phone_or_email(self, client):
        resp = client.post("/api/v1/contacts", json={"name": "Nobody"}, headers=USER)
        assert resp.status_code == 422

    def test_priority_range(self, client):
        resp = client.post(
            "/api/v1/contacts", json={"name": "X", "phone": "+1", "priority": 9}, headers=USER,
        )
        assert resp.status_code == 422


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Alerts
# ═══════════════════════════════════════════════════════════════════════════

class TestRaiseAlert:

    def test_medical_with_phone_contact(self, client, log_store):
        client.post(
            "/api/v1/contacts", json={"name": "Priya", "phone": "+12125550100"}, headers=USER,
        )
        resp = _raise(client)
        assert resp.status_code == 201
        data = resp.json()

        assert [o["channel"] for o in data["outcomes"]] == ["sms", "authority", "push"]
        assert all(o["success"] for o in data["outcomes"])
        assert data["overall_success"] is True
        assert data["alert"]["status"] == "acknowledged"
        assert data["logged"] is True

        authority = data["outcomes"][1]
        assert authority["detail"] == "medical services has been notified (1 contacts on file)"
        assert log_store.read_all()[0].alert_id == data["alert"]["id"]

    def test_alert_persisted_with_events(self, client):
        alert_id = _raise(client).json()["alert"]["id"]

        stored = client.get(f"/api/v1/alerts/{alert_id}", headers=USER).json()
        assert stored["status"] == "acknowledged"
        assert stored["acknowledged_at"] is not None

        events = client.get(f"/api/v1/alerts/{alert_id}/events", headers=USER).json()
        assert [e["event_type"] for e in events] == ["notifications_sent", "dispatched"]

    def test_address_resolved_from_coordinates(self, client):
        data = _raise(client, address="").json()
        assert data["alert"]["address"] == "Lat: 40.712800, Lng: -74.006000"

    def test_category_normalised(self, client):
        assert _raise(client, category=" Fire ").json()["alert"]["category"] == "fire"

    @pytest.mark.parametrize("overrides", [
        {"category": "flood"},
        {"latitude": 95.0},
        {"longitude": None},
        {"message": "x" * 1001},
    ])
    def test_invalid_input_rejected(self, client, overrides):
        assert _raise(client, **overrides).status_code == 422

    def test_channel_timeout_still_persists_and_logs(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CHANNEL_TIMEOUT_SECONDS", 0.0005)
        resp = _raise(client)
        assert resp.status_code == 201
        data = resp.json()
        assert data["logged"] is True

        alert_id = data["alert"]["id"]
        stored = client.get(f"/api/v1/alerts/{alert_id}", headers=USER).json()
        assert stored["status"] == data["alert"]["status"]
        events = client.get(f"/api/v1/alerts/{alert_id}/events", headers=USER).json()
        assert events[-1]["event_type"] == "dispatched"

    def test_without_location(self, client):
        resp = _raise(client, latitude=None, longitude=None, address="")
        assert resp.status_code == 201
        assert resp.json()["alert"]["latitude"] is None


class TestAlertAccess:

    def test_own_list_and_foreign_access(self, client):
        alert_id = _raise(client).json()["alert"]["id"]

        assert len(client.get("/api/v1/alerts", headers=USER).json()) == 1
        assert client.get("/api/v1/alerts", headers=OTHER).json() == []
        assert client.get(f"/api/v1/alerts/{alert_id}", headers=OTHER).status_code == 403
        assert client.get(f"/api/v1/alerts/{alert_id}", headers=ADMIN).status_code == 200

    def test_unknown_alert_is_404(self, client):
        assert client.get("/api/v1/alerts/nope", headers=USER).status_code == 404

    def test_all_requires_admin(self, client):
        _raise(client)
        _raise(client, headers=OTHER)
        assert client.get("/api/v1/alerts/all", headers=USER).status_code == 403
        assert len(client.get("/api/v1/alerts/all", headers=ADMIN).json()) == 2

    def test_admin_resolves_alert(self, client):
        alert_id = _raise(client).json()["alert"]["id"]

        resp = client.patch(
            f"/api/v1/alerts/{alert_id}/status", json={"status": "resolved"}, headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "resolved"
        assert resp.json()["resolved_at"] is not None

        events = client.get(f"/api/v1/alerts/{alert_id}/events", headers=USER).json()
        assert events[-1]["event_type"] == "status_changed"
        assert events[-1]["metadata"]["to"] == "resolved"

    def test_status_never_regresses(self, client):
        alert_id = _raise(client).json()["alert"]["id"]
        client.patch(
            f"/api/v1/alerts/{alert_id}/status", json={"status": "resolved"}, headers=ADMIN,
        )
        resp = client.patch(
            f"/api/v1/alerts/{alert_id}/status", json={"status": "pending"}, headers=ADMIN,
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_status_update_requires_admin(self, client):
        alert_id = _raise(client).json()["alert"]["id"]
        resp = client.patch(
            f"/api/v1/alerts/{alert_id}/status", json={"status": "resolved"}, headers=USER,
        )
        assert resp.status_code == 403


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Local log
# ═══════════════════════════════════════════════════════════════════════════

class TestLogs:

    def test_scoped_listing_and_statistics(self, client):
        _raise(client)
        _raise(client, category="fire")
        _raise(client, headers=OTHER, category="police")

        entries = client.get("/api/v1/logs", headers=USER).json()
        assert [e["category"] for e in entries] == ["fire", "medical"]

        fire_only = client.get("/api/v1/logs?category=fire", headers=USER).json()
        assert len(fire_only) == 1

        stats = client.get("/api/v1/logs/statistics", headers=USER).json()
        assert stats["total"] == 2
        assert stats["by_category"] == {"fire": 1, "medical": 1}
        assert sum(stats["by_status"].values()) == stats["total"]

    def test_export_download(self, client):
        _raise(client)
        resp = client.get("/api/v1/logs/export", headers=USER)
        assert resp.status_code == 200
        assert "attachment" in resp.headers["content-disposition"]
        assert "emergency_logs_" in resp.headers["content-disposition"]
        assert len(resp.json()) == 1

    def test_delete_entry(self, client):
        alert_id = _raise(client).json()["alert"]["id"]
        assert client.delete(f"/api/v1/logs/{alert_id}", headers=OTHER).status_code == 403
        assert client.delete(f"/api/v1/logs/{alert_id}", headers=USER).json()["success"]
        assert client.get("/api/v1/logs", headers=USER).json() == []

    def test_delete_missing_entry_is_noop(self, client):
        resp = client.delete("/api/v1/logs/never-logged", headers=USER)
        assert resp.json() == {"success": True}

    def test_log_routes_run_in_threadpool(self):
        # The store does blocking file I/O under a lock
        for route in log_router.routes:
            assert not inspect.iscoroutinefunction(route.endpoint), route.path

    def test_clear_requires_admin(self, client, log_store):
        _raise(client)
        assert client.delete("/api/v1/logs", headers=USER).status_code == 403
        assert client.delete("/api/v1/logs", headers=ADMIN).json()["success"]
        assert log_store.read_all() == []


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: notify-emergency function
# ═══════════════════════════════════════════════════════════════════════════

class TestNotifyFunction:

    URL = "/api/v1/functions/notify-emergency"

    def test_requires_identity(self, client):
        resp = client.post(self.URL, json={"alert_id": "x"})
        assert resp.status_code == 401

    def test_foreign_alert_forbidden(self, client):
        alert_id = _raise(client).json()["alert"]["id"]
        resp = client.post(self.URL, json={"alert_id": alert_id}, headers=OTHER)
        assert resp.status_code == 403

    def test_accepts_camel_case_alert_id(self, client):
        alert_id = _raise(client).json()["alert"]["id"]
        resp = client.post(self.URL, json={"alertId": alert_id}, headers=USER)
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    def test_owner_notified(self, client):
        client.post(
            "/api/v1/contacts", json={"name": "A", "email": "a@example.com"}, headers=USER,
        )
        alert_id = _raise(client).json()["alert"]["id"]
        resp = client.post(self.URL, json={"alert_id": alert_id}, headers=USER)
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Emergency notifications sent",
            "contacts_notified": 1,
        }
