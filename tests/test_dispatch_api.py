"""
Dispatch API Tests

Tests validate:
- Full register / submit / optimize / match flow over HTTP
- Dispatch errors map to status codes with error_code + message detail
- Handles endpoints expose opaque ids to the owner only
- Grant audit requires the admin key
"""

import pytest
from fastapi.testclient import TestClient

from dispatch.engine import DispatchEngine, get_engine
from main import app

BASE = "/api/v1/dispatch"
CARRIER = {"X-Principal": "carrier-a"}
SHIPPER = {"X-Principal": "shipper-a"}

ROUTE = dict(start_x=100, start_y=100, end_x=500, end_y=500, capacity=1000, priority=5)
REQUEST = dict(pickup_x=200, pickup_y=200, drop_x=400, drop_y=400, weight=60, urgency=3, max_cost=900)


# ============================================================================
# TEST FIXTURES
# ============================================================================

@pytest.fixture
def engine() -> DispatchEngine:
    return DispatchEngine()


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_route(client, headers=CARRIER, **overrides):
    return client.post(f"{BASE}/routes", json={**ROUTE, **overrides}, headers=headers)


def create_request(client, headers=SHIPPER, **overrides):
    return client.post(f"{BASE}/requests", json={**REQUEST, **overrides}, headers=headers)


# ============================================================================
# HEALTH
# ============================================================================

class TestHealth:

    def test_app_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_dispatch_health(self, client):
        data = client.get(f"{BASE}/health").json()
        assert data["status"] == "ok"
        assert data["module"] == "dispatch_engine"


# ============================================================================
# FLOW
# ============================================================================

class TestFlow:

    def test_register_and_submit(self, client):
        assert create_route(client).json() == {"success": True, "route_id": 1}
        assert create_request(client).json() == {"success": True, "request_id": 1}
        assert create_request(client).json()["request_id"] == 2

    def test_optimize_then_match(self, client):
        create_route(client)
        create_request(client)

        response = client.post(f"{BASE}/routes/1/optimize", headers=CARRIER)
        assert response.status_code == 200
        info = response.json()
        assert info["is_optimized"] is True
        assert info["candidate_request_ids"] == [1]
        assert info["schedule_hash"].startswith("sha256:")

        response = client.post(f"{BASE}/requests/1/match", json={"route_id": 1}, headers=CARRIER)
        assert response.status_code == 200
        assert response.json()["is_matched"] is True
        assert response.json()["assigned_route"] == 1

        assert client.get(f"{BASE}/requests/1").json()["is_matched"] is True

    def test_optimize_with_offset(self, client):
        create_route(client)
        create_request(client)
        create_request(client)
        response = client.post(f"{BASE}/routes/1/optimize", json={"offset": 1}, headers=CARRIER)
        assert response.json()["candidate_request_ids"] == [2]

    def test_optimize_answers_from_returned_schedule(self, client, engine, monkeypatch):
        create_route(client)
        create_request(client)

        def unexpected_read(route_id):
            raise AssertionError("schedule info read after optimize")

        monkeypatch.setattr(engine, "get_schedule_info", unexpected_read)
        response = client.post(f"{BASE}/routes/1/optimize", headers=CARRIER)
        assert response.status_code == 200
        info = response.json()
        assert info["candidate_request_ids"] == [1]
        assert info["candidate_count"] == 1
        assert info["schedule_hash"] == engine.store.get_schedule(1).schedule_hash

    def test_toggle_and_reads(self, client):
        create_route(client)
        response = client.post(f"{BASE}/routes/1/active", json={"active": False}, headers=CARRIER)
        assert response.json()["is_active"] is False
        assert client.get(f"{BASE}/routes/1").json()["is_active"] is False
        assert client.get(f"{BASE}/routes/1/schedule").json()["is_optimized"] is False

    def test_owner_indexes_and_counters(self, client):
        create_route(client)
        create_request(client)
        assert client.get(f"{BASE}/carriers/carrier-a/routes").json() == [1]
        assert client.get(f"{BASE}/requesters/shipper-a/requests").json() == [1]
        assert client.get(f"{BASE}/counters").json() == {"route_counter": 1, "request_counter": 1}


# ============================================================================
# ERROR MAPPING
# ============================================================================

class TestErrors:

    def test_width_overflow_is_422(self, client):
        response = create_route(client, start_x=70000)
        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "INVALID_INPUT"

    def test_wrong_carrier_is_403(self, client):
        create_route(client)
        response = client.post(f"{BASE}/routes/1/optimize", headers=SHIPPER)
        assert response.status_code == 403
        assert response.json()["detail"]["error_code"] == "UNAUTHORIZED"

    def test_unknown_route_is_404(self, client):
        response = client.get(f"{BASE}/routes/9")
        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "NOT_FOUND"

    def test_match_without_schedule_is_409(self, client):
        create_route(client)
        create_request(client)
        response = client.post(f"{BASE}/requests/1/match", json={"route_id": 1}, headers=CARRIER)
        assert response.status_code == 409
        assert response.json()["detail"]["error_code"] == "SCHEDULE_REQUIRED"

    def test_missing_principal_header(self, client):
        response = client.post(f"{BASE}/routes", json=ROUTE)
        assert response.status_code == 422

    def test_rejected_call_leaves_counters(self, client):
        create_route(client, capacity=2 ** 32)
        assert client.get(f"{BASE}/counters").json()["route_counter"] == 0


# ============================================================================
# HANDLES
# ============================================================================

class TestHandles:

    def test_owner_gets_opaque_handles(self, client):
        create_route(client)
        response = client.get(f"{BASE}/routes/1/handles", headers=CARRIER)
        handles = response.json()["handles"]
        assert set(handles) == {"start_x", "start_y", "end_x", "end_y", "capacity", "priority"}
        assert all(h.startswith("0x") and len(h) == 66 for h in handles.values())

    def test_other_principal_forbidden(self, client):
        create_request(client)
        response = client.get(f"{BASE}/requests/1/handles", headers=CARRIER)
        assert response.status_code == 403

    def test_engine_principal_header_forbidden(self, client):
        create_route(client)
        create_request(client)
        engine_headers = {"X-Principal": "engine"}
        assert client.get(f"{BASE}/routes/1/handles", headers=engine_headers).status_code == 403
        assert client.get(f"{BASE}/requests/1/handles", headers=engine_headers).status_code == 403

    def test_engine_principal_cannot_register(self, client):
        response = create_route(client, headers={"X-Principal": "engine"})
        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "INVALID_INPUT"
        assert client.get(f"{BASE}/counters").json()["route_counter"] == 0


# ============================================================================
# ADMIN GRANT AUDIT
# ============================================================================

class TestGrantAudit:

    def test_blocked_without_configured_key(self, client, monkeypatch):
        monkeypatch.delenv("ADMIN_API_KEY", raising=False)
        response = client.get(f"{BASE}/admin/grant-audit")
        assert response.status_code == 403

    def test_wrong_key_rejected(self, client, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "secret")
        response = client.get(f"{BASE}/admin/grant-audit", headers={"X-Admin-API-Key": "nope"})
        assert response.status_code == 403

    def test_complete_audit(self, client, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "secret")
        create_route(client)
        create_request(client)
        client.post(f"{BASE}/routes/1/optimize", headers=CARRIER)

        response = client.get(f"{BASE}/admin/grant-audit", headers={"X-Admin-API-Key": "secret"})
        assert response.status_code == 200
        assert response.json()["complete"] is True
        assert response.json()["gaps"] == []

    def test_audit_reports_gap(self, client, engine, monkeypatch):
        monkeypatch.setenv("ADMIN_API_KEY", "secret")
        create_route(client)
        engine.provider.revoke(engine.route_handles(1, "carrier-a")["priority"], "carrier-a")

        data = client.get(f"{BASE}/admin/grant-audit", headers={"X-Admin-API-Key": "secret"}).json()
        assert data["complete"] is False
        assert data["gaps"][0]["location"] == "route[1].priority"
