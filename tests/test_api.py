from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

from maintenance_api.api.generate_openapi import build_openapi
from maintenance_api.api.main import app
from maintenance_api.core.deps import get_dashboard_service, get_ticket_service
from maintenance_api.schemas.dashboard import DashboardStats


class FakeDashboard:
    async def stats(self, user):
        return DashboardStats(total_tickets=3, open_tickets=1)


def test_health(client):
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.json()["message"] == "Healthy"
    assert res.headers.get("X-Correlation-ID")


def test_correlation_id_is_echoed(client):
    res = client.get("/api/v1/health", headers={"X-Correlation-ID": "abc-123"})
    assert res.headers["X-Correlation-ID"] == "abc-123"


def test_missing_token_is_401_envelope(client):
    res = client.get("/api/v1/dashboard/stats")
    assert res.status_code == 401
    body = res.json()
    assert body["error"]["message"] == "Not authenticated"
    assert body["path"] == "/api/v1/dashboard/stats"
    assert res.headers["WWW-Authenticate"] == "Bearer"


def test_dashboard_allowed_for_technician(client, login_as):
    login_as("technician")
    app.dependency_overrides[get_dashboard_service] = lambda: FakeDashboard()
    res = client.get("/api/v1/dashboard/stats")
    assert res.status_code == 200
    assert res.json()["total_tickets"] == 3


def test_dashboard_denied_for_plain_user(client, login_as):
    login_as("user")
    app.dependency_overrides[get_dashboard_service] = lambda: FakeDashboard()
    res = client.get("/api/v1/dashboard/stats")
    assert res.status_code == 403
    assert res.json()["error"]["message"] == "Insufficient permission"


def test_technician_cannot_delete_parts(client, login_as):
    login_as("technician")
    res = client.delete("/api/v1/inventory/parts/6f1c1f0e-8f1e-4d9a-9b59-0a4c1c1d2e3f")
    assert res.status_code == 403


def test_reports_are_staff_only(client, login_as):
    login_as("technician")
    res = client.get("/api/v1/reports/tickets")
    assert res.status_code == 403
    assert res.json()["error"]["message"] == "Insufficient role"


def test_audit_is_admin_only(client, login_as):
    login_as("manager")
    assert client.get("/api/v1/audit/logs").status_code == 403


def test_push_requires_a_target(client, login_as):
    login_as("admin")
    res = client.post("/api/v1/notifications/push", json={"title": "x"})
    assert res.status_code == 422


def test_push_without_subscribers_delivers_nothing(client, login_as):
    login_as("manager")
    res = client.post("/api/v1/notifications/push", json={"role": "technician", "body": "مرحبا"})
    assert res.status_code == 200
    assert res.json() == {"delivered": 0}


def test_unknown_route_uses_error_envelope(client):
    res = client.get("/api/v1/does-not-exist")
    assert res.status_code == 404
    assert res.json()["status"] == 404


def test_openapi_lists_routes_and_websocket():
    schema = build_openapi()
    assert "/functions/v1/create-user" in schema["paths"]
    assert "/api/v1/tickets" in schema["paths"]
    assert schema["x-websocket-endpoints"][0]["path"] == "/ws/notifications"


class FakeTicketService:
    def __init__(self):
        self.calls = []

    async def create(self, user, payload):
        self.calls.append(("create", user, payload))
        now = datetime.now(timezone.utc)
        return SimpleNamespace(
            id=uuid4(),
            ticket_number=1,
            branch_id=payload.branch_id,
            status="open",
            priority=payload.priority,
            created_by=user.user_id,
            created_at=now,
            updated_at=now,
        )

    async def update(self, user, ticket_id, payload):
        self.calls.append(("update", user, payload))
        raise AssertionError("update must not be reached")


def test_technician_can_open_ticket(client, login_as):
    tech = login_as("technician")
    service = FakeTicketService()
    app.dependency_overrides[get_ticket_service] = lambda: service
    res = client.post("/api/v1/tickets", json={"branch_id": str(uuid4()), "description": "تسريب مياه"})
    assert res.status_code == 201
    assert res.json()["status"] == "open"
    assert res.json()["created_by"] == str(tech.user_id)
    assert service.calls[0][0] == "create"


def test_ticket_patch_rejects_null_for_required_columns(client, login_as):
    login_as("technician")
    service = FakeTicketService()
    app.dependency_overrides[get_ticket_service] = lambda: service
    for field in ("priority", "images_url", "form_data"):
        res = client.patch(f"/api/v1/tickets/{uuid4()}", json={field: None})
        assert res.status_code == 422, field
    assert service.calls == []
