from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from maintenance_api.api.main import app
from maintenance_api.api.routes.functions import FunctionCaller, get_function_caller
from maintenance_api.core.deps import get_admin_user_service
from maintenance_api.services.errors import NotFoundError, ValidationFailed


def _account(email="new@example.com"):
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return SimpleNamespace(
        id=uuid4(),
        email=email,
        email_confirmed_at=now,
        user_metadata={"full_name": "فني جديد", "role": "technician"},
        app_metadata={},
        banned_until=None,
        last_sign_in_at=None,
        created_at=now,
        updated_at=now,
    )


class FakeAdminService:
    def __init__(self):
        self.calls = []

    async def create_user(self, **kwargs):
        self.calls.append(("create", kwargs))
        if not kwargs.get("email") or not kwargs.get("password"):
            raise ValidationFailed("Email and password are required")
        return _account(kwargs["email"])

    async def update_user(self, target_user_id, updates):
        self.calls.append(("update", target_user_id, updates))
        if target_user_id is None:
            raise ValidationFailed("Target User ID is required")
        return _account()

    async def delete_user(self, target_user_id):
        self.calls.append(("delete", target_user_id))
        raise NotFoundError("User not found")


@pytest.fixture
def admin_service():
    service = FakeAdminService()
    app.dependency_overrides[get_admin_user_service] = lambda: service
    return service


def _caller(role):
    app.dependency_overrides[get_function_caller] = lambda: FunctionCaller(user_id=uuid4(), role=role)


def test_missing_token_is_400(client):
    res = client.post("/functions/v1/create-user", json={"email": "a@b.co", "password": "secret1"})
    assert res.status_code == 400
    assert res.json() == {"error": "Not authenticated"}


def test_garbage_token_is_400(client):
    res = client.post(
        "/functions/v1/create-user",
        json={},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert res.status_code == 400
    assert res.json() == {"error": "Not authenticated"}


@pytest.mark.parametrize("role", ["manager", "technician", None])
def test_non_admin_is_403(client, admin_service, role):
    _caller(role)
    res = client.post("/functions/v1/create-user", json={"email": "a@b.co", "password": "secret1"})
    assert res.status_code == 403
    assert res.json() == {"error": "Unauthorized: Admins only"}
    assert admin_service.calls == []


def test_create_user(client, admin_service):
    _caller("admin")
    res = client.post(
        "/functions/v1/create-user",
        json={"email": "tech@example.com", "password": "secret1", "full_name": "فني جديد", "role": "technician"},
    )
    assert res.status_code == 200
    assert res.json()["data"]["user"]["email"] == "tech@example.com"
    assert admin_service.calls[0][1]["role"] == "technician"


def test_create_user_operational_error_is_400(client, admin_service):
    _caller("admin")
    res = client.post("/functions/v1/create-user", json={"email": "tech@example.com"})
    assert res.status_code == 400
    assert res.json() == {"error": "Email and password are required"}


def test_update_user_accepts_ban_alias(client, admin_service):
    _caller("admin")
    target = uuid4()
    res = client.post(
        "/functions/v1/admin-update-user",
        json={"targetUserId": str(target), "updates": {"ban": "24h", "user_metadata": {"role": "manager"}}},
    )
    assert res.status_code == 200
    _, target_id, updates = admin_service.calls[0]
    assert target_id == target
    assert updates.ban_duration == "24h"


def test_update_user_requires_target(client, admin_service):
    _caller("admin")
    res = client.post("/functions/v1/admin-update-user", json={"updates": {}})
    assert res.status_code == 400
    assert res.json() == {"error": "Target User ID is required"}


def test_delete_missing_user_is_400(client, admin_service):
    _caller("admin")
    res = client.post("/functions/v1/admin-delete-user", json={"targetUserId": str(uuid4())})
    assert res.status_code == 400
    assert res.json() == {"error": "User not found"}


def test_malformed_body_is_400(client, admin_service):
    _caller("admin")
    res = client.post("/functions/v1/admin-delete-user", json={"targetUserId": "not-a-uuid"})
    assert res.status_code == 400
    assert "error" in res.json()
