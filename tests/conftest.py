import os

os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("AUTO_SEED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("PHONE_COUNTRY_CODE", "20")

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from maintenance_api.api.main import app
from maintenance_api.core.deps import get_current_user, get_permission_matrix
from maintenance_api.db.session import get_async_session
from maintenance_api.services.permissions import DEFAULT_MATRIX
from maintenance_api.services.role_resolution import RoleResolution


async def _no_session():
    yield None


@pytest.fixture
def client():
    app.dependency_overrides[get_async_session] = _no_session
    app.dependency_overrides[get_permission_matrix] = lambda: DEFAULT_MATRIX
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Make requests resolve to a caller with the given role."""

    def _login(role: str) -> RoleResolution:
        user = RoleResolution(user_id=uuid4(), role=role, source="profile", full_name="مستخدم تجريبي")
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login
