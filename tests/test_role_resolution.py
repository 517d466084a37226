import asyncio
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from maintenance_api.services.errors import PermissionDenied, ProfileUnavailable
from maintenance_api.services.role_resolution import RoleResolver


def _profile(user_id, role="technician", **kw):
    values = dict(
        id=user_id,
        role=role,
        email="tech@example.com",
        full_name="فني",
        assigned_area_id=None,
        assigned_sector_id=None,
        branch_id=None,
        status="active",
    )
    values.update(kw)
    return SimpleNamespace(**values)


class FakeRepo:
    def __init__(self, profile=None, account=None, fail=False):
        self.profile = profile
        self.account = account
        self.fail = fail
        self.upserts = []
        self.commits = 0
        self.rollbacks = 0

    async def get_profile(self, user_id):
        if self.fail:
            raise OperationalError("SELECT", {}, Exception("connection lost"))
        return self.profile

    async def get_account(self, user_id):
        return self.account

    async def upsert_profile(self, user_id, values):
        self.upserts.append(values)
        return _profile(user_id, **values)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def test_profile_role_wins_over_token_claim():
    uid = uuid4()
    repo = FakeRepo(profile=_profile(uid, role="manager"))
    result = asyncio.run(RoleResolver(repo).resolve(uid, token_role="admin"))
    assert result.role == "manager"
    assert result.source == "profile"
    assert result.is_staff and not result.is_admin


def test_missing_profile_is_provisioned_from_account_metadata():
    uid = uuid4()
    account = SimpleNamespace(email="new@example.com", user_metadata={"full_name": "جديد", "role": "manager"})
    repo = FakeRepo(account=account)
    result = asyncio.run(RoleResolver(repo).resolve(uid))
    assert result.role == "manager"
    assert result.source == "provisioned"
    assert repo.upserts[0]["email"] == "new@example.com"
    assert repo.commits == 1


def test_provisioning_never_defaults_to_admin():
    uid = uuid4()
    account = SimpleNamespace(email="x@example.com", user_metadata={"role": "superuser"})
    resolver = RoleResolver(FakeRepo(account=account), default_role="admin")
    result = asyncio.run(resolver.resolve(uid))
    assert result.role == "technician"


def test_deleted_account_is_denied():
    with pytest.raises(PermissionDenied):
        asyncio.run(RoleResolver(FakeRepo()).resolve(uuid4()))


def test_lookup_failure_falls_back_to_token_claim():
    repo = FakeRepo(fail=True)
    result = asyncio.run(RoleResolver(repo).resolve(uuid4(), token_role="technician", token_status="active"))
    assert result.role == "technician"
    assert result.source == "token_claim"
    assert result.status == "active"
    assert repo.rollbacks == 1


def test_lookup_failure_without_claim_fails_closed():
    with pytest.raises(ProfileUnavailable):
        asyncio.run(RoleResolver(FakeRepo(fail=True)).resolve(uuid4(), token_role="owner"))


@pytest.mark.parametrize("token_status", [None, "inactive"])
def test_lookup_failure_with_inactive_claim_fails_closed(token_status):
    with pytest.raises(ProfileUnavailable):
        asyncio.run(
            RoleResolver(FakeRepo(fail=True)).resolve(uuid4(), token_role="technician", token_status=token_status)
        )
