"""
Resolve the role of an authenticated caller.

Resolution order:
  1. profile row exists         -> profile.role             (source "profile")
  2. no profile row             -> provision one with the account's metadata
                                   role, or DEFAULT_PROFILE_ROLE  (source "provisioned")
  3. profile lookup fails       -> signed token role claim, only when the
                                   token also claims an active status (source "token_claim")
  4. nothing usable             -> ProfileUnavailable (HTTP 503)

No branch ever grants the admin role by default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from maintenance_api.services.errors import PermissionDenied, ProfileUnavailable
from maintenance_api.services.permissions import KNOWN_ROLES

logger = logging.getLogger(__name__)


class ProfileSource(Protocol):
    """Data access needed by the resolver (satisfied by SecurityRepository)."""

    async def get_profile(self, user_id: UUID) -> Any: ...

    async def get_account(self, user_id: UUID) -> Any: ...

    async def upsert_profile(self, user_id: UUID, values: Dict[str, Any]) -> Any: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


@dataclass
class RoleResolution:
    """Outcome of resolving the caller: who they are, their role and how it was found."""
    user_id: UUID
    role: str
    source: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    assigned_area_id: Optional[UUID] = None
    assigned_sector_id: Optional[UUID] = None
    branch_id: Optional[UUID] = None
    status: str = "active"
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_staff(self) -> bool:
        """Admins and managers see every ticket."""
        return self.role in ("admin", "manager")

    @classmethod
    def from_profile(cls, profile: Any, source: str) -> "RoleResolution":
        return cls(
            user_id=profile.id,
            role=profile.role,
            source=source,
            email=profile.email,
            full_name=profile.full_name,
            assigned_area_id=profile.assigned_area_id,
            assigned_sector_id=profile.assigned_sector_id,
            branch_id=profile.branch_id,
            status=profile.status or "active",
        )


class RoleResolver:
    """Fail-closed role resolution over a ProfileSource."""

    def __init__(self, repo: ProfileSource, default_role: str = "technician") -> None:
        if default_role not in KNOWN_ROLES or default_role == "admin":
            logger.warning("Invalid default profile role '%s'; using 'technician'", default_role)
            default_role = "technician"
        self.repo = repo
        self.default_role = default_role

    def _provision_role(self, account: Any) -> str:
        meta = getattr(account, "user_metadata", None) or {}
        role = meta.get("role")
        if role in KNOWN_ROLES:
            return role
        return self.default_role

    # PUBLIC_INTERFACE
    async def resolve(
        self, user_id: UUID, token_role: Optional[str] = None, token_status: Optional[str] = None
    ) -> RoleResolution:
        """
        Resolve the caller's role from their profile, provisioning it when missing.

        Raises:
            PermissionDenied: the account behind the token no longer exists.
            ProfileUnavailable: the profile could not be read and the token
                carries no usable role claim or no active status claim.
        """
        try:
            profile = await self.repo.get_profile(user_id)
            if profile is not None:
                return RoleResolution.from_profile(profile, source="profile")

            account = await self.repo.get_account(user_id)
            if account is None:
                raise PermissionDenied("User not found")

            role = self._provision_role(account)
            meta = account.user_metadata or {}
            profile = await self.repo.upsert_profile(
                user_id,
                {
                    "email": account.email,
                    "full_name": meta.get("full_name"),
                    "role": role,
                    "status": "active",
                },
            )
            await self.repo.commit()
            logger.warning("Profile missing for user %s; provisioned with role '%s'", user_id, role)
            return RoleResolution.from_profile(profile, source="provisioned")
        except SQLAlchemyError as exc:
            logger.warning("Profile lookup failed for user %s: %s", user_id, exc)
            try:
                await self.repo.rollback()
            except SQLAlchemyError:
                logger.exception("Rollback after profile lookup failure failed")

        if token_role in KNOWN_ROLES and token_status == "active":
            logger.warning("Using token role claim '%s' for user %s", token_role, user_id)
            return RoleResolution(user_id=user_id, role=token_role, source="token_claim")

        logger.error("Unable to resolve role for user %s; denying access", user_id)
        raise ProfileUnavailable("Profile unavailable")
