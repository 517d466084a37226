"""
Privileged account administration: the operations behind the create-user,
admin-update-user and admin-delete-user functions. Callers are expected to
have verified that the acting user is an admin.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.security import get_password_hash
from maintenance_api.db.models.security import AuthUser
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.schemas.functions import AccountUpdates
from maintenance_api.services.base import BaseService
from maintenance_api.services.errors import NotFoundError, ValidationFailed
from maintenance_api.services.permissions import KNOWN_ROLES

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PERMANENT_BAN = timedelta(days=365 * 100)
_DURATION = re.compile(r"^(\d+)(h|m|s)$")
_UNITS = {"h": "hours", "m": "minutes", "s": "seconds"}


# PUBLIC_INTERFACE
def parse_ban_duration(value: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Translate a ban duration into a banned_until timestamp.

    'none' lifts the ban (None), 'forever' bans permanently and '<n>h', '<n>m'
    or '<n>s' ban for that long. Anything else raises ValidationFailed.
    """
    now = now or datetime.now(timezone.utc)
    value = value.strip().lower()
    if value == "none":
        return None
    if value == "forever":
        return now + PERMANENT_BAN
    match = _DURATION.match(value)
    if not match:
        raise ValidationFailed(f"Invalid ban duration: {value}")
    amount, unit = match.groups()
    return now + timedelta(**{_UNITS[unit]: int(amount)})


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")


class AdminUserService(BaseService):
    """Creates, updates and deletes authentication accounts together with their profiles."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = SecurityRepository(session)

    # PUBLIC_INTERFACE
    async def create_user(
        self,
        *,
        email: Optional[str],
        password: Optional[str],
        full_name: Optional[str] = None,
        role: Optional[str] = None,
        branch_id: Optional[UUID] = None,
        phone: Optional[str] = None,
        profile_extra: Optional[Dict[str, Any]] = None,
    ) -> AuthUser:
        """
        Create a confirmed account and upsert its active profile.

        If the profile cannot be written the account is rolled back as well and
        ValidationFailed("Profile creation failed: ...") is raised.
        """
        if not email or not password:
            raise ValidationFailed("Email and password are required")
        role = role or "technician"
        if role not in KNOWN_ROLES:
            raise ValidationFailed(f"Invalid role: {role}")
        _check_password(password)
        if await self.repo.get_account_by_email(email) is not None:
            raise ValidationFailed("A user with this email address has already been registered")

        account = await self.repo.create_account(
            email=email,
            hashed_password=get_password_hash(password),
            user_metadata={"full_name": full_name, "role": role},
            confirmed=True,
        )
        profile_values: Dict[str, Any] = {
            "email": email,
            "full_name": full_name,
            "role": role,
            "branch_id": branch_id,
            "phone": phone,
            "status": "active",
        }
        profile_values.update(profile_extra or {})
        try:
            async with self.session.begin_nested():
                await self.repo.upsert_profile(account.id, profile_values)
        except SQLAlchemyError as exc:
            await self.repo.rollback()
            reason = getattr(exc, "orig", None) or exc
            logger.warning("Profile creation failed for %s; account rolled back: %s", email, reason)
            raise ValidationFailed(f"Profile creation failed: {reason}")

        await self.repo.commit()
        logger.info("Created account %s with role '%s'", account.id, role)
        return account

    # PUBLIC_INTERFACE
    async def update_user(self, target_user_id: Optional[UUID], updates: AccountUpdates) -> AuthUser:
        """
        Apply account changes. full_name/role carried in user_metadata are
        mirrored onto the profile.
        """
        if target_user_id is None:
            raise ValidationFailed("Target User ID is required")
        account = await self.repo.get_account(target_user_id)
        if account is None:
            raise NotFoundError("User not found")

        values: Dict[str, Any] = {}
        if updates.email:
            existing = await self.repo.get_account_by_email(updates.email)
            if existing is not None and existing.id != target_user_id:
                raise ValidationFailed("A user with this email address has already been registered")
            values["email"] = updates.email
        if updates.password:
            _check_password(updates.password)
            values["hashed_password"] = get_password_hash(updates.password)
        if updates.user_metadata is not None:
            values["user_metadata"] = {**(account.user_metadata or {}), **updates.user_metadata}
        if updates.app_metadata is not None:
            values["app_metadata"] = {**(account.app_metadata or {}), **updates.app_metadata}
        if updates.ban_duration is not None:
            values["banned_until"] = parse_ban_duration(updates.ban_duration)

        profile_values: Dict[str, Any] = {}
        meta = updates.user_metadata or {}
        if "full_name" in meta:
            profile_values["full_name"] = meta["full_name"]
        if "role" in meta:
            if meta["role"] not in KNOWN_ROLES:
                raise ValidationFailed(f"Invalid role: {meta['role']}")
            profile_values["role"] = meta["role"]
        if updates.email:
            profile_values["email"] = updates.email

        updated = await self.repo.update_account(target_user_id, values)
        if profile_values and await self.repo.get_profile(target_user_id) is not None:
            await self.repo.update_profile(target_user_id, profile_values)
        await self.repo.commit()
        logger.info("Updated account %s (%s)", target_user_id, ", ".join(sorted(values)) or "no changes")
        return updated

    # PUBLIC_INTERFACE
    async def delete_user(self, target_user_id: Optional[UUID]) -> None:
        """Delete an account; the profile row cascades."""
        if target_user_id is None:
            raise ValidationFailed("Target User ID is required")
        deleted = await self.repo.delete_account(target_user_id)
        if not deleted:
            raise NotFoundError("User not found")
        await self.repo.commit()
        logger.info("Deleted account %s", target_user_id)
