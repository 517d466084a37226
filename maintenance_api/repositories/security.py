from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert

from maintenance_api.db.models.organization import Branch
from maintenance_api.db.models.security import AuthUser, Profile, RolePermission
from .base import BaseRepository


class SecurityRepository(BaseRepository):
    """Repository for authentication accounts, profiles and role feature toggles."""

    # Accounts
    async def get_account(self, user_id: UUID) -> Optional[AuthUser]:
        stmt = select(AuthUser).where(AuthUser.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def get_account_by_email(self, email: str) -> Optional[AuthUser]:
        stmt = select(AuthUser).where(func.lower(AuthUser.email) == email.lower())
        return await self.scalar_one_or_none(stmt)

    async def list_account_emails(self) -> Dict[str, UUID]:
        res = await self.execute(select(AuthUser.email, AuthUser.id))
        return {email: uid for email, uid in res.all()}

    async def create_account(
        self,
        *,
        email: str,
        hashed_password: str,
        user_metadata: Optional[dict] = None,
        confirmed: bool = True,
    ) -> AuthUser:
        account = AuthUser(
            email=email,
            hashed_password=hashed_password,
            user_metadata=user_metadata or {},
            app_metadata={},
            email_confirmed_at=datetime.now(tz=timezone.utc) if confirmed else None,
        )
        await self.add(account)
        await self.flush()
        return account

    async def update_account(self, user_id: UUID, values: Dict[str, Any]) -> Optional[AuthUser]:
        if values:
            stmt = (
                update(AuthUser)
                .where(AuthUser.id == user_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.execute(stmt)
        return await self.get_account(user_id)

    async def delete_account(self, user_id: UUID) -> int:
        res = await self.execute(delete(AuthUser).where(AuthUser.id == user_id))
        return res.rowcount or 0

    async def touch_sign_in(self, user_id: UUID) -> None:
        await self.execute(
            update(AuthUser).where(AuthUser.id == user_id).values(last_sign_in_at=func.now())
        )

    # Profiles
    async def get_profile(self, user_id: UUID) -> Optional[Profile]:
        stmt = select(Profile).where(Profile.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def upsert_profile(self, user_id: UUID, values: Dict[str, Any]) -> Profile:
        """Insert or update the profile row keyed by the account id."""
        row = {"id": user_id, **values}
        stmt = insert(Profile).values(**row)
        update_cols = {k: stmt.excluded[k] for k in values.keys()}
        update_cols["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=[Profile.id], set_=update_cols).returning(Profile)
        res = await self.execute(stmt.execution_options(populate_existing=True))
        return res.scalar_one()

    async def update_profile(self, user_id: UUID, values: Dict[str, Any]) -> Optional[Profile]:
        if values:
            stmt = (
                update(Profile)
                .where(Profile.id == user_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.execute(stmt)
        return await self.get_profile(user_id)

    async def list_profiles(
        self,
        *,
        role: Optional[str] = None,
        status: Optional[str] = None,
        area_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Profile]:
        stmt = select(Profile)
        if role:
            stmt = stmt.where(Profile.role == role)
        if status:
            stmt = stmt.where(Profile.status == status)
        if area_id:
            stmt = stmt.where(Profile.assigned_area_id == area_id)
        stmt = stmt.order_by(Profile.full_name).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def technicians_for_branch(self, branch_id: UUID) -> List[Profile]:
        """Active technicians assigned to the area the branch belongs to."""
        area_sub = select(Branch.area_id).where(Branch.id == branch_id).scalar_subquery()
        stmt = (
            select(Profile)
            .where(
                Profile.role == "technician",
                Profile.status == "active",
                Profile.assigned_area_id == area_sub,
            )
            .order_by(Profile.full_name)
        )
        return list(await self.scalars(stmt))

    async def profiles_by_name(self) -> Dict[str, UUID]:
        res = await self.execute(select(Profile.full_name, Profile.id).where(Profile.full_name.is_not(None)))
        return {name: pid for name, pid in res.all()}

    # Feature toggles
    async def list_role_permissions(self, role: Optional[str] = None) -> List[RolePermission]:
        stmt = select(RolePermission).order_by(RolePermission.role, RolePermission.feature_key)
        if role:
            stmt = stmt.where(RolePermission.role == role)
        return list(await self.scalars(stmt))

    async def upsert_role_permission(self, role: str, feature_key: str, is_enabled: bool) -> RolePermission:
        stmt = insert(RolePermission).values(role=role, feature_key=feature_key, is_enabled=is_enabled)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_role_permissions_role_feature",
            set_={"is_enabled": stmt.excluded.is_enabled, "updated_at": func.now()},
        ).returning(RolePermission)
        res = await self.execute(stmt.execution_options(populate_existing=True))
        return res.scalar_one()
