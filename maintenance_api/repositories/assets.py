from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert

from maintenance_api.db.models.maintenance import FaultCategory, MaintenanceAsset
from .base import BaseRepository


class AssetRepository(BaseRepository):
    """Repository for maintained equipment and the fault categories they belong to."""

    async def list_assets(
        self,
        *,
        branch_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MaintenanceAsset]:
        stmt = select(MaintenanceAsset)
        if branch_id:
            stmt = stmt.where(MaintenanceAsset.branch_id == branch_id)
        if category_id:
            stmt = stmt.where(MaintenanceAsset.category_id == category_id)
        if status:
            stmt = stmt.where(MaintenanceAsset.status == status)
        stmt = stmt.order_by(MaintenanceAsset.name).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def get_asset(self, asset_id: UUID) -> Optional[MaintenanceAsset]:
        return await self.scalar_one_or_none(select(MaintenanceAsset).where(MaintenanceAsset.id == asset_id))

    async def get_asset_by_qr(self, qr_code: str) -> Optional[MaintenanceAsset]:
        return await self.scalar_one_or_none(select(MaintenanceAsset).where(MaintenanceAsset.qr_code == qr_code))

    async def create_asset(self, values: Dict[str, Any]) -> MaintenanceAsset:
        asset = MaintenanceAsset(**values)
        await self.add(asset)
        await self.flush()
        await self.session.refresh(asset)
        return asset

    async def update_asset(self, asset_id: UUID, values: Dict[str, Any]) -> Optional[MaintenanceAsset]:
        if values:
            stmt = (
                update(MaintenanceAsset)
                .where(MaintenanceAsset.id == asset_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.execute(stmt)
        return await self.get_asset(asset_id)

    async def delete_asset(self, asset_id: UUID) -> int:
        res = await self.execute(delete(MaintenanceAsset).where(MaintenanceAsset.id == asset_id))
        return res.rowcount or 0

    # Fault categories
    async def list_categories(self, active_only: bool = False) -> List[FaultCategory]:
        stmt = select(FaultCategory)
        if active_only:
            stmt = stmt.where(FaultCategory.is_active.is_(True))
        return list(await self.scalars(stmt.order_by(FaultCategory.name_ar)))

    async def get_category(self, category_id: UUID) -> Optional[FaultCategory]:
        return await self.scalar_one_or_none(select(FaultCategory).where(FaultCategory.id == category_id))

    async def create_category(self, name_ar: str, is_active: bool = True) -> FaultCategory:
        category = FaultCategory(name_ar=name_ar, is_active=is_active)
        await self.add(category)
        await self.flush()
        await self.session.refresh(category)
        return category

    async def update_category(self, category_id: UUID, values: Dict[str, Any]) -> Optional[FaultCategory]:
        if values:
            await self.execute(
                update(FaultCategory).where(FaultCategory.id == category_id).values(**values)
            )
        return await self.get_category(category_id)

    async def insert_missing_categories(self, names: Iterable[str]) -> int:
        """Insert category names that do not exist yet; returns the number inserted."""
        rows = [{"name_ar": n, "is_active": True} for n in dict.fromkeys(names) if n]
        if not rows:
            return 0
        stmt = insert(FaultCategory).values(rows).on_conflict_do_nothing(index_elements=[FaultCategory.name_ar])
        res = await self.execute(stmt.returning(FaultCategory.id))
        return len(res.all())

    async def category_names(self) -> Dict[UUID, str]:
        res = await self.execute(select(FaultCategory.id, FaultCategory.name_ar))
        return {cid: name for cid, name in res.all()}

    async def count_assets(self) -> int:
        res = await self.execute(select(func.count(MaintenanceAsset.id)))
        return int(res.scalar_one())
