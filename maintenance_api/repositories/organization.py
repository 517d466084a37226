from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import aliased

from maintenance_api.db.models.organization import Area, Branch, Brand, Sector
from .base import BaseRepository

OrgModel = TypeVar("OrgModel", Sector, Area, Brand, Branch)


class OrganizationRepository(BaseRepository):
    """Sectors, areas, brands and branches; all keyed by a unique Arabic name."""

    async def list_entities(
        self,
        model: Type[OrgModel],
        *,
        parent_id: Optional[UUID] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> List[OrgModel]:
        stmt = select(model)
        if parent_id is not None:
            if model is Area:
                stmt = stmt.where(Area.sector_id == parent_id)
            elif model is Branch:
                stmt = stmt.where(Branch.area_id == parent_id)
        stmt = stmt.order_by(model.name_ar).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def get(self, model: Type[OrgModel], entity_id: UUID) -> Optional[OrgModel]:
        return await self.scalar_one_or_none(select(model).where(model.id == entity_id))

    async def get_by_name(self, model: Type[OrgModel], name_ar: str) -> Optional[OrgModel]:
        return await self.scalar_one_or_none(select(model).where(model.name_ar == name_ar))

    async def create(self, model: Type[OrgModel], values: Dict[str, Any]) -> OrgModel:
        entity = model(**values)
        await self.add(entity)
        await self.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, model: Type[OrgModel], entity_id: UUID, values: Dict[str, Any]) -> Optional[OrgModel]:
        if values:
            stmt = (
                update(model)
                .where(model.id == entity_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.execute(stmt)
        return await self.get(model, entity_id)

    async def delete(self, model: Type[OrgModel], entity_id: UUID) -> int:
        res = await self.execute(delete(model).where(model.id == entity_id))
        return res.rowcount or 0

    async def count_areas(self, sector_id: UUID) -> int:
        res = await self.execute(select(func.count(Area.id)).where(Area.sector_id == sector_id))
        return int(res.scalar_one())

    async def count_branches(self, area_id: UUID) -> int:
        res = await self.execute(select(func.count(Branch.id)).where(Branch.area_id == area_id))
        return int(res.scalar_one())

    async def upsert_by_name(self, model: Type[OrgModel], rows: Iterable[Dict[str, Any]]) -> Dict[str, UUID]:
        """
        Upsert rows on the unique `name_ar` column.

        Returns a name_ar -> id mapping of the written rows.
        """
        rows = list(rows)
        if not rows:
            return {}
        stmt = insert(model).values(rows)
        update_cols = {k: stmt.excluded[k] for k in rows[0].keys() if k != "name_ar"}
        update_cols["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=[model.name_ar], set_=update_cols)
        stmt = stmt.returning(model.name_ar, model.id)
        res = await self.execute(stmt)
        return {name: eid for name, eid in res.all()}

    async def name_index(self, model: Type[OrgModel]) -> Dict[str, UUID]:
        res = await self.execute(select(model.name_ar, model.id))
        return {name: eid for name, eid in res.all()}

    async def area_sector_names(self) -> List[tuple[UUID, str, Optional[str]]]:
        """(area id, area name, sector name) triples for branch import fallbacks."""
        sector = aliased(Sector)
        stmt = (
            select(Area.id, Area.name_ar, sector.name_ar)
            .join(sector, sector.id == Area.sector_id, isouter=True)
            .order_by(Area.name_ar)
        )
        res = await self.execute(stmt)
        return [tuple(r) for r in res.all()]

    async def first_brand_id(self) -> Optional[UUID]:
        return await self.scalar_one_or_none(select(Brand.id).order_by(Brand.created_at).limit(1))
