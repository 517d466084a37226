from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.models.organization import Area, Branch, Brand, Sector
from maintenance_api.repositories.organization import OrganizationRepository, OrgModel
from maintenance_api.services.activity_log import log_activity
from maintenance_api.services.base import BaseService
from maintenance_api.services.errors import ConflictError, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

ENTITY_LABELS = {Sector: "Sector", Area: "Area", Brand: "Brand", Branch: "Branch"}


class OrganizationService(BaseService):
    """
    Sectors contain areas, areas contain branches; brands operate branches.

    A sector that still has areas, or an area that still has branches, cannot be
    deleted. Names are unique per entity type.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = OrganizationRepository(session)

    async def _ensure_parent(self, model: Type[Any], parent_id: Optional[UUID]) -> None:
        if parent_id is not None and await self.repo.get(model, parent_id) is None:
            raise ValidationFailed(f"{ENTITY_LABELS[model]} not found")

    async def _check_references(self, values: Dict[str, Any]) -> None:
        await self._ensure_parent(Sector, values.get("sector_id"))
        await self._ensure_parent(Area, values.get("area_id"))
        await self._ensure_parent(Brand, values.get("brand_id"))

    async def _ensure_unique(self, model: Type[OrgModel], name_ar: Optional[str], entity_id: Optional[UUID] = None) -> None:
        if not name_ar:
            return
        existing = await self.repo.get_by_name(model, name_ar)
        if existing is not None and existing.id != entity_id:
            raise ConflictError(f"{ENTITY_LABELS[model]} '{name_ar}' already exists")

    # PUBLIC_INTERFACE
    async def list_entities(self, model: Type[OrgModel], parent_id: Optional[UUID] = None, limit: int = 500, offset: int = 0) -> List[OrgModel]:
        return await self.repo.list_entities(model, parent_id=parent_id, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def get(self, model: Type[OrgModel], entity_id: UUID) -> OrgModel:
        entity = await self.repo.get(model, entity_id)
        if entity is None:
            raise NotFoundError(f"{ENTITY_LABELS[model]} not found")
        return entity

    # PUBLIC_INTERFACE
    async def create(self, model: Type[OrgModel], values: Dict[str, Any], user_id: Optional[UUID] = None) -> OrgModel:
        await self._ensure_unique(model, values.get("name_ar"))
        await self._check_references(values)
        entity = await self.repo.create(model, values)
        await log_activity(
            self.session,
            user_id=user_id,
            action_type="CREATE",
            entity_name=model.__tablename__,
            details={"id": entity.id, "name_ar": entity.name_ar},
        )
        await self.repo.commit()
        return entity

    # PUBLIC_INTERFACE
    async def update(self, model: Type[OrgModel], entity_id: UUID, values: Dict[str, Any], user_id: Optional[UUID] = None) -> OrgModel:
        await self.get(model, entity_id)
        await self._ensure_unique(model, values.get("name_ar"), entity_id)
        await self._check_references(values)
        entity = await self.repo.update(model, entity_id, values)
        await log_activity(
            self.session,
            user_id=user_id,
            action_type="UPDATE",
            entity_name=model.__tablename__,
            details={"id": entity_id, "fields": sorted(values)},
        )
        await self.repo.commit()
        return entity

    # PUBLIC_INTERFACE
    async def delete(self, model: Type[OrgModel], entity_id: UUID, user_id: Optional[UUID] = None) -> None:
        """
        Delete an organizational entity.

        Raises:
            ConflictError: the sector has areas, the area has branches, or the
                branch is still referenced by tickets.
        """
        await self.get(model, entity_id)
        if model is Sector and await self.repo.count_areas(entity_id):
            raise ConflictError("Sector has areas; move or delete them first")
        if model is Area and await self.repo.count_branches(entity_id):
            raise ConflictError("Area has branches; move or delete them first")
        try:
            await self.repo.delete(model, entity_id)
            await self.repo.flush()
        except IntegrityError:
            await self.repo.rollback()
            raise ConflictError(f"{ENTITY_LABELS[model]} is still referenced")
        await log_activity(
            self.session,
            user_id=user_id,
            action_type="DELETE",
            entity_name=model.__tablename__,
            details={"id": entity_id},
        )
        await self.repo.commit()
        logger.info("Deleted %s %s", model.__tablename__, entity_id)
