# Endpoint signatures are built from closure variables, so annotations must stay
# evaluated eagerly (no `from __future__ import annotations` here).
from typing import List, Optional, Type
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, status
from pydantic import BaseModel

from maintenance_api.core.deps import get_current_user, get_organization_service, require_permission
from maintenance_api.db.models.organization import Area, Branch, Brand, Sector
from maintenance_api.schemas.organization import (
    AreaCreate,
    AreaRead,
    AreaUpdate,
    BranchCreate,
    BranchRead,
    BranchUpdate,
    BrandCreate,
    BrandRead,
    BrandUpdate,
    SectorCreate,
    SectorRead,
    SectorUpdate,
)
from maintenance_api.services.organization import OrganizationService
from maintenance_api.services.role_resolution import RoleResolution

router = APIRouter(prefix="/organization", tags=["Organization"])


def _register(
    path: str,
    label: str,
    model: Type,
    read_schema: Type[BaseModel],
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    parent_param: Optional[str] = None,
) -> None:
    """Register list/get/create/update/delete endpoints for one organizational entity."""

    # PUBLIC_INTERFACE
    async def list_entities(
        parent_id: Optional[UUID] = Query(None, alias=parent_param or "parent_id", description="Filter by parent"),
        limit: int = Query(500, ge=1, le=5000),
        offset: int = Query(0, ge=0),
        _user: RoleResolution = Depends(get_current_user),
        service: OrganizationService = Depends(get_organization_service),
    ) -> List[read_schema]:
        rows = await service.list_entities(model, parent_id=parent_id if parent_param else None, limit=limit, offset=offset)
        return [read_schema.model_validate(r) for r in rows]

    # PUBLIC_INTERFACE
    async def get_entity(
        entity_id: UUID = Path(...),
        _user: RoleResolution = Depends(get_current_user),
        service: OrganizationService = Depends(get_organization_service),
    ) -> read_schema:
        return read_schema.model_validate(await service.get(model, entity_id))

    # PUBLIC_INTERFACE
    async def create_entity(
        payload: create_schema,
        user: RoleResolution = Depends(require_permission("create", "settings")),
        service: OrganizationService = Depends(get_organization_service),
    ) -> read_schema:
        created = await service.create(model, payload.model_dump(), user_id=user.user_id)
        return read_schema.model_validate(created)

    # PUBLIC_INTERFACE
    async def update_entity(
        payload: update_schema,
        entity_id: UUID = Path(...),
        user: RoleResolution = Depends(require_permission("edit", "settings")),
        service: OrganizationService = Depends(get_organization_service),
    ) -> read_schema:
        updated = await service.update(model, entity_id, payload.model_dump(exclude_unset=True), user_id=user.user_id)
        return read_schema.model_validate(updated)

    # PUBLIC_INTERFACE
    async def delete_entity(
        entity_id: UUID = Path(...),
        user: RoleResolution = Depends(require_permission("delete", "settings")),
        service: OrganizationService = Depends(get_organization_service),
    ) -> Response:
        await service.delete(model, entity_id, user_id=user.user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    router.add_api_route(
        f"/{path}", list_entities, methods=["GET"], response_model=List[read_schema],
        summary=f"List {label}", name=f"list_{path}",
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}", get_entity, methods=["GET"], response_model=read_schema,
        summary=f"Get {label}", name=f"get_{path}",
    )
    router.add_api_route(
        f"/{path}", create_entity, methods=["POST"], response_model=read_schema,
        status_code=status.HTTP_201_CREATED, summary=f"Create {label}", name=f"create_{path}",
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}", update_entity, methods=["PATCH"], response_model=read_schema,
        summary=f"Update {label}", name=f"update_{path}",
    )
    router.add_api_route(
        f"/{path}/{{entity_id}}", delete_entity, methods=["DELETE"], status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response, summary=f"Delete {label}",
        description="Sectors with areas and areas with branches cannot be deleted (409).",
        name=f"delete_{path}",
    )


_register("sectors", "sector", Sector, SectorRead, SectorCreate, SectorUpdate)
_register("areas", "area", Area, AreaRead, AreaCreate, AreaUpdate, parent_param="sector_id")
_register("brands", "brand", Brand, BrandRead, BrandCreate, BrandUpdate)
_register("branches", "branch", Branch, BranchRead, BranchCreate, BranchUpdate, parent_param="area_id")
