from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.deps import get_ticket_service, get_user_session, require_permission
from maintenance_api.db.models.organization import Branch
from maintenance_api.repositories.assets import AssetRepository
from maintenance_api.repositories.organization import OrganizationRepository
from maintenance_api.schemas.assets import (
    AssetCreate,
    AssetRead,
    AssetUpdate,
    FaultCategoryCreate,
    FaultCategoryRead,
    FaultCategoryUpdate,
)
from maintenance_api.schemas.tickets import TicketRead
from maintenance_api.services.activity_log import log_activity
from maintenance_api.services.role_resolution import RoleResolution
from maintenance_api.services.tickets import TicketService

router = APIRouter(tags=["Assets"])


async def _check_references(session: AsyncSession, repo: AssetRepository, values: dict) -> None:
    if values.get("branch_id") is not None and await OrganizationRepository(session).get(Branch, values["branch_id"]) is None:
        raise HTTPException(status_code=422, detail="Branch not found")
    if values.get("category_id") is not None and await repo.get_category(values["category_id"]) is None:
        raise HTTPException(status_code=422, detail="Fault category not found")


# PUBLIC_INTERFACE
@router.get(
    "/assets",
    response_model=List[AssetRead],
    summary="List assets",
    dependencies=[Depends(require_permission("view", "assets"))],
)
async def list_assets(
    session: AsyncSession = Depends(get_user_session),
    branch_id: Optional[UUID] = Query(None),
    category_id: Optional[UUID] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[AssetRead]:
    repo = AssetRepository(session)
    rows = await repo.list_assets(
        branch_id=branch_id, category_id=category_id, status=status_filter, limit=limit, offset=offset
    )
    return [AssetRead.model_validate(a) for a in rows]


# PUBLIC_INTERFACE
@router.get(
    "/assets/by-qr/{qr_code}",
    response_model=AssetRead,
    summary="Find asset by QR code",
    dependencies=[Depends(require_permission("view", "assets"))],
)
async def get_asset_by_qr(qr_code: str, session: AsyncSession = Depends(get_user_session)) -> AssetRead:
    asset = await AssetRepository(session).get_asset_by_qr(qr_code)
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found")
    return AssetRead.model_validate(asset)


# PUBLIC_INTERFACE
@router.get(
    "/assets/{asset_id}",
    response_model=AssetRead,
    summary="Get asset",
    dependencies=[Depends(require_permission("view", "assets"))],
)
async def get_asset(asset_id: UUID = Path(...), session: AsyncSession = Depends(get_user_session)) -> AssetRead:
    asset = await AssetRepository(session).get_asset(asset_id)
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found")
    return AssetRead.model_validate(asset)


# PUBLIC_INTERFACE
@router.get(
    "/assets/{asset_id}/tickets",
    response_model=List[TicketRead],
    summary="Asset maintenance history",
    description="Tickets raised against the asset, newest first.",
    dependencies=[Depends(require_permission("view", "assets"))],
)
async def asset_history(
    asset_id: UUID = Path(...),
    limit: int = Query(100, ge=1, le=1000),
    service: TicketService = Depends(get_ticket_service),
) -> List[TicketRead]:
    return [TicketRead.model_validate(t) for t in await service.asset_history(asset_id, limit=limit)]


# PUBLIC_INTERFACE
@router.post(
    "/assets",
    response_model=AssetRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create asset",
)
async def create_asset(
    payload: AssetCreate,
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("create", "assets")),
) -> AssetRead:
    repo = AssetRepository(session)
    if payload.qr_code and await repo.get_asset_by_qr(payload.qr_code):
        raise HTTPException(status_code=409, detail="QR code already assigned")
    await _check_references(session, repo, payload.model_dump())
    asset = await repo.create_asset(payload.model_dump())
    await log_activity(session, user_id=user.user_id, action_type="CREATE", entity_name="maintenance_assets", details={"id": asset.id, "name": asset.name})
    await repo.commit()
    return AssetRead.model_validate(asset)


# PUBLIC_INTERFACE
@router.patch("/assets/{asset_id}", response_model=AssetRead, summary="Update asset")
async def update_asset(
    payload: AssetUpdate,
    asset_id: UUID = Path(...),
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("edit", "assets")),
) -> AssetRead:
    repo = AssetRepository(session)
    if await repo.get_asset(asset_id) is None:
        raise HTTPException(status_code=404, detail="Asset not found")
    values = payload.model_dump(exclude_unset=True)
    if values.get("qr_code"):
        other = await repo.get_asset_by_qr(values["qr_code"])
        if other is not None and other.id != asset_id:
            raise HTTPException(status_code=409, detail="QR code already assigned")
    await _check_references(session, repo, values)
    asset = await repo.update_asset(asset_id, values)
    await log_activity(session, user_id=user.user_id, action_type="UPDATE", entity_name="maintenance_assets", details={"id": asset_id, "fields": sorted(values)})
    await repo.commit()
    return AssetRead.model_validate(asset)


# PUBLIC_INTERFACE
@router.delete(
    "/assets/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete asset",
)
async def delete_asset(
    asset_id: UUID = Path(...),
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("delete", "assets")),
) -> Response:
    repo = AssetRepository(session)
    if not await repo.delete_asset(asset_id):
        raise HTTPException(status_code=404, detail="Asset not found")
    await log_activity(session, user_id=user.user_id, action_type="DELETE", entity_name="maintenance_assets", details={"id": asset_id})
    await repo.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.get(
    "/fault-categories",
    response_model=List[FaultCategoryRead],
    summary="List fault categories",
)
async def list_fault_categories(
    active_only: bool = Query(True),
    session: AsyncSession = Depends(get_user_session),
) -> List[FaultCategoryRead]:
    rows = await AssetRepository(session).list_categories(active_only=active_only)
    return [FaultCategoryRead.model_validate(c) for c in rows]


# PUBLIC_INTERFACE
@router.post(
    "/fault-categories",
    response_model=FaultCategoryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create fault category",
    dependencies=[Depends(require_permission("manage", "settings"))],
)
async def create_fault_category(
    payload: FaultCategoryCreate,
    session: AsyncSession = Depends(get_user_session),
) -> FaultCategoryRead:
    repo = AssetRepository(session)
    try:
        category = await repo.create_category(payload.name_ar, payload.is_active)
    except IntegrityError:
        await repo.rollback()
        raise HTTPException(status_code=409, detail="Fault category already exists")
    await repo.commit()
    return FaultCategoryRead.model_validate(category)


# PUBLIC_INTERFACE
@router.patch(
    "/fault-categories/{category_id}",
    response_model=FaultCategoryRead,
    summary="Update fault category",
    dependencies=[Depends(require_permission("manage", "settings"))],
)
async def update_fault_category(
    payload: FaultCategoryUpdate,
    category_id: UUID = Path(...),
    session: AsyncSession = Depends(get_user_session),
) -> FaultCategoryRead:
    repo = AssetRepository(session)
    category = await repo.update_category(category_id, payload.model_dump(exclude_unset=True))
    if not category:
        raise HTTPException(status_code=404, detail="Fault category not found")
    await repo.commit()
    return FaultCategoryRead.model_validate(category)
