from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.deps import get_current_user, get_user_session, require_permission
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.schemas.auth import ProfileRead, ProfileUpdate
from maintenance_api.services.activity_log import log_activity
from maintenance_api.services.role_resolution import RoleResolution

router = APIRouter(prefix="/profiles", tags=["Profiles"])

SELF_EDITABLE = {"full_name", "phone"}


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[ProfileRead],
    summary="List staff profiles",
    description="List profiles filtered by role, status and assigned area.",
    dependencies=[Depends(require_permission("view", "users"))],
)
async def list_profiles(
    session: AsyncSession = Depends(get_user_session),
    role: Optional[str] = Query(None, description="Filter by role"),
    status: Optional[str] = Query(None, description="Filter by status"),
    area_id: Optional[UUID] = Query(None, description="Filter by assigned area"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[ProfileRead]:
    repo = SecurityRepository(session)
    rows = await repo.list_profiles(role=role, status=status, area_id=area_id, limit=limit, offset=offset)
    return [ProfileRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.get(
    "/technicians",
    response_model=List[ProfileRead],
    summary="List technicians",
    description="Active technicians, optionally limited to those covering a branch's area.",
)
async def list_technicians(
    session: AsyncSession = Depends(get_user_session),
    _user: RoleResolution = Depends(get_current_user),
    branch_id: Optional[UUID] = Query(None, description="Only technicians assigned to this branch's area"),
    area_id: Optional[UUID] = Query(None, description="Only technicians assigned to this area"),
) -> List[ProfileRead]:
    repo = SecurityRepository(session)
    if branch_id is not None:
        rows = await repo.technicians_for_branch(branch_id)
    else:
        rows = await repo.list_profiles(role="technician", status="active", area_id=area_id, limit=1000)
    return [ProfileRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.get(
    "/{profile_id}",
    response_model=ProfileRead,
    summary="Get profile",
)
async def get_profile(
    profile_id: UUID = Path(...),
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(get_current_user),
) -> ProfileRead:
    if profile_id != user.user_id and user.role not in ("admin", "manager"):
        raise HTTPException(status_code=403, detail="Insufficient permission")
    profile = await SecurityRepository(session).get_profile(profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return ProfileRead.model_validate(profile)


# PUBLIC_INTERFACE
@router.patch(
    "/{profile_id}",
    response_model=ProfileRead,
    summary="Update profile",
    description="Admins may change any field; users may change their own full_name and phone.",
)
async def update_profile(
    payload: ProfileUpdate,
    profile_id: UUID = Path(...),
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(get_current_user),
) -> ProfileRead:
    values = payload.model_dump(exclude_unset=True)
    if not user.is_admin:
        if profile_id != user.user_id or not set(values) <= SELF_EDITABLE:
            raise HTTPException(status_code=403, detail="Insufficient permission")

    repo = SecurityRepository(session)
    if await repo.get_profile(profile_id) is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    profile = await repo.update_profile(profile_id, values)
    await log_activity(
        session,
        user_id=user.user_id,
        action_type="UPDATE",
        entity_name="profiles",
        details={"id": profile_id, "fields": sorted(values)},
    )
    await repo.commit()
    return ProfileRead.model_validate(profile)
