from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.deps import get_user_session, require_roles
from maintenance_api.repositories.audit import AuditRepository
from maintenance_api.schemas.audit import SystemLogRead

router = APIRouter(prefix="/audit", tags=["Audit"])


# PUBLIC_INTERFACE
@router.get(
    "/logs",
    response_model=List[SystemLogRead],
    summary="System activity log",
    description="Newest first. Administrators only.",
    dependencies=[Depends(require_roles("admin"))],
)
async def list_logs(
    session: AsyncSession = Depends(get_user_session),
    user_id: Optional[UUID] = Query(None),
    action_type: Optional[str] = Query(None, description="CREATE | UPDATE | DELETE | LOGIN | OTHER"),
    entity_name: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[SystemLogRead]:
    rows = await AuditRepository(session).list_logs(
        user_id=user_id,
        action_type=action_type,
        entity_name=entity_name,
        since=since,
        limit=limit,
        offset=offset,
    )
    return [SystemLogRead.model_validate(r) for r in rows]
