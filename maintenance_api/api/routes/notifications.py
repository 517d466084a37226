from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from maintenance_api.core.deps import require_roles
from maintenance_api.schemas.realtime import PushRequest
from maintenance_api.services.notifications import push_notification

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# PUBLIC_INTERFACE
@router.post(
    "/push",
    response_model=Dict[str, Any],
    summary="Send a push notification",
    description=(
        "Deliver {title, body, url} to the websocket subscribers of a user and/or a role. "
        "Missing fields use the default title, body and '/' url."
    ),
    dependencies=[Depends(require_roles("admin", "manager"))],
)
async def send_push(payload: PushRequest) -> Dict[str, Any]:
    if payload.user_id is None and not payload.role:
        raise HTTPException(status_code=422, detail="user_id or role is required")
    delivered = await push_notification(
        user_id=payload.user_id,
        role=payload.role,
        title=payload.title,
        body=payload.body,
        url=payload.url,
    )
    return {"delivered": delivered}
