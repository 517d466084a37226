"""
Privileged admin functions.

Each function authenticates the caller from the bearer token, requires the
caller's profile role to be admin, then performs the account operation in
service context. Responses keep the function contract:

    200 {"data": ...}
    400 {"error": "<message>"}            operational errors, missing token
    403 {"error": "Unauthorized: Admins only"}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from jose import JWTError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.deps import get_admin_user_service, oauth2_scheme
from maintenance_api.core.logging import user_id_var
from maintenance_api.core.security import decode_token
from maintenance_api.db.session import get_async_session
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.schemas.functions import (
    AccountRead,
    CreateUserRequest,
    DeleteUserRequest,
    UpdateUserRequest,
)
from maintenance_api.services.admin_users import AdminUserService
from maintenance_api.services.errors import ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Admin Functions"])

NOT_AUTHENTICATED = "Not authenticated"
ADMINS_ONLY = "Unauthorized: Admins only"


class FunctionError(Exception):
    """Error rendered as {"error": message} with the given status code."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


# PUBLIC_INTERFACE
def function_error_response(exc: FunctionError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@dataclass
class FunctionCaller:
    user_id: UUID
    role: Optional[str]


# PUBLIC_INTERFACE
async def get_function_caller(
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_async_session),
) -> FunctionCaller:
    """Identify the caller; the role is read from the caller's profile row only."""
    if not token:
        raise FunctionError(400, NOT_AUTHENTICATED)
    try:
        claims = decode_token(token)
        user_id = UUID(str(claims.get("sub")))
    except (JWTError, ValueError):
        raise FunctionError(400, NOT_AUTHENTICATED)
    if claims.get("type") != "access":
        raise FunctionError(400, NOT_AUTHENTICATED)

    try:
        profile = await SecurityRepository(session).get_profile(user_id)
    except SQLAlchemyError:
        logger.exception("Profile lookup failed for function caller %s", user_id)
        profile = None
    user_id_var.set(str(user_id))
    return FunctionCaller(user_id=user_id, role=profile.role if profile else None)


# PUBLIC_INTERFACE
async def require_admin_caller(caller: FunctionCaller = Depends(get_function_caller)) -> FunctionCaller:
    if caller.role != "admin":
        logger.warning("Admin function denied for user %s (role=%s)", caller.user_id, caller.role)
        raise FunctionError(403, ADMINS_ONLY)
    return caller


def _data(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"data": payload}


async def _run(operation):
    try:
        return await operation
    except ServiceError as exc:
        raise FunctionError(400, exc.message)
    except SQLAlchemyError as exc:
        logger.exception("Admin function failed")
        raise FunctionError(400, str(getattr(exc, "orig", None) or exc))


# PUBLIC_INTERFACE
@router.post(
    "/create-user",
    summary="Create user",
    description="Create a confirmed account with user_metadata {full_name, role} and upsert its active profile.",
)
async def create_user(
    payload: CreateUserRequest,
    caller: FunctionCaller = Depends(require_admin_caller),
    service: AdminUserService = Depends(get_admin_user_service),
) -> Dict[str, Any]:
    account = await _run(
        service.create_user(
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
            role=payload.role,
            branch_id=payload.branch_id,
            phone=payload.phone,
        )
    )
    logger.info("Admin %s created user %s", caller.user_id, account.id)
    return _data({"user": AccountRead.model_validate(account).model_dump(mode="json")})


# PUBLIC_INTERFACE
@router.post(
    "/admin-update-user",
    summary="Update user",
    description="Update email, password, metadata or ban of an account; full_name/role in user_metadata are mirrored to the profile.",
)
async def admin_update_user(
    payload: UpdateUserRequest,
    caller: FunctionCaller = Depends(require_admin_caller),
    service: AdminUserService = Depends(get_admin_user_service),
) -> Dict[str, Any]:
    account = await _run(service.update_user(payload.target_user_id, payload.updates))
    logger.info("Admin %s updated user %s", caller.user_id, payload.target_user_id)
    return _data({"user": AccountRead.model_validate(account).model_dump(mode="json")})


# PUBLIC_INTERFACE
@router.post(
    "/admin-delete-user",
    summary="Delete user",
    description="Delete an account; its profile is removed with it.",
)
async def admin_delete_user(
    payload: DeleteUserRequest,
    caller: FunctionCaller = Depends(require_admin_caller),
    service: AdminUserService = Depends(get_admin_user_service),
) -> Dict[str, Any]:
    await _run(service.delete_user(payload.target_user_id))
    logger.info("Admin %s deleted user %s", caller.user_id, payload.target_user_id)
    return _data({"user_id": str(payload.target_user_id)})
