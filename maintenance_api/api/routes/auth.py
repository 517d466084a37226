from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.deps import (
    get_current_user,
    get_feature_toggles,
    get_permission_matrix,
    resolve_caller,
)
from maintenance_api.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from maintenance_api.db.session import get_async_session
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.schemas.auth import Message, RefreshRequest, SessionInfo, TokenPair
from maintenance_api.services.activity_log import log_activity
from maintenance_api.services.permissions import FEATURE_KEYS, PermissionMatrix, feature_enabled, role_matrix
from maintenance_api.services.role_resolution import RoleResolution

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _is_banned(account) -> bool:
    return account.banned_until is not None and account.banned_until > datetime.now(timezone.utc)


async def _issue_tokens(session: AsyncSession, account) -> TokenPair:
    # Role and status claims are a fallback for requests where the profile cannot be read
    resolution = await resolve_caller(session, {"sub": str(account.id)})
    access = create_access_token(
        subject=str(account.id), role=resolution.role, email=account.email, status=resolution.status
    )
    refresh = create_refresh_token(subject=str(account.id))
    return TokenPair(access_token=access, refresh_token=refresh)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=TokenPair,
    summary="Login",
    description="Authenticate using OAuth2 password form (username = email) and receive access/refresh tokens.",
)
async def login_for_tokens(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_async_session),
) -> TokenPair:
    """Authenticate a user and issue tokens."""
    repo = SecurityRepository(session)
    account = await repo.get_account_by_email(form_data.username)
    if not account or not verify_password(form_data.password, account.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if _is_banned(account):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is banned")

    tokens = await _issue_tokens(session, account)
    await repo.touch_sign_in(account.id)
    await log_activity(session, user_id=account.id, action_type="LOGIN", entity_name="auth", details={"email": account.email})
    await repo.commit()
    logger.info("User %s signed in", account.id)
    return tokens


# PUBLIC_INTERFACE
@router.post(
    "/refresh",
    response_model=TokenPair,
    summary="Refresh access token",
    description="Issue a new token pair from a valid refresh token.",
)
async def refresh_token(
    payload: RefreshRequest,
    session: AsyncSession = Depends(get_async_session),
) -> TokenPair:
    """Validate the refresh token and issue a new token pair."""
    try:
        claims: Dict[str, Any] = decode_token(payload.refresh_token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if claims.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid token type")

    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    account = await SecurityRepository(session).get_account(user_id)
    if not account or _is_banned(account):
        raise HTTPException(status_code=401, detail="User not found or banned")
    return await _issue_tokens(session, account)


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=Message,
    summary="Logout",
    description="Stateless logout. Clients should discard tokens. No server state maintained.",
)
async def logout() -> Message:
    """Acknowledge logout in stateless JWT systems."""
    return Message(message="Logged out")


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=SessionInfo,
    summary="Read current session",
    description="Return the caller's profile, resolved role (and how it was resolved), permission matrix slice and enabled features.",
)
async def read_current_session(
    user: RoleResolution = Depends(get_current_user),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
    toggles: Dict[str, bool] = Depends(get_feature_toggles),
) -> SessionInfo:
    return SessionInfo(
        user_id=user.user_id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        source=user.source,
        assigned_area_id=user.assigned_area_id,
        assigned_sector_id=user.assigned_sector_id,
        branch_id=user.branch_id,
        permissions=role_matrix(user.role, matrix),
        features=[key for key in FEATURE_KEYS if feature_enabled(user.role, key, toggles)],
    )
