from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Dict, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.logging import user_id_var
from maintenance_api.core.security import decode_token
from maintenance_api.core.settings import get_app_settings
from maintenance_api.db.session import get_async_session, user_context
from maintenance_api.repositories.configuration import ConfigurationRepository
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.services.admin_users import AdminUserService
from maintenance_api.services.dashboard import DashboardService
from maintenance_api.services.errors import ServiceError
from maintenance_api.services.inventory import InventoryService
from maintenance_api.services.organization import OrganizationService
from maintenance_api.services.permissions import PermissionMatrix, can, feature_enabled
from maintenance_api.services.role_resolution import RoleResolution, RoleResolver
from maintenance_api.services.system_settings import settings_store
from maintenance_api.services.tickets import TicketService

logger = logging.getLogger(__name__)

# OAuth2 bearer (used by docs); missing tokens are reported by get_token_claims
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
async def get_token_claims(token: Optional[str] = Depends(oauth2_scheme)) -> Dict[str, Any]:
    """
    Decode and validate the bearer access token.

    Raises:
        HTTPException: 401 when the token is missing, invalid, expired or not an access token.
    """
    if not token:
        raise _unauthorized("Not authenticated")
    try:
        claims = decode_token(token)
    except JWTError:
        raise _unauthorized("Invalid token")
    if claims.get("type") != "access" or not claims.get("sub"):
        raise _unauthorized("Invalid token")
    return claims


# PUBLIC_INTERFACE
async def resolve_caller(session: AsyncSession, claims: Dict[str, Any]) -> RoleResolution:
    """Resolve the role behind validated token claims; ServiceErrors map to HTTP errors."""
    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        raise _unauthorized("Invalid token")
    resolver = RoleResolver(SecurityRepository(session), get_app_settings().DEFAULT_PROFILE_ROLE)
    try:
        resolution = await resolver.resolve(user_id, claims.get("role"), claims.get("status"))
    except ServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    if resolution.status != "active":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return resolution


# PUBLIC_INTERFACE
async def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    session: AsyncSession = Depends(get_async_session),
) -> RoleResolution:
    """
    Resolve the authenticated caller and their role.

    The role comes from the caller's profile (provisioned when missing); it never
    defaults to admin. The user id is bound to the logging context.
    """
    resolution = await resolve_caller(session, claims)
    user_id_var.set(str(resolution.user_id))
    return resolution


# PUBLIC_INTERFACE
async def get_user_session(
    user: RoleResolution = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession with row-level policies evaluated for the caller.

    The `app.user_id` GUC is applied to each transaction begun while the
    session is in use; nothing is left on the pooled connection afterwards.
    """
    async with user_context(session, user.user_id):
        yield session


# PUBLIC_INTERFACE
async def get_permission_matrix(session: AsyncSession = Depends(get_async_session)) -> PermissionMatrix:
    """Return the effective permission matrix (stored setting or built-in default)."""
    await settings_store.ensure_loaded(ConfigurationRepository(session))
    return settings_store.permissions_matrix()


# PUBLIC_INTERFACE
async def get_feature_toggles(
    user: RoleResolution = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
) -> Dict[str, bool]:
    """Feature toggles stored for the caller's role."""
    rows = await SecurityRepository(session).list_role_permissions(user.role)
    return {row.feature_key: row.is_enabled for row in rows}


# PUBLIC_INTERFACE
def require_permission(action: str, resource: str):
    """
    Create a dependency that requires the caller's role to allow `action` on
    `resource` according to the permission matrix.
    """

    async def _dep(
        user: RoleResolution = Depends(get_current_user),
        matrix: PermissionMatrix = Depends(get_permission_matrix),
    ) -> RoleResolution:
        if not can(user.role, action, resource, matrix):
            logger.info("Denied %s on %s for role '%s'", action, resource, user.role)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permission")
        return user

    return _dep


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """Create a dependency that requires the caller to have one of the specified roles."""

    async def _dep(user: RoleResolution = Depends(get_current_user)) -> RoleResolution:
        if user.role not in required:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return _dep


# PUBLIC_INTERFACE
def require_feature(feature_key: str):
    """Create a dependency that requires a role feature toggle to be enabled (admins always pass)."""

    async def _dep(
        user: RoleResolution = Depends(get_current_user),
        toggles: Dict[str, bool] = Depends(get_feature_toggles),
    ) -> RoleResolution:
        if not feature_enabled(user.role, feature_key, toggles):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Feature disabled")
        return user

    return _dep


# Service providers
async def get_ticket_service(session: AsyncSession = Depends(get_user_session)) -> TicketService:
    return TicketService(session)


async def get_dashboard_service(session: AsyncSession = Depends(get_user_session)) -> DashboardService:
    return DashboardService(session)


async def get_inventory_service(session: AsyncSession = Depends(get_user_session)) -> InventoryService:
    return InventoryService(session)


async def get_organization_service(session: AsyncSession = Depends(get_user_session)) -> OrganizationService:
    return OrganizationService(session)


async def get_admin_user_service(session: AsyncSession = Depends(get_async_session)) -> AdminUserService:
    """Admin functions run in service context, outside row-level policies."""
    return AdminUserService(session)
