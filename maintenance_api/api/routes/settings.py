from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.deps import (
    get_current_user,
    get_permission_matrix,
    get_user_session,
    require_permission,
)
from maintenance_api.repositories.configuration import ConfigurationRepository
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.schemas.settings import (
    FormFieldConfigRead,
    FormFieldConfigUpsert,
    NotificationTemplateCreate,
    NotificationTemplateRead,
    NotificationTemplateUpdate,
    PermissionMatrixBody,
    RolePermissionRead,
    RolePermissionUpdate,
    SettingUpdate,
    TemplatePreview,
    TemplatePreviewRequest,
)
from maintenance_api.services.activity_log import log_activity
from maintenance_api.services.notifications import (
    FALLBACK_TEMPLATES,
    notification_engine,
    render_template,
    template_placeholders,
    whatsapp_url,
)
from maintenance_api.services.permissions import PERMISSIONS_MATRIX_KEY, PermissionMatrix, validate_matrix
from maintenance_api.services.role_resolution import RoleResolution
from maintenance_api.services.system_settings import settings_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


# System settings

# PUBLIC_INTERFACE
@router.get(
    "/system",
    response_model=Dict[str, Any],
    summary="System settings",
    dependencies=[Depends(require_permission("view", "settings"))],
)
async def get_system_settings(session: AsyncSession = Depends(get_user_session)) -> Dict[str, Any]:
    await settings_store.ensure_loaded(ConfigurationRepository(session))
    return settings_store.snapshot()


# PUBLIC_INTERFACE
@router.put(
    "/system/{key}",
    response_model=Dict[str, Any],
    summary="Update system setting",
    description="Upsert a single setting. The permissions matrix is validated before it is stored.",
)
async def put_system_setting(
    payload: SettingUpdate,
    key: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("manage", "settings")),
) -> Dict[str, Any]:
    value = payload.value
    if key == PERMISSIONS_MATRIX_KEY:
        if not isinstance(value, dict):
            raise HTTPException(status_code=422, detail="Permissions matrix must be an object")
        try:
            value = validate_matrix(value)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
    repo = ConfigurationRepository(session)
    await log_activity(session, user_id=user.user_id, action_type="UPDATE", entity_name="system_settings", details={"key": key})
    await settings_store.update(repo, key, value)
    return {key: value}


# PUBLIC_INTERFACE
@router.post(
    "/system/refresh",
    response_model=Dict[str, Any],
    summary="Reload settings caches",
    description="Reload system settings and notification templates from the database.",
    dependencies=[Depends(require_permission("manage", "settings"))],
)
async def refresh_settings(session: AsyncSession = Depends(get_user_session)) -> Dict[str, Any]:
    repo = ConfigurationRepository(session)
    values = await settings_store.refresh(repo)
    templates = await notification_engine.sync_templates(repo)
    return {"settings": len(values), "templates": templates}


# Permission matrix

# PUBLIC_INTERFACE
@router.get(
    "/permissions",
    response_model=Dict[str, Dict[str, List[str]]],
    summary="Permission matrix",
    description="Effective role -> resource -> actions matrix.",
)
async def get_matrix(
    _user: RoleResolution = Depends(get_current_user),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
) -> PermissionMatrix:
    return matrix


# PUBLIC_INTERFACE
@router.put(
    "/permissions",
    response_model=Dict[str, Dict[str, List[str]]],
    summary="Replace permission matrix",
)
async def put_matrix(
    payload: PermissionMatrixBody,
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("manage", "settings")),
) -> PermissionMatrix:
    try:
        matrix = validate_matrix(payload.matrix)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    await log_activity(session, user_id=user.user_id, action_type="UPDATE", entity_name="system_settings", details={"key": PERMISSIONS_MATRIX_KEY})
    await settings_store.update(ConfigurationRepository(session), PERMISSIONS_MATRIX_KEY, matrix)
    return matrix


# Role feature toggles

# PUBLIC_INTERFACE
@router.get(
    "/role-permissions",
    response_model=List[RolePermissionRead],
    summary="Role feature toggles",
    dependencies=[Depends(require_permission("view", "settings"))],
)
async def list_role_permissions(
    role: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_user_session),
) -> List[RolePermissionRead]:
    rows = await SecurityRepository(session).list_role_permissions(role)
    return [RolePermissionRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.put("/role-permissions", response_model=RolePermissionRead, summary="Set role feature toggle")
async def put_role_permission(
    payload: RolePermissionUpdate,
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("manage", "settings")),
) -> RolePermissionRead:
    repo = SecurityRepository(session)
    row = await repo.upsert_role_permission(payload.role, payload.feature_key, payload.is_enabled)
    await log_activity(session, user_id=user.user_id, action_type="UPDATE", entity_name="role_permissions", details=payload.model_dump())
    await repo.commit()
    return RolePermissionRead.model_validate(row)


# Notification templates

# PUBLIC_INTERFACE
@router.get(
    "/notification-templates",
    response_model=List[NotificationTemplateRead],
    summary="List notification templates",
    dependencies=[Depends(require_permission("view", "settings"))],
)
async def list_templates(
    active_only: bool = Query(False),
    session: AsyncSession = Depends(get_user_session),
) -> List[NotificationTemplateRead]:
    rows = await ConfigurationRepository(session).list_templates(active_only=active_only)
    return [NotificationTemplateRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.post(
    "/notification-templates",
    response_model=NotificationTemplateRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create notification template",
)
async def create_template(
    payload: NotificationTemplateCreate,
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("manage", "settings")),
) -> NotificationTemplateRead:
    repo = ConfigurationRepository(session)
    if await repo.get_template_by_key(payload.key):
        raise HTTPException(status_code=409, detail="Template key already exists")
    try:
        tpl = await repo.create_template(payload.key, payload.template_ar, payload.is_active)
    except IntegrityError:
        await repo.rollback()
        raise HTTPException(status_code=409, detail="Template key already exists")
    await log_activity(session, user_id=user.user_id, action_type="CREATE", entity_name="notification_templates", details={"key": tpl.key})
    await repo.commit()
    notification_engine.set_template(tpl.key, tpl.template_ar if tpl.is_active else None)
    return NotificationTemplateRead.model_validate(tpl)


# PUBLIC_INTERFACE
@router.patch(
    "/notification-templates/{template_id}",
    response_model=NotificationTemplateRead,
    summary="Update notification template",
)
async def update_template(
    payload: NotificationTemplateUpdate,
    template_id: UUID = Path(...),
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("manage", "settings")),
) -> NotificationTemplateRead:
    repo = ConfigurationRepository(session)
    if await repo.get_template(template_id) is None:
        raise HTTPException(status_code=404, detail="Template not found")
    tpl = await repo.update_template(template_id, payload.model_dump(exclude_unset=True))
    await log_activity(session, user_id=user.user_id, action_type="UPDATE", entity_name="notification_templates", details={"key": tpl.key})
    await repo.commit()
    notification_engine.set_template(tpl.key, tpl.template_ar if tpl.is_active else None)
    return NotificationTemplateRead.model_validate(tpl)


# PUBLIC_INTERFACE
@router.delete(
    "/notification-templates/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete notification template",
    description="Deleting a built-in template key falls back to the default text.",
)
async def delete_template(
    template_id: UUID = Path(...),
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("manage", "settings")),
) -> Response:
    repo = ConfigurationRepository(session)
    tpl = await repo.get_template(template_id)
    if tpl is None:
        raise HTTPException(status_code=404, detail="Template not found")
    key = tpl.key
    await repo.delete_template(template_id)
    await log_activity(session, user_id=user.user_id, action_type="DELETE", entity_name="notification_templates", details={"key": key})
    await repo.commit()
    notification_engine.set_template(key, None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.post(
    "/notification-templates/preview",
    response_model=TemplatePreview,
    summary="Preview a notification",
    description="Render a template with sample data; optionally build the WhatsApp link for a phone number.",
    dependencies=[Depends(require_permission("view", "settings"))],
)
async def preview_template(
    payload: TemplatePreviewRequest,
    session: AsyncSession = Depends(get_user_session),
) -> TemplatePreview:
    if payload.template_ar:
        template = payload.template_ar
        message = render_template(template, payload.data)
    elif payload.template_key:
        repo = ConfigurationRepository(session)
        message = await notification_engine.generate_message(payload.template_key, payload.data, repo)
        row = await repo.get_template_by_key(payload.template_key)
        template = row.template_ar if row is not None else FALLBACK_TEMPLATES.get(payload.template_key, "")
    else:
        raise HTTPException(status_code=422, detail="template_key or template_ar is required")
    return TemplatePreview(
        message=message,
        placeholders=template_placeholders(template),
        whatsapp_url=whatsapp_url(payload.phone, message) if payload.phone else None,
    )


# Form fields

# PUBLIC_INTERFACE
@router.get(
    "/forms/{form_id}/fields",
    response_model=List[FormFieldConfigRead],
    summary="Form field configuration",
)
async def list_form_fields(
    form_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_user_session),
    _user: RoleResolution = Depends(get_current_user),
) -> List[FormFieldConfigRead]:
    rows = await ConfigurationRepository(session).list_form_fields(form_id)
    return [FormFieldConfigRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.put(
    "/forms/{form_id}/fields",
    response_model=List[FormFieldConfigRead],
    summary="Upsert form field configuration",
    description="Insert or update each field (keyed by form_id + field_key).",
)
async def upsert_form_fields(
    payload: List[FormFieldConfigUpsert],
    form_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_user_session),
    user: RoleResolution = Depends(require_permission("edit", "forms")),
) -> List[FormFieldConfigRead]:
    repo = ConfigurationRepository(session)
    rows = [await repo.upsert_form_field(form_id, field.model_dump()) for field in payload]
    await log_activity(
        session,
        user_id=user.user_id,
        action_type="UPDATE",
        entity_name="form_field_configs",
        details={"form_id": form_id, "fields": [f.field_key for f in payload]},
    )
    await repo.commit()
    return [FormFieldConfigRead.model_validate(r) for r in rows]
