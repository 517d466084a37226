from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from maintenance_api.schemas.common import not_null
from maintenance_api.services.permissions import FEATURE_KEYS, KNOWN_ROLES


class SettingUpdate(BaseModel):
    value: Any = Field(..., description="JSON value stored under the setting key")


class PermissionMatrixBody(BaseModel):
    """role -> resource -> allowed actions."""
    matrix: Dict[str, Dict[str, List[str]]] = Field(..., description="Permission matrix")


class RolePermissionRead(BaseModel):
    role: str
    feature_key: str
    is_enabled: bool

    class Config:
        from_attributes = True


class RolePermissionUpdate(BaseModel):
    role: str = Field(..., description="Role the toggle applies to")
    feature_key: str = Field(..., description="Feature key, e.g. delete_ticket")
    is_enabled: bool = Field(...)

    @field_validator("role")
    @classmethod
    def _known_role(cls, value: str) -> str:
        if value not in KNOWN_ROLES:
            raise ValueError(f"Unknown role: {value}")
        return value

    @field_validator("feature_key")
    @classmethod
    def _known_feature(cls, value: str) -> str:
        if value not in FEATURE_KEYS:
            raise ValueError(f"Unknown feature: {value}")
        return value


class NotificationTemplateBase(BaseModel):
    key: str = Field(..., min_length=1, description="Template key, e.g. ticket_assigned")
    template_ar: str = Field(..., min_length=1, description="Arabic text with {{placeholder}} tokens")
    is_active: bool = Field(True)


class NotificationTemplateCreate(NotificationTemplateBase):
    pass


class NotificationTemplateUpdate(BaseModel):
    template_ar: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None

    _required = not_null("template_ar", "is_active")


class NotificationTemplateRead(NotificationTemplateBase):
    id: UUID
    updated_at: datetime

    class Config:
        from_attributes = True


class TemplatePreviewRequest(BaseModel):
    """Render a stored template by key, or an ad-hoc template text."""
    template_key: Optional[str] = Field(None, description="Key of a stored or fallback template")
    template_ar: Optional[str] = Field(None, description="Template text to render instead of a stored one")
    data: Dict[str, Any] = Field(default_factory=dict, description="Placeholder values")
    phone: Optional[str] = Field(None, description="When given, a WhatsApp link is built for this number")


class TemplatePreview(BaseModel):
    message: str
    placeholders: List[str] = Field(default_factory=list)
    whatsapp_url: Optional[str] = None


class FormFieldConfigBase(BaseModel):
    field_key: str = Field(..., min_length=1)
    label_ar: str = Field(..., min_length=1)
    label_en: Optional[str] = None
    is_visible: bool = True
    is_required: bool = False
    field_type: str = "text"
    sort_order: int = 0
    options: Optional[Any] = None


class FormFieldConfigUpsert(FormFieldConfigBase):
    pass


class FormFieldConfigRead(FormFieldConfigBase):
    id: UUID
    form_id: str

    class Config:
        from_attributes = True
