from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from maintenance_api.schemas.common import not_null


class TokenPair(BaseModel):
    """Access and refresh tokens."""
    token_type: str = Field("bearer", description="Token type, typically 'bearer'")
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")


class RefreshRequest(BaseModel):
    """Request to refresh an access token."""
    refresh_token: str = Field(..., description="Refresh token")


class Message(BaseModel):
    """Simple message response."""
    message: str = Field(...)


class ProfileRead(BaseModel):
    """Application profile of a user."""
    id: UUID = Field(..., description="User ID (same as the account ID)")
    email: Optional[str] = Field(None, description="Email")
    full_name: Optional[str] = Field(None)
    role: str = Field(..., description="admin | manager | technician | user")
    phone: Optional[str] = None
    branch_id: Optional[UUID] = None
    assigned_sector_id: Optional[UUID] = None
    assigned_area_id: Optional[UUID] = None
    specialization: Optional[str] = None
    status: str = Field(..., description="active | inactive")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """
    Profile changes.

    Users may change their own contact fields (full_name, phone); every other
    field requires an admin.
    """
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[Literal["admin", "manager", "technician", "user"]] = None
    branch_id: Optional[UUID] = None
    assigned_sector_id: Optional[UUID] = None
    assigned_area_id: Optional[UUID] = None
    specialization: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None

    _required = not_null("role", "status")


class SessionInfo(BaseModel):
    """The caller's resolved identity, role and effective permissions."""
    user_id: UUID
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str = Field(..., description="Resolved role")
    source: str = Field(..., description="How the role was resolved: profile | provisioned | token_claim")
    assigned_area_id: Optional[UUID] = None
    assigned_sector_id: Optional[UUID] = None
    branch_id: Optional[UUID] = None
    permissions: Dict[str, List[str]] = Field(default_factory=dict, description="Actions per resource")
    features: List[str] = Field(default_factory=list, description="Enabled feature toggles")
