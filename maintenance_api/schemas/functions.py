from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CreateUserRequest(BaseModel):
    """Body of the create-user admin function."""
    email: Optional[str] = Field(None, description="Login email (required)")
    password: Optional[str] = Field(None, description="Initial password (required)")
    full_name: Optional[str] = Field(None, description="Display name")
    role: Optional[str] = Field(None, description="Profile role; technician when omitted")
    branch_id: Optional[UUID] = Field(None, description="Home branch")
    phone: Optional[str] = Field(None, description="Contact phone")


class AccountUpdates(BaseModel):
    """Account attributes an admin may change."""
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    user_metadata: Optional[Dict[str, Any]] = None
    app_metadata: Optional[Dict[str, Any]] = None
    ban_duration: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("ban_duration", "ban"),
        description="'none' lifts a ban; '<n>h' or '<n>m' bans for that long",
    )


class UpdateUserRequest(BaseModel):
    """Body of the admin-update-user function."""
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: Optional[UUID] = Field(None, alias="targetUserId")
    updates: AccountUpdates = Field(default_factory=AccountUpdates)


class DeleteUserRequest(BaseModel):
    """Body of the admin-delete-user function."""
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: Optional[UUID] = Field(None, alias="targetUserId")


class AccountRead(BaseModel):
    """Authentication account as returned by the admin functions."""
    id: UUID
    email: str
    email_confirmed_at: Optional[datetime] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    app_metadata: Dict[str, Any] = Field(default_factory=dict)
    banned_until: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
