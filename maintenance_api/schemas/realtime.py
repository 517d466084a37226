from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

DEFAULT_PUSH_TITLE = "عرض جديد"
DEFAULT_PUSH_BODY = "لديك إشعار جديد من تطبيق الصيانة"
DEFAULT_PUSH_URL = "/"


class WsEnvelope(BaseModel):
    """Envelope for WebSocket messages."""
    type: str = Field(..., description="Message type (e.g., 'push', 'ticket.assigned').")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Message payload.")
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp (UTC).")
    user_id: Optional[UUID] = Field(default=None, description="Sender user id, if applicable.")
    channel: Optional[str] = Field(default=None, description="Topic the message was published on.")


class PushPayload(BaseModel):
    """Web push notification payload consumed by the client service worker."""
    title: str = Field(DEFAULT_PUSH_TITLE, description="Notification title")
    body: str = Field(DEFAULT_PUSH_BODY, description="Notification body text")
    url: str = Field(DEFAULT_PUSH_URL, description="URL opened when the notification is clicked")


class PushRequest(BaseModel):
    """Admin request to push a notification to a user and/or a role."""
    user_id: Optional[UUID] = Field(None, description="Target user id")
    role: Optional[str] = Field(None, description="Target role (all connected users with this role)")
    title: Optional[str] = Field(None)
    body: Optional[str] = Field(None)
    url: Optional[str] = Field(None)
