from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SystemLogRead(BaseModel):
    """User activity record."""
    id: UUID
    user_id: Optional[UUID] = Field(None, description="Acting user, if known")
    action_type: str = Field(..., description="CREATE | UPDATE | DELETE | LOGIN | OTHER")
    entity_name: str = Field(..., description="Affected table or entity")
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    class Config:
        from_attributes = True
