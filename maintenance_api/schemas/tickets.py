from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from maintenance_api.schemas.common import not_null

TicketStatus = Literal["open", "in_progress", "pending_approval", "resolved", "closed", "rejected"]
TicketPriority = Literal["low", "medium", "high", "critical"]


class TicketCreate(BaseModel):
    """Payload to open a maintenance ticket."""
    branch_id: UUID = Field(..., description="Branch where the fault was reported")
    asset_id: Optional[UUID] = Field(None, description="Affected asset, if known")
    category_id: Optional[UUID] = Field(None, description="Fault category ID")
    fault_category: Optional[str] = Field(None, description="Free-text fault category")
    priority: TicketPriority = Field("medium", description="Ticket priority")
    description: Optional[str] = Field(None, description="Fault description")
    images_url: List[str] = Field(default_factory=list, description="Uploaded image/video URLs")
    form_data: Dict[str, Any] = Field(default_factory=dict, description="Dynamic form answers")


class TicketUpdate(BaseModel):
    """Partial update of ticket details. Status changes use the status endpoint."""
    asset_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    fault_category: Optional[str] = None
    priority: Optional[TicketPriority] = None
    description: Optional[str] = None
    images_url: Optional[List[str]] = None
    form_data: Optional[Dict[str, Any]] = None

    _required = not_null("priority", "images_url", "form_data")


class TicketRead(BaseModel):
    """Read model for a ticket."""
    id: UUID = Field(..., description="Ticket ID")
    ticket_number: int = Field(..., description="Sequential ticket number")
    branch_id: UUID
    asset_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    fault_category: Optional[str] = None
    technician_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    status: str
    priority: str
    description: Optional[str] = None
    images_url: List[str] = Field(default_factory=list)
    form_data: Dict[str, Any] = Field(default_factory=dict)
    repair_cost: float = 0
    rejection_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    start_work_lat: Optional[float] = None
    start_work_lng: Optional[float] = None
    end_work_lat: Optional[float] = None
    end_work_lng: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TicketAssign(BaseModel):
    technician_id: UUID = Field(..., description="Profile ID of the technician")


class TicketStatusChange(BaseModel):
    """Move a ticket along its workflow, optionally recording the technician's position."""
    status: Literal["in_progress", "pending_approval", "resolved", "closed"] = Field(..., description="Target status")
    lat: Optional[float] = Field(None, ge=-90, le=90, description="Latitude at the time of the change")
    lng: Optional[float] = Field(None, ge=-180, le=180, description="Longitude at the time of the change")


class PartUsage(BaseModel):
    part_id: UUID = Field(..., description="Spare part consumed")
    quantity: int = Field(..., ge=1, description="Units consumed")


class TicketClose(BaseModel):
    """Close a ticket, consuming spare parts from stock."""
    parts: List[PartUsage] = Field(default_factory=list, description="Spare parts used in the repair")
    form_data: Dict[str, Any] = Field(default_factory=dict, description="Closing form answers merged into the ticket")
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class TicketReject(BaseModel):
    reason: str = Field(..., min_length=1, description="Reason shown to the reporter")


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, description="Comment text")


class CommentRead(BaseModel):
    """Read model for a ticket comment."""
    id: UUID
    ticket_id: UUID
    user_id: Optional[UUID] = None
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class ValidationResult(BaseModel):
    """Advisory check outcome. Never blocks the operation that produced it."""
    valid: bool = Field(..., description="False when the check raised a concern")
    message: Optional[str] = Field(None, description="Arabic advisory message")
    severity: Optional[Literal["warning", "error"]] = Field(None, description="Advisory severity")


class TicketCloseResult(BaseModel):
    ticket: TicketRead
    repair_cost: float = Field(..., description="Total cost of consumed parts")
    warnings: List[ValidationResult] = Field(default_factory=list, description="Advisory findings")
