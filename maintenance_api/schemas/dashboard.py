from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StatusSlice(BaseModel):
    status: str = Field(..., description="Ticket status key")
    label: str = Field(..., description="Arabic status label")
    value: int = Field(..., description="Number of tickets")


class CategorySlice(BaseModel):
    name: str = Field(..., description="Fault category")
    value: int = Field(..., description="Number of tickets")


class RecentTicket(BaseModel):
    """Compact ticket row for the dashboard feed."""
    id: UUID
    ticket_number: int
    status: str
    priority: str
    fault_category: Optional[str] = None
    branch_name: Optional[str] = None
    brand_name: Optional[str] = None
    created_at: datetime


class DashboardStats(BaseModel):
    """Ticket counters and distributions for the dashboard."""
    total_tickets: int = Field(0, description="All visible tickets")
    open_tickets: int = Field(0, description="Tickets with status open")
    emergency_tickets: int = Field(0, description="High or critical priority tickets")
    closed_today: int = Field(0, description="Tickets closed since midnight (UTC)")
    status_distribution: List[StatusSlice] = Field(default_factory=list)
    category_distribution: List[CategorySlice] = Field(default_factory=list)
    recent_tickets: List[RecentTicket] = Field(default_factory=list)
