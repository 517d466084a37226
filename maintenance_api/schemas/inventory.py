from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from maintenance_api.schemas.common import not_null


class SparePartCreate(BaseModel):
    """Payload to register a spare part."""
    name_ar: str = Field(..., min_length=1, description="Arabic part name")
    part_number: Optional[str] = Field(None, description="Manufacturer/part number (unique)")
    category_id: Optional[UUID] = Field(None, description="Fault category the part belongs to")
    quantity: int = Field(0, ge=0, description="Units in stock")
    min_threshold: int = Field(0, ge=0, description="Low-stock threshold")
    price: float = Field(0, ge=0, description="Unit price")


class SparePartUpdate(BaseModel):
    """Partial update; quantity changes go through restock/adjust."""
    name_ar: Optional[str] = Field(None, min_length=1)
    part_number: Optional[str] = None
    category_id: Optional[UUID] = None
    min_threshold: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)

    _required = not_null("name_ar", "min_threshold", "price")


class SparePartRead(BaseModel):
    """Read model for a spare part."""
    id: UUID = Field(..., description="Part ID")
    name_ar: str
    part_number: Optional[str] = None
    category_id: Optional[UUID] = None
    quantity: int
    min_threshold: int
    price: float
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StockMovement(BaseModel):
    """Restock (positive) or manual adjustment (either sign) of a part's stock."""
    change_amount: int = Field(..., description="Units added (positive) or removed (negative)")
    transaction_type: Literal["restock", "adjustment"] = Field("restock")
    notes: Optional[str] = Field(None, description="Free-text note")


class InventoryTransactionRead(BaseModel):
    """Read model for an inventory transaction."""
    id: UUID = Field(..., description="Transaction ID")
    part_id: UUID
    ticket_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    change_amount: int = Field(..., description="Negative for consumption, positive for restock")
    transaction_type: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
