from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from maintenance_api.schemas.common import not_null


class AssetCreate(BaseModel):
    """Payload to register maintained equipment."""
    name: str = Field(..., min_length=1, description="Asset name")
    serial_number: Optional[str] = None
    branch_id: Optional[UUID] = Field(None, description="Branch where the asset is installed")
    category_id: Optional[UUID] = Field(None, description="Fault category of the asset")
    status: str = Field("active", description="Asset status")
    purchase_price: Optional[float] = Field(None, ge=0)
    purchase_date: Optional[date] = None
    qr_code: Optional[str] = Field(None, description="QR code value (unique)")


class AssetUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    serial_number: Optional[str] = None
    branch_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    status: Optional[str] = None
    purchase_price: Optional[float] = Field(None, ge=0)
    purchase_date: Optional[date] = None
    qr_code: Optional[str] = None

    _required = not_null("name", "status")


class AssetRead(BaseModel):
    """Read model for an asset."""
    id: UUID
    name: str
    serial_number: Optional[str] = None
    branch_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    status: str
    purchase_price: Optional[float] = None
    purchase_date: Optional[date] = None
    qr_code: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FaultCategoryCreate(BaseModel):
    name_ar: str = Field(..., min_length=1)
    is_active: bool = True


class FaultCategoryUpdate(BaseModel):
    name_ar: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None

    _required = not_null("name_ar", "is_active")


class FaultCategoryRead(BaseModel):
    id: UUID
    name_ar: str
    is_active: bool

    class Config:
        from_attributes = True
