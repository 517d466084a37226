from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from maintenance_api.schemas.common import not_null


class _Named(BaseModel):
    name_ar: str = Field(..., min_length=1, description="Arabic name (unique)")


class SectorCreate(_Named):
    pass


class SectorUpdate(BaseModel):
    name_ar: Optional[str] = Field(None, min_length=1)

    _required = not_null("name_ar")


class SectorRead(_Named):
    """Read model for a sector."""
    id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AreaCreate(_Named):
    sector_id: Optional[UUID] = Field(None, description="Owning sector")


class AreaUpdate(BaseModel):
    name_ar: Optional[str] = Field(None, min_length=1)
    sector_id: Optional[UUID] = None

    _required = not_null("name_ar")


class AreaRead(_Named):
    """Read model for an area."""
    id: UUID
    sector_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BrandCreate(_Named):
    logo_url: Optional[str] = Field(None, description="Brand logo URL")


class BrandUpdate(BaseModel):
    name_ar: Optional[str] = Field(None, min_length=1)
    logo_url: Optional[str] = None

    _required = not_null("name_ar")


class BrandRead(_Named):
    """Read model for a brand."""
    id: UUID
    logo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BranchCreate(_Named):
    area_id: Optional[UUID] = Field(None, description="Area the branch belongs to")
    brand_id: Optional[UUID] = Field(None, description="Operating brand")
    address: Optional[str] = None
    location_lat: Optional[float] = Field(None, ge=-90, le=90)
    location_lng: Optional[float] = Field(None, ge=-180, le=180)
    google_map_link: Optional[str] = None
    is_active: bool = True


class BranchUpdate(BaseModel):
    name_ar: Optional[str] = Field(None, min_length=1)
    area_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    address: Optional[str] = None
    location_lat: Optional[float] = Field(None, ge=-90, le=90)
    location_lng: Optional[float] = Field(None, ge=-180, le=180)
    google_map_link: Optional[str] = None
    is_active: Optional[bool] = None

    _required = not_null("name_ar", "is_active")


class BranchRead(_Named):
    """Read model for a branch."""
    id: UUID
    area_id: Optional[UUID] = None
    brand_id: Optional[UUID] = None
    address: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    google_map_link: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
