from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from maintenance_api.db.base import Base, NamedArMixin, UUIDPkMixin, TimestampMixin


class Sector(UUIDPkMixin, NamedArMixin, TimestampMixin, Base):
    """Top-level geographic sector (e.g. Delta, Cairo)."""
    __tablename__ = "sectors"


class Area(UUIDPkMixin, NamedArMixin, TimestampMixin, Base):
    """Area inside a sector; branches and technicians are assigned per area."""
    __tablename__ = "areas"

    sector_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sectors.id", ondelete="RESTRICT"), nullable=True, index=True
    )


class Brand(UUIDPkMixin, NamedArMixin, TimestampMixin, Base):
    """Restaurant/retail brand operating branches."""
    __tablename__ = "brands"

    logo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Branch(UUIDPkMixin, NamedArMixin, TimestampMixin, Base):
    """Physical branch location."""
    __tablename__ = "branches"

    area_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("areas.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    brand_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("brands.id", ondelete="SET NULL"), nullable=True
    )
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location_lat: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True)
    location_lng: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True)
    google_map_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
