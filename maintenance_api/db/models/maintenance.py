from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import ARRAY, Boolean, Date, DateTime, ForeignKey, Identity, Integer, Numeric, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from maintenance_api.db.base import Base, NamedArMixin, UUIDPkMixin, TimestampMixin


class FaultCategory(UUIDPkMixin, NamedArMixin, TimestampMixin, Base):
    """Fault category shared by tickets, assets and spare parts."""
    __tablename__ = "fault_categories"

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class MaintenanceAsset(UUIDPkMixin, TimestampMixin, Base):
    """Maintained equipment installed at a branch."""
    __tablename__ = "maintenance_assets"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    serial_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    branch_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True
    )
    category_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fault_categories.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default="active")
    purchase_price: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    qr_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)


class Ticket(UUIDPkMixin, TimestampMixin, Base):
    """Maintenance request raised against a branch (and optionally an asset)."""
    __tablename__ = "tickets"

    ticket_number: Mapped[int] = mapped_column(Integer, Identity(always=False), nullable=False, unique=True)
    branch_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("branches.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    asset_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("maintenance_assets.id", ondelete="SET NULL"), nullable=True, index=True
    )
    category_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fault_categories.id", ondelete="SET NULL"), nullable=True
    )
    fault_category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    technician_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_by: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default="open", index=True)
    priority: Mapped[str] = mapped_column(Text, nullable=False, server_default="medium")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    images_url: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, default=list, server_default=text("'{}'::text[]")
    )
    form_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
    repair_cost: Mapped[float] = mapped_column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    start_work_lat: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True)
    start_work_lng: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True)
    end_work_lat: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True)
    end_work_lng: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True)


class TicketComment(UUIDPkMixin, TimestampMixin, Base):
    """Discussion entry on a ticket."""
    __tablename__ = "ticket_comments"

    ticket_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
