from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from maintenance_api.db.base import Base, UUIDPkMixin, TimestampMixin


class SparePart(UUIDPkMixin, TimestampMixin, Base):
    """Spare part stock item."""
    __tablename__ = "spare_parts"

    name_ar: Mapped[str] = mapped_column(Text, nullable=False)
    part_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    category_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fault_categories.id", ondelete="SET NULL"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    min_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    price: Mapped[float] = mapped_column(Numeric(14, 2), nullable=False, default=0, server_default="0")


class InventoryTransaction(UUIDPkMixin, TimestampMixin, Base):
    """Stock movement; negative change_amount for consumption, positive for restock."""
    __tablename__ = "inventory_transactions"

    part_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("spare_parts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ticket_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    change_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[str] = mapped_column(Text, nullable=False)  # consumption/restock/adjustment
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
