from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from maintenance_api.db.base import Base, UUIDPkMixin, TimestampMixin


class SystemLog(UUIDPkMixin, TimestampMixin, Base):
    """User activity record (CREATE/UPDATE/DELETE/LOGIN/OTHER)."""
    __tablename__ = "system_logs"

    user_id: Mapped[Optional[UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_name: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb"))
