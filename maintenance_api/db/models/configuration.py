from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import Boolean, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from maintenance_api.db.base import Base, UUIDPkMixin, TimestampMixin


class SystemSetting(TimestampMixin, Base):
    """Key/value application setting (e.g. permissions_matrix)."""
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[Any] = mapped_column(JSONB, nullable=True)


class NotificationTemplate(UUIDPkMixin, TimestampMixin, Base):
    """Arabic message template with {{placeholder}} tokens."""
    __tablename__ = "notification_templates"

    key: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    template_ar: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class FormFieldConfig(UUIDPkMixin, TimestampMixin, Base):
    """Visibility/label/required configuration of a form field."""
    __tablename__ = "form_field_configs"
    __table_args__ = (
        UniqueConstraint("form_id", "field_key", name="uq_form_field_configs_form_field"),
    )

    form_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    field_key: Mapped[str] = mapped_column(Text, nullable=False)
    label_ar: Mapped[str] = mapped_column(Text, nullable=False)
    label_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    field_type: Mapped[str] = mapped_column(Text, nullable=False, server_default="text")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    options: Mapped[Any] = mapped_column(JSONB, nullable=True)
