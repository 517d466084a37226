from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert

from maintenance_api.db.models.configuration import FormFieldConfig, NotificationTemplate, SystemSetting
from .base import BaseRepository


class ConfigurationRepository(BaseRepository):
    """System settings, notification templates and form field configuration."""

    # System settings
    async def all_settings(self) -> Dict[str, Any]:
        res = await self.execute(select(SystemSetting.key, SystemSetting.value))
        return {key: value for key, value in res.all()}

    async def upsert_setting(self, key: str, value: Any) -> None:
        stmt = insert(SystemSetting).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SystemSetting.key],
            set_={"value": stmt.excluded.value, "updated_at": func.now()},
        )
        await self.execute(stmt)

    # Notification templates
    async def list_templates(self, active_only: bool = False) -> List[NotificationTemplate]:
        stmt = select(NotificationTemplate).order_by(NotificationTemplate.key)
        if active_only:
            stmt = stmt.where(NotificationTemplate.is_active.is_(True))
        return list(await self.scalars(stmt))

    async def get_template(self, template_id: UUID) -> Optional[NotificationTemplate]:
        return await self.scalar_one_or_none(select(NotificationTemplate).where(NotificationTemplate.id == template_id))

    async def get_template_by_key(self, key: str) -> Optional[NotificationTemplate]:
        return await self.scalar_one_or_none(select(NotificationTemplate).where(NotificationTemplate.key == key))

    async def create_template(self, key: str, template_ar: str, is_active: bool = True) -> NotificationTemplate:
        tpl = NotificationTemplate(key=key, template_ar=template_ar, is_active=is_active)
        await self.add(tpl)
        await self.flush()
        await self.session.refresh(tpl)
        return tpl

    async def update_template(self, template_id: UUID, values: Dict[str, Any]) -> Optional[NotificationTemplate]:
        if values:
            stmt = (
                update(NotificationTemplate)
                .where(NotificationTemplate.id == template_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.execute(stmt)
        return await self.get_template(template_id)

    async def delete_template(self, template_id: UUID) -> int:
        res = await self.execute(delete(NotificationTemplate).where(NotificationTemplate.id == template_id))
        return res.rowcount or 0

    # Form fields
    async def list_form_fields(self, form_id: str) -> List[FormFieldConfig]:
        stmt = (
            select(FormFieldConfig)
            .where(FormFieldConfig.form_id == form_id)
            .order_by(FormFieldConfig.sort_order, FormFieldConfig.field_key)
        )
        return list(await self.scalars(stmt))

    async def upsert_form_field(self, form_id: str, values: Dict[str, Any]) -> FormFieldConfig:
        row = {"form_id": form_id, **values}
        stmt = insert(FormFieldConfig).values(**row)
        update_cols = {k: stmt.excluded[k] for k in values.keys() if k != "field_key"}
        update_cols["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            constraint="uq_form_field_configs_form_field",
            set_=update_cols,
        ).returning(FormFieldConfig)
        res = await self.execute(stmt.execution_options(populate_existing=True))
        return res.scalar_one()
