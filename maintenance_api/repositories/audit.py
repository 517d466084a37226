from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select

from maintenance_api.db.models.audit import SystemLog
from .base import BaseRepository


class AuditRepository(BaseRepository):
    """Repository for user activity records."""

    async def add_log(
        self,
        *,
        user_id: Optional[UUID],
        action_type: str,
        entity_name: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> SystemLog:
        log = SystemLog(user_id=user_id, action_type=action_type, entity_name=entity_name, details=details or {})
        await self.add(log)
        await self.flush()
        return log

    async def list_logs(
        self,
        *,
        user_id: Optional[UUID] = None,
        action_type: Optional[str] = None,
        entity_name: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[SystemLog]:
        stmt = select(SystemLog)
        if user_id:
            stmt = stmt.where(SystemLog.user_id == user_id)
        if action_type:
            stmt = stmt.where(SystemLog.action_type == action_type)
        if entity_name:
            stmt = stmt.where(SystemLog.entity_name == entity_name)
        if since:
            stmt = stmt.where(SystemLog.created_at >= since)
        stmt = stmt.order_by(SystemLog.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))
