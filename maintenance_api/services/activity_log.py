from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.repositories.audit import AuditRepository

logger = logging.getLogger(__name__)

ACTION_TYPES = ("CREATE", "UPDATE", "DELETE", "LOGIN", "OTHER")


# PUBLIC_INTERFACE
async def log_activity(
    session: AsyncSession,
    *,
    user_id: Optional[UUID],
    action_type: str,
    entity_name: str,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Record a user activity row in its own savepoint.

    Failures are logged and swallowed so the calling operation is not affected.
    The row is persisted by the caller's commit.
    """
    if action_type not in ACTION_TYPES:
        action_type = "OTHER"
    try:
        async with session.begin_nested():
            await AuditRepository(session).add_log(
                user_id=user_id,
                action_type=action_type,
                entity_name=entity_name,
                details=_jsonable(details or {}),
            )
    except Exception:
        logger.exception("Failed to record activity %s on %s", action_type, entity_name)


def _jsonable(details: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in details.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            out[key] = value
        elif isinstance(value, dict):
            out[key] = _jsonable(value)
        elif isinstance(value, (list, tuple)):
            out[key] = [v if isinstance(v, (str, int, float, bool)) or v is None else str(v) for v in value]
        else:
            out[key] = str(value)
    return out
