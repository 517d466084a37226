"""
Notification templating, WhatsApp deep links and push delivery.

Templates are Arabic strings with {{placeholder}} tokens. Active rows of the
notification_templates table override the built-in fallbacks.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote
from uuid import UUID

from maintenance_api.core.settings import get_app_settings
from maintenance_api.repositories.configuration import ConfigurationRepository
from maintenance_api.schemas.realtime import (
    DEFAULT_PUSH_BODY,
    DEFAULT_PUSH_TITLE,
    DEFAULT_PUSH_URL,
    PushPayload,
)
from maintenance_api.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)

FALLBACK_TEMPLATES: Dict[str, str] = {
    "new_ticket": "مرحباً {{name}}، تم فتح بلاغ جديد برقم {{ticket_id}} في فرع {{branch}}. العطل: {{issue}}.",
    "ticket_assigned": "مرحباً {{name}}، تم إسناد المهمة رقم {{ticket_id}} لك في فرع {{branch}}. العطل: {{issue}}.",
    "ticket_rejected": "مرحباً {{name}}، تم رفض المهمة رقم {{ticket_id}} في فرع {{branch}}. السبب: {{reason}}.",
}

_NON_DIGITS = re.compile(r"\D")
_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


# PUBLIC_INTERFACE
def format_phone_number(phone: str, country_code: Optional[str] = None) -> str:
    """
    Normalize a local phone number to international form.

    Non-digits are stripped, a single leading 0 is dropped and the country code
    is prefixed when missing: '010 1234 5678' -> '+201012345678'.
    """
    code = country_code or get_app_settings().PHONE_COUNTRY_CODE
    cleaned = _NON_DIGITS.sub("", phone or "")
    if cleaned.startswith("0"):
        cleaned = cleaned[1:]
    if not cleaned.startswith(code):
        cleaned = code + cleaned
    return "+" + cleaned


# PUBLIC_INTERFACE
def render_template(template: str, data: Mapping[str, Any]) -> str:
    """Replace {{key}} tokens with data values; falsy values become empty strings."""
    message = template
    for key, value in data.items():
        message = message.replace("{{" + key + "}}", str(value) if value else "")
    return message


def template_placeholders(template: str) -> list[str]:
    """Placeholder names referenced by a template, in order of first use."""
    return list(dict.fromkeys(_PLACEHOLDER.findall(template)))


# PUBLIC_INTERFACE
def whatsapp_url(phone: str, message: str, country_code: Optional[str] = None) -> str:
    """Build a wa.me deep link carrying the url-encoded message."""
    digits = format_phone_number(phone, country_code).lstrip("+")
    encoded = quote(message, safe="!*'()")
    return f"https://wa.me/{digits}?text={encoded}"


# PUBLIC_INTERFACE
def build_push_payload(
    title: Optional[str] = None,
    body: Optional[str] = None,
    url: Optional[str] = None,
) -> PushPayload:
    """Build a push payload, substituting defaults for missing fields."""
    return PushPayload(
        title=title or DEFAULT_PUSH_TITLE,
        body=body or DEFAULT_PUSH_BODY,
        url=url or DEFAULT_PUSH_URL,
    )


class NotificationEngine:
    """Template cache seeded with fallbacks and refreshed from the database."""

    def __init__(self) -> None:
        self._cache: Dict[str, str] = dict(FALLBACK_TEMPLATES)

    # PUBLIC_INTERFACE
    async def sync_templates(self, repo: ConfigurationRepository) -> int:
        """Load active templates into the cache; keeps the current cache on failure."""
        try:
            rows = await repo.list_templates(active_only=True)
        except Exception:
            logger.exception("Failed to sync notification templates; using cache/fallbacks")
            return 0
        for row in rows:
            self._cache[row.key] = row.template_ar
        logger.info("Synced %d notification templates", len(rows))
        return len(rows)

    # PUBLIC_INTERFACE
    async def generate_message(
        self,
        template_key: str,
        data: Mapping[str, Any],
        repo: Optional[ConfigurationRepository] = None,
    ) -> str:
        """
        Render the template registered under template_key.

        Unknown keys are looked up in the database once; an empty string is
        returned when no template exists.
        """
        template = self._cache.get(template_key) or FALLBACK_TEMPLATES.get(template_key)
        if not template and repo is not None:
            row = await repo.get_template_by_key(template_key)
            if row is not None and row.template_ar:
                template = row.template_ar
                self._cache[template_key] = template
        if not template:
            return ""
        return render_template(template, data)

    def set_template(self, key: str, template: Optional[str]) -> None:
        """Update or drop a cached template after an administrative change."""
        if template:
            self._cache[key] = template
        elif key in FALLBACK_TEMPLATES:
            self._cache[key] = FALLBACK_TEMPLATES[key]
        else:
            self._cache.pop(key, None)

    def reset(self) -> None:
        self._cache = dict(FALLBACK_TEMPLATES)


# Singleton instance
notification_engine = NotificationEngine()


# PUBLIC_INTERFACE
async def push_notification(
    *,
    user_id: UUID | str | None = None,
    role: Optional[str] = None,
    title: Optional[str] = None,
    body: Optional[str] = None,
    url: Optional[str] = None,
) -> int:
    """Best-effort push to connected clients; delivery errors are logged, never raised."""
    payload = build_push_payload(title, body, url)
    try:
        return await broadcast_manager.publish_push(payload, user_id=user_id, role=role)
    except Exception:
        logger.exception("Push notification delivery failed")
        return 0
