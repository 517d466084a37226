"""
Database seeding utilities for minimal reference data.

Seeds:
- Default permission matrix (system_settings.permissions_matrix)
- Built-in notification templates
- Default role feature toggles
- A generic fault category
- Optional admin account (SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD)

Usage:
  python -m maintenance_api.db.run_migrations upgrade head
  python -m maintenance_api.db.seed
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, List, Tuple

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.security import get_password_hash
from maintenance_api.core.settings import get_app_settings
from maintenance_api.db.session import get_async_session
from maintenance_api.services.notifications import FALLBACK_TEMPLATES
from maintenance_api.services.permissions import DEFAULT_MATRIX, PERMISSIONS_MATRIX_KEY

logger = logging.getLogger(__name__)

DEFAULT_FEATURE_TOGGLES: List[Tuple[str, str, bool]] = [
    ("manager", "view_cost", True),
    ("manager", "view_map", True),
    ("manager", "approve_purchase", True),
    ("manager", "delete_ticket", False),
    ("technician", "view_map", True),
    ("technician", "view_cost", False),
]

DEFAULT_CATEGORIES = ["عام"]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with minimal reference data.

    Every step is idempotent; existing rows are left untouched so administrator
    changes survive a restart with AUTO_SEED enabled.
    """
    async for session in get_async_session():
        await _seed_settings(session)
        await _seed_templates(session)
        await _seed_feature_toggles(session)
        await _seed_categories(session)
        await _seed_admin(session)
        await session.commit()


async def _seed_settings(session: AsyncSession) -> None:
    await session.execute(
        text(
            """
            INSERT INTO system_settings (key, value)
            VALUES (:key, CAST(:value AS jsonb))
            ON CONFLICT (key) DO NOTHING
            """
        ),
        {"key": PERMISSIONS_MATRIX_KEY, "value": json.dumps(DEFAULT_MATRIX)},
    )


async def _seed_templates(session: AsyncSession) -> None:
    for key, template in FALLBACK_TEMPLATES.items():
        await session.execute(
            text(
                """
                INSERT INTO notification_templates (key, template_ar, is_active)
                VALUES (:key, :template, true)
                ON CONFLICT (key) DO NOTHING
                """
            ),
            {"key": key, "template": template},
        )


async def _seed_feature_toggles(session: AsyncSession) -> None:
    for role, feature_key, enabled in DEFAULT_FEATURE_TOGGLES:
        await session.execute(
            text(
                """
                INSERT INTO role_permissions (role, feature_key, is_enabled)
                VALUES (:role, :feature_key, :enabled)
                ON CONFLICT (role, feature_key) DO NOTHING
                """
            ),
            {"role": role, "feature_key": feature_key, "enabled": enabled},
        )


async def _seed_categories(session: AsyncSession) -> None:
    for name in DEFAULT_CATEGORIES:
        await session.execute(
            text(
                """
                INSERT INTO fault_categories (name_ar, is_active)
                VALUES (:name, true)
                ON CONFLICT (name_ar) DO NOTHING
                """
            ),
            {"name": name},
        )


async def _seed_admin(session: AsyncSession) -> None:
    """Create the bootstrap admin account and profile when configured."""
    settings = get_app_settings()
    email, password = settings.SEED_ADMIN_EMAIL, settings.SEED_ADMIN_PASSWORD
    if not email or not password:
        return

    email = email.strip().lower()
    res = await session.execute(text("SELECT id FROM auth_users WHERE email = :email"), {"email": email})
    row = res.first()
    if row:
        user_id = row[0]
    else:
        metadata: Dict[str, str] = {"full_name": "Administrator", "role": "admin"}
        inserted = await session.execute(
            text(
                """
                INSERT INTO auth_users (email, hashed_password, email_confirmed_at, user_metadata)
                VALUES (:email, :password, now(), CAST(:metadata AS jsonb))
                RETURNING id
                """
            ),
            {"email": email, "password": get_password_hash(password), "metadata": json.dumps(metadata)},
        )
        user_id = inserted.scalar_one()
        logger.info("Seeded admin account %s", email)

    await session.execute(
        text(
            """
            INSERT INTO profiles (id, email, full_name, role, status)
            VALUES (:id, :email, 'Administrator', 'admin', 'active')
            ON CONFLICT (id) DO NOTHING
            """
        ),
        {"id": str(user_id), "email": email},
    )


if __name__ == "__main__":
    asyncio.run(seed_all())
