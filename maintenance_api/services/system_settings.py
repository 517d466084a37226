from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from maintenance_api.repositories.configuration import ConfigurationRepository
from maintenance_api.services.permissions import DEFAULT_MATRIX, PERMISSIONS_MATRIX_KEY, PermissionMatrix

logger = logging.getLogger(__name__)


class SystemSettingsStore:
    """
    In-process cache of the `system_settings` key/value rows.

    The cache is loaded lazily on first use and can be reloaded with refresh().
    update() writes through to the database and then updates the local copy.
    """

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    # PUBLIC_INTERFACE
    async def refresh(self, repo: ConfigurationRepository) -> Dict[str, Any]:
        """Reload every setting from the database and return a snapshot."""
        async with self._lock:
            values = await repo.all_settings()
            self._values = dict(values)
            self._loaded = True
            logger.info("Loaded %d system settings", len(self._values))
            return dict(self._values)

    # PUBLIC_INTERFACE
    async def ensure_loaded(self, repo: ConfigurationRepository) -> None:
        """Load settings once; on failure keep serving built-in defaults."""
        if self._loaded:
            return
        try:
            await self.refresh(repo)
        except Exception:
            logger.exception("Failed to load system settings; using defaults")

    # PUBLIC_INTERFACE
    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Return the cached value for key, or default when absent or null."""
        value = self._values.get(key)
        return default if value is None else value

    # PUBLIC_INTERFACE
    async def update(self, repo: ConfigurationRepository, key: str, value: Any) -> None:
        """Upsert a setting and update the cached copy after commit."""
        await repo.upsert_setting(key, value)
        await repo.commit()
        self._values[key] = value
        logger.info("System setting '%s' updated", key)

    # PUBLIC_INTERFACE
    def permissions_matrix(self) -> PermissionMatrix:
        """Return the stored permission matrix or the built-in default."""
        value = self.get(PERMISSIONS_MATRIX_KEY, DEFAULT_MATRIX)
        if not isinstance(value, dict):
            logger.warning("Stored permissions matrix is not an object; using default")
            return DEFAULT_MATRIX
        return value

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._values)

    def clear(self) -> None:
        self._values = {}
        self._loaded = False


# Singleton instance
settings_store = SystemSettingsStore()
