from __future__ import annotations

import re
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Database settings for the maintenance store.

    Values come from the environment (or .env). Either provide a full
    POSTGRES_URL or the individual POSTGRES_USER / POSTGRES_PASSWORD /
    POSTGRES_DB (+ optional POSTGRES_HOST, POSTGRES_PORT) variables.
    """

    POSTGRES_URL: Optional[str] = Field(
        default=None, description="Full PostgreSQL connection URL; wins over the parts below."
    )
    POSTGRES_USER: Optional[str] = Field(default=None, description="DB username")
    POSTGRES_PASSWORD: Optional[str] = Field(default=None, description="DB password")
    POSTGRES_DB: Optional[str] = Field(default=None, description="Database name")
    POSTGRES_PORT: Optional[int] = Field(default=5432, description="Database port")
    POSTGRES_HOST: Optional[str] = Field(default="localhost", description="Database host")

    # Engine options
    SQL_ECHO: bool = Field(default=False, description="Echo SQL statements for debugging")
    DB_POOL_SIZE: int = Field(default=5, description="Connections kept open in the pool")
    DB_MAX_OVERFLOW: int = Field(default=10, description="Extra connections allowed under load")

    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def database_url(self) -> str:
        """Driver-neutral connection URL built from POSTGRES_URL or the POSTGRES_* parts."""
        if self.POSTGRES_URL:
            return self.POSTGRES_URL

        missing = [
            name
            for name, value in (
                ("POSTGRES_USER", self.POSTGRES_USER),
                ("POSTGRES_PASSWORD", self.POSTGRES_PASSWORD),
                ("POSTGRES_DB", self.POSTGRES_DB),
            )
            if not value
        ]
        if missing:
            raise ValueError(
                "Database configuration missing: set POSTGRES_URL or " + ", ".join(missing) + "."
            )
        host = self.POSTGRES_HOST or "localhost"
        port = self.POSTGRES_PORT or 5432
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{host}:{port}/{self.POSTGRES_DB}"

    @property
    def async_database_url(self) -> str:
        """The same URL pinned to the asyncpg driver for the AsyncEngine."""
        return re.sub(r"^postgres(ql)?(\+\w+)?://", "postgresql+asyncpg://", self.database_url)

    @property
    def sync_database_url(self) -> str:
        """Plain postgresql:// URL used by Alembic in offline mode."""
        return re.sub(r"^postgres(ql)?(\+\w+)?://", "postgresql://", self.database_url)


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return database settings read from the current environment."""
    return Settings()
