from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Union
from uuid import UUID

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session

from .config import get_settings


_ENGINE: AsyncEngine | None = None
_SESSION_MAKER: async_sessionmaker[AsyncSession] | None = None


def _ensure_engine_initialized() -> None:
    """
    Lazily initialize the AsyncEngine and session maker.
    """
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is None:
        settings = get_settings()
        _ENGINE = create_async_engine(
            settings.async_database_url,
            echo=settings.SQL_ECHO,
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    if _SESSION_MAKER is None:
        _SESSION_MAKER = async_sessionmaker(
            bind=_ENGINE, expire_on_commit=False, autoflush=False, autocommit=False
        )


# PUBLIC_INTERFACE
def get_engine() -> AsyncEngine:
    """Return the global AsyncEngine instance."""
    _ensure_engine_initialized()
    assert _ENGINE is not None
    return _ENGINE


# PUBLIC_INTERFACE
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the global session factory (used by importers and websocket handlers)."""
    _ensure_engine_initialized()
    assert _SESSION_MAKER is not None
    return _SESSION_MAKER


# PUBLIC_INTERFACE
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession suitable for FastAPI dependency injection.
    Ensures engine/session factory is initialized.
    """
    async with get_session_maker()() as session:
        yield session


ACTING_USER_KEY = "app.user_id"
_SET_USER_SQL = text("SELECT set_config('app.user_id', :user_id, true);")


@event.listens_for(Session, "after_begin")
def _apply_acting_user(session: Session, transaction, connection) -> None:
    """
    Re-apply the acting user at the start of every transaction on the session.

    The GUC is transaction-local, so commits and rollbacks never leave a user id
    on a pooled connection.
    """
    user_id = session.info.get(ACTING_USER_KEY)
    if user_id:
        connection.execute(_SET_USER_SQL, {"user_id": user_id})


# PUBLIC_INTERFACE
async def set_current_user(session: AsyncSession, user_id: Union[str, UUID, None]) -> None:
    """
    Set the acting user for the DB session using a custom GUC.

    Row-level policies read it through:
      current_setting('app.user_id', true)

    An empty value means "service context": policies let the request through,
    the same way a platform service key bypasses row security.

    The value is remembered on the session and applied transaction-locally to
    the current transaction (if any) and to every transaction begun later.
    """
    value = str(user_id) if user_id else ""
    if value:
        session.info[ACTING_USER_KEY] = value
    else:
        session.info.pop(ACTING_USER_KEY, None)
    if session.in_transaction():
        await session.execute(_SET_USER_SQL, {"user_id": value})


# PUBLIC_INTERFACE
@asynccontextmanager
async def user_context(
    session: AsyncSession, user_id: Union[str, UUID]
) -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager that sets and resets the acting user on the session.

    Usage:
        async with user_context(session, profile.id):
            # row-level policies evaluate against this user
            ...
    """
    await set_current_user(session, user_id)
    try:
        yield session
    finally:
        session.info.pop(ACTING_USER_KEY, None)
