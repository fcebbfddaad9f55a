"""Async SQLAlchemy engine, session factory and transaction scope.

The engine is created lazily on first call and reused for the lifetime of
the process.  Call ``dispose_engine()`` during graceful shutdown.

Repositories only ``flush()``; a transaction is finalised by whoever opened
the session, either the server's ``get_db`` dependency or a CLI/script
through :func:`session_scope`.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from caregiver_db.config import get_async_url

_POOL_SIZE = int(os.getenv("PG_POOL_SIZE", "5"))
_MAX_OVERFLOW = int(os.getenv("PG_MAX_OVERFLOW", "10"))
_ECHO = os.getenv("PG_ECHO", "").lower() in ("1", "true", "yes")

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Return (and lazily create) the singleton async engine."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            get_async_url(),
            echo=_ECHO,
            pool_size=_POOL_SIZE,
            max_overflow=_MAX_OVERFLOW,
            # Sessions are long-lived between answers; drop dead connections
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return (and lazily create) the async session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Open a session and commit on success, roll back on any error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Dispose the engine's connection pool (call on app shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
