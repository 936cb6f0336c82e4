"""Async database engine and session factory.

PostgreSQL via asyncpg in deployment; SQLite via aiosqlite in tests and
local runs. The engine is created on first use and disposed by the app
lifespan (or by tests) through reset_engine().

Two ways in:
- get_db: FastAPI dependency, one session per request (registry reads).
- get_session_factory(): for work that outlives the request, such as
  completion notices delivered after the response is sent.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from simtrader.common.config import Settings, get_settings
from simtrader.common.logging import get_logger

logger = get_logger("SYSTEM")

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(settings: Settings) -> dict:
    """Connection-pool options for the configured backend.

    SQLite drivers use a static/null pool that rejects sizing arguments.
    """
    if make_url(settings.database_url).get_backend_name() == "sqlite":
        return {}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
    }


def get_engine() -> AsyncEngine:
    """Return the process-wide async engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=(settings.environment == "development"),
            **_engine_options(settings),
        )
        logger.info(
            "Database engine created",
            extra={"data": {"backend": make_url(settings.database_url).get_backend_name()}},
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to get_engine()."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides an async database session.

    The session closes when the request finishes. Writers commit explicitly.
    """
    async with get_session_factory()() as session:
        yield session


async def reset_engine() -> None:
    """Dispose the engine's pool and forget the engine and session factory."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
