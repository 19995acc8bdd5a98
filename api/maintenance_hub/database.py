# maintenance_hub/database.py
"""
Database engine and sessions for Maintenance Hub.

PostgreSQL through asyncpg by default; DATABASE_URL points it elsewhere
(sqlite+aiosqlite for local runs and tests).
"""
from __future__ import annotations
from typing import Any, AsyncGenerator, Dict
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text

from maintenance_hub.settings import Settings, settings as default_settings


class Base(DeclarativeBase):
    pass


# ============================================================================
# Engine and Session Factory
# ============================================================================

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_database_url(settings: Settings = default_settings) -> str:
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    return (
        f"postgresql+asyncpg://"
        f"{settings.DB_USER}:{settings.DB_PASSWORD}@"
        f"{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
    )


def engine_options(url: str, settings: Settings = default_settings) -> Dict[str, Any]:
    """Keyword arguments for create_async_engine; sqlite takes no pool sizing."""
    opts: Dict[str, Any] = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
    if make_url(url).get_backend_name() != "sqlite":
        opts.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)
    return opts


async def init_db(settings: Settings = default_settings) -> None:
    """Create the engine and session factory once per process."""
    global _engine, _async_session_factory

    if _engine is not None:
        return

    url = get_database_url(settings)
    _engine = create_async_engine(url, **engine_options(url, settings))
    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def close_db() -> None:
    """Close database connections."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None


async def _session_factory() -> async_sessionmaker[AsyncSession]:
    if _async_session_factory is None:
        await init_db()
    return _async_session_factory


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work: commit on success, roll back on error.

        async with get_session_context() as db:
            result = await db.execute(...)
    """
    factory = await _session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency form of get_session_context()."""
    async with get_session_context() as session:
        yield session


# ============================================================================
# Health Check
# ============================================================================

async def check_db_health() -> dict:
    """Check database connectivity and return status."""
    try:
        async with get_session_context() as db:
            await db.scalar(text("SELECT 1"))
        return {"status": "healthy", "database": "connected", "dialect": _engine.dialect.name}
    except Exception as e:
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}
