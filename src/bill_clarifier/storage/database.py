"""SQLAlchemy async engine and session factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .models import Base

_engine = None
_session_factory = None


def _create_engine(database_url: str):
    # SQLite (tests, local runs) uses a static pool without sizing options
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url)
    return create_async_engine(database_url, pool_size=10, max_overflow=20)


def init_db(database_url: str):
    """Initialise the async engine and session factory.

    Must be called once at application startup before any database access.
    """
    global _engine, _session_factory
    _engine = _create_engine(database_url)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)


async def create_tables():
    """Create all tables that do not exist yet."""
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def AsyncSessionLocal():
    """Create a new async session, initializing engine from settings if needed.

    Usage:
        async with AsyncSessionLocal() as session:
            # use session
    """
    global _engine, _session_factory

    if _session_factory is None:
        from ..config import Settings
        init_db(Settings().database_url.get_secret_value())

    async with _session_factory() as session:
        yield session


async def close_db():
    """Dispose of the engine connection pool.  Call at shutdown."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
    _engine = None
    _session_factory = None
