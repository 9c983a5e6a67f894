"""Database connection and session management."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from incentive_engine.config import get_settings
from incentive_engine.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine."""
    url = database_url or get_settings().database_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory used by services and the API."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Initialize database engine and session factory."""
    global _engine, _session_factory
    if _engine is None or _session_factory is None:
        _engine = get_engine()
        _session_factory = make_session_factory(_engine)
    return _engine, _session_factory


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory."""
    _, factory = init_db()
    return factory


async def dispose_db() -> None:
    """Dispose the global engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def acquire_advisory_xact_lock(session: AsyncSession, key: str) -> None:
    """Take a transaction-scoped advisory lock for ``key``.

    Only PostgreSQL supports advisory locks; on other backends this is a
    no-op and callers rely on the in-process keyed lock plus the unique
    constraint instead.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": key},
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create any incentive tables the database does not have yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def missing_tables(session: AsyncSession) -> list[str]:
    """Model tables absent from the connected database, sorted by name."""

    def table_names(sync_session) -> set[str]:
        return set(inspect(sync_session.connection()).get_table_names())

    present = await session.run_sync(table_names)
    return sorted(set(Base.metadata.tables) - present)
