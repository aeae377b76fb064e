"""Async SQLAlchemy session factory."""
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings
from models.base import Base

# Seconds a SQLite connection waits for another transaction's write lock
SQLITE_BUSY_TIMEOUT = 30.0


def enable_sqlite_write_locking(engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction take the database write lock when it begins.

    The sqlite3 driver normally defers BEGIN until the first INSERT/UPDATE, so
    reads at the start of a transaction (the per-user FOR UPDATE select and
    the position count) would run outside it; SQLite also ignores FOR UPDATE.
    Disabling the driver's implicit transactions and emitting BEGIN IMMEDIATE
    ourselves serializes writers for the whole request transaction instead.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create the async engine, applying SQLite write locking when needed."""
    if not database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False, pool_pre_ping=True, **kwargs)

    connect_args = {"timeout": SQLITE_BUSY_TIMEOUT, **kwargs.pop("connect_args", {})}
    engine = create_async_engine(
        database_url, echo=False, connect_args=connect_args, **kwargs,
    )
    enable_sqlite_write_locking(engine)
    return engine


settings = get_settings()

engine = build_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables() -> None:
    """Create any missing tables for the registered models."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Release all pooled connections."""
    await engine.dispose()


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield an async database session.

    Uses unit-of-work pattern: services use flush() for refreshing objects,
    commit happens once here at request end. Row locks taken by the bookmark
    service are held until this commit, so a user's ordering changes are
    applied atomically or rolled back together.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
