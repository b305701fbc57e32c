"""Engine and session singletons for BOQMatch.

PostgreSQL (asyncpg) gets a tuned connection pool; SQLite (aiosqlite) gets
foreign-key enforcement so item rows cascade with their upload.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from boqmatch.config import DBConfig, get_config
from boqmatch.db.models import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _is_sqlite(url: str) -> bool:
    return url.lower().startswith("sqlite")


def _pool_options(db_config: DBConfig) -> dict:
    if _is_sqlite(db_config.url):
        return {}
    return {
        "pool_size": db_config.pool_size,
        "max_overflow": db_config.pool_max_overflow,
        "pool_timeout": db_config.pool_timeout,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it from config on first use.

    Raises:
        KeyError: If DATABASE_URL is not configured
    """
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = create_async_engine(db_config.url, echo=db_config.echo, **_pool_options(db_config))
        if _is_sqlite(db_config.url):
            _enable_sqlite_foreign_keys(_engine)

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Session that commits on success and rolls back on any error."""
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(drop: bool = False) -> None:
    """Create the schema (drop it first with ``drop=True``)."""
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine; the next call to get_engine() creates a fresh one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
