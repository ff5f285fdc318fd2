"""Engine and session lifecycle for the permits directory database.

PostgreSQL (asyncpg) is the production target; SQLite (aiosqlite) backs local
runs and tests. One engine is shared per process and disposed by
:func:`close_db`, which the CLI calls at the end of every command.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from permitdex.config import DBConfig, get_config
from permitdex.db.models import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def engine_options(db_config: DBConfig) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` for the configured backend.

    An in-memory SQLite database lives only as long as its connection, so it
    is pinned to a single shared connection; pool sizing applies to server
    databases only.
    """
    url = make_url(db_config.url)
    options: dict[str, Any] = {"echo": db_config.echo}

    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        return options

    options.update(
        pool_size=db_config.pool_size,
        max_overflow=db_config.pool_max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
    return options


def get_engine() -> AsyncEngine:
    """Process-wide async engine, created from ``DATABASE_URL`` on first use.

    Raises:
        KeyError: If DATABASE_URL is not configured
    """
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = create_async_engine(db_config.url, **engine_options(db_config))
        logger.debug(f"Created {_engine.dialect.name} engine")

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        # Imported rows are read back after commit by the CLI summaries
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: committed on success, rolled back on any error.

    Usage:
        async with get_session() as session:
            result = await session.execute(query)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(drop: bool = False) -> None:
    """Create the directory tables and the import log (``drop`` recreates them)."""
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
            logger.warning("Dropped all permitdex tables")
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")


async def close_db() -> None:
    """Dispose the shared engine; the next call to :func:`get_engine` recreates it."""
    global _engine, _session_factory

    if _engine is None:
        return

    await _engine.dispose()
    _engine = None
    _session_factory = None
