"""
Catalog database lifecycle

One async SQLite engine per process, opened by init_db() at startup and
released by close_db() on shutdown.
"""
import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from tvsync.config import settings
from tvsync.models import Base

logger = logging.getLogger(__name__)

_CATALOG_PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA cache_size = -64000",
    # Deleting a channel removes its programs
    "PRAGMA foreign_keys = ON",
)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _apply_catalog_pragmas(dbapi_conn, _) -> None:
    cursor = dbapi_conn.cursor()
    for pragma in _CATALOG_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory of the open catalog"""
    if _session_factory is None:
        raise RuntimeError("Catalog database is not open. Call init_db() during startup.")
    return _session_factory


async def get_db() -> AsyncIterator[AsyncSession]:
    """Read-only catalog session for FastAPI routes"""
    async with get_session_factory()() as session:
        yield session


async def init_db(database_path: str | None = None) -> None:
    """Open the catalog database and create missing tables"""
    global _engine, _session_factory

    path = database_path or settings.database_path
    logger.info(f"Opening channel catalog at {path}")

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        pool_pre_ping=True,
        connect_args={"timeout": 30, "check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _apply_catalog_pragmas)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    _engine = engine
    _session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    logger.info("Channel catalog ready")


async def close_db() -> None:
    """Dispose the catalog engine"""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Channel catalog closed")


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    Catalog session wrapped in one transaction.

    Commits when the block exits normally and rolls back when it raises,
    so a failed reconciliation leaves the catalog unchanged.
    """
    async with get_session_factory()() as session:
        async with session.begin():
            yield session
