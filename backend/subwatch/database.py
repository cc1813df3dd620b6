"""
Database connection and session management.

The database holds a single table: the persisted subscription collection.
It is rewritten as a whole whenever the persistence service sees the dirty
flag, so there are no column migrations to run.

SQLite notes:
- WAL mode lets the status API read while a flush is writing.
- NullPool opens a connection per operation (required for async SQLite).
- busy_timeout makes a reader wait for the flush instead of failing.
"""
import sqlite3
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from loguru import logger
from subwatch.config import settings
from subwatch.constants import SQLITE_BUSY_TIMEOUT_MS

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    poolclass=NullPool,
    future=True
)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)

# Base class for models
Base = declarative_base()


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable WAL and a busy timeout on SQLite connections."""
    if isinstance(dbapi_conn, sqlite3.Connection):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


async def init_db():
    """Initialize database tables."""
    # Registers the models on Base.metadata
    from subwatch.models import StoredSubscription  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def checkpoint_wal():
    """Consolidate the write-ahead log."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))
            logger.debug("WAL checkpoint completed")
    except Exception as e:
        logger.warning(f"WAL checkpoint failed: {e}")


async def close_db():
    """Close database connections."""
    await checkpoint_wal()
    await engine.dispose()
