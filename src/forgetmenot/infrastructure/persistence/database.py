"""Async engine construction and schema bootstrap."""

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from .orm import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def create_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine for `database_url`.

    SQLite files get their parent directory created; in-memory SQLite shares
    one connection so every session sees the same database.
    """
    url = make_url(database_url)
    is_sqlite = url.get_backend_name() == "sqlite"
    in_memory = is_sqlite and url.database in (None, "", ":memory:")

    if is_sqlite and not in_memory:
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    if in_memory:
        engine = create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    elif is_sqlite:
        engine = create_async_engine(database_url, echo=False, poolclass=NullPool)
    else:
        engine = create_async_engine(database_url, echo=False, pool_pre_ping=True)

    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return engine


async def init_database(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")
