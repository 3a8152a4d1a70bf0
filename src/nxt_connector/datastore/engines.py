"""Async engine for the wallet database.

A wallet database is written by a single connector process. SQLite files
are opened with foreign keys enforced, WAL journaling, full fsync on commit
and a busy timeout; a PostgreSQL wallet gets a small pre-pinged pool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

if TYPE_CHECKING:
    from nxt_connector.config.settings import DatabaseConfig

SQLITE_BUSY_TIMEOUT_MS = 5000

_SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = FULL",
    f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}",
)


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create the async engine for the wallet database named by ``config.dsn``."""
    if make_url(config.dsn).get_backend_name() == "sqlite":
        engine = create_async_engine(config.dsn, echo=config.debug_sql)
        event.listen(engine.sync_engine, "connect", _apply_sqlite_pragmas)
        return engine

    return create_async_engine(
        config.dsn,
        echo=config.debug_sql,
        pool_size=config.max_idle_connections,
        max_overflow=config.max_open_connections - config.max_idle_connections,
        pool_pre_ping=True,
    )


def _apply_sqlite_pragmas(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        for pragma in _SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()
