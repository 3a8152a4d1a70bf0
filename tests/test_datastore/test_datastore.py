"""Tests for datastore abstraction — engines and client."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import text

from nxt_connector.config.settings import DatabaseConfig
from nxt_connector.datastore.client import Datastore
from nxt_connector.datastore.engines import create_engine
from nxt_connector.engine.models import Base

if TYPE_CHECKING:
    from pathlib import Path


def _file_config(tmp_path: Path) -> DatabaseConfig:
    return DatabaseConfig(engine="sqlite", dsn=f"sqlite+aiosqlite:///{tmp_path / 'ds.db'}")


# ---------------------------------------------------------------------------
# Engine factory
# ---------------------------------------------------------------------------


class TestCreateEngine:
    """Test engine factory."""

    async def test_create_sqlite_engine(self) -> None:
        config = DatabaseConfig(engine="sqlite", dsn="sqlite+aiosqlite:///:memory:")
        engine = create_engine(config)
        assert engine is not None
        await engine.dispose()

    async def test_engine_echo_flag(self) -> None:
        config = DatabaseConfig(
            engine="sqlite",
            dsn="sqlite+aiosqlite:///:memory:",
            debug_sql=True,
        )
        engine = create_engine(config)
        assert engine.echo is True
        await engine.dispose()

    async def test_sqlite_pragmas(self, tmp_path: Path) -> None:
        engine = create_engine(_file_config(tmp_path))
        try:
            async with engine.connect() as conn:
                assert (await conn.execute(text("PRAGMA foreign_keys"))).scalar_one() == 1
                assert (await conn.execute(text("PRAGMA journal_mode"))).scalar_one() == "wal"
                assert (await conn.execute(text("PRAGMA busy_timeout"))).scalar_one() == 5000
        finally:
            await engine.dispose()


# ---------------------------------------------------------------------------
# Datastore client
# ---------------------------------------------------------------------------


class TestDatastore:
    """Test Datastore lifecycle, sessions and schema management."""

    async def test_open_close(self, tmp_path: Path) -> None:
        ds = Datastore(_file_config(tmp_path))
        assert not ds.is_open
        await ds.open()
        assert ds.is_open
        await ds.close()
        assert not ds.is_open

    async def test_close_idempotent(self, tmp_path: Path) -> None:
        ds = Datastore(_file_config(tmp_path))
        await ds.close()
        assert not ds.is_open

    def test_engine_requires_open(self, tmp_path: Path) -> None:
        ds = Datastore(_file_config(tmp_path))
        with pytest.raises(RuntimeError, match="not open"):
            _ = ds.engine

    def test_session_requires_open(self, tmp_path: Path) -> None:
        ds = Datastore(_file_config(tmp_path))
        with pytest.raises(RuntimeError, match="not open"):
            ds.session()

    async def test_session_executes(self, tmp_path: Path) -> None:
        ds = Datastore(_file_config(tmp_path))
        await ds.open()
        try:
            async with ds.session() as session:
                result = await session.execute(text("SELECT 1"))
                assert result.scalar_one() == 1
        finally:
            await ds.close()

    async def test_create_and_drop_tables(self, tmp_path: Path) -> None:
        ds = Datastore(_file_config(tmp_path))
        await ds.open()
        try:
            assert await ds.has_table("accounts") is False
            await ds.create_tables(Base)
            assert await ds.has_table("accounts") is True
            assert await ds.has_table("sync_cursor") is True
            assert await ds.has_table("wallet_meta") is True
            assert await ds.has_table("reported_deposits") is True
            await ds.drop_tables(Base)
            assert await ds.has_table("accounts") is False
        finally:
            await ds.close()
