"""Shared test fixtures for nxt-connector test suite."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from fakes import MAIN_KEY, TEST_KDF_ITERATIONS, TEST_KEY, FakeLedger

from nxt_connector.config.settings import DatabaseEngine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@pytest.fixture
def app_config(tmp_path):
    """Provide a test AppConfig backed by a file SQLite database."""
    from nxt_connector.config.settings import (
        AppConfig,
        DatabaseConfig,
        MetricsConfig,
        WalletConfig,
    )

    return AppConfig(
        debug=True,
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn=f"sqlite+aiosqlite:///{tmp_path / 'wallet.db'}",
        ),
        wallet=WalletConfig(
            encryption_key=TEST_KEY,
            kdf_iterations=TEST_KDF_ITERATIONS,
            fee=Decimal("1"),
            ping_interval=0,
        ),
        metrics=MetricsConfig(enabled=True),
    )


@pytest.fixture
def ledger() -> FakeLedger:
    """Provide an in-memory ledger whose tip is block ``100``."""
    return FakeLedger()


@pytest.fixture
async def datastore(app_config) -> AsyncIterator:
    """Provide an open datastore on a fresh database file."""
    from nxt_connector.datastore.client import Datastore

    ds = Datastore(app_config.db)
    await ds.open()
    yield ds
    await ds.close()


@pytest.fixture
async def store(datastore):
    """Provide an encrypted SecretStore initialized with MAIN_KEY at cursor ``100``."""
    from nxt_connector.engine.secret_store import SecretStore

    secret_store = SecretStore(
        datastore, encryption_key=TEST_KEY, kdf_iterations=TEST_KDF_ITERATIONS
    )
    await secret_store.initialize(MAIN_KEY, "100", 100)
    return secret_store
