"""Wallet data models (SQLAlchemy ORM).

Import :data:`ALL_MODELS` for table creation.
"""

from nxt_connector.engine.models.account import AccountRecord
from nxt_connector.engine.models.base import Base, TimestampMixin
from nxt_connector.engine.models.wallet import (
    ReportedDepositRecord,
    SyncCursorRecord,
    WalletMetaRecord,
)

ALL_MODELS: list[type[Base]] = [
    AccountRecord,
    ReportedDepositRecord,
    SyncCursorRecord,
    WalletMetaRecord,
]

__all__ = [
    "ALL_MODELS",
    "AccountRecord",
    "Base",
    "ReportedDepositRecord",
    "SyncCursorRecord",
    "TimestampMixin",
    "WalletMetaRecord",
]
