"""Singleton wallet rows and the reported-deposit log."""

from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nxt_connector.engine.models.base import Base, TimestampMixin

SINGLETON_ID = 1


class SyncCursorRecord(Base, TimestampMixin):
    """Id and height of the last block fully processed by the deposit scan."""

    __tablename__ = "sync_cursor"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    last_block_id: Mapped[str] = mapped_column(String(32), nullable=False)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    def __repr__(self) -> str:
        return f"<SyncCursorRecord last_block_id={self.last_block_id} height={self.height}>"


class ReportedDepositRecord(Base):
    """A confirmed deposit already returned by a scan pass.

    Rows older than the rescan window are pruned as the cursor advances.
    """

    __tablename__ = "reported_deposits"

    ledger_tx_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    height: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<ReportedDepositRecord ledger_tx_id={self.ledger_tx_id} height={self.height}>"


class WalletMetaRecord(Base, TimestampMixin):
    """Key derivation parameters and the key check token.

    ``key_check`` is NULL for an unencrypted wallet.
    """

    __tablename__ = "wallet_meta"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    salt: Mapped[str] = mapped_column(String(64), nullable=False, comment="Hex KDF salt")
    kdf_iterations: Mapped[int] = mapped_column(Integer, nullable=False)
    key_check: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
