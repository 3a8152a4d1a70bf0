"""Domain types shared by the wallet engine components."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal


class AccountRole(enum.StrEnum):
    """Role of a wallet account."""

    MAIN = "main"
    DEPOSIT = "deposit"


@dataclass(frozen=True)
class Account:
    """A wallet account without its secret material."""

    id: int
    role: AccountRole
    address: str

    @property
    def is_main(self) -> bool:
        return self.role == AccountRole.MAIN


@dataclass(frozen=True)
class DepositAddress:
    """Projection of a deposit account used when scanning."""

    id: int
    address: str


@dataclass(frozen=True)
class SyncCursor:
    """Last block fully processed by the deposit scan."""

    block_id: str
    height: int | None = None


@dataclass(frozen=True)
class ObservedDeposit:
    """An incoming payment to a deposit address, reported by a scan pass."""

    target_address: str
    amount: Decimal
    confirmed: bool
    confirmation_count: int
    ledger_tx_id: str


@dataclass(frozen=True)
class SweepResult:
    """Outcome of moving one deposit address's funds to the main account."""

    address: str
    amount: Decimal
    transaction_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.transaction_id is not None


@dataclass(frozen=True)
class WalletInfo:
    """Summary returned by ``NxtConnector.get_info``."""

    connections: int
    last_block: int
    reserves: Decimal
    version: str
