"""NXT data models — blocks, transactions, balances, node status.

Frozen dataclasses built from the NXT HTTP API JSON responses. Amounts
arrive as NQT strings (1 NXT = 10^8 NQT) and are exposed as ``Decimal`` NXT.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

NQT_PER_NXT = 100_000_000


def nqt_to_nxt(value: int | str) -> Decimal:
    """Convert an NQT amount (int or numeric string) to NXT."""
    return Decimal(int(value)) / NQT_PER_NXT


def is_whole_nqt(value: Decimal) -> bool:
    """Whether *value* NXT has no precision finer than one NQT."""
    nqt = value * NQT_PER_NXT
    return nqt == nqt.to_integral_value()


def nxt_to_nqt(value: Decimal) -> int:
    """Convert an NXT amount to whole NQT.

    Raises:
        ValueError: If *value* has more precision than one NQT.
    """
    if not is_whole_nqt(value):
        msg = f"amount {value} is not a whole number of NQT"
        raise ValueError(msg)
    return int(value * NQT_PER_NXT)


# ---------------------------------------------------------------------------
# Transactions & blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """A ledger transaction as seen in a block or in the unconfirmed pool."""

    transaction_id: str
    recipient: str
    sender: str
    amount: Decimal
    fee: Decimal
    phased: bool = False
    confirmations: int = 0
    height: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        height = data.get("height")
        return cls(
            transaction_id=str(data.get("transaction", "")),
            recipient=data.get("recipientRS", ""),
            sender=data.get("senderRS", ""),
            amount=nqt_to_nxt(data.get("amountNQT", 0)),
            fee=nqt_to_nxt(data.get("feeNQT", 0)),
            phased=bool(data.get("phased", False)),
            confirmations=int(data.get("confirmations", 0) or 0),
            # Unconfirmed transactions report the max int height
            height=int(height) if height is not None and int(height) < 2**31 - 1 else None,
        )


@dataclass(frozen=True)
class Block:
    """A block, optionally with its transactions in ledger order."""

    id: str
    height: int
    timestamp: int
    previous_id: str
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Block:
        raw_txs = data.get("transactions", [])
        return cls(
            id=str(data["block"]),
            height=int(data["height"]),
            timestamp=int(data.get("timestamp", 0)),
            previous_id=str(data.get("previousBlock", "")),
            # getBlock without includeTransactions lists bare ids
            transactions=tuple(
                Transaction.from_dict(tx) for tx in raw_txs if isinstance(tx, dict)
            ),
        )


@dataclass(frozen=True)
class HeightInconsistent:
    """No block can be linked at *height*: past the tip, or a fork was detected.

    Returned in place of a :class:`Block`; ends a scan pass without error.
    ``fork`` is set when a block exists at *height* but links to another parent.
    """

    height: int
    reason: str = ""
    fork: bool = False


# ---------------------------------------------------------------------------
# Accounts & node
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Balance:
    """Account balance in NXT."""

    confirmed: Decimal
    unconfirmed: Decimal

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Balance:
        return cls(
            confirmed=nqt_to_nxt(data.get("balanceNQT", 0)),
            unconfirmed=nqt_to_nxt(data.get("unconfirmedBalanceNQT", 0)),
        )


@dataclass(frozen=True)
class TransactionInfo:
    """Details of a single transaction looked up by id."""

    transaction_id: str
    fee: Decimal
    amount: Decimal
    confirmations: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionInfo:
        return cls(
            transaction_id=str(data.get("transaction", "")),
            fee=nqt_to_nxt(data.get("feeNQT", 0)),
            amount=nqt_to_nxt(data.get("amountNQT", 0)),
            confirmations=int(data.get("confirmations", 0) or 0),
        )


@dataclass(frozen=True)
class ChainStatus:
    """Blockchain status of the node."""

    height: int
    version: str
    tip_block_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainStatus:
        # numberOfBlocks counts the genesis block, height does not
        return cls(
            height=int(data.get("numberOfBlocks", 0)) - 1,
            version=str(data.get("version", "")),
            tip_block_id=str(data.get("lastBlock", "")),
        )


@dataclass(frozen=True)
class NodeState:
    """Subset of ``getState`` the connector cares about."""

    is_offline: bool

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeState:
        return cls(is_offline=bool(data.get("isOffline", True)))
