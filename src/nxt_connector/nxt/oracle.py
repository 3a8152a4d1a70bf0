"""LedgerOracle — the interface the wallet engine needs from the ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from decimal import Decimal

    from nxt_connector.nxt.models import (
        Balance,
        Block,
        ChainStatus,
        HeightInconsistent,
        NodeState,
        Transaction,
        TransactionInfo,
    )


class LedgerOracle(Protocol):
    """Read and write access to the remote ledger.

    ``NxtClient`` is the production implementation; tests substitute an
    in-memory ledger.
    """

    async def get_block(self, block_id: str) -> Block: ...

    async def get_block_at_height(self, height: int) -> Block: ...

    async def get_block_with_transactions(
        self, height: int, expected_previous_id: str
    ) -> Block | HeightInconsistent: ...

    async def get_unconfirmed_transactions(self) -> list[Transaction]: ...

    async def get_balance(self, address: str) -> Balance: ...

    async def validate_address(self, address: str) -> bool: ...

    async def sign_and_broadcast(
        self,
        sender_secret: str,
        recipient: str,
        amount: Decimal,
        fee: Decimal,
        deadline: int,
    ) -> str: ...

    async def get_transaction(self, transaction_id: str) -> TransactionInfo: ...

    async def get_peer_count(self) -> int: ...

    async def get_status(self) -> ChainStatus: ...

    async def get_node_state(self) -> NodeState: ...
