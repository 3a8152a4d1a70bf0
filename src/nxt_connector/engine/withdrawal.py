"""WithdrawalIssuer — outbound payments and internal sweeps.

Both paths sign with a secret borrowed from the store for a single
``sign_and_broadcast`` call, pay the fixed fee and use the same validity
window.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nxt_connector.errors.connector_errors import InsufficientFundsError, InvalidInputError
from nxt_connector.errors.definitions import (
    ErrAmountPrecision,
    ErrInvalidAddress,
    ErrNonPositiveAmount,
)
from nxt_connector.nxt.models import is_whole_nqt

if TYPE_CHECKING:
    from decimal import Decimal

    from nxt_connector.engine.lock_gate import LockGate
    from nxt_connector.engine.secret_store import SecretStore
    from nxt_connector.metrics.collector import ConnectorMetrics
    from nxt_connector.nxt.oracle import LedgerOracle

logger = logging.getLogger(__name__)


class WithdrawalIssuer:
    """Issues spends from wallet accounts through the ledger oracle."""

    def __init__(
        self,
        store: SecretStore,
        oracle: LedgerOracle,
        gate: LockGate,
        *,
        fee: Decimal,
        deadline: int,
        metrics: ConnectorMetrics | None = None,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._gate = gate
        self._fee = fee
        self._deadline = deadline
        self._metrics = metrics

    @property
    def fee(self) -> Decimal:
        return self._fee

    async def send_to(self, address: str, amount: Decimal) -> str:
        """Send *amount* NXT from the main account to *address*.

        Checks run in order: lock gate, amount, address validity, balance.
        Nothing is broadcast unless all of them pass.

        Returns:
            The ledger transaction id.

        Raises:
            PreconditionFailedError: If the wallet is locked.
            InvalidInputError: For a non-positive amount, an amount finer than
                one NQT, or an invalid address.
            InsufficientFundsError: If ``amount + fee`` exceeds the main balance.
        """
        self._gate.require_unlocked()
        if not amount.is_finite() or amount <= 0:
            raise ErrNonPositiveAmount
        if not is_whole_nqt(amount):
            raise ErrAmountPrecision
        if not await self._oracle.validate_address(address):
            raise ErrInvalidAddress

        main = await self._store.get_main_account()
        balance = await self._oracle.get_balance(main.address)
        if amount + self._fee > balance.confirmed:
            logger.warning(
                "Main account lacks funds. Available: %s NXT, requested: %s NXT, fee: %s NXT",
                balance.confirmed,
                amount,
                self._fee,
            )
            raise InsufficientFundsError(
                f"main account balance {balance.confirmed} cannot cover {amount} + fee {self._fee}",
                code="insufficient-funds",
            )

        logger.info("Sending %s NXT to %s", amount, address)
        async with self._store.use_secret(main.id) as secret:
            transaction_id = await self._oracle.sign_and_broadcast(
                secret, address, amount, self._fee, self._deadline
            )
        if self._metrics:
            self._metrics.record_withdrawal()
        logger.info("Sent %s NXT to %s, transaction %s", amount, address, transaction_id)
        return transaction_id

    async def sweep(self, account_id: int, from_address: str, aggregate: Decimal) -> str:
        """Move ``aggregate - fee`` from a deposit account to the main account.

        Raises:
            InvalidInputError: If the aggregate does not exceed the fee.
        """
        amount = aggregate - self._fee
        if amount <= 0:
            msg = f"balance {aggregate} of {from_address} does not cover the fee"
            raise InvalidInputError(msg, code="sweep-below-fee")

        main = await self._store.get_main_account()
        logger.info(
            "Sweeping %s NXT from %s (deposit account) to %s (main account)",
            amount,
            from_address,
            main.address,
        )
        async with self._store.use_secret(account_id) as secret:
            return await self._oracle.sign_and_broadcast(
                secret, main.address, amount, self._fee, self._deadline
            )
