"""Tests for WithdrawalIssuer — withdrawals and sweeps."""

from __future__ import annotations

from decimal import Decimal

import pytest
from fakes import DEPOSIT_KEY, MAIN_KEY, OUTSIDER, TEST_KEY, FakeLedger

from nxt_connector.engine.lock_gate import LockGate
from nxt_connector.engine.secret_store import SecretStore
from nxt_connector.engine.withdrawal import WithdrawalIssuer
from nxt_connector.errors.connector_errors import (
    InsufficientFundsError,
    InvalidInputError,
    PreconditionFailedError,
)
from nxt_connector.metrics.collector import ConnectorMetrics
from nxt_connector.nxt.models import Balance


@pytest.fixture
def gate(store: SecretStore) -> LockGate:
    return LockGate(store)


@pytest.fixture
def issuer(store: SecretStore, ledger: FakeLedger, gate: LockGate) -> WithdrawalIssuer:
    ledger.balances[MAIN_KEY.address] = Balance(confirmed=Decimal("100"), unconfirmed=Decimal(100))
    return WithdrawalIssuer(store, ledger, gate, fee=Decimal("1"), deadline=1440)


# ---------------------------------------------------------------------------
# send_to
# ---------------------------------------------------------------------------


class TestSendTo:
    async def test_locked_wallet_rejected(
        self, issuer: WithdrawalIssuer, ledger: FakeLedger
    ) -> None:
        with pytest.raises(PreconditionFailedError):
            await issuer.send_to(OUTSIDER, Decimal("5"))
        assert ledger.broadcasts == []

    async def test_send(self, issuer: WithdrawalIssuer, gate: LockGate, ledger: FakeLedger) -> None:
        gate.unlock(TEST_KEY)
        tx_id = await issuer.send_to(OUTSIDER, Decimal("5"))
        assert len(ledger.broadcasts) == 1
        sent = ledger.broadcasts[0]
        assert sent.transaction_id == tx_id
        assert sent.sender == MAIN_KEY.address
        assert sent.recipient == OUTSIDER
        assert sent.amount == Decimal("5")
        assert sent.fee == Decimal("1")
        assert sent.deadline == 1440

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("NaN")])
    async def test_non_positive_amount(
        self, issuer: WithdrawalIssuer, gate: LockGate, ledger: FakeLedger, amount: Decimal
    ) -> None:
        gate.unlock(TEST_KEY)
        with pytest.raises(InvalidInputError) as exc_info:
            await issuer.send_to(OUTSIDER, amount)
        assert exc_info.value.code == "non-positive-amount"
        assert ledger.broadcasts == []

    @pytest.mark.parametrize("amount", [Decimal("0.000000001"), Decimal("1.123456789")])
    async def test_amount_finer_than_nqt(
        self, issuer: WithdrawalIssuer, gate: LockGate, ledger: FakeLedger, amount: Decimal
    ) -> None:
        gate.unlock(TEST_KEY)
        with pytest.raises(InvalidInputError) as exc_info:
            await issuer.send_to(OUTSIDER, amount)
        assert exc_info.value.code == "amount-precision"
        assert ledger.broadcasts == []

    async def test_smallest_amount_accepted(
        self, issuer: WithdrawalIssuer, gate: LockGate, ledger: FakeLedger
    ) -> None:
        gate.unlock(TEST_KEY)
        await issuer.send_to(OUTSIDER, Decimal("0.00000001"))
        assert ledger.broadcasts[0].amount == Decimal("0.00000001")

    async def test_invalid_address(
        self, issuer: WithdrawalIssuer, gate: LockGate, ledger: FakeLedger
    ) -> None:
        gate.unlock(TEST_KEY)
        ledger.invalid_addresses.add(OUTSIDER)
        with pytest.raises(InvalidInputError) as exc_info:
            await issuer.send_to(OUTSIDER, Decimal("1"))
        assert exc_info.value.code == "invalid-address"
        assert ledger.broadcasts == []

    async def test_amount_plus_fee_must_be_covered(
        self, issuer: WithdrawalIssuer, gate: LockGate, ledger: FakeLedger
    ) -> None:
        gate.unlock(TEST_KEY)
        with pytest.raises(InsufficientFundsError):
            await issuer.send_to(OUTSIDER, Decimal("99.5"))
        assert ledger.broadcasts == []

    async def test_exact_balance_allowed(
        self, issuer: WithdrawalIssuer, gate: LockGate, ledger: FakeLedger
    ) -> None:
        gate.unlock(TEST_KEY)
        await issuer.send_to(OUTSIDER, Decimal("99"))
        assert ledger.broadcasts[0].amount == Decimal("99")

    async def test_unconfirmed_balance_not_spendable(
        self, issuer: WithdrawalIssuer, gate: LockGate, ledger: FakeLedger
    ) -> None:
        gate.unlock(TEST_KEY)
        ledger.balances[MAIN_KEY.address] = Balance(
            confirmed=Decimal("2"), unconfirmed=Decimal("50")
        )
        with pytest.raises(InsufficientFundsError):
            await issuer.send_to(OUTSIDER, Decimal("10"))

    async def test_withdrawal_metric(
        self, store: SecretStore, ledger: FakeLedger, gate: LockGate
    ) -> None:
        metrics = ConnectorMetrics()
        ledger.balances[MAIN_KEY.address] = Balance(confirmed=Decimal(10), unconfirmed=Decimal(10))
        issuer = WithdrawalIssuer(
            store, ledger, gate, fee=Decimal("1"), deadline=60, metrics=metrics
        )
        gate.unlock(TEST_KEY)
        await issuer.send_to(OUTSIDER, Decimal("1"))
        assert metrics.registry.get_sample_value("nxt_withdrawals_total") == 1.0


# ---------------------------------------------------------------------------
# sweep
# ---------------------------------------------------------------------------


class TestSweep:
    async def test_sweep_moves_aggregate_minus_fee(
        self, issuer: WithdrawalIssuer, store: SecretStore, ledger: FakeLedger
    ) -> None:
        account_id = await store.add_account(DEPOSIT_KEY)
        await issuer.sweep(account_id, DEPOSIT_KEY.address, Decimal("5.5"))
        sent = ledger.broadcasts[0]
        assert sent.sender == DEPOSIT_KEY.address
        assert sent.recipient == MAIN_KEY.address
        assert sent.amount == Decimal("4.5")

    async def test_sweep_ignores_lock(
        self, issuer: WithdrawalIssuer, store: SecretStore, gate: LockGate, ledger: FakeLedger
    ) -> None:
        assert gate.is_locked
        account_id = await store.add_account(DEPOSIT_KEY)
        await issuer.sweep(account_id, DEPOSIT_KEY.address, Decimal("3"))
        assert len(ledger.broadcasts) == 1

    @pytest.mark.parametrize("aggregate", [Decimal("1"), Decimal("0.5")])
    async def test_sweep_below_fee(
        self,
        issuer: WithdrawalIssuer,
        store: SecretStore,
        ledger: FakeLedger,
        aggregate: Decimal,
    ) -> None:
        account_id = await store.add_account(DEPOSIT_KEY)
        with pytest.raises(InvalidInputError):
            await issuer.sweep(account_id, DEPOSIT_KEY.address, aggregate)
        assert ledger.broadcasts == []
