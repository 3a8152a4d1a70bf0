"""SyncEngine — deposit detection and sweep reconciliation.

Each :meth:`SyncEngine.scan` pass:

1. reads the cursor and the deposit addresses (main account excluded),
2. walks blocks after the cursor one height at a time, each linked to the
   previous block's id, until the oracle reports ``HeightInconsistent``,
3. reports non-phased, non-zero payments to deposit addresses as confirmed
   deposits, in block then ledger order,
4. optionally appends matching entries from the unconfirmed pool,
5. moves the cursor to the last linked block,
6. sweeps every address whose confirmed total for the pass exceeds the fee
   into the main account.

When the cursor block has left the chain, or the block after it links to
another parent, the pass re-links: it resumes from the current chain
``rescan_depth`` blocks below the cursor (or below the tip, when the chain
got shorter). Confirmed deposits are logged in the store as they are
reported, so re-scanned blocks never report one twice. The persisted cursor
only moves to a height at or above its own.

Unconfirmed entries are derived again on every pass and never stored, so a
pending deposit is reported until it is confirmed.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from nxt_connector.engine.types import ObservedDeposit, SweepResult, SyncCursor
from nxt_connector.errors.connector_errors import ConnectorError, NotFoundError
from nxt_connector.nxt.models import HeightInconsistent

if TYPE_CHECKING:
    from collections.abc import Container, Iterable

    from nxt_connector.engine.secret_store import SecretStore
    from nxt_connector.engine.withdrawal import WithdrawalIssuer
    from nxt_connector.metrics.collector import ConnectorMetrics
    from nxt_connector.nxt.models import Block, Transaction
    from nxt_connector.nxt.oracle import LedgerOracle

logger = logging.getLogger(__name__)


class SyncEngine:
    """Advances the sync cursor, reports deposits and sweeps them."""

    def __init__(
        self,
        store: SecretStore,
        oracle: LedgerOracle,
        issuer: WithdrawalIssuer,
        *,
        include_unconfirmed: bool = True,
        rescan_depth: int = 10,
        metrics: ConnectorMetrics | None = None,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._issuer = issuer
        self._include_unconfirmed = include_unconfirmed
        self._rescan_depth = rescan_depth
        self._metrics = metrics

    async def scan(self, *, include_unconfirmed: bool | None = None) -> list[ObservedDeposit]:
        """Run one scan pass.

        Args:
            include_unconfirmed: Override the configured unconfirmed-pool setting.

        Returns:
            Confirmed deposits in block/ledger order, then unconfirmed ones.
        """
        if include_unconfirmed is None:
            include_unconfirmed = self._include_unconfirmed

        if self._metrics:
            with self._metrics.track_scan():
                return await self._scan(include_unconfirmed)
        return await self._scan(include_unconfirmed)

    async def _scan(self, include_unconfirmed: bool) -> list[ObservedDeposit]:
        cursor = await self._store.get_sync_cursor()
        deposit_addresses = await self._store.list_deposit_addresses()
        account_ids = {d.address: d.id for d in deposit_addresses}
        logger.info(
            "Scanning %d deposit addresses for new transactions after block %s",
            len(account_ids),
            cursor.block_id,
        )

        relinked = False
        try:
            start = await self._oracle.get_block(cursor.block_id)
        except NotFoundError:
            if cursor.height is None:
                raise
            logger.warning(
                "Cursor block %s at height %d is no longer on the chain",
                cursor.block_id,
                cursor.height,
            )
            cursor_height = cursor.height
            start = await self._relink(cursor_height)
            relinked = True
        else:
            cursor_height = start.height

        height = start.height
        last_block_id = start.id
        skip: set[str] = await self._store.reported_deposit_ids() if relinked else set()
        confirmed: list[ObservedDeposit] = []
        reported: dict[str, int] = {}

        while True:
            result = await self._oracle.get_block_with_transactions(height + 1, last_block_id)
            if isinstance(result, HeightInconsistent):
                if result.fork and not relinked and height == cursor_height:
                    logger.warning(
                        "Block at height %d does not link to cursor block %s",
                        result.height,
                        last_block_id,
                    )
                    start = await self._relink(cursor_height)
                    height = start.height
                    last_block_id = start.id
                    skip = await self._store.reported_deposit_ids()
                    relinked = True
                    continue
                logger.debug("No linked block at height %d: %s", result.height, result.reason)
                break
            for deposit in self._deposits_in(
                result.transactions, account_ids, confirmed=True, skip=skip
            ):
                confirmed.append(deposit)
                reported[deposit.ledger_tx_id] = result.height
            height = result.height
            last_block_id = result.id

        unconfirmed: list[ObservedDeposit] = []
        if include_unconfirmed:
            pool = await self._oracle.get_unconfirmed_transactions()
            unconfirmed = list(self._deposits_in(pool, account_ids, confirmed=False))

        advance = last_block_id != cursor.block_id and height >= cursor_height
        persisted_height = height if advance else cursor_height
        if advance or reported:
            await self._store.record_scan(
                SyncCursor(block_id=last_block_id, height=height) if advance else None,
                reported,
                keep_from=persisted_height - self._rescan_depth,
            )
        if advance:
            logger.info("Cursor advanced to block %s at height %d", last_block_id, height)
        elif height < cursor_height:
            logger.warning(
                "Current chain ends at height %d, below the cursor at %d; cursor kept",
                height,
                cursor_height,
            )

        if self._metrics:
            self._metrics.set_cursor_height(persisted_height)
            self._metrics.set_deposit_address_count(len(account_ids))
            self._metrics.record_deposits(confirmed=len(confirmed), unconfirmed=len(unconfirmed))

        if confirmed:
            await self._sweep(confirmed, account_ids)

        return confirmed + unconfirmed

    async def _relink(self, from_height: int) -> Block:
        """Pick the block on the oracle's current chain to resume scanning after."""
        status = await self._oracle.get_status()
        anchor_height = max(min(from_height, status.height) - self._rescan_depth, 0)
        anchor = await self._oracle.get_block_at_height(anchor_height)
        logger.warning(
            "Re-linking the scan at block %s, height %d (tip at %d)",
            anchor.id,
            anchor.height,
            status.height,
        )
        if self._metrics:
            self._metrics.record_relink()
        return anchor

    @staticmethod
    def _deposits_in(
        transactions: Iterable[Transaction],
        account_ids: dict[str, int],
        *,
        confirmed: bool,
        skip: Container[str] = frozenset(),
    ) -> Iterable[ObservedDeposit]:
        for tx in transactions:
            if tx.recipient not in account_ids or tx.phased or tx.amount <= 0:
                continue
            if tx.transaction_id in skip:
                logger.debug("Deposit %s was already reported", tx.transaction_id)
                continue
            logger.info(
                "New %s deposit %s: %s NXT to %s",
                "confirmed" if confirmed else "unconfirmed",
                tx.transaction_id,
                tx.amount,
                tx.recipient,
            )
            yield ObservedDeposit(
                target_address=tx.recipient,
                amount=tx.amount,
                confirmed=confirmed,
                confirmation_count=tx.confirmations if confirmed else 0,
                ledger_tx_id=tx.transaction_id,
            )

    async def _sweep(
        self, deposits: list[ObservedDeposit], account_ids: dict[str, int]
    ) -> list[SweepResult]:
        """Sweep each address's confirmed total; one failure does not stop the rest."""
        totals: dict[str, Decimal] = {}
        for deposit in deposits:
            totals[deposit.target_address] = (
                totals.get(deposit.target_address, Decimal(0)) + deposit.amount
            )

        fee = self._issuer.fee
        results: list[SweepResult] = []
        for address, total in totals.items():
            if total <= fee:
                logger.info("Not sweeping %s: %s NXT does not exceed the fee", address, total)
                continue
            amount = total - fee
            try:
                transaction_id = await self._issuer.sweep(account_ids[address], address, total)
            except ConnectorError as exc:
                logger.exception("Sweep of %s NXT from %s failed", amount, address)
                results.append(SweepResult(address=address, amount=amount, error=exc.message))
            else:
                logger.info("Swept %s NXT from %s, transaction %s", amount, address, transaction_id)
                results.append(
                    SweepResult(address=address, amount=amount, transaction_id=transaction_id)
                )
            if self._metrics:
                self._metrics.record_sweep(ok=results[-1].ok)
        return results
