"""NxtConnector — the exchange-facing wallet connector.

Owns the datastore, the ledger oracle and the wallet components, and maps
the exchange wallet interface onto them. All substantive work is delegated:
key storage to :class:`SecretStore`, spend gating to :class:`LockGate`,
deposit scanning to :class:`SyncEngine` and payments to
:class:`WithdrawalIssuer`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from nxt_connector.errors.connector_errors import ConnectorError
from nxt_connector.errors.definitions import ErrInvalidTransactionId
from nxt_connector.nxt.keys import generate_account

if TYPE_CHECKING:
    from decimal import Decimal

    from nxt_connector.config.settings import AppConfig
    from nxt_connector.datastore.client import Datastore
    from nxt_connector.engine.lock_gate import LockGate
    from nxt_connector.engine.secret_store import SecretStore
    from nxt_connector.engine.sync_engine import SyncEngine
    from nxt_connector.engine.types import ObservedDeposit, WalletInfo
    from nxt_connector.engine.withdrawal import WithdrawalIssuer
    from nxt_connector.metrics.collector import ConnectorMetrics
    from nxt_connector.nxt.client import NxtClient
    from nxt_connector.nxt.oracle import LedgerOracle

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Connector not initialized. Call initialize() first."


class NxtConnector:
    """Wallet connector session for one NXT wallet.

    Lock state and the encryption key belong to this instance, so several
    connectors (one per wallet) can coexist in a process. Calls must be
    awaited one at a time.

    Usage::

        connector = NxtConnector(config)
        await connector.initialize()
        try:
            deposits = await connector.list_transactions()
        finally:
            await connector.close()
    """

    def __init__(self, config: AppConfig, *, oracle: LedgerOracle | None = None) -> None:
        """Initialize the connector with configuration.

        Args:
            config: Application configuration.
            oracle: Ledger oracle to use instead of an ``NxtClient`` built
                from ``config.nxt``. The caller keeps ownership of it.
        """
        self._config = config
        self._initialized = False
        self._external_oracle = oracle

        self._datastore: Datastore | None = None
        self._nxt_client: NxtClient | None = None
        self._oracle: LedgerOracle | None = None
        self._store: SecretStore | None = None
        self._gate: LockGate | None = None
        self._issuer: WithdrawalIssuer | None = None
        self._sync: SyncEngine | None = None
        self._metrics: ConnectorMetrics | None = None

    async def initialize(self) -> None:
        """Open the wallet, creating it on first use, and wire the components.

        A new wallet gets a fresh main account and starts scanning at the
        ledger's current tip.

        Raises:
            RuntimeError: If already initialized.
            AuthError: If the configured key cannot open an existing wallet.
        """
        if self._initialized:
            msg = "Connector already initialized"
            raise RuntimeError(msg)

        # Import here to avoid circular deps
        from nxt_connector.datastore.client import Datastore
        from nxt_connector.engine.lock_gate import LockGate
        from nxt_connector.engine.secret_store import SecretStore
        from nxt_connector.engine.sync_engine import SyncEngine
        from nxt_connector.engine.withdrawal import WithdrawalIssuer
        from nxt_connector.metrics.collector import ConnectorMetrics
        from nxt_connector.nxt.client import NxtClient

        wallet = self._config.wallet

        if self._external_oracle is not None:
            self._oracle = self._external_oracle
        else:
            self._nxt_client = NxtClient(self._config.nxt)
            await self._nxt_client.connect()
            self._oracle = self._nxt_client

        self._datastore = Datastore(self._config.db)
        await self._datastore.open()

        try:
            self._store = SecretStore(
                self._datastore,
                encryption_key=wallet.encryption_key,
                kdf_iterations=wallet.kdf_iterations,
            )
            if await self._store.exists():
                await self._store.open()
            else:
                status = await self._oracle.get_status()
                await self._store.initialize(
                    generate_account(), status.tip_block_id, status.height
                )
        except BaseException:
            await self._release()
            raise

        if self._config.metrics.enabled:
            self._metrics = ConnectorMetrics()

        self._gate = LockGate(self._store)
        self._issuer = WithdrawalIssuer(
            self._store,
            self._oracle,
            self._gate,
            fee=wallet.fee,
            deadline=wallet.deadline,
            metrics=self._metrics,
        )
        self._sync = SyncEngine(
            self._store,
            self._oracle,
            self._issuer,
            include_unconfirmed=wallet.include_unconfirmed,
            rescan_depth=wallet.rescan_depth,
            metrics=self._metrics,
        )

        self._initialized = True
        logger.info("NXT connector initialized")

    async def close(self) -> None:
        """Release the datastore and HTTP client.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return
        self._sync = None
        self._issuer = None
        self._gate = None
        self._store = None
        self._metrics = None
        await self._release()
        self._initialized = False

    async def _release(self) -> None:
        if self._nxt_client is not None:
            await self._nxt_client.close()
            self._nxt_client = None
        self._oracle = None
        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

    # ------------------------------------------------------------------
    # Component access
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        """Check if the connector is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def oracle(self) -> LedgerOracle:
        """Get the ledger oracle."""
        if self._oracle is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._oracle

    @property
    def store(self) -> SecretStore:
        """Get the secret store."""
        if self._store is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._store

    @property
    def gate(self) -> LockGate:
        """Get the lock gate."""
        if self._gate is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._gate

    @property
    def issuer(self) -> WithdrawalIssuer:
        """Get the withdrawal issuer."""
        if self._issuer is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._issuer

    @property
    def sync_engine(self) -> SyncEngine:
        """Get the deposit sync engine."""
        if self._sync is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._sync

    @property
    def metrics(self) -> ConnectorMetrics | None:
        """Get the connector metrics (None if disabled)."""
        return self._metrics

    # ------------------------------------------------------------------
    # Exchange wallet interface
    # ------------------------------------------------------------------

    async def generate_address(self) -> str:
        """Create a new deposit account and return its address."""
        logger.info("Generating new deposit address")
        account = generate_account()
        await self.store.add_account(account)
        logger.info("Generated deposit address %s", account.address)
        return account.address

    async def get_info(self) -> WalletInfo:
        """Peer count, ledger height, main account reserves and node version."""
        from nxt_connector.engine.types import WalletInfo

        main = await self.store.get_main_account()
        balance = await self.oracle.get_balance(main.address)
        connections = await self.oracle.get_peer_count()
        status = await self.oracle.get_status()
        return WalletInfo(
            connections=connections,
            last_block=status.height,
            reserves=balance.unconfirmed,
            version=status.version,
        )

    async def is_address_valid(self, address: str) -> bool:
        """Ask the node whether *address* is a valid account address."""
        valid = await self.oracle.validate_address(address)
        logger.info("Address %r is %s", address, "valid" if valid else "invalid")
        return valid

    async def list_transactions(self) -> list[ObservedDeposit]:
        """Run one deposit scan pass; confirmed deposits are reported once."""
        return await self.sync_engine.scan()

    async def send_to(self, address: str, amount: Decimal) -> str:
        """Withdraw *amount* NXT from the main account to *address*."""
        return await self.issuer.send_to(address, amount)

    async def get_transaction_fees(self, transaction_id: str) -> Decimal:
        """Fee paid by a transaction previously returned by :meth:`send_to`.

        Raises:
            InvalidInputError: If *transaction_id* is not an unsigned 64-bit integer.
        """
        try:
            numeric_id = int(transaction_id)
        except ValueError:
            numeric_id = -1
        if not transaction_id.isdigit() or not 0 <= numeric_id < 2**64:
            logger.warning("Unable to parse %r as a transaction id", transaction_id)
            raise ErrInvalidTransactionId
        info = await self.oracle.get_transaction(str(numeric_id))
        return info.fee

    async def ping(self) -> None:
        """Wait until the node reports itself online.

        Polls without an attempt limit, sleeping ``wallet.ping_interval``
        seconds between polls. Failed polls count as offline.
        """
        interval = self._config.wallet.ping_interval
        logger.info("Waiting for NXT node to come online")
        while True:
            try:
                state = await self.oracle.get_node_state()
            except ConnectorError:
                logger.debug("Node state poll failed", exc_info=True)
            else:
                if not state.is_offline:
                    break
            await asyncio.sleep(interval)
        logger.info("NXT node is online")

    async def is_encrypted(self) -> bool:
        return await self.store.is_encrypted()

    async def change_key(self, old_key: str, new_key: str) -> None:
        """Change the wallet encryption key; ``old_key`` must be the current one."""
        await self.store.change_encryption_key(old_key, new_key)

    def lock(self) -> None:
        self.gate.lock()

    def unlock(self, key: str) -> None:
        self.gate.unlock(key)

    async def health_check(self) -> dict[str, str]:
        """Check health status of the connector components.

        Returns:
            Dictionary with component statuses ('ok', 'error', 'not_initialized').
        """
        status = {
            "connector": "ok" if self._initialized else "not_initialized",
            "datastore": "unknown",
            "node": "unknown",
            "lock": "unknown",
        }
        if not self._initialized:
            return status

        status["datastore"] = "ok" if self._datastore and self._datastore.is_open else "error"
        try:
            state = await self.oracle.get_node_state()
            status["node"] = "offline" if state.is_offline else "ok"
        except ConnectorError:
            status["node"] = "error"
        status["lock"] = self.gate.state.value
        return status
