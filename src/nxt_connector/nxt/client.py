"""NXT HTTP API client — blocks, balances, broadcast, node status.

Async HTTP client for the NXT node API, every call going through
``/nxt?requestType=<name>``:
- getBlock (by id, or by height with or without transactions)
- getUnconfirmedTransactions, getTransaction
- getBalance, rsConvert
- sendMoney (signed and broadcast by the node)
- getPeers, getBlockchainStatus, getState

The node reports API errors as HTTP 200 with an ``errorCode`` in the body;
those become :class:`NxtError`. Transport failures become
:class:`OracleUnavailableError`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from nxt_connector.errors.connector_errors import NotFoundError
from nxt_connector.errors.oracle_errors import NxtError, OracleUnavailableError
from nxt_connector.nxt.models import (
    Balance,
    Block,
    ChainStatus,
    HeightInconsistent,
    NodeState,
    Transaction,
    TransactionInfo,
    nxt_to_nqt,
)

if TYPE_CHECKING:
    from decimal import Decimal

    from nxt_connector.config.settings import NxtConfig

logger = logging.getLogger(__name__)

# NXT API error codes
_ERR_MISSING_PARAMETER = 3
_ERR_INCORRECT_PARAMETER = 4
_ERR_UNKNOWN_OBJECT = 5

_API_PATH = "/nxt"


class NxtClient:
    """Async HTTP client for an NXT node.

    Usage::

        nxt = NxtClient(config.nxt)
        await nxt.connect()
        try:
            status = await nxt.get_status()
            balance = await nxt.get_balance("NXT-...")
        finally:
            await nxt.close()
    """

    def __init__(self, config: NxtConfig) -> None:
        """Initialize the NXT client.

        Args:
            config: NXT node settings (url, testnet, timeout).
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._config.effective_url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    # ------------------------------------------------------------------
    # Blocks & transactions
    # ------------------------------------------------------------------

    async def get_block(self, block_id: str) -> Block:
        """Get a block header by id.

        Raises:
            NotFoundError: If the node does not know the block.
        """
        try:
            data = await self._request("getBlock", block=block_id)
        except NxtError as exc:
            if exc.error_code in (_ERR_INCORRECT_PARAMETER, _ERR_UNKNOWN_OBJECT):
                raise NotFoundError(f"block {block_id} not found", code="block-not-found") from exc
            raise
        return Block.from_dict(data)

    async def get_block_at_height(self, height: int) -> Block:
        """Get the header of the block at *height* on the node's current chain.

        Raises:
            NotFoundError: If *height* is past the tip.
        """
        try:
            data = await self._request("getBlock", height=height)
        except NxtError as exc:
            if exc.error_code in (_ERR_INCORRECT_PARAMETER, _ERR_UNKNOWN_OBJECT):
                raise NotFoundError(f"no block at height {height}", code="block-not-found") from exc
            raise
        return Block.from_dict(data)

    async def get_block_with_transactions(
        self, height: int, expected_previous_id: str
    ) -> Block | HeightInconsistent:
        """Get the block at *height* with its transactions.

        Args:
            height: Block height to fetch.
            expected_previous_id: Id the block must link back to.

        Returns:
            The block, or ``HeightInconsistent`` when the height is past the
            tip or the block does not link to *expected_previous_id*.
        """
        try:
            data = await self._request("getBlock", height=height, includeTransactions="true")
        except NxtError as exc:
            if exc.error_code in (_ERR_INCORRECT_PARAMETER, _ERR_UNKNOWN_OBJECT):
                return HeightInconsistent(height=height, reason=exc.message)
            raise

        block = Block.from_dict(data)
        if expected_previous_id and block.previous_id != expected_previous_id:
            logger.warning(
                "Block %s at height %d links to %s, expected %s",
                block.id,
                height,
                block.previous_id,
                expected_previous_id,
            )
            return HeightInconsistent(height=height, reason="previous block mismatch", fork=True)
        return block

    async def get_unconfirmed_transactions(self) -> list[Transaction]:
        """List the node's unconfirmed transaction pool."""
        data = await self._request("getUnconfirmedTransactions")
        return [Transaction.from_dict(tx) for tx in data.get("unconfirmedTransactions", [])]

    async def get_transaction(self, transaction_id: str) -> TransactionInfo:
        """Look up a transaction by id.

        Raises:
            NotFoundError: If the node does not know the transaction.
        """
        try:
            data = await self._request("getTransaction", transaction=transaction_id)
        except NxtError as exc:
            if exc.error_code == _ERR_UNKNOWN_OBJECT:
                raise NotFoundError(
                    f"transaction {transaction_id} not found", code="transaction-not-found"
                ) from exc
            raise
        return TransactionInfo.from_dict(data)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> Balance:
        """Get the confirmed/unconfirmed balance of an account."""
        data = await self._request("getBalance", account=address)
        return Balance.from_dict(data)

    async def validate_address(self, address: str) -> bool:
        """Check an address with the node's ``rsConvert``."""
        try:
            await self._request("rsConvert", account=address)
        except NxtError as exc:
            if exc.error_code in (_ERR_MISSING_PARAMETER, _ERR_INCORRECT_PARAMETER):
                return False
            raise
        return True

    async def sign_and_broadcast(
        self,
        sender_secret: str,
        recipient: str,
        amount: Decimal,
        fee: Decimal,
        deadline: int,
    ) -> str:
        """Have the node sign and broadcast an ordinary payment.

        Args:
            sender_secret: Secret phrase of the sending account.
            recipient: Recipient RS address.
            amount: Amount in NXT.
            fee: Fee in NXT.
            deadline: Validity window in minutes.

        Returns:
            The transaction id assigned by the node.
        """
        data = await self._request(
            "sendMoney",
            post=True,
            recipient=recipient,
            amountNQT=nxt_to_nqt(amount),
            feeNQT=nxt_to_nqt(fee),
            deadline=deadline,
            secretPhrase=sender_secret,
            broadcast="true",
        )
        transaction_id = data.get("transaction")
        if not transaction_id:
            msg = "sendMoney response carries no transaction id"
            raise OracleUnavailableError(msg)
        return str(transaction_id)

    # ------------------------------------------------------------------
    # Node
    # ------------------------------------------------------------------

    async def get_peer_count(self) -> int:
        """Number of peers the node is connected to."""
        data = await self._request("getPeers", state="CONNECTED")
        return len(data.get("peers", []))

    async def get_status(self) -> ChainStatus:
        """Blockchain height, version and tip block id."""
        data = await self._request("getBlockchainStatus")
        return ChainStatus.from_dict(data)

    async def get_node_state(self) -> NodeState:
        """Whether the node considers itself offline."""
        data = await self._request("getState", includeCounts="false")
        return NodeState.from_dict(data)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "NxtClient is not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

    async def _request(self, request_type: str, *, post: bool = False, **params: Any) -> dict:
        """Call one NXT API request type and return the decoded body.

        Raises:
            OracleUnavailableError: On transport failure or a malformed response.
            NxtError: If the node returns an ``errorCode``.
        """
        client = self._ensure_connected()
        query = {"requestType": request_type}
        logger.debug("NXT %s", request_type)
        try:
            if post:
                response = await client.post(_API_PATH, params=query, data=params)
            else:
                response = await client.get(_API_PATH, params={**query, **params})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise OracleUnavailableError(f"NXT {request_type} failed: {exc}") from exc
        except ValueError as exc:
            raise OracleUnavailableError(f"NXT {request_type} returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise OracleUnavailableError(f"NXT {request_type} returned an unexpected body")
        if "errorCode" in data:
            raise NxtError(
                str(data.get("errorDescription", "unknown NXT error")),
                error_code=int(data["errorCode"]),
            )
        return data
