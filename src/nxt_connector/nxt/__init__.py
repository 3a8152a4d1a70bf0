"""NXT ledger access — HTTP client, oracle interface, account keys."""

from nxt_connector.nxt.client import NxtClient
from nxt_connector.nxt.models import Block, HeightInconsistent, Transaction
from nxt_connector.nxt.oracle import LedgerOracle

__all__ = ["Block", "HeightInconsistent", "LedgerOracle", "NxtClient", "Transaction"]
