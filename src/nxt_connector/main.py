#!/usr/bin/env python3
"""NXT Connector — command line access to the exchange wallet.

Configuration comes from ``NXTCONNECTOR_*`` environment variables and the
optional YAML file named by ``NXTCONNECTOR_CONFIG_PATH``.

    # Node peers, height, main account reserves and version
    nxt-connector info

    # Create deposit addresses
    nxt-connector generate [count]

    # Check an address with the node
    nxt-connector validate <address>

    # Scan for deposits and sweep them into the main account
    nxt-connector list

    # Withdraw from the main account (the key unlocks the wallet)
    nxt-connector send <address> <amount> <key>

    # Fee paid by a transaction
    nxt-connector fees <transaction_id>

    # Block until the node is online
    nxt-connector ping

    # Encryption status and key rotation
    nxt-connector encrypted
    nxt-connector change-key <old_key> <new_key>
"""

from __future__ import annotations

import asyncio
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from nxt_connector.config.settings import AppConfig
from nxt_connector.engine.client import NxtConnector
from nxt_connector.errors.connector_errors import ConnectorError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from nxt_connector.config.settings import LoggingConfig

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(config: LoggingConfig) -> None:
    """Send connector logs to stderr and, if configured, to a file."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(logging.FileHandler(config.file, encoding="utf-8"))
    logging.basicConfig(
        level=config.level.upper(), format=_LOG_FORMAT, handlers=handlers, force=True
    )


def _run(action: Callable[[NxtConnector], Awaitable[Any]]) -> Any:
    """Open a connector from the environment, run *action*, close it."""
    config = AppConfig()
    configure_logging(config.logging)

    async def _session() -> Any:
        connector = NxtConnector(config)
        await connector.initialize()
        try:
            return await action(connector)
        finally:
            await connector.close()

    return asyncio.run(_session())


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_info() -> None:
    info = _run(lambda c: c.get_info())
    print(f"Connections:  {info.connections}")
    print(f"Last block:   {info.last_block}")
    print(f"Reserves:     {info.reserves} NXT")
    print(f"Version:      {info.version}")


def _cmd_generate(count: int = 1) -> None:
    """Create *count* deposit addresses."""

    async def _generate(connector: NxtConnector) -> list[str]:
        return [await connector.generate_address() for _ in range(count)]

    for address in _run(_generate):
        print(address)


def _cmd_validate(address: str) -> None:
    valid = _run(lambda c: c.is_address_valid(address))
    print(f"{address}: {'valid' if valid else 'invalid'}")
    if not valid:
        sys.exit(1)


def _cmd_list() -> None:
    """Run one scan pass and print the deposits it reports."""
    deposits = _run(lambda c: c.list_transactions())
    if not deposits:
        print("No new deposits")
        return
    print(f"{'Transaction':<22} {'Address':<26} {'Amount (NXT)':>16}  Status")
    print("-" * 80)
    for d in deposits:
        status = f"{d.confirmation_count} conf" if d.confirmed else "unconfirmed"
        print(f"{d.ledger_tx_id:<22} {d.target_address:<26} {d.amount:>16}  {status}")


def _cmd_send(address: str, amount: Decimal, key: str) -> None:
    async def _send(connector: NxtConnector) -> str:
        connector.unlock(key)
        try:
            return await connector.send_to(address, amount)
        finally:
            connector.lock()

    print(_run(_send))


def _cmd_fees(transaction_id: str) -> None:
    fee = _run(lambda c: c.get_transaction_fees(transaction_id))
    print(f"{fee} NXT")


def _cmd_ping() -> None:
    _run(lambda c: c.ping())
    print("NXT node is online")


def _cmd_encrypted() -> None:
    encrypted = _run(lambda c: c.is_encrypted())
    print("encrypted" if encrypted else "not encrypted")


def _cmd_change_key(old_key: str, new_key: str) -> None:
    _run(lambda c: c.change_key(old_key, new_key))
    print("Encryption key changed")


def _parse_amount(raw: str) -> Decimal:
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        amount = None
    if amount is None or not amount.is_finite():
        print(f"Invalid amount: {raw}")
        sys.exit(1)
    return amount


def _usage(text: str) -> None:
    print(f"Usage: nxt-connector {text}")
    sys.exit(1)


def main() -> None:
    """CLI entry point."""
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    cmd = sys.argv[1].lower()
    args = sys.argv[2:]

    try:
        if cmd == "info":
            _cmd_info()
        elif cmd == "generate":
            _cmd_generate(int(args[0]) if args else 1)
        elif cmd == "validate":
            if len(args) < 1:
                _usage("validate <address>")
            _cmd_validate(args[0])
        elif cmd == "list":
            _cmd_list()
        elif cmd == "send":
            if len(args) < 3:
                _usage("send <address> <amount> <key>")
            _cmd_send(args[0], _parse_amount(args[1]), args[2])
        elif cmd == "fees":
            if len(args) < 1:
                _usage("fees <transaction_id>")
            _cmd_fees(args[0])
        elif cmd == "ping":
            _cmd_ping()
        elif cmd == "encrypted":
            _cmd_encrypted()
        elif cmd == "change-key":
            if len(args) < 2:
                _usage("change-key <old_key> <new_key>")
            _cmd_change_key(args[0], args[1])
        else:
            print(f"Unknown command: {cmd}")
            print(__doc__)
            sys.exit(1)
    except ConnectorError as exc:
        print(f"Error [{exc.code}]: {exc.message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
