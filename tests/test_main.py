"""Tests for the nxt-connector command line entry point."""

from __future__ import annotations

import logging
import sys
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from fakes import OUTSIDER, TEST_KDF_ITERATIONS, TEST_KEY, FakeLedger, payment

from nxt_connector import main as cli
from nxt_connector.config.settings import LoggingConfig
from nxt_connector.engine.client import NxtConnector
from nxt_connector.nxt.models import Balance

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def cli_ledger(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeLedger:
    """Point the CLI at a temp wallet and an in-memory ledger."""
    ledger = FakeLedger()
    monkeypatch.setenv("NXTCONNECTOR_DB__DSN", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("NXTCONNECTOR_WALLET__ENCRYPTION_KEY", TEST_KEY)
    monkeypatch.setenv("NXTCONNECTOR_WALLET__KDF_ITERATIONS", str(TEST_KDF_ITERATIONS))
    monkeypatch.setenv("NXTCONNECTOR_WALLET__PING_INTERVAL", "0")
    monkeypatch.setattr(cli, "configure_logging", lambda _config: None)
    monkeypatch.setattr(cli, "NxtConnector", lambda config: NxtConnector(config, oracle=ledger))
    return ledger


def _always(value):
    async def _get(_address: str):
        return value

    return _get


def _invoke(monkeypatch: pytest.MonkeyPatch, *args: str) -> None:
    monkeypatch.setattr(sys, "argv", ["nxt-connector", *args])
    cli.main()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_no_command_prints_usage(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _invoke(monkeypatch)
        assert exc_info.value.code == 1
        assert "nxt-connector info" in capsys.readouterr().out

    def test_unknown_command(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        with pytest.raises(SystemExit):
            _invoke(monkeypatch, "bogus")
        assert "Unknown command: bogus" in capsys.readouterr().out

    def test_send_usage(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        with pytest.raises(SystemExit):
            _invoke(monkeypatch, "send", OUTSIDER)
        assert "send <address> <amount> <key>" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCommands:
    def test_info(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        _invoke(monkeypatch, "info")
        out = capsys.readouterr().out
        assert "Connections:  3" in out
        assert "Last block:   100" in out

    def test_generate_and_list(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        _invoke(monkeypatch, "generate", "2")
        addresses = capsys.readouterr().out.split()
        assert len(addresses) == 2
        assert all(a.startswith("NXT-") for a in addresses)

        cli_ledger.add_block(payment(addresses[0], "3", tx_id="4242"))
        _invoke(monkeypatch, "list")
        out = capsys.readouterr().out
        assert "4242" in out
        assert addresses[0] in out

        _invoke(monkeypatch, "list")
        assert "No new deposits" in capsys.readouterr().out

    def test_validate_invalid_exits(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        with pytest.raises(SystemExit):
            _invoke(monkeypatch, "validate", "garbage")
        assert "garbage: invalid" in capsys.readouterr().out

    def test_send_and_fees(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        # The main address only exists once the wallet is created
        funded = Balance(confirmed=Decimal("50"), unconfirmed=Decimal("50"))
        cli_ledger.get_balance = _always(funded)  # type: ignore[method-assign]
        _invoke(monkeypatch, "send", OUTSIDER, "5", TEST_KEY)
        tx_id = capsys.readouterr().out.strip()
        assert cli_ledger.broadcasts[0].transaction_id == tx_id
        assert cli_ledger.broadcasts[0].amount == Decimal("5")

        _invoke(monkeypatch, "fees", tx_id)
        assert capsys.readouterr().out.strip() == "1 NXT"

    def test_send_wrong_key(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _invoke(monkeypatch, "send", OUTSIDER, "5", "wrong")
        assert exc_info.value.code == 2
        assert "wrong-key" in capsys.readouterr().err
        assert cli_ledger.broadcasts == []

    def test_amount_finer_than_nqt(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        funded = Balance(confirmed=Decimal("50"), unconfirmed=Decimal("50"))
        cli_ledger.get_balance = _always(funded)  # type: ignore[method-assign]
        with pytest.raises(SystemExit) as exc_info:
            _invoke(monkeypatch, "send", OUTSIDER, "0.000000001", TEST_KEY)
        assert exc_info.value.code == 2
        assert "amount-precision" in capsys.readouterr().err
        assert cli_ledger.broadcasts == []

    def test_invalid_amount(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        with pytest.raises(SystemExit):
            _invoke(monkeypatch, "send", OUTSIDER, "lots", TEST_KEY)
        assert "Invalid amount" in capsys.readouterr().out

    def test_ping(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        cli_ledger.offline_polls = 2
        _invoke(monkeypatch, "ping")
        assert "online" in capsys.readouterr().out

    def test_encrypted_and_change_key(
        self,
        cli_ledger: FakeLedger,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        _invoke(monkeypatch, "encrypted")
        assert capsys.readouterr().out.strip() == "encrypted"

        _invoke(monkeypatch, "change-key", TEST_KEY, "")
        assert "changed" in capsys.readouterr().out

        monkeypatch.setenv("NXTCONNECTOR_WALLET__ENCRYPTION_KEY", "")
        _invoke(monkeypatch, "encrypted")
        assert capsys.readouterr().out.strip() == "not encrypted"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_file_handler(self, tmp_path: Path) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        log_file = tmp_path / "connector.log"
        try:
            cli.configure_logging(LoggingConfig(level="debug", file=str(log_file)))
            assert root.level == logging.DEBUG
            assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
            logging.getLogger("nxt_connector.test").info("hello")
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)
        assert "hello" in log_file.read_text(encoding="utf-8")
