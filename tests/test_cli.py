"""
Tests for the vault-custody CLI.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from tests.fakes import make_txid
from vaultcustody.cli import app
from vaultcustody.payloads import data_output_script, utxos_to_account
from vaultcustody.transaction import Transaction, TxIn, TxOut

runner = CliRunner()


def mock_program() -> MagicMock:
    program = MagicMock()
    program.close = AsyncMock()
    program.do_validation_checks = AsyncMock(return_value=True)
    return program


class TestDecode:
    """Tests for the decode command."""

    def test_decode_operation(self, own_script: bytes) -> None:
        tx = Transaction(
            inputs=[TxIn(make_txid(3), 2)],
            outputs=[
                TxOut(Decimal("1"), data_output_script(utxos_to_account(own_script, Decimal("1")))),
                TxOut(Decimal("0.5"), own_script),
            ],
        )

        result = runner.invoke(app, ["decode", tx.to_hex(), "--network", "regtest"])

        assert result.exit_code == 0
        assert f"txid: {tx.txid}" in result.stdout
        assert f"in  {make_txid(3)}:2" in result.stdout
        assert "operation: utxos_to_account" in result.stdout
        assert "bcrt1" in result.stdout

    def test_decode_invalid(self) -> None:
        result = runner.invoke(app, ["decode", "0400"])
        assert result.exit_code == 1


class TestCommands:
    """Tests for commands that talk to the chain."""

    def test_wait_timeout(self) -> None:
        program = mock_program()
        program.wait_for_tx = AsyncMock(return_value=False)

        with patch("vaultcustody.cli.create_program", return_value=program):
            result = runner.invoke(app, ["wait", "ab" * 32, "--start-block", "10"])

        assert result.exit_code == 1
        assert "timeout" in result.stdout
        program.wait_for_tx.assert_awaited_once_with("ab" * 32, 10)
        program.close.assert_awaited_once()

    def test_wait_included(self) -> None:
        program = mock_program()
        program.wait_for_tx = AsyncMock(return_value=True)

        with patch("vaultcustody.cli.create_program", return_value=program):
            result = runner.invoke(app, ["wait", "ab" * 32])

        assert result.exit_code == 0
        assert "included" in result.stdout

    def test_sign_and_send_requires_key(self) -> None:
        program = mock_program()
        program.do_validation_checks = AsyncMock(return_value=False)
        program.sign_and_send_raw = AsyncMock()

        with patch("vaultcustody.cli.create_program", return_value=program):
            result = runner.invoke(app, ["sign-and-send", "00"])

        assert result.exit_code == 1
        program.do_validation_checks.assert_awaited_once_with(need_key=True)
        program.sign_and_send_raw.assert_not_called()

    def test_sign_and_send_prints_txids(self) -> None:
        program = mock_program()
        sent = [MagicMock(txid="11" * 32), MagicMock(txid="22" * 32)]
        program.sign_and_send_raw = AsyncMock(return_value=sent)

        with patch("vaultcustody.cli.create_program", return_value=program):
            result = runner.invoke(app, ["sign-and-send", "aa", "bb"])

        assert result.exit_code == 0
        program.sign_and_send_raw.assert_awaited_once_with(["aa", "bb"])
        assert "11" * 32 in result.stdout
        assert "22" * 32 in result.stdout
