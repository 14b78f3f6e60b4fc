"""
Tests for signing and sending externally built raw transactions.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from tests.fakes import FakeBackend, make_outputs, make_txid
from vaultcustody.broadcast import Broadcaster
from vaultcustody.errors import SigningError
from vaultcustody.resign import PrevoutPool, RawTransactionSigner
from vaultcustody.selector import UtxoSelector
from vaultcustody.transaction import SpendableOutput, Transaction, TxIn, TxOut
from vaultcustody.wallet.capability import (
    AvailableWithOwnership,
    AvailableWithoutOwnership,
    SigningCapability,
)
from vaultcustody.wallet.signing import MnemonicSigningProvider

ADDRESS = "bcrt1qtest"


def unsigned_spend(txid: str, vout: int, change: str, script: bytes) -> Transaction:
    return Transaction(
        inputs=[TxIn(txid, vout)],
        outputs=[TxOut(Decimal("0"), b"\x6a\x00"), TxOut(Decimal(change), script)],
    )


def make_signer(
    backend: FakeBackend, capability: SigningCapability, signer: MnemonicSigningProvider | None
) -> RawTransactionSigner:
    return RawTransactionSigner(
        UtxoSelector(backend), signer, Broadcaster(backend), capability, ADDRESS
    )


@pytest.fixture
def mock_sleep():
    with patch("vaultcustody.broadcast.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


class TestPrevoutPool:
    """Tests for the owned prevout pool."""

    def test_take_removes(self) -> None:
        output = SpendableOutput(make_txid(1), 0, Decimal("1"), b"")
        pool = PrevoutPool([output])

        assert (output.txid, 0) in pool
        assert pool.take(output.txid, 0) == output
        assert len(pool) == 0

    def test_take_missing(self) -> None:
        with pytest.raises(SigningError, match="used input not found"):
            PrevoutPool().take(make_txid(1), 0)

    def test_take_twice(self) -> None:
        pool = PrevoutPool([SpendableOutput(make_txid(1), 0, Decimal("1"), b"")])
        pool.take(make_txid(1), 0)
        with pytest.raises(SigningError):
            pool.take(make_txid(1), 0)

    def test_put(self) -> None:
        pool = PrevoutPool()
        pool.put(SpendableOutput(make_txid(2), 1, Decimal("1"), b""))
        assert (make_txid(2), 1) in pool


class TestSignAndSend:
    """Tests for RawTransactionSigner.sign_and_send."""

    @pytest.mark.asyncio
    async def test_chained_batch(
        self, own_script: bytes, signer: MnemonicSigningProvider, mock_sleep: AsyncMock
    ) -> None:
        funding = make_outputs(own_script, "5")[0]
        backend = FakeBackend([funding])
        first = unsigned_spend(funding.txid, funding.vout, "4.9", own_script)
        second = unsigned_spend(first.txid, 1, "4.8", own_script)

        sent = await make_signer(
            backend, AvailableWithOwnership(own_script, 0), signer
        ).sign_and_send([first.to_hex(), second.to_hex()])

        assert [tx.txid for tx in sent] == [first.txid, second.txid]
        assert all(tx.has_witness for tx in sent)
        assert backend.sent == [tx.to_hex() for tx in sent]
        assert backend.spendable_calls == [(ADDRESS, 100)]
        mock_sleep.assert_awaited_once_with(3.0)

    @pytest.mark.asyncio
    async def test_unknown_input(
        self, own_script: bytes, signer: MnemonicSigningProvider, mock_sleep: AsyncMock
    ) -> None:
        backend = FakeBackend(make_outputs(own_script, "5"))
        stray = unsigned_spend(make_txid(77), 0, "1", own_script)

        with pytest.raises(SigningError, match="used input not found"):
            await make_signer(
                backend, AvailableWithOwnership(own_script, 0), signer
            ).sign_and_send([stray.to_hex()])
        assert backend.sent == []

    @pytest.mark.asyncio
    async def test_input_spent_twice_in_batch(
        self, own_script: bytes, signer: MnemonicSigningProvider, mock_sleep: AsyncMock
    ) -> None:
        funding = make_outputs(own_script, "5")[0]
        backend = FakeBackend([funding])
        tx = unsigned_spend(funding.txid, funding.vout, "4.9", own_script)
        conflict = unsigned_spend(funding.txid, funding.vout, "4.8", own_script)

        with pytest.raises(SigningError):
            await make_signer(
                backend, AvailableWithOwnership(own_script, 0), signer
            ).sign_and_send([tx.to_hex(), conflict.to_hex()])
        assert len(backend.sent) == 1

    @pytest.mark.asyncio
    async def test_without_key(self, own_script: bytes) -> None:
        backend = FakeBackend(make_outputs(own_script, "5"))
        tx = unsigned_spend(make_txid(1), 0, "4.9", own_script)

        sent = await make_signer(
            backend, AvailableWithoutOwnership(own_script), None
        ).sign_and_send([tx.to_hex()])

        assert sent == []
        assert backend.spendable_calls == []
