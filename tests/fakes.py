"""
In-memory chain backend and test data shared by the tests.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from vaultcustody.backends.base import ChainBackend, TokenBalance
from vaultcustody.errors import SubmitError
from vaultcustody.transaction import SpendableOutput, Transaction

SAMPLE_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)

VAULT_ID = "ab" * 32


def make_txid(n: int) -> str:
    return f"{n:064x}"


def make_outputs(script: bytes, *values: str) -> list[SpendableOutput]:
    return [
        SpendableOutput(txid=make_txid(i + 1), vout=i, value=Decimal(v), script=script)
        for i, v in enumerate(values)
    ]


class FakeBackend(ChainBackend):
    """In-memory chain backend."""

    def __init__(self, outputs: list[SpendableOutput] | None = None, height: int = 100):
        self.outputs = list(outputs or [])
        self.height = height
        self.transactions: dict[str, dict[str, Any]] = {}
        self.sent: list[str] = []
        self.submit_errors: list[SubmitError] = []
        self.balance = Decimal("0")
        self.tokens: list[TokenBalance] = []
        self.spendable_calls: list[tuple[str, int]] = []

    async def get_spendable_outputs(self, address: str, limit: int) -> list[SpendableOutput]:
        self.spendable_calls.append((address, limit))
        return self.outputs[:limit]

    async def get_transaction(self, txid: str) -> dict[str, Any] | None:
        return self.transactions.get(txid)

    async def get_block_height(self) -> int:
        return self.height

    async def get_balance(self, address: str) -> Decimal:
        return self.balance

    async def list_tokens(self, address: str, limit: int = 1000) -> list[TokenBalance]:
        return self.tokens[:limit]

    async def send_raw(self, tx_hex: str) -> str:
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        self.sent.append(tx_hex)
        return Transaction.from_hex(tx_hex).txid


