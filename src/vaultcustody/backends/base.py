"""
Base chain backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from vaultcustody.transaction import SpendableOutput


@dataclass
class TokenBalance:
    token_id: int
    symbol: str
    amount: Decimal
    is_dat: bool = False
    is_lps: bool = False


class ChainBackend(ABC):
    """
    Abstract chain client.

    Query methods raise QueryError when the chain cannot be reached.
    send_raw raises SubmitError, flagged transient when a retry can succeed.
    """

    @abstractmethod
    async def get_spendable_outputs(self, address: str, limit: int) -> list[SpendableOutput]:
        """Get up to limit unspent outputs locked to address"""

    @abstractmethod
    async def get_transaction(self, txid: str) -> dict[str, Any] | None:
        """Get transaction by txid, None if the chain does not know it"""

    @abstractmethod
    async def get_block_height(self) -> int:
        """Get current chain height"""

    @abstractmethod
    async def get_balance(self, address: str) -> Decimal:
        """Get native UTXO balance of address"""

    @abstractmethod
    async def list_tokens(self, address: str, limit: int = 1000) -> list[TokenBalance]:
        """Get account token balances of address"""

    @abstractmethod
    async def send_raw(self, tx_hex: str) -> str:
        """Submit signed transaction, returns txid"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
