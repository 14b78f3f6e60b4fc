"""
Fee estimation from transaction size.

Transactions are sized before signing, so every input is assumed to carry a
P2WPKH witness (signature + compressed pubkey).
"""

from __future__ import annotations

from decimal import ROUND_UP, Decimal

from vaultcustody.config import FeeConfig
from vaultcustody.constants import (
    P2WPKH_WITNESS_PUBKEY_SIZE,
    P2WPKH_WITNESS_SIG_SIZE,
    SATOSHI,
)
from vaultcustody.transaction import Transaction, varint

# Witness stack bytes per P2WPKH input: item count + two length-prefixed items
P2WPKH_WITNESS_SIZE = (
    len(varint(2))
    + len(varint(P2WPKH_WITNESS_SIG_SIZE))
    + P2WPKH_WITNESS_SIG_SIZE
    + len(varint(P2WPKH_WITNESS_PUBKEY_SIZE))
    + P2WPKH_WITNESS_PUBKEY_SIZE
)

# Segwit marker and flag
SEGWIT_HEADER_SIZE = 2


class FeeEstimator:
    def __init__(self, config: FeeConfig | None = None):
        self.config = config or FeeConfig()

    def estimated_vsize(self, tx: Transaction) -> int:
        """Virtual size of tx once every input is signed."""
        base_size = len(tx.serialize(include_witness=False))
        witness_size = SEGWIT_HEADER_SIZE + P2WPKH_WITNESS_SIZE * len(tx.inputs)
        weight = base_size * 4 + witness_size
        return (weight + 3) // 4

    def minimum_fee(self, vsize: int, fee_rate_per_byte: Decimal | None = None) -> Decimal:
        rate = fee_rate_per_byte if fee_rate_per_byte is not None else self.config.fee_rate_per_byte
        return (rate * vsize).quantize(SATOSHI, rounding=ROUND_UP)

    def estimate(self, tx: Transaction, fee_rate_per_byte: Decimal | None = None) -> Decimal:
        """Fee for tx at the given rate (coins per vbyte), rounded up to whole satoshis."""
        return self.minimum_fee(self.estimated_vsize(tx), fee_rate_per_byte)

    def required_funding(self, payment: Decimal) -> Decimal:
        """Input total the covering policy aims for when paying payment."""
        return payment + self.config.fee_floor
