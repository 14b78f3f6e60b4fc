"""
Ledger protocol constants.

The ledger is a Bitcoin-derived UTXO chain with token-aware outputs:
- transactions use version 4, which serializes a token id after each output script
- application instructions are carried in an OP_RETURN output prefixed with "DfTx"
"""

from __future__ import annotations

from decimal import Decimal

# Transaction layout
TX_VERSION = 4
TX_LOCKTIME = 0x00000000
SEQUENCE_FINAL = 0xFFFFFFFF

# Output index of the change output in every transaction built by this package
DATA_OUTPUT_INDEX = 0
CHANGE_OUTPUT_INDEX = 1

# Native asset token id
NATIVE_TOKEN_ID = 0

# Amounts are tracked as Decimal coins with 8 decimal places
COIN = 100_000_000
SATOSHI = Decimal("0.00000001")

# Application payload marker inside the OP_RETURN output
DFTX_MARKER = b"DfTx"

# Script opcodes used when assembling outputs
OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_RETURN = 0x6A

# P2WPKH witness sizes assumed for fee estimation before signing:
# DER signature (up to 72 bytes incl. sighash flag) and compressed public key
P2WPKH_WITNESS_SIG_SIZE = 72
P2WPKH_WITNESS_PUBKEY_SIZE = 33

SIGHASH_ALL = 0x01

# Light wallet derivation root (coin type 1129)
DERIVATION_ROOT = "m/1129/0/0"
