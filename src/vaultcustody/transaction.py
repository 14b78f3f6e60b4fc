"""
Transaction model and binary codec.

Serialization follows the Bitcoin wire format with two ledger extensions:
- version >= 4 transactions serialize each output's token id (ledger VARINT)
  right after its script
- amounts are tracked as Decimal coins and written as int64 satoshis
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field, replace
from decimal import Decimal

from vaultcustody.constants import (
    COIN,
    NATIVE_TOKEN_ID,
    OP_PUSHDATA1,
    OP_PUSHDATA2,
    OP_PUSHDATA4,
    SATOSHI,
    SEQUENCE_FINAL,
    TX_LOCKTIME,
    TX_VERSION,
)

TOKENS_MIN_VERSION = 4


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin compact-size varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read compact-size varint, returns (value, new_offset)."""
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        return struct.unpack("<H", data[offset : offset + 2])[0], offset + 2
    if first == 0xFE:
        return struct.unpack("<I", data[offset : offset + 4])[0], offset + 4
    return struct.unpack("<Q", data[offset : offset + 8])[0], offset + 8


def ledger_varint(n: int) -> bytes:
    """
    Encode integer with the node's VARINT scheme (MSB base-128, offset by one
    per continuation byte). Used for token ids.
    """
    if n < 0:
        raise ValueError("VARINT cannot encode negative values")

    tmp: list[int] = []
    while True:
        tmp.append((n & 0x7F) | (0x80 if tmp else 0x00))
        if n <= 0x7F:
            break
        n = (n >> 7) - 1
    return bytes(reversed(tmp))


def read_ledger_varint(data: bytes, offset: int) -> tuple[int, int]:
    n = 0
    while True:
        byte = data[offset]
        offset += 1
        n = (n << 7) | (byte & 0x7F)
        if byte & 0x80:
            n += 1
        else:
            return n, offset


def push_data(data: bytes) -> bytes:
    """Script push of arbitrary data with the minimal opcode."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + struct.pack("<H", length) + data
    return bytes([OP_PUSHDATA4]) + struct.pack("<I", length) + data


def to_satoshis(value: Decimal) -> int:
    """Convert a coin amount to integer satoshis, rejecting sub-satoshi precision."""
    value = Decimal(value)
    if value != value.quantize(SATOSHI):
        raise ValueError(f"Amount {value} has more than 8 decimal places")
    return int(value * COIN)


def from_satoshis(sats: int) -> Decimal:
    return (Decimal(sats) / COIN).quantize(SATOSHI)


@dataclass(frozen=True)
class SpendableOutput:
    """Unspent output eligible as a transaction input."""

    txid: str
    vout: int
    value: Decimal
    script: bytes
    token_id: int = NATIVE_TOKEN_ID

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"Output {self.txid}:{self.vout} has negative value")

    @property
    def outpoint(self) -> tuple[str, int]:
        return self.txid, self.vout


@dataclass
class TxIn:
    txid: str
    vout: int
    script_sig: bytes = b""
    sequence: int = SEQUENCE_FINAL
    witness: list[bytes] = field(default_factory=list)

    @property
    def outpoint(self) -> tuple[str, int]:
        return self.txid, self.vout


@dataclass
class TxOut:
    value: Decimal
    script: bytes
    token_id: int = NATIVE_TOKEN_ID


@dataclass
class Transaction:
    inputs: list[TxIn]
    outputs: list[TxOut]
    version: int = TX_VERSION
    lock_time: int = TX_LOCKTIME

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize_output(self, out: TxOut) -> bytes:
        result = struct.pack("<q", to_satoshis(out.value))
        result += varint(len(out.script)) + out.script
        if self.version >= TOKENS_MIN_VERSION:
            result += ledger_varint(out.token_id)
        return result

    def serialize(self, include_witness: bool = True) -> bytes:
        """Serialize transaction to bytes."""
        with_witness = include_witness and self.has_witness

        result = struct.pack("<i", self.version)
        if with_witness:
            result += bytes([0x00, 0x01])

        result += varint(len(self.inputs))
        for inp in self.inputs:
            # txid is in RPC format (big-endian), reversed for raw tx
            result += bytes.fromhex(inp.txid)[::-1]
            result += struct.pack("<I", inp.vout)
            result += varint(len(inp.script_sig)) + inp.script_sig
            result += struct.pack("<I", inp.sequence)

        result += varint(len(self.outputs))
        for out in self.outputs:
            result += self.serialize_output(out)

        if with_witness:
            for inp in self.inputs:
                result += varint(len(inp.witness))
                for item in inp.witness:
                    result += varint(len(item)) + item

        result += struct.pack("<I", self.lock_time)
        return result

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, in RPC byte order."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize(include_witness=True))
        return base_size * 3 + total_size

    def vsize(self) -> int:
        return (self.weight() + 3) // 4

    def total_output_value(self) -> Decimal:
        return sum((out.value for out in self.outputs), Decimal(0))

    def with_witnesses(self, witnesses: list[list[bytes]]) -> Transaction:
        if len(witnesses) != len(self.inputs):
            raise ValueError("Witness count does not match input count")
        inputs = [replace(inp, witness=list(w)) for inp, w in zip(self.inputs, witnesses)]
        return replace(self, inputs=inputs, outputs=list(self.outputs))

    def unsigned(self) -> Transaction:
        return self.with_witnesses([[] for _ in self.inputs])

    @classmethod
    def from_hex(cls, tx_hex: str) -> Transaction:
        return cls.deserialize(bytes.fromhex(tx_hex))

    @classmethod
    def deserialize(cls, tx_bytes: bytes) -> Transaction:
        try:
            offset = 0
            version = struct.unpack("<i", tx_bytes[offset : offset + 4])[0]
            offset += 4

            has_witness = False
            if tx_bytes[offset] == 0x00 and tx_bytes[offset + 1] == 0x01:
                has_witness = True
                offset += 2

            input_count, offset = read_varint(tx_bytes, offset)
            inputs: list[TxIn] = []
            for _ in range(input_count):
                txid = tx_bytes[offset : offset + 32][::-1].hex()
                offset += 32
                vout = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
                offset += 4
                script_len, offset = read_varint(tx_bytes, offset)
                script_sig = tx_bytes[offset : offset + script_len]
                offset += script_len
                sequence = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
                offset += 4
                inputs.append(TxIn(txid, vout, script_sig, sequence))

            output_count, offset = read_varint(tx_bytes, offset)
            outputs: list[TxOut] = []
            for _ in range(output_count):
                sats = struct.unpack("<q", tx_bytes[offset : offset + 8])[0]
                offset += 8
                script_len, offset = read_varint(tx_bytes, offset)
                script = tx_bytes[offset : offset + script_len]
                offset += script_len
                token_id = NATIVE_TOKEN_ID
                if version >= TOKENS_MIN_VERSION:
                    token_id, offset = read_ledger_varint(tx_bytes, offset)
                outputs.append(TxOut(from_satoshis(sats), script, token_id))

            if has_witness:
                for inp in inputs:
                    item_count, offset = read_varint(tx_bytes, offset)
                    for _ in range(item_count):
                        item_len, offset = read_varint(tx_bytes, offset)
                        inp.witness.append(tx_bytes[offset : offset + item_len])
                        offset += item_len

            lock_time = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            if offset != len(tx_bytes):
                raise ValueError(f"{len(tx_bytes) - offset} trailing bytes")

        except (IndexError, struct.error) as e:
            raise ValueError(f"Failed to parse transaction: truncated data ({e})") from e

        return cls(inputs=inputs, outputs=outputs, version=version, lock_time=lock_time)
