"""
Application operation payloads carried in the data output.

Each payload is "DfTx" + one type byte + the operation's serialized body.
The engine treats encoded payloads as opaque; these helpers exist so the
custody program can express vault, loan, swap and liquidity operations.

Field encodings:
- scripts: compact-size length prefix
- single token amounts: token id as ledger VARINT, amount as int64 sats
- balance lists: compact-size count, then token id as uint32 and amount int64
- vault ids: 32 bytes, reversed like txids
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from vaultcustody.constants import DFTX_MARKER, OP_RETURN
from vaultcustody.transaction import (
    ledger_varint,
    push_data,
    to_satoshis,
    varint,
)

# Price limit used when the caller does not bound a swap
DEFAULT_MAX_PRICE = Decimal("999999999")

OPERATION_TYPES: dict[bytes, str] = {
    b"U": "utxos_to_account",
    b"B": "account_to_account",
    b"s": "pool_swap",
    b"i": "composite_swap",
    b"l": "add_pool_liquidity",
    b"r": "remove_pool_liquidity",
    b"S": "deposit_to_vault",
    b"J": "withdraw_from_vault",
    b"X": "take_loan",
    b"H": "payback_loan",
}
OPERATION_CODES = {name: code for code, name in OPERATION_TYPES.items()}


@dataclass(frozen=True)
class TokenAmount:
    token: int
    amount: Decimal


@dataclass(frozen=True)
class OperationPayload:
    """Pre-encoded operation, opaque to the builder."""

    name: str
    type_code: bytes
    data: bytes

    def encode(self) -> bytes:
        return DFTX_MARKER + self.type_code + self.data

    def __len__(self) -> int:
        return len(DFTX_MARKER) + len(self.type_code) + len(self.data)


def data_output_script(payload: OperationPayload) -> bytes:
    """OP_RETURN script carrying the payload."""
    return bytes([OP_RETURN]) + push_data(payload.encode())


def parse_data_output(script: bytes) -> OperationPayload | None:
    """Recover the payload from an OP_RETURN script, None if it carries none."""
    if len(script) < 2 or script[0] != OP_RETURN:
        return None

    length = script[1]
    offset = 2
    if length == 0x4C:
        length = script[2]
        offset = 3
    elif length == 0x4D:
        length = struct.unpack("<H", script[2:4])[0]
        offset = 4
    elif length == 0x4E:
        length = struct.unpack("<I", script[2:6])[0]
        offset = 6

    body = script[offset : offset + length]
    if len(body) != length or not body.startswith(DFTX_MARKER) or len(body) < 5:
        return None

    type_code = body[4:5]
    return OperationPayload(
        name=OPERATION_TYPES.get(type_code, "unknown"),
        type_code=type_code,
        data=body[5:],
    )


def _payload(name: str, data: bytes) -> OperationPayload:
    return OperationPayload(name=name, type_code=OPERATION_CODES[name], data=data)


def _script(script: bytes) -> bytes:
    return varint(len(script)) + script


def _amount(value: Decimal) -> bytes:
    return struct.pack("<q", to_satoshis(value))


def _token_amount(amount: TokenAmount) -> bytes:
    return ledger_varint(amount.token) + _amount(amount.amount)


def _balances(amounts: Sequence[TokenAmount]) -> bytes:
    result = varint(len(amounts))
    for item in amounts:
        result += struct.pack("<I", item.token) + _amount(item.amount)
    return result


def _script_balances(entries: Sequence[tuple[bytes, Sequence[TokenAmount]]]) -> bytes:
    result = varint(len(entries))
    for script, amounts in entries:
        result += _script(script) + _balances(amounts)
    return result


def _vault_id(vault_id: str) -> bytes:
    raw = bytes.fromhex(vault_id)
    if len(raw) != 32:
        raise ValueError(f"Vault id must be 32 bytes, got {len(raw)}")
    return raw[::-1]


def _price(price: Decimal) -> bytes:
    integer = int(price)
    fraction = to_satoshis(price - integer)
    return struct.pack("<q", integer) + struct.pack("<q", fraction)


def _pool_swap(
    from_script: bytes,
    from_token: int,
    amount: Decimal,
    to_script: bytes,
    to_token: int,
    max_price: Decimal,
) -> bytes:
    return (
        _script(from_script)
        + ledger_varint(from_token)
        + _amount(amount)
        + _script(to_script)
        + ledger_varint(to_token)
        + _price(max_price)
    )


def utxos_to_account(to_script: bytes, amount: Decimal) -> OperationPayload:
    """Move native UTXO value into the account balance of to_script."""
    return _payload(
        "utxos_to_account", _script_balances([(to_script, [TokenAmount(0, amount)])])
    )


def account_to_account(
    from_script: bytes, to: Sequence[tuple[bytes, Sequence[TokenAmount]]]
) -> OperationPayload:
    return _payload("account_to_account", _script(from_script) + _script_balances(to))


def pool_swap(
    from_script: bytes,
    from_token: int,
    amount: Decimal,
    to_script: bytes,
    to_token: int,
    max_price: Decimal = DEFAULT_MAX_PRICE,
) -> OperationPayload:
    return _payload(
        "pool_swap", _pool_swap(from_script, from_token, amount, to_script, to_token, max_price)
    )


def composite_swap(
    from_script: bytes,
    from_token: int,
    amount: Decimal,
    to_script: bytes,
    to_token: int,
    pools: Sequence[int],
    max_price: Decimal = DEFAULT_MAX_PRICE,
) -> OperationPayload:
    data = _pool_swap(from_script, from_token, amount, to_script, to_token, max_price)
    data += varint(len(pools)) + b"".join(ledger_varint(pool) for pool in pools)
    return _payload("composite_swap", data)


def add_pool_liquidity(
    from_script: bytes, amounts: Sequence[TokenAmount], share_script: bytes
) -> OperationPayload:
    return _payload(
        "add_pool_liquidity",
        _script_balances([(from_script, amounts)]) + _script(share_script),
    )


def remove_pool_liquidity(script: bytes, pool_id: int, amount: Decimal) -> OperationPayload:
    return _payload(
        "remove_pool_liquidity", _script(script) + _token_amount(TokenAmount(pool_id, amount))
    )


def deposit_to_vault(vault_id: str, from_script: bytes, amount: TokenAmount) -> OperationPayload:
    return _payload(
        "deposit_to_vault", _vault_id(vault_id) + _script(from_script) + _token_amount(amount)
    )


def withdraw_from_vault(vault_id: str, to_script: bytes, amount: TokenAmount) -> OperationPayload:
    return _payload(
        "withdraw_from_vault", _vault_id(vault_id) + _script(to_script) + _token_amount(amount)
    )


def take_loan(
    vault_id: str, to_script: bytes, amounts: Sequence[TokenAmount]
) -> OperationPayload:
    return _payload("take_loan", _vault_id(vault_id) + _script(to_script) + _balances(amounts))


def payback_loan(
    vault_id: str, from_script: bytes, amounts: Sequence[TokenAmount]
) -> OperationPayload:
    return _payload(
        "payback_loan", _vault_id(vault_id) + _script(from_script) + _balances(amounts)
    )

