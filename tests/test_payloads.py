"""
Tests for operation payload encoding.
"""

from __future__ import annotations

import struct
from decimal import Decimal

import pytest

from tests.fakes import VAULT_ID
from vaultcustody.payloads import (
    OPERATION_CODES,
    OperationPayload,
    TokenAmount,
    composite_swap,
    data_output_script,
    deposit_to_vault,
    parse_data_output,
    pool_swap,
    take_loan,
    utxos_to_account,
)

SCRIPT = bytes([0x00, 0x14]) + bytes(range(20))


class TestOperationPayload:
    def test_encode_prefix(self) -> None:
        payload = OperationPayload(name="take_loan", type_code=b"X", data=b"\x01\x02")
        assert payload.encode() == b"DfTxX\x01\x02"
        assert len(payload) == 7

    def test_operation_codes_are_unique(self) -> None:
        assert len(set(OPERATION_CODES.values())) == len(OPERATION_CODES)


class TestDataOutput:
    """Tests for the OP_RETURN data output script."""

    def test_short_payload_direct_push(self) -> None:
        payload = utxos_to_account(SCRIPT, Decimal("1"))
        script = data_output_script(payload)
        assert script[0] == 0x6A
        assert script[1] == len(payload)
        assert script[2:] == payload.encode()

    def test_long_payload_uses_pushdata1(self) -> None:
        payload = OperationPayload(name="take_loan", type_code=b"X", data=bytes(100))
        script = data_output_script(payload)
        assert script[1] == 0x4C
        assert script[2] == len(payload)

    def test_parse_recovers_payload(self) -> None:
        payload = OperationPayload(name="take_loan", type_code=b"X", data=bytes(100))
        assert parse_data_output(data_output_script(payload)) == payload

    def test_parse_non_data_script(self) -> None:
        assert parse_data_output(SCRIPT) is None
        assert parse_data_output(bytes([0x6A, 0x03]) + b"abc") is None

    def test_parse_unknown_type(self) -> None:
        script = data_output_script(OperationPayload(name="x", type_code=b"?", data=b""))
        parsed = parse_data_output(script)
        assert parsed is not None
        assert parsed.name == "unknown"


class TestEncoders:
    """Tests for individual operation encoders."""

    def test_utxos_to_account(self) -> None:
        payload = utxos_to_account(SCRIPT, Decimal("1.5"))
        assert payload.type_code == b"U"
        expected = (
            b"\x01"  # one recipient
            + bytes([len(SCRIPT)])
            + SCRIPT
            + b"\x01"  # one balance
            + struct.pack("<I", 0)
            + struct.pack("<q", 150_000_000)
        )
        assert payload.data == expected

    def test_deposit_to_vault(self) -> None:
        payload = deposit_to_vault(VAULT_ID, SCRIPT, TokenAmount(128, Decimal("2")))
        assert payload.name == "deposit_to_vault"
        assert payload.data[:32] == bytes.fromhex(VAULT_ID)[::-1]
        assert payload.data[32:33] == bytes([len(SCRIPT)])
        assert payload.data.endswith(b"\x80\x00" + struct.pack("<q", 200_000_000))

    def test_vault_id_length_checked(self) -> None:
        with pytest.raises(ValueError, match="32 bytes"):
            deposit_to_vault("abcd", SCRIPT, TokenAmount(0, Decimal("1")))

    def test_take_loan_balances(self) -> None:
        amounts = [TokenAmount(15, Decimal("10")), TokenAmount(17, Decimal("0.5"))]
        payload = take_loan(VAULT_ID, SCRIPT, amounts)
        balances = payload.data[32 + 1 + len(SCRIPT) :]
        assert balances == (
            b"\x02"
            + struct.pack("<I", 15)
            + struct.pack("<q", 1_000_000_000)
            + struct.pack("<I", 17)
            + struct.pack("<q", 50_000_000)
        )

    def test_pool_swap_default_max_price(self) -> None:
        payload = pool_swap(SCRIPT, 0, Decimal("1"), SCRIPT, 2)
        assert payload.data.endswith(struct.pack("<q", 999999999) + struct.pack("<q", 0))

    def test_composite_swap_appends_pools(self) -> None:
        plain = pool_swap(SCRIPT, 0, Decimal("1"), SCRIPT, 2)
        composite = composite_swap(SCRIPT, 0, Decimal("1"), SCRIPT, 2, [4, 200])
        assert composite.type_code == b"i"
        assert composite.data == plain.data + b"\x02\x04" + b"\x80\x48"
