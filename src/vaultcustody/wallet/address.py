"""
Address encoding for the ledger's networks.

Supports native segwit (bech32) and legacy base58 P2PKH / P2SH addresses.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

import base58
import bech32


@dataclass(frozen=True)
class AddressParams:
    hrp: str
    p2pkh_version: int
    p2sh_version: int


NETWORKS: dict[str, AddressParams] = {
    "mainnet": AddressParams(hrp="df", p2pkh_version=0x12, p2sh_version=0x5A),
    "testnet": AddressParams(hrp="tf", p2pkh_version=0x0F, p2sh_version=0x80),
    "regtest": AddressParams(hrp="bcrt", p2pkh_version=0x6F, p2sh_version=0xC4),
}


def get_params(network: str) -> AddressParams:
    try:
        return NETWORKS[network]
    except KeyError:
        raise ValueError(f"Unknown network: {network}") from None


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def address_to_script(address: str, network: str = "mainnet") -> bytes:
    """
    Convert an address to its locking script.

    Raises:
        ValueError: If the address is malformed or belongs to another network
    """
    params = get_params(network)

    if address.lower().startswith(params.hrp + "1"):
        witver, witprog = bech32.decode(params.hrp, address)
        if witver is None or witprog is None:
            raise ValueError(f"Invalid bech32 address: {address}")

        program = bytes(witprog)
        if witver == 0 and len(program) in (20, 32):
            # P2WPKH / P2WSH: OP_0 <push program>
            return bytes([0x00, len(program)]) + program
        if witver == 1 and len(program) == 32:
            # P2TR: OP_1 <32-byte key>
            return bytes([0x51, 0x20]) + program
        raise ValueError(f"Unsupported witness version: {witver}")

    decoded = base58.b58decode_check(address)
    if len(decoded) != 21:
        raise ValueError(f"Invalid base58 address length: {address}")
    version, payload = decoded[0], decoded[1:]

    if version == params.p2pkh_version:
        # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version == params.p2sh_version:
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise ValueError(f"Address version {version} does not belong to {network}")


def decode_address(address: str, network: str = "mainnet") -> bytes | None:
    """Locking script for address, None if the address is not valid on network."""
    if not address:
        return None
    try:
        return address_to_script(address, network)
    except ValueError:
        return None


def script_to_address(script: bytes, network: str = "mainnet") -> str | None:
    """Address for a standard locking script, None for non-standard scripts."""
    params = get_params(network)

    if len(script) in (22, 34) and script[0] == 0x00 and script[1] == len(script) - 2:
        return bech32.encode(params.hrp, 0, script[2:])
    if len(script) == 34 and script[0] == 0x51 and script[1] == 0x20:
        return bech32.encode(params.hrp, 1, script[2:])
    if len(script) == 25 and script[:3] == bytes([0x76, 0xA9, 0x14]) and script[23:] == bytes(
        [0x88, 0xAC]
    ):
        return base58.b58encode_check(bytes([params.p2pkh_version]) + script[3:23]).decode()
    if len(script) == 23 and script[:2] == bytes([0xA9, 0x14]) and script[22] == 0x87:
        return base58.b58encode_check(bytes([params.p2sh_version]) + script[2:22]).decode()
    return None


def pubkey_to_p2wpkh_script(pubkey_bytes: bytes) -> bytes:
    """Create P2WPKH scriptPubKey (OP_0 <20-byte-hash>)"""
    if len(pubkey_bytes) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey_bytes)}")
    return bytes([0x00, 0x14]) + hash160(pubkey_bytes)


def pubkey_to_p2wpkh_address(pubkey_bytes: bytes, network: str = "mainnet") -> str:
    address = script_to_address(pubkey_to_p2wpkh_script(pubkey_bytes), network)
    if address is None:
        raise ValueError("Failed to encode P2WPKH address")
    return address
