"""
Transaction signing for P2WPKH inputs.

BIP143 sighash over the ledger's transaction format: for version >= 4
transactions the committed outputs include their token ids.
"""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from collections.abc import Sequence

from coincurve import PrivateKey
from loguru import logger

from vaultcustody.constants import SIGHASH_ALL
from vaultcustody.errors import SigningError
from vaultcustody.transaction import (
    SpendableOutput,
    Transaction,
    hash256,
    to_satoshis,
    varint,
)
from vaultcustody.wallet.address import hash160, pubkey_to_p2wpkh_script
from vaultcustody.wallet.bip32 import HDKey, mnemonic_to_seed
from vaultcustody.wallet.capability import SigningCapability, resolve_capability


def compute_sighash_segwit(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    if input_index >= len(tx.inputs):
        raise SigningError("Input index out of range")

    hash_prevouts = hash256(
        b"".join(bytes.fromhex(inp.txid)[::-1] + struct.pack("<I", inp.vout) for inp in tx.inputs)
    )
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(tx.serialize_output(out) for out in tx.outputs))

    target = tx.inputs[input_index]
    preimage = (
        struct.pack("<i", tx.version)
        + hash_prevouts
        + hash_sequence
        + bytes.fromhex(target.txid)[::-1]
        + struct.pack("<I", target.vout)
        + varint(len(script_code))
        + script_code
        + struct.pack("<q", value)
        + struct.pack("<I", target.sequence)
        + hash_outputs
        + struct.pack("<I", tx.lock_time)
        + struct.pack("<I", sighash_type)
    )
    return hash256(preimage)


def create_p2wpkh_script_code(pubkey_bytes: bytes) -> bytes:
    """scriptCode for P2WPKH signing: the equivalent P2PKH script (BIP143)."""
    return b"\x76\xa9\x14" + hash160(pubkey_bytes) + b"\x88\xac"


def sign_p2wpkh_input(
    tx: Transaction,
    input_index: int,
    value: int,
    private_key: PrivateKey,
    sighash_type: int = SIGHASH_ALL,
) -> list[bytes]:
    """Sign one input, returning its witness stack [signature, pubkey]."""
    pubkey_bytes = private_key.public_key.format(compressed=True)
    script_code = create_p2wpkh_script_code(pubkey_bytes)
    sighash = compute_sighash_segwit(tx, input_index, script_code, value, sighash_type)

    # sighash is already SHA256d, hasher=None skips hashing it again
    signature = private_key.sign(sighash, hasher=None)
    return [signature + bytes([sighash_type]), pubkey_bytes]


class SigningProvider(ABC):
    """Key material the session may or may not hold for its address."""

    def __init__(self, network: str = "mainnet"):
        self.network = network

    @abstractmethod
    def owns(self, script: bytes) -> int | None:
        """Account index whose key controls script, None if no key does"""

    @abstractmethod
    def sign(self, tx: Transaction, prevouts: Sequence[SpendableOutput]) -> Transaction:
        """Return tx with witnesses for every input, raises SigningError"""

    def derive_capability(self, address: str) -> SigningCapability:
        return resolve_capability(address, self.network, self)


class MnemonicSigningProvider(SigningProvider):
    """
    Signs with light wallet accounts derived from a mnemonic.

    Ownership is found by scanning account indices up to lookup_limit.
    """

    def __init__(self, mnemonic: str, network: str = "mainnet", lookup_limit: int = 100):
        super().__init__(network)
        self.lookup_limit = lookup_limit
        self._master = HDKey.from_seed(mnemonic_to_seed(mnemonic)) if mnemonic.strip() else None
        self._accounts: dict[int, HDKey] = {}
        self._script_index: dict[bytes, int] = {}

    @property
    def has_key(self) -> bool:
        return self._master is not None

    def account(self, index: int) -> HDKey:
        if self._master is None:
            raise SigningError("No key material available")
        if index not in self._accounts:
            key = self._master.account(index)
            self._accounts[index] = key
            self._script_index[pubkey_to_p2wpkh_script(key.public_key_bytes)] = index
        return self._accounts[index]

    def owns(self, script: bytes) -> int | None:
        if self._master is None:
            return None
        if script in self._script_index:
            return self._script_index[script]

        for index in range(self.lookup_limit):
            self.account(index)
            if script in self._script_index:
                logger.debug(f"Found controlling key at account index {index}")
                return self._script_index[script]
        return None

    def sign(self, tx: Transaction, prevouts: Sequence[SpendableOutput]) -> Transaction:
        if len(prevouts) != len(tx.inputs):
            raise SigningError(
                f"Got {len(prevouts)} prevouts for {len(tx.inputs)} transaction inputs"
            )

        witnesses: list[list[bytes]] = []
        for input_index, (inp, prevout) in enumerate(zip(tx.inputs, prevouts)):
            if inp.outpoint != prevout.outpoint:
                raise SigningError(
                    f"Input {input_index} spends {inp.txid}:{inp.vout}, "
                    f"prevout is {prevout.txid}:{prevout.vout}"
                )

            index = self.owns(prevout.script)
            if index is None:
                raise SigningError(f"No key controls input {prevout.txid}:{prevout.vout}")

            witnesses.append(
                sign_p2wpkh_input(
                    tx=tx,
                    input_index=input_index,
                    value=to_satoshis(prevout.value),
                    private_key=self.account(index).private_key,
                )
            )
            logger.debug(f"Signed input {input_index} for {prevout.txid}:{prevout.vout}")

        return tx.with_witnesses(witnesses)
