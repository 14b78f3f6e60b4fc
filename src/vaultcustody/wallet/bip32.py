"""
BIP32 key derivation for light wallet accounts.

Accounts live at m/1129/0/0/{index} (non-hardened), derived from a BIP39
mnemonic seed.
"""

from __future__ import annotations

import hashlib
import hmac

from coincurve import PrivateKey

from vaultcustody.constants import DERIVATION_ROOT

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

HARDENED = 0x80000000


class HDKey:
    """Extended private key."""

    def __init__(self, private_key: PrivateKey, chain_code: bytes, depth: int = 0):
        self.private_key = private_key
        self.chain_code = chain_code
        self.depth = depth

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        digest = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        return cls(PrivateKey(digest[:32]), digest[32:])

    @property
    def public_key_bytes(self) -> bytes:
        """Compressed SEC1 public key"""
        return self.private_key.public_key.format(compressed=True)

    def child(self, index: int) -> HDKey:
        if index >= HARDENED:
            data = b"\x00" + self.private_key.secret + index.to_bytes(4, "big")
        else:
            data = self.public_key_bytes + index.to_bytes(4, "big")

        digest = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        tweak = int.from_bytes(digest[:32], "big")
        if tweak >= SECP256K1_N:
            raise ValueError(f"Invalid child key at index {index}")

        child_int = (int.from_bytes(self.private_key.secret, "big") + tweak) % SECP256K1_N
        if child_int == 0:
            raise ValueError(f"Invalid child key at index {index}")

        return HDKey(PrivateKey(child_int.to_bytes(32, "big")), digest[32:], self.depth + 1)

    def derive(self, path: str) -> HDKey:
        """Derive along a path such as "m/1129/0/0/3" (' or h marks hardened steps)."""
        if not path.startswith("m"):
            raise ValueError("Path must start with 'm'")

        key = self
        for part in path.split("/")[1:]:
            if not part:
                continue
            hardened = part.endswith(("'", "h"))
            index = int(part.rstrip("'h"))
            key = key.child(index + HARDENED if hardened else index)
        return key

    def account(self, index: int) -> HDKey:
        return self.derive(f"{DERIVATION_ROOT}/{index}")


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """BIP39 seed from a normalized mnemonic phrase."""
    normalized = " ".join(mnemonic.split())
    salt = ("mnemonic" + passphrase).encode("utf-8")
    return hashlib.pbkdf2_hmac("sha512", normalized.encode("utf-8"), salt, 2048, dklen=64)
