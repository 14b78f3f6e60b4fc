"""
Signing capability of a session.

Resolved once per session from the configured address and the available
key material. Call sites branch on the variant instead of a nullable key:

- Unavailable: the address is invalid, nothing valid can be built
- AvailableWithoutOwnership: transactions can be built but must be signed elsewhere
- AvailableWithOwnership: transactions are signed and sent autonomously
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from vaultcustody.wallet.address import decode_address

if TYPE_CHECKING:
    from vaultcustody.wallet.signing import SigningProvider


class SigningCapability:
    script: bytes | None

    def can_sign(self) -> bool:
        return False

    def can_build(self) -> bool:
        return True


@dataclass(frozen=True)
class Unavailable(SigningCapability):
    reason: str = "invalid address"
    script: None = None

    def can_build(self) -> bool:
        return False


@dataclass(frozen=True)
class AvailableWithoutOwnership(SigningCapability):
    script: bytes


@dataclass(frozen=True)
class AvailableWithOwnership(SigningCapability):
    script: bytes
    key_index: int

    def can_sign(self) -> bool:
        return True


def resolve_capability(
    address: str, network: str, provider: SigningProvider | None
) -> SigningCapability:
    script = decode_address(address, network)
    if script is None:
        logger.warning(f"Address '{address}' is not valid on {network}")
        return Unavailable(reason=f"invalid {network} address")

    key_index = provider.owns(script) if provider is not None else None
    if key_index is None:
        logger.info("Key material does not control the address, transactions need external signing")
        return AvailableWithoutOwnership(script=script)

    logger.info(f"Key material controls the address (account {key_index})")
    return AvailableWithOwnership(script=script, key_index=key_index)
