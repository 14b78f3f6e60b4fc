"""
Key material, addresses and signing capability.
"""

from vaultcustody.wallet.capability import (
    AvailableWithOwnership,
    AvailableWithoutOwnership,
    SigningCapability,
    Unavailable,
    resolve_capability,
)
from vaultcustody.wallet.signing import MnemonicSigningProvider, SigningProvider

__all__ = [
    "AvailableWithOwnership",
    "AvailableWithoutOwnership",
    "MnemonicSigningProvider",
    "SigningCapability",
    "SigningProvider",
    "Unavailable",
    "resolve_capability",
]
