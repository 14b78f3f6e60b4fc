"""
Chain backend implementations.

Available backends:
- OceanBackend: Ocean REST API (public indexer, no local node required)
"""

from vaultcustody.backends.base import ChainBackend, TokenBalance
from vaultcustody.backends.ocean import OceanBackend

__all__ = [
    "ChainBackend",
    "OceanBackend",
    "TokenBalance",
]
