"""
Test configuration for vaultcustody tests.
"""

from __future__ import annotations

import pytest

from tests.fakes import SAMPLE_MNEMONIC, FakeBackend
from vaultcustody.wallet.address import pubkey_to_p2wpkh_address, pubkey_to_p2wpkh_script
from vaultcustody.wallet.signing import MnemonicSigningProvider


@pytest.fixture
def sample_mnemonic() -> str:
    """Test mnemonic (not for production use!)."""
    return SAMPLE_MNEMONIC


@pytest.fixture(scope="session")
def signer() -> MnemonicSigningProvider:
    return MnemonicSigningProvider(SAMPLE_MNEMONIC, network="regtest", lookup_limit=3)


@pytest.fixture(scope="session")
def own_script(signer: MnemonicSigningProvider) -> bytes:
    return pubkey_to_p2wpkh_script(signer.account(0).public_key_bytes)


@pytest.fixture(scope="session")
def own_address(signer: MnemonicSigningProvider) -> str:
    return pubkey_to_p2wpkh_address(signer.account(0).public_key_bytes, "regtest")


@pytest.fixture(scope="session")
def foreign_address() -> str:
    # Key outside the sample mnemonic's accounts
    other = MnemonicSigningProvider(
        "legal winner thank year wave sausage worth useful legal winner thank yellow",
        network="regtest",
    )
    return pubkey_to_p2wpkh_address(other.account(0).public_key_bytes, "regtest")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
