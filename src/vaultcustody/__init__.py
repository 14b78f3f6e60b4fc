"""
vaultcustody - Transaction engine for automated vault custody

Builds, signs, broadcasts and tracks operation transactions on a
token-aware UTXO ledger.
"""

__version__ = "0.1.0"

from vaultcustody.broadcast import Broadcaster, BroadcastState
from vaultcustody.builder import TransactionBuilder
from vaultcustody.chain import PrevoutLink, next_input
from vaultcustody.config import EngineConfig, Settings, get_settings
from vaultcustody.confirmation import ConfirmationWaiter
from vaultcustody.errors import (
    BroadcastError,
    CapabilityError,
    ChainLinkError,
    CustodyError,
    InsufficientFundsError,
    PrevoutReuseError,
    QueryError,
    SigningError,
    SubmitError,
)
from vaultcustody.fees import FeeEstimator
from vaultcustody.program import CustodyProgram
from vaultcustody.resign import PrevoutPool, RawTransactionSigner
from vaultcustody.selector import UtxoSelector
from vaultcustody.transaction import SpendableOutput, Transaction, TxIn, TxOut

__all__ = [
    "BroadcastError",
    "BroadcastState",
    "Broadcaster",
    "CapabilityError",
    "ChainLinkError",
    "ConfirmationWaiter",
    "CustodyError",
    "CustodyProgram",
    "EngineConfig",
    "FeeEstimator",
    "InsufficientFundsError",
    "PrevoutLink",
    "PrevoutPool",
    "PrevoutReuseError",
    "QueryError",
    "RawTransactionSigner",
    "Settings",
    "SigningError",
    "SpendableOutput",
    "SubmitError",
    "Transaction",
    "TransactionBuilder",
    "TxIn",
    "TxOut",
    "UtxoSelector",
    "get_settings",
    "next_input",
]
