"""
Chaining dependent transactions.

The change output of a just-sent transaction becomes the sole input of the
next one, so a sequence of operations runs without re-querying the chain for
spendable outputs (which would not show the unconfirmed change anyway).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from vaultcustody.constants import CHANGE_OUTPUT_INDEX, NATIVE_TOKEN_ID
from vaultcustody.errors import ChainLinkError, PrevoutReuseError
from vaultcustody.transaction import SpendableOutput, Transaction


@dataclass
class PrevoutLink:
    """Change output of a sent transaction, valid for exactly one subsequent build."""

    txid: str
    vout: int
    value: Decimal
    script: bytes
    token_id: int = NATIVE_TOKEN_ID
    consumed: bool = field(default=False, compare=False)

    def as_output(self) -> SpendableOutput:
        return SpendableOutput(
            txid=self.txid,
            vout=self.vout,
            value=self.value,
            script=self.script,
            token_id=self.token_id,
        )

    def ensure_unconsumed(self) -> None:
        if self.consumed:
            raise PrevoutReuseError(f"Prevout {self.txid}:{self.vout} was already spent by a build")

    def mark_consumed(self) -> None:
        self.ensure_unconsumed()
        self.consumed = True


def next_input(tx: Transaction) -> PrevoutLink:
    """Extract the change output of tx as the next build's explicit input."""
    if len(tx.outputs) <= CHANGE_OUTPUT_INDEX:
        raise ChainLinkError(
            f"Transaction {tx.txid} has {len(tx.outputs)} outputs, no change output to chain from"
        )

    change = tx.outputs[CHANGE_OUTPUT_INDEX]
    return PrevoutLink(
        txid=tx.txid,
        vout=CHANGE_OUTPUT_INDEX,
        value=change.value,
        script=change.script,
        token_id=change.token_id,
    )
