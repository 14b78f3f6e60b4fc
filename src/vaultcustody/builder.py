"""
Transaction builder for operation transactions.

Builds transactions shaped [data output, change output]:
- data output: OP_RETURN carrying the operation payload, valued at the payment
- change output: everything left after payment and fee, back to the session address

Signed when the session holds the key, otherwise returned unsigned for
external signing.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from loguru import logger

from vaultcustody.chain import PrevoutLink
from vaultcustody.constants import CHANGE_OUTPUT_INDEX, DATA_OUTPUT_INDEX, NATIVE_TOKEN_ID
from vaultcustody.errors import CapabilityError, InsufficientFundsError
from vaultcustody.fees import FeeEstimator
from vaultcustody.payloads import OperationPayload, data_output_script
from vaultcustody.selector import UtxoSelector
from vaultcustody.transaction import SpendableOutput, Transaction, TxIn, TxOut
from vaultcustody.wallet.capability import SigningCapability, Unavailable
from vaultcustody.wallet.signing import SigningProvider


def _total(outputs: Sequence[SpendableOutput]) -> Decimal:
    return sum((o.value for o in outputs), Decimal(0))


class TransactionBuilder:
    """
    Assembles, funds and (when possible) signs operation transactions.

    Builds on one address must not run concurrently: inputs are selected
    fresh from the chain and two builds would pick the same outputs.
    """

    def __init__(
        self,
        selector: UtxoSelector,
        fees: FeeEstimator,
        capability: SigningCapability,
        signer: SigningProvider | None,
        address: str,
    ):
        self.selector = selector
        self.fees = fees
        self.capability = capability
        self.signer = signer
        self.address = address

    async def build(
        self,
        payload: OperationPayload,
        change_script: bytes | None = None,
        explicit_input: SpendableOutput | PrevoutLink | None = None,
        payment_value: Decimal = Decimal(0),
    ) -> Transaction:
        """
        Build a transaction carrying payload.

        Args:
            payload: Encoded operation for the data output
            change_script: Change destination, defaults to the session script
            explicit_input: Spend exactly this output instead of querying the chain
            payment_value: Value attached to the data output

        Returns:
            Signed transaction when the session can sign, unsigned otherwise

        Raises:
            CapabilityError: Session address is invalid
            QueryError: Spendable outputs could not be fetched
            InsufficientFundsError: Inputs do not cover payment and fee
            SigningError: Signer rejected the transaction
            PrevoutReuseError: explicit_input link was already used by a build
        """
        if isinstance(self.capability, Unavailable):
            raise CapabilityError(f"Cannot build transactions: {self.capability.reason}")

        change_script = change_script or self.capability.script

        link = explicit_input if isinstance(explicit_input, PrevoutLink) else None
        if link is not None:
            link.ensure_unconsumed()
            inputs = [link.as_output()]
        elif explicit_input is not None:
            inputs = [explicit_input]
        else:
            fetched = await self.selector.select_spendable(self.address)
            inputs = self.selector.apply_policy(
                fetched, self.fees.required_funding(payment_value)
            )

        total = _total(inputs)
        tx = Transaction(
            inputs=[TxIn(txid=o.txid, vout=o.vout) for o in inputs],
            outputs=[
                TxOut(payment_value, data_output_script(payload), NATIVE_TOKEN_ID),
                TxOut(total, change_script, NATIVE_TOKEN_ID),
            ],
        )
        tx = self._fund(tx, total, payment_value)

        logger.debug(
            f"Built {payload.name} transaction: {len(inputs)} inputs, total {total}, "
            f"payment {payment_value}, change {tx.outputs[CHANGE_OUTPUT_INDEX].value}"
        )

        result = self._sign(tx, inputs)
        if link is not None:
            link.mark_consumed()
        return result

    def rebuild_on(self, tx: Transaction, link: PrevoutLink) -> Transaction:
        """
        Re-fund tx from a single chained prevout and sign it.

        Outputs other than change are kept as they are. Fee and change are
        recomputed for the new input.
        """
        if not self.capability.can_sign():
            raise CapabilityError("Rebuilding on a prevout requires the signing key")
        if len(tx.outputs) <= CHANGE_OUTPUT_INDEX:
            raise ValueError("Transaction has no change output to rebuild")

        link.ensure_unconsumed()
        prevout = link.as_output()

        spent_elsewhere = sum(
            (out.value for i, out in enumerate(tx.outputs) if i != CHANGE_OUTPUT_INDEX),
            Decimal(0),
        )
        rebuilt = Transaction(
            inputs=[TxIn(txid=prevout.txid, vout=prevout.vout)],
            outputs=[TxOut(out.value, out.script, out.token_id) for out in tx.outputs],
            version=tx.version,
            lock_time=tx.lock_time,
        )
        rebuilt = self._fund(rebuilt, prevout.value, spent_elsewhere)

        result = self._sign(rebuilt, [prevout])
        link.mark_consumed()
        return result

    def _fund(self, tx: Transaction, total: Decimal, spent: Decimal) -> Transaction:
        fee = self.fees.estimate(tx)
        change = total - spent - fee
        if change < 0:
            raise InsufficientFundsError(spent + fee, total)
        tx.outputs[CHANGE_OUTPUT_INDEX].value = change
        return tx

    def _sign(self, tx: Transaction, prevouts: Sequence[SpendableOutput]) -> Transaction:
        if not self.capability.can_sign():
            logger.info(
                f"Transaction {tx.txid} needs external signing "
                f"({tx.outputs[DATA_OUTPUT_INDEX].value} attached to data output)"
            )
            return tx
        if self.signer is None:
            raise CapabilityError("Session can sign but no signing provider is configured")
        return self.signer.sign(tx, prevouts)
