"""
Signing and sending externally built raw transactions.

Transactions handed over for signing may spend each other's change, so
their prevouts come from an owned pool: spendable outputs fetched once,
topped up with the change of every transaction sent in the batch.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from loguru import logger

from vaultcustody.broadcast import Broadcaster
from vaultcustody.chain import next_input
from vaultcustody.config import BroadcastConfig, SelectorConfig
from vaultcustody.errors import SigningError
from vaultcustody.selector import UtxoSelector
from vaultcustody.transaction import SpendableOutput, Transaction
from vaultcustody.wallet.capability import SigningCapability
from vaultcustody.wallet.signing import SigningProvider


class PrevoutPool:
    """Spendable outputs keyed by outpoint. Each one can be taken once."""

    def __init__(self, outputs: Iterable[SpendableOutput] = ()):
        self._outputs: dict[tuple[str, int], SpendableOutput] = {}
        for output in outputs:
            self.put(output)

    def take(self, txid: str, vout: int) -> SpendableOutput:
        try:
            return self._outputs.pop((txid, vout))
        except KeyError:
            raise SigningError(f"used input not found: {txid}:{vout}") from None

    def put(self, output: SpendableOutput) -> None:
        self._outputs[output.outpoint] = output

    def __contains__(self, outpoint: object) -> bool:
        return outpoint in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)


class RawTransactionSigner:
    def __init__(
        self,
        selector: UtxoSelector,
        signer: SigningProvider | None,
        broadcaster: Broadcaster,
        capability: SigningCapability,
        address: str,
        selector_config: SelectorConfig | None = None,
        broadcast_config: BroadcastConfig | None = None,
    ):
        self.selector = selector
        self.signer = signer
        self.broadcaster = broadcaster
        self.capability = capability
        self.address = address
        self.selector_config = selector_config or SelectorConfig()
        self.broadcast_config = broadcast_config or BroadcastConfig()

    async def sign_and_send(self, raw_hexes: Sequence[str]) -> list[Transaction]:
        """
        Sign and send raw transactions in order.

        Returns:
            The signed transactions that were sent, empty if the session cannot sign

        Raises:
            SigningError: An input is not a known spendable output, or signing failed
            BroadcastError: A transaction could not be sent
        """
        if not self.capability.can_sign() or self.signer is None:
            logger.error("Cannot sign raw transactions: no key for the session address")
            return []

        pool = PrevoutPool(
            await self.selector.select_spendable(self.address, self.selector_config.resign_limit)
        )

        sent: list[Transaction] = []
        for raw_hex in raw_hexes:
            tx = Transaction.from_hex(raw_hex)
            prevouts = [pool.take(inp.txid, inp.vout) for inp in tx.inputs]
            signed = self.signer.sign(tx.unsigned(), prevouts)

            delay = self.broadcast_config.chained_initial_delay if sent else 0.0
            await self.broadcaster.send(signed, initial_delay=delay)
            sent.append(signed)

            if len(signed.outputs) > 1:
                pool.put(next_input(signed).as_output())

        logger.info(f"Signed and sent {len(sent)} raw transactions")
        return sent
