"""
Waiting for on-chain inclusion.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from vaultcustody.backends.base import ChainBackend
from vaultcustody.config import ConfirmationBudget, ConfirmationConfig
from vaultcustody.errors import QueryError
from vaultcustody.wallet.capability import SigningCapability


class ConfirmationWaiter:
    """
    Polls the chain until a transaction is included or a budget runs out.

    The budget depends on the session: externally signed transactions get
    more time and blocks, since someone has to sign and send them first.
    """

    def __init__(
        self,
        backend: ChainBackend,
        capability: SigningCapability,
        config: ConfirmationConfig | None = None,
    ):
        self.backend = backend
        self.capability = capability
        self.config = config or ConfirmationConfig()

    @property
    def budget(self) -> ConfirmationBudget:
        if self.capability.can_sign():
            return self.config.self_signed
        return self.config.externally_signed

    async def wait_for_inclusion(self, txid: str, start_block: int | None = None) -> bool:
        """
        Wait until txid is found on chain.

        Returns False when the time budget is spent or the chain has moved
        more than the block budget past start_block. Never raises on timeout.
        """
        budget = self.budget
        if start_block is None:
            start_block = await self.backend.get_block_height()

        logger.info(
            f"Waiting for {txid} (start block {start_block}, "
            f"budget {budget.timeout}s / {budget.blocks} blocks)"
        )

        elapsed = self.config.initial_delay
        await asyncio.sleep(self.config.initial_delay)

        while True:
            if await self._is_included(txid):
                logger.info(f"Transaction {txid} included")
                return True

            if elapsed >= budget.timeout:
                logger.warning(f"Transaction {txid} not included after {elapsed}s")
                return False

            height = await self._current_height()
            if height is not None and height > start_block + budget.blocks:
                logger.warning(
                    f"Transaction {txid} not included after {height - start_block} blocks"
                )
                return False

            await asyncio.sleep(self.config.poll_interval)
            elapsed += self.config.poll_interval

    async def _is_included(self, txid: str) -> bool:
        try:
            return await self.backend.get_transaction(txid) is not None
        except QueryError as e:
            logger.debug(f"Lookup of {txid} failed, treating as not found: {e}")
            return False

    async def _current_height(self) -> int | None:
        try:
            return await self.backend.get_block_height()
        except QueryError as e:
            logger.debug(f"Could not read block height: {e}")
            return None
