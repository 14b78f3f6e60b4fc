"""
Spendable output selection.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from loguru import logger

from vaultcustody.backends.base import ChainBackend
from vaultcustody.config import SelectionPolicy, SelectorConfig
from vaultcustody.transaction import SpendableOutput


class UtxoSelector:
    """
    Fetches spendable outputs for an address, fresh on every call.

    Not safe for concurrent builds on the same address: two builds could pick
    the same outputs. Callers serialize operations per address.
    """

    def __init__(self, backend: ChainBackend, config: SelectorConfig | None = None):
        self.backend = backend
        self.config = config or SelectorConfig()

    async def select_spendable(
        self, address: str, limit: int | None = None
    ) -> list[SpendableOutput]:
        """
        Get up to limit spendable outputs in the order the chain returns them.

        Raises:
            QueryError: If the chain query fails
        """
        if limit is None:
            limit = self.config.default_limit
        outputs = await self.backend.get_spendable_outputs(address, limit)
        logger.debug(
            f"Selected {len(outputs)} spendable outputs, "
            f"total {sum((o.value for o in outputs), Decimal(0))}"
        )
        return outputs

    def apply_policy(
        self, outputs: Sequence[SpendableOutput], target: Decimal
    ) -> list[SpendableOutput]:
        """
        Choose which fetched outputs a build consumes.

        ALL consumes every output. COVERING keeps the largest outputs until
        target is reached (or all of them if it never is).
        """
        if self.config.policy == SelectionPolicy.ALL:
            return list(outputs)

        selected: list[SpendableOutput] = []
        total = Decimal(0)
        for output in sorted(outputs, key=lambda o: o.value, reverse=True):
            selected.append(output)
            total += output.value
            if total >= target:
                break
        return selected
