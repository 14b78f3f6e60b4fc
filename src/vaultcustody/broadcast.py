"""
Broadcasting with bounded retry.

Submission is the only step the engine retries: a rejected submission is
often transient (missing inputs of a not yet relayed parent, a full
mempool, a flaky node) and resolves within a few block intervals.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from loguru import logger

from vaultcustody.backends.base import ChainBackend
from vaultcustody.config import BroadcastConfig
from vaultcustody.errors import BroadcastError, SubmitError
from vaultcustody.transaction import Transaction


class BroadcastState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    SENDING = "sending"
    SUCCESS = "success"
    FAILED = "failed"


class Broadcaster:
    """
    Submits signed transactions, retrying transient rejections.

    One send is in flight per call. Waits are sequential sleeps, so nothing
    keeps running after send returns or raises.
    """

    def __init__(self, backend: ChainBackend, config: BroadcastConfig | None = None):
        self.backend = backend
        self.config = config or BroadcastConfig()
        self.state = BroadcastState.IDLE
        self.pending_txid: str | None = None

    async def send(self, tx: Transaction, initial_delay: float = 0.0) -> str:
        """
        Submit tx, optionally after initial_delay seconds.

        Returns:
            Transaction ID reported by the chain

        Raises:
            BroadcastError: Permanent rejection, or retry budget spent
        """
        self.pending_txid = None
        tx_hex = tx.to_hex()

        if initial_delay > 0:
            self.state = BroadcastState.WAITING
            logger.debug(f"Waiting {initial_delay}s before sending {tx.txid}")
            await asyncio.sleep(initial_delay)

        failures = 0
        while True:
            self.state = BroadcastState.SENDING
            try:
                txid = await self.backend.send_raw(tx_hex)
            except SubmitError as e:
                if not e.transient:
                    self.state = BroadcastState.FAILED
                    logger.error(f"Transaction {tx.txid} rejected: {e}")
                    raise BroadcastError(f"Transaction rejected: {e}", last_error=e) from e

                failures += 1
                elapsed = failures * self.config.retry_interval
                if elapsed >= self.config.max_retry_time:
                    self.state = BroadcastState.FAILED
                    logger.error(f"Giving up on {tx.txid} after {failures} attempts: {e}")
                    raise BroadcastError(
                        f"Broadcast failed after {failures} attempts: {e}", last_error=e
                    ) from e

                logger.warning(
                    f"Sending {tx.txid} failed (attempt {failures}), "
                    f"retrying in {self.config.retry_interval}s: {e}"
                )
                self.state = BroadcastState.WAITING
                await asyncio.sleep(self.config.retry_interval)
                continue

            self.state = BroadcastState.SUCCESS
            self.pending_txid = txid
            logger.info(f"Sent transaction {txid}")
            return txid
