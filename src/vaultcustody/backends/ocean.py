"""
Ocean REST API chain backend.

Talks to a public or self-hosted Ocean indexer over HTTP:
    {url}/v0/{network}/address/{address}/transactions/unspent
    {url}/v0/{network}/address/{address}/balance
    {url}/v0/{network}/address/{address}/tokens
    {url}/v0/{network}/transactions/{txid}
    {url}/v0/{network}/stats
    {url}/v0/{network}/rawtx/send
"""

from __future__ import annotations

import os
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from vaultcustody.backends.base import ChainBackend, TokenBalance
from vaultcustody.errors import QueryError, SubmitError
from vaultcustody.transaction import SpendableOutput

# Timeout for regular API calls (seconds)
DEFAULT_API_TIMEOUT = 30.0

# Rejections that can clear once a parent transaction propagates
TRANSIENT_REJECTIONS = (
    "missing-inputs",
    "missingorspent",
    "txn-mempool-conflict",
    "mempool full",
)

# Environment variable to enable sensitive logging (addresses, raw transactions)
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


def is_transient_rejection(status_code: int, message: str) -> bool:
    """Classify a failed submission as retryable or final."""
    if status_code >= 500 or status_code == 429:
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in TRANSIENT_REJECTIONS)


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error", {})
        return str(error.get("message") or error)
    except ValueError:
        return response.text


class OceanBackend(ChainBackend):
    """Chain backend using the Ocean REST API."""

    def __init__(
        self,
        url: str = "https://ocean.defichain.com",
        network: str = "mainnet",
        timeout: float = DEFAULT_API_TIMEOUT,
    ):
        self.url = url.rstrip("/")
        self.network = network
        self.client = httpx.AsyncClient(timeout=timeout)

    def _endpoint(self, path: str) -> str:
        return f"{self.url}/v0/{self.network}/{path}"

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET an Ocean endpoint and unwrap its "data" field.

        Raises:
            QueryError: On connection, HTTP or decoding errors
        """
        try:
            response = await self.client.get(self._endpoint(path), params=params)
            response.raise_for_status()
            return response.json().get("data")

        except httpx.HTTPError as e:
            logger.error(f"Ocean query failed: {path} - {e}")
            raise QueryError(f"Ocean query failed: {path} - {e}") from e
        except ValueError as e:
            logger.error(f"Ocean returned invalid JSON for {path}: {e}")
            raise QueryError(f"Invalid response for {path}") from e

    async def get_spendable_outputs(self, address: str, limit: int) -> list[SpendableOutput]:
        items = await self._get(f"address/{address}/transactions/unspent", {"size": limit})

        outputs = []
        for item in items or []:
            vout = item["vout"]
            outputs.append(
                SpendableOutput(
                    txid=vout["txid"],
                    vout=int(vout["n"]),
                    value=Decimal(str(vout["value"])),
                    script=bytes.fromhex(item["script"]["hex"]),
                    token_id=int(vout.get("tokenId") or 0),
                )
            )

        if SENSITIVE_LOGGING:
            logger.debug(f"Unspent outputs for {address}: {outputs}")
        logger.debug(f"Fetched {len(outputs)} spendable outputs (limit {limit})")
        return outputs

    async def get_transaction(self, txid: str) -> dict[str, Any] | None:
        try:
            return await self._get(f"transactions/{txid}")
        except QueryError as e:
            cause = e.__cause__
            if isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404:
                logger.debug(f"Transaction {txid} not found")
                return None
            raise

    async def get_block_height(self) -> int:
        stats = await self._get("stats")
        try:
            height = int(stats["count"]["blocks"])
        except (KeyError, TypeError, ValueError) as e:
            raise QueryError(f"Unexpected stats response: {stats}") from e
        logger.debug(f"Current block height: {height}")
        return height

    async def get_balance(self, address: str) -> Decimal:
        balance = await self._get(f"address/{address}/balance")
        return Decimal(str(balance or "0"))

    async def list_tokens(self, address: str, limit: int = 1000) -> list[TokenBalance]:
        items = await self._get(f"address/{address}/tokens", {"size": limit})
        return [
            TokenBalance(
                token_id=int(item["id"]),
                symbol=item.get("symbol", ""),
                amount=Decimal(str(item.get("amount", "0"))),
                is_dat=bool(item.get("isDAT", False)),
                is_lps=bool(item.get("isLPS", False)),
            )
            for item in items or []
        ]

    async def send_raw(self, tx_hex: str) -> str:
        try:
            response = await self.client.post(self._endpoint("rawtx/send"), json={"hex": tx_hex})
            response.raise_for_status()
            txid = response.json().get("data")

        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            transient = is_transient_rejection(e.response.status_code, message)
            logger.debug(f"rawtx/send rejected ({e.response.status_code}): {message}")
            raise SubmitError(message, transient=transient) from e
        except httpx.HTTPError as e:
            raise SubmitError(f"Submission failed: {e}", transient=True) from e
        except ValueError as e:
            raise SubmitError("Invalid submission response", transient=True) from e

        if not txid:
            raise SubmitError("Submission response carried no txid", transient=True)

        if SENSITIVE_LOGGING:
            logger.debug(f"Submitted raw transaction: {tx_hex}")
        logger.info(f"Submitted transaction: {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
