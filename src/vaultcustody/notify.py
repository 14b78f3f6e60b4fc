"""
Operator notification sinks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx
from loguru import logger

TELEGRAM_API_URL = "https://api.telegram.org"


class Notifier(ABC):
    @abstractmethod
    async def send(self, message: str) -> bool:
        """Deliver message to the operator, True on success"""

    async def close(self) -> None:
        pass


class LoggingNotifier(Notifier):
    """Fallback when no messaging channel is configured."""

    async def send(self, message: str) -> bool:
        logger.info(f"Notification: {message}")
        return True


class TelegramNotifier(Notifier):
    """
    Sends messages through the Telegram Bot API.

    Delivery failures are logged and reported through the return value, an
    unreachable chat never interrupts a custody operation.
    """

    def __init__(
        self,
        token: str,
        chat_id: str,
        api_url: str = TELEGRAM_API_URL,
        timeout: float = 10.0,
    ):
        self.token = token
        self.chat_id = chat_id
        self.api_url = api_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout)

    async def send(self, message: str) -> bool:
        try:
            response = await self.client.get(
                f"{self.api_url}/bot{self.token}/sendMessage",
                params={"chat_id": self.chat_id, "text": message},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to send Telegram message: {e}")
            return False
        return True

    async def close(self) -> None:
        await self.client.aclose()


def create_notifier(token: str, chat_id: str) -> Notifier:
    if token and chat_id:
        return TelegramNotifier(token, chat_id)
    return LoggingNotifier()
