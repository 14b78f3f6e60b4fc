"""
Configuration for the custody engine.

Engine tunables are plain pydantic models passed into each component at
construction. Runtime settings (address, vault, key material, endpoints)
are loaded with pydantic-settings from the environment or a .env file.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SelectionPolicy(str, Enum):
    """How the builder consumes the outputs returned by the selector."""

    ALL = "all"
    COVERING = "covering"


class FeeConfig(BaseModel):
    """Fee estimation settings."""

    fee_rate_per_byte: Decimal = Field(
        default=Decimal("0.00000001"), gt=0, description="Fee rate in coins per vbyte"
    )
    fee_floor: Decimal = Field(
        default=Decimal("0.001"),
        ge=0,
        description="Funding on top of the payment that the covering policy selects for",
    )


class SelectorConfig(BaseModel):
    default_limit: int = Field(default=10, ge=1, le=1000)
    resign_limit: int = Field(default=100, ge=1, le=1000)
    policy: SelectionPolicy = SelectionPolicy.ALL


class BroadcastConfig(BaseModel):
    """Bounded retry settings for raw transaction submission (seconds)."""

    retry_interval: float = Field(default=10.0, gt=0)
    max_retry_time: float = Field(default=50.0, ge=0, description="Retry budget after first try")
    chained_initial_delay: float = Field(
        default=3.0, ge=0, description="Wait before sending a tx that spends an unconfirmed parent"
    )


class ConfirmationBudget(BaseModel):
    timeout: float = Field(..., gt=0, description="Wall-clock budget in seconds")
    blocks: int = Field(..., ge=0, description="Blocks past the start height before giving up")


class ConfirmationConfig(BaseModel):
    """Polling settings for inclusion checks (seconds)."""

    initial_delay: float = Field(default=15.0, ge=0)
    poll_interval: float = Field(default=15.0, gt=0)
    # Self-signing sessions broadcast immediately, so a tighter budget applies
    self_signed: ConfirmationBudget = Field(
        default_factory=lambda: ConfirmationBudget(timeout=600.0, blocks=20)
    )
    # Externally signed transactions need an extra signing round-trip first
    externally_signed: ConfirmationBudget = Field(
        default_factory=lambda: ConfirmationBudget(timeout=900.0, blocks=30)
    )


class EngineConfig(BaseModel):
    """All engine tunables with their defaults."""

    fees: FeeConfig = Field(default_factory=FeeConfig)
    selector: SelectorConfig = Field(default_factory=SelectorConfig)
    broadcast: BroadcastConfig = Field(default_factory=BroadcastConfig)
    confirmation: ConfirmationConfig = Field(default_factory=ConfirmationConfig)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VAULT_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: Literal["mainnet", "testnet", "regtest"] = "mainnet"
    ocean_url: str = "https://ocean.defichain.com"

    address: str = ""
    vault: str = ""
    mnemonic: str = ""
    account_lookup_limit: int = 100

    telegram_token: str = ""
    telegram_chat_id: str = ""

    log_level: str = "INFO"

    @property
    def seed_word_count(self) -> int:
        return len(self.mnemonic.split())


def get_settings() -> Settings:
    return Settings()
