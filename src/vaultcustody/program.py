"""
Custody program: the operations a vault management bot runs.

Wires selector, fee estimator, builder, broadcaster and confirmation waiter
for one session address. Each operation encodes its payload, builds the
transaction and sends it when the session holds the key. Otherwise the
unsigned transaction is returned for external signing.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from loguru import logger

from vaultcustody.backends.base import ChainBackend, TokenBalance
from vaultcustody.broadcast import Broadcaster
from vaultcustody.builder import TransactionBuilder
from vaultcustody.chain import PrevoutLink
from vaultcustody.chain import next_input as _next_input
from vaultcustody.config import EngineConfig, Settings
from vaultcustody.confirmation import ConfirmationWaiter
from vaultcustody.errors import CapabilityError
from vaultcustody.fees import FeeEstimator
from vaultcustody.notify import LoggingNotifier, Notifier
from vaultcustody.payloads import (
    DEFAULT_MAX_PRICE,
    OperationPayload,
    TokenAmount,
    account_to_account,
    add_pool_liquidity,
    composite_swap,
    deposit_to_vault,
    payback_loan,
    pool_swap,
    remove_pool_liquidity,
    take_loan,
    utxos_to_account,
    withdraw_from_vault,
)
from vaultcustody.resign import RawTransactionSigner
from vaultcustody.selector import UtxoSelector
from vaultcustody.transaction import Transaction
from vaultcustody.wallet.address import address_to_script
from vaultcustody.wallet.capability import SigningCapability, Unavailable, resolve_capability
from vaultcustody.wallet.signing import SigningProvider


class CustodyProgram:
    def __init__(
        self,
        settings: Settings,
        backend: ChainBackend,
        signer: SigningProvider | None = None,
        notifier: Notifier | None = None,
        config: EngineConfig | None = None,
    ):
        self.settings = settings
        self.backend = backend
        self.signer = signer
        self.notifier = notifier or LoggingNotifier()
        self.config = config or EngineConfig()

        self.selector = UtxoSelector(backend, self.config.selector)
        self.fees = FeeEstimator(self.config.fees)
        self.broadcaster = Broadcaster(backend, self.config.broadcast)
        self.capability: SigningCapability = Unavailable(reason="session not initialized")
        self._wire()

    def _wire(self) -> None:
        self.builder = TransactionBuilder(
            self.selector, self.fees, self.capability, self.signer, self.settings.address
        )
        self.waiter = ConfirmationWaiter(self.backend, self.capability, self.config.confirmation)
        self.raw_signer = RawTransactionSigner(
            self.selector,
            self.signer,
            self.broadcaster,
            self.capability,
            self.settings.address,
            self.config.selector,
            self.config.broadcast,
        )

    def init(self) -> SigningCapability:
        """Resolve the session's signing capability. Call once before any operation."""
        self.capability = resolve_capability(
            self.settings.address, self.settings.network, self.signer
        )
        self._wire()
        return self.capability

    def can_sign(self) -> bool:
        return self.capability.can_sign()

    @property
    def script(self) -> bytes:
        if self.capability.script is None:
            raise CapabilityError(f"No valid address configured: '{self.settings.address}'")
        return self.capability.script

    def get_address(self) -> str:
        return self.settings.address if self.capability.can_build() else ""

    async def do_validation_checks(self, need_key: bool) -> bool:
        """
        Check the session can do its job, notifying the operator if not.

        need_key requires the session to sign on its own.
        """
        if not self.capability.can_build() or (need_key and not self.capability.can_sign()):
            message = (
                "Could not initialize wallet. Check your settings! "
                f"{self.settings.seed_word_count} words in seedphrase, "
                f"trying address: {self.settings.address}. "
            )
            await self.notifier.send(message)
            logger.error(message)
            return False
        return True

    # Queries

    async def get_utxo_balance(self) -> Decimal:
        return await self.backend.get_balance(self.settings.address)

    async def get_token_balances(self) -> dict[str, TokenBalance]:
        tokens = await self.backend.list_tokens(self.settings.address)
        return {token.symbol: token for token in tokens}

    async def get_token_balance(self, symbol: str) -> TokenBalance | None:
        return (await self.get_token_balances()).get(symbol)

    async def get_block_height(self) -> int:
        return await self.backend.get_block_height()

    # Operations

    async def deposit_to_vault(
        self, token: int, amount: Decimal, prevout: PrevoutLink | None = None
    ) -> Transaction:
        payload = deposit_to_vault(self._vault_id(), self.script, TokenAmount(token, amount))
        return await self.send_or_create(payload, prevout)

    async def withdraw_from_vault(
        self, token: int, amount: Decimal, prevout: PrevoutLink | None = None
    ) -> Transaction:
        payload = withdraw_from_vault(self._vault_id(), self.script, TokenAmount(token, amount))
        return await self.send_or_create(payload, prevout)

    async def take_loans(
        self, amounts: Sequence[TokenAmount], prevout: PrevoutLink | None = None
    ) -> Transaction:
        return await self.send_or_create(take_loan(self._vault_id(), self.script, amounts), prevout)

    async def payback_loans(
        self, amounts: Sequence[TokenAmount], prevout: PrevoutLink | None = None
    ) -> Transaction:
        return await self.send_or_create(
            payback_loan(self._vault_id(), self.script, amounts), prevout
        )

    async def swap(
        self,
        amount: Decimal,
        from_token: int,
        to_token: int,
        max_price: Decimal = DEFAULT_MAX_PRICE,
        prevout: PrevoutLink | None = None,
    ) -> Transaction:
        payload = pool_swap(self.script, from_token, amount, self.script, to_token, max_price)
        return await self.send_or_create(payload, prevout)

    async def composite_swap(
        self,
        amount: Decimal,
        from_token: int,
        to_token: int,
        pools: Sequence[int],
        max_price: Decimal = DEFAULT_MAX_PRICE,
        prevout: PrevoutLink | None = None,
    ) -> Transaction:
        payload = composite_swap(
            self.script, from_token, amount, self.script, to_token, pools, max_price
        )
        return await self.send_or_create(payload, prevout)

    async def add_liquidity(
        self, amounts: Sequence[TokenAmount], prevout: PrevoutLink | None = None
    ) -> Transaction:
        payload = add_pool_liquidity(self.script, amounts, self.script)
        return await self.send_or_create(payload, prevout)

    async def remove_liquidity(
        self, pool_id: int, amount: Decimal, prevout: PrevoutLink | None = None
    ) -> Transaction:
        payload = remove_pool_liquidity(self.script, pool_id, amount)
        return await self.send_or_create(payload, prevout)

    async def utxo_to_own_account(
        self, amount: Decimal, prevout: PrevoutLink | None = None
    ) -> Transaction:
        """Move native UTXO value to the account balance. The amount rides on the data output."""
        return await self.send_or_create(utxos_to_account(self.script, amount), prevout, amount)

    async def send_to_account(
        self, amount: Decimal, address: str, prevout: PrevoutLink | None = None
    ) -> Transaction:
        """Send native token from the account balance to another address."""
        to_script = address_to_script(address, self.settings.network)
        payload = account_to_account(self.script, [(to_script, [TokenAmount(0, amount)])])
        return await self.send_or_create(payload, prevout)

    # Building and sending

    async def send_or_create(
        self,
        payload: OperationPayload,
        prevout: PrevoutLink | None = None,
        payment: Decimal = Decimal(0),
    ) -> Transaction:
        """Build a transaction for payload and send it if the session can sign."""
        tx = await self.builder.build(payload, explicit_input=prevout, payment_value=payment)
        if self.can_sign():
            delay = self.config.broadcast.chained_initial_delay if prevout is not None else 0.0
            await self.broadcaster.send(tx, initial_delay=delay)
        return tx

    async def send_with_prevout(
        self, tx: Transaction, prevout: PrevoutLink | None = None
    ) -> Transaction:
        """Send tx, first moving it onto prevout when one is given."""
        if prevout is not None:
            tx = self.builder.rebuild_on(tx, prevout)
            delay = self.config.broadcast.chained_initial_delay
            await self.broadcaster.send(tx, initial_delay=delay)
        else:
            await self.broadcaster.send(tx)
        return tx

    def next_input(self, tx: Transaction) -> PrevoutLink:
        return _next_input(tx)

    async def wait_for_tx(self, txid: str, start_block: int | None = None) -> bool:
        return await self.waiter.wait_for_inclusion(txid, start_block)

    async def send_tx_data_to_notifier(self, txs: Sequence[Transaction]) -> bool:
        message = "Please sign and send :\n" + "".join(f"{tx.to_hex()}\n" for tx in txs)
        return await self.notifier.send(message)

    async def sign_and_send_raw(self, raw_hexes: Sequence[str]) -> list[Transaction]:
        return await self.raw_signer.sign_and_send(raw_hexes)

    async def close(self) -> None:
        await self.backend.close()
        await self.notifier.close()

    def _vault_id(self) -> str:
        if not self.settings.vault:
            raise ValueError("No vault configured")
        return self.settings.vault
