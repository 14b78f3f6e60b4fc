"""
Vault custody CLI using Typer.

Settings come from VAULT_* environment variables or a .env file. Options
given on the command line override them.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Annotated

import typer
from loguru import logger

from vaultcustody.backends.ocean import OceanBackend
from vaultcustody.config import Settings, get_settings
from vaultcustody.constants import DATA_OUTPUT_INDEX
from vaultcustody.errors import CustodyError
from vaultcustody.notify import create_notifier
from vaultcustody.payloads import parse_data_output
from vaultcustody.program import CustodyProgram
from vaultcustody.transaction import Transaction
from vaultcustody.wallet.address import script_to_address
from vaultcustody.wallet.signing import MnemonicSigningProvider

app = typer.Typer(
    name="vault-custody",
    help="Vault custody transaction engine",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def load_settings(address: str | None, network: str | None) -> Settings:
    settings = get_settings()
    overrides = {k: v for k, v in {"address": address, "network": network}.items() if v}
    if overrides:
        settings = settings.model_copy(update=overrides)
    setup_logging(settings.log_level)
    return settings


def create_program(settings: Settings) -> CustodyProgram:
    signer = None
    if settings.mnemonic:
        signer = MnemonicSigningProvider(
            settings.mnemonic, settings.network, settings.account_lookup_limit
        )
    program = CustodyProgram(
        settings=settings,
        backend=OceanBackend(settings.ocean_url, settings.network),
        signer=signer,
        notifier=create_notifier(settings.telegram_token, settings.telegram_chat_id),
    )
    program.init()
    return program


AddressOption = Annotated[
    str | None, typer.Option(help="Session address (overrides VAULT_ADDRESS)")
]
NetworkOption = Annotated[
    str | None, typer.Option(help="mainnet | testnet | regtest (overrides VAULT_NETWORK)")
]


@app.command()
def info(address: AddressOption = None, network: NetworkOption = None) -> None:
    """Show signing capability, balances and chain height for the session address."""
    settings = load_settings(address, network)
    program = create_program(settings)

    async def run() -> None:
        try:
            if not await program.do_validation_checks(need_key=False):
                raise typer.Exit(1)
            typer.echo(f"Address:     {program.get_address()}")
            typer.echo(f"Can sign:    {program.can_sign()}")
            typer.echo(f"Block:       {await program.get_block_height()}")
            typer.echo(f"UTXO:        {await program.get_utxo_balance()}")
            for symbol, token in (await program.get_token_balances()).items():
                typer.echo(f"  {symbol:<12} {token.amount}")
        finally:
            await program.close()

    try:
        asyncio.run(run())
    except CustodyError as e:
        logger.error(str(e))
        raise typer.Exit(1)


@app.command()
def sign_and_send(
    raw_txs: Annotated[list[str], typer.Argument(help="Raw transaction hex, in spending order")],
    address: AddressOption = None,
    network: NetworkOption = None,
) -> None:
    """Sign externally built transactions with the session key and send them."""
    settings = load_settings(address, network)
    program = create_program(settings)

    async def run() -> list[Transaction]:
        try:
            if not await program.do_validation_checks(need_key=True):
                raise typer.Exit(1)
            return await program.sign_and_send_raw(raw_txs)
        finally:
            await program.close()

    try:
        sent = asyncio.run(run())
    except (CustodyError, ValueError) as e:
        logger.error(str(e))
        raise typer.Exit(1)

    for tx in sent:
        typer.echo(tx.txid)


@app.command()
def wait(
    txid: Annotated[str, typer.Argument(help="Transaction ID to wait for")],
    start_block: Annotated[
        int | None, typer.Option(help="Block height the wait is measured from")
    ] = None,
    address: AddressOption = None,
    network: NetworkOption = None,
) -> None:
    """Wait until a transaction is included, exit code 1 on timeout."""
    settings = load_settings(address, network)
    program = create_program(settings)

    async def run() -> bool:
        try:
            return await program.wait_for_tx(txid, start_block)
        finally:
            await program.close()

    try:
        included = asyncio.run(run())
    except CustodyError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    typer.echo("included" if included else "timeout")
    if not included:
        raise typer.Exit(1)


@app.command()
def decode(
    raw_tx: Annotated[str, typer.Argument(help="Raw transaction hex")],
    network: Annotated[str, typer.Option(help="mainnet | testnet | regtest")] = "mainnet",
) -> None:
    """Show the inputs, outputs and operation of a raw transaction."""
    setup_logging("WARNING")
    try:
        tx = Transaction.from_hex(raw_tx)
    except ValueError as e:
        logger.error(f"Invalid transaction: {e}")
        raise typer.Exit(1)

    typer.echo(f"txid: {tx.txid}")
    typer.echo(f"version: {tx.version}  vsize: {tx.vsize()}")
    for inp in tx.inputs:
        typer.echo(f"in  {inp.txid}:{inp.vout}{'  (signed)' if inp.witness else ''}")
    for index, out in enumerate(tx.outputs):
        destination = script_to_address(out.script, network) or out.script.hex()
        typer.echo(f"out {index} {out.value} token {out.token_id} -> {destination}")

    if tx.outputs:
        payload = parse_data_output(tx.outputs[DATA_OUTPUT_INDEX].script)
        if payload is not None:
            typer.echo(f"operation: {payload.name} ({payload.data.hex()})")


def main() -> None:  # pragma: no cover
    app()
