"""CLI for agent-payment - create a wallet, check its address, and pay from the terminal.

Machine-readable results (address, JSON report, transaction hash) go to
stdout. Progress and errors go to stderr, and every failure class has its
own exit code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from agent_payment.config import (
    HOME_ENV_VAR,
    ConfigKey,
    PaymentSettings,
    RuntimePaths,
    dump_config,
    get_value,
    load_config,
    save_config,
    set_value,
    valid_keys,
)
from agent_payment.errors import InvalidArgumentError, MissingConfigError, PaymentError
from agent_payment.wallet.manager import WalletManager
from agent_payment.wallet.networks import NETWORK_PROFILES, apply_network_profile
from agent_payment.wallet.payments import PaymentEngine, PaymentRequest

app = typer.Typer(
    name="agent-payment",
    help="Encrypted EVM wallet: create a keystore, show its address, and send payments.",
    no_args_is_help=True,
)
err_console = Console(stderr=True)


@dataclass(frozen=True)
class CliState:
    """Per-invocation settings shared by every command."""

    paths: RuntimePaths
    config_path: Path

    def load_settings(self) -> PaymentSettings:
        return load_config(self.config_path)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        typer.echo(f"agent-payment {version('agent-payment')}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logger = logging.getLogger("agent_payment")
    if not logger.handlers:
        handler = RichHandler(console=err_console, show_time=False, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


@app.callback()
def main(
    ctx: typer.Context,
    home: Optional[Path] = typer.Option(
        None,
        "--home",
        help="Data directory holding wallet.json, password.txt and config.toml",
        envvar=HOME_ENV_VAR,
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to the configuration file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Encrypted EVM wallet: create a keystore, show its address, and send payments."""
    _setup_logging(verbose)
    paths = RuntimePaths.default(home)
    ctx.obj = CliState(paths=paths, config_path=config or paths.config_path)


def _fail(exc: PaymentError) -> typer.Exit:
    """Report *exc* on stderr and return the matching exit."""
    if isinstance(exc, MissingConfigError) and exc.prompt is not None:
        typer.echo(exc.prompt.to_json(), err=True)
    err_console.print(f"[red]Error:[/red] {escape(str(exc))}", highlight=False)
    return typer.Exit(exc.exit_code)


# ------------------------------------------------------------------
# wallet commands
# ------------------------------------------------------------------


@app.command("create-wallet")
def create_wallet_cmd(
    ctx: typer.Context,
    password: Optional[str] = typer.Option(
        None, "--password", help="Password to encrypt the wallet (auto-generated if omitted)"
    ),
    password_file: Optional[Path] = typer.Option(
        None, "--password-file", help="Read the password from a file"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output path for the keystore file"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing wallet"),
):
    """Generate a new wallet with an encrypted keystore. Prints only the address."""
    state: CliState = ctx.obj
    try:
        if password is not None and password_file is not None:
            raise InvalidArgumentError("--password and --password-file are mutually exclusive")
        manager = WalletManager(state.load_settings(), state.paths)
        info = manager.create(
            password=password, password_file=password_file, output=output, force=force
        )
    except PaymentError as e:
        raise _fail(e)

    typer.echo(info.address)

    err_console.print("[bold green]Wallet created successfully![/bold green]")
    err_console.print(f"Keystore: {info.path}", highlight=False)
    if info.password_path is not None:
        err_console.print(f"Password saved to: {info.password_path}", highlight=False)
        err_console.print("\n[yellow]IMPORTANT: Keep your password file secure![/yellow]")
    err_console.print("\n[dim]Fund this address to enable payments.[/dim]")


@app.command("get-address")
def get_address_cmd(
    ctx: typer.Context,
    wallet: Optional[Path] = typer.Option(
        None, "--wallet", "-w", help="Path to the wallet keystore file"
    ),
):
    """Print the wallet address (and default token balance) as JSON. No password needed."""
    state: CliState = ctx.obj
    try:
        manager = WalletManager(state.load_settings(), state.paths)
        report = manager.describe(wallet)
    except PaymentError as e:
        raise _fail(e)

    typer.echo(report.model_dump_json(indent=2, exclude_none=True))


@app.command("pay")
def pay_cmd(
    ctx: typer.Context,
    to: str = typer.Option(..., "--to", help="Recipient address (0x...)"),
    amount: str = typer.Option(..., "--amount", help="Amount in human units (e.g. 1.5)"),
    token: Optional[str] = typer.Option(
        None, "--token", help="ERC-20 token contract (defaults to payment.default_token)"
    ),
    rpc: Optional[str] = typer.Option(None, "--rpc", help="RPC endpoint URL"),
    wallet: Optional[Path] = typer.Option(
        None, "--wallet", "-w", help="Path to the wallet keystore file"
    ),
    password: Optional[str] = typer.Option(None, "--password", help="Wallet password"),
    password_file: Optional[Path] = typer.Option(
        None, "--password-file", help="Read the wallet password from a file"
    ),
    chain_id: Optional[int] = typer.Option(
        None, "--chain-id", help="Expected chain ID (defaults to network.chain_id)"
    ),
    gas_price: Optional[float] = typer.Option(
        None, "--gas-price", help="Gas price in Gwei (fetched from the network if omitted)"
    ),
    decimals: Optional[int] = typer.Option(
        None,
        "--decimals",
        min=0,
        max=255,
        help="Decimals for --amount (default: payment.default_token_decimals, else 6)",
    ),
    no_wait: bool = typer.Option(False, "--no-wait", help="Don't wait for confirmation"),
):
    """Send native currency or ERC-20 tokens. Prints only the transaction hash."""
    state: CliState = ctx.obj
    try:
        if password is not None and password_file is not None:
            raise InvalidArgumentError("--password and --password-file are mutually exclusive")
        engine = PaymentEngine(state.load_settings(), state.paths)
        tx_hash = engine.pay(
            PaymentRequest(
                to=to,
                amount=amount,
                token=token,
                rpc_url=rpc,
                chain_id=chain_id,
                wallet=wallet,
                password=password,
                password_file=password_file,
                gas_price=gas_price,
                decimals=decimals,
                no_wait=no_wait,
            )
        )
    except PaymentError as e:
        raise _fail(e)

    typer.echo(tx_hash)


# ------------------------------------------------------------------
# config sub-commands
# ------------------------------------------------------------------

config_app = typer.Typer(
    name="config",
    help="Show and edit config.toml.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display the current configuration, including effective wallet paths."""
    state: CliState = ctx.obj
    try:
        settings = state.load_settings()
    except PaymentError as e:
        raise _fail(e)

    effective = settings.model_copy(deep=True)
    effective.wallet.path = str(settings.wallet_path(state.paths))
    effective.wallet.password_file = str(settings.password_path(state.paths))
    typer.echo(dump_config(effective), nl=False)


@config_app.command("get")
def config_get(
    ctx: typer.Context,
    key: str = typer.Argument(help="Config key (e.g. network.rpc_url)"),
):
    """Print one value. Valid but unset keys print nothing."""
    state: CliState = ctx.obj
    try:
        value = get_value(state.load_settings(), ConfigKey.parse(key))
    except PaymentError as e:
        raise _fail(e)

    if value is not None:
        typer.echo(value)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    pairs: List[str] = typer.Argument(
        ..., metavar="KEY VALUE [KEY VALUE ...]", help="Key-value pairs to set"
    ),
):
    """Set one or more values and save the configuration."""
    state: CliState = ctx.obj
    try:
        if len(pairs) % 2:
            raise InvalidArgumentError("Arguments must be key-value pairs")
        settings = state.load_settings()
        for key, value in zip(pairs[::2], pairs[1::2]):
            set_value(settings, ConfigKey.parse(key), value)
            err_console.print(f"Set {key} = {value}", highlight=False, markup=False)
        save_config(settings, state.config_path)
    except PaymentError as e:
        raise _fail(e)

    err_console.print("Configuration saved.")


@config_app.command("use-network")
def config_use_network(
    ctx: typer.Context,
    profile: str = typer.Argument(help="Network profile name (e.g. base-sepolia)"),
):
    """Apply a predefined network profile."""
    state: CliState = ctx.obj
    try:
        settings = state.load_settings()
        apply_network_profile(settings, profile)
        save_config(settings, state.config_path)
    except PaymentError as e:
        raise _fail(e)

    network = settings.network
    payment = settings.payment
    err_console.print(f"Applied network profile: [bold]{profile}[/bold]\n", highlight=False)
    err_console.print("Network configuration:")
    err_console.print(f"  name = {network.name}", highlight=False)
    err_console.print(f"  chain_id = {network.chain_id}", highlight=False)
    err_console.print(f"  rpc_url = {network.rpc_url}", highlight=False)
    if payment.default_token:
        err_console.print("\nPayment defaults:")
        err_console.print(
            f"  token = {payment.default_token} ({payment.default_token_symbol or ''})",
            highlight=False,
        )
        err_console.print(f"  decimals = {payment.default_token_decimals}", highlight=False)


@config_app.command("list-networks")
def config_list_networks():
    """List the available network profiles."""
    typer.echo("Available network profiles:\n")
    for profile in NETWORK_PROFILES.values():
        typer.echo(f"  {profile.name:<20} chain_id={profile.chain_id:<10} {profile.rpc_url}")
        if profile.default_token:
            typer.echo(
                f"  {'':<20} default_token={profile.default_token} "
                f"({profile.default_token_symbol or ''})"
            )
    typer.echo("\nUsage: agent-payment config use-network <profile-name>")


@config_app.command("list-keys")
def config_list_keys():
    """List all valid configuration keys."""
    typer.echo("Valid configuration keys:\n")
    for key in valid_keys():
        typer.echo(f"  {key}")
    typer.echo("\nUsage: agent-payment config get <key>")
    typer.echo("       agent-payment config set <key> <value> [<key> <value> ...]")


if __name__ == "__main__":
    app()
