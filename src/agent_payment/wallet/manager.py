"""High-level wallet operations used by the CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel

from agent_payment.errors import PaymentError, WalletExistsError
from agent_payment.wallet.amounts import raw_to_human
from agent_payment.wallet.keystore import (
    WalletInfo,
    create_wallet,
    load_address,
    read_password_file,
)
from agent_payment.wallet.payments import DEFAULT_TOKEN_DECIMALS, ChainClientFactory
from agent_payment.wallet.provider import Web3ChainClient

if TYPE_CHECKING:
    from agent_payment.config import PaymentSettings, RuntimePaths

logger = logging.getLogger("agent_payment.wallet.manager")


class AddressReport(BaseModel):
    """Output of ``get-address``: the address plus an optional token balance."""

    address: str
    balance: Optional[str] = None
    token: Optional[str] = None
    token_symbol: Optional[str] = None
    network: Optional[str] = None


class WalletManager:
    """Wallet lifecycle and address queries for one invocation."""

    def __init__(
        self,
        settings: PaymentSettings,
        paths: RuntimePaths,
        client_factory: ChainClientFactory | None = None,
    ) -> None:
        self.settings = settings
        self.paths = paths
        self.client_factory = client_factory or Web3ChainClient

    # ------------------------------------------------------------------
    # Wallet lifecycle
    # ------------------------------------------------------------------

    def create(
        self,
        password: str | None = None,
        password_file: Path | None = None,
        output: Path | None = None,
        force: bool = False,
        **encrypt_options,
    ) -> WalletInfo:
        """Create a wallet, generating a password if none is supplied.

        An existing keystore is only removed when *force* is set.
        """
        wallet_path = output or self.settings.wallet_path(self.paths)
        if self.has_wallet(wallet_path) and not force:
            raise WalletExistsError(str(wallet_path))

        if password is None and password_file is not None:
            try:
                password = read_password_file(password_file)
            except (OSError, UnicodeDecodeError) as exc:
                raise PaymentError(f"Failed to read password file: {exc}") from exc

        if self.has_wallet(wallet_path):
            wallet_path.unlink()
            logger.warning(f"Removed existing wallet at {wallet_path}")

        save_path = self.settings.password_path(self.paths) if password is None else None
        return create_wallet(wallet_path, password, save_path, **encrypt_options)

    def has_wallet(self, wallet: Path | None = None) -> bool:
        return (wallet or self.settings.wallet_path(self.paths)).exists()

    # ------------------------------------------------------------------
    # Address and balance
    # ------------------------------------------------------------------

    def describe(self, wallet: Path | None = None) -> AddressReport:
        """Return the wallet address, with the default token balance if configured.

        The balance is looked up only when both ``network.rpc_url`` and
        ``payment.default_token`` are set. A failed lookup is logged and the
        report is returned without a balance.
        """
        address = load_address(wallet or self.settings.wallet_path(self.paths))
        report = AddressReport(address=address)

        rpc_url = self.settings.network.rpc_url
        token = self.settings.payment.default_token
        if not (rpc_url and token):
            return report

        report.token = token
        report.token_symbol = self.settings.payment.default_token_symbol
        report.network = self.settings.network.name

        decimals = self.settings.payment.default_token_decimals
        if decimals is None:
            decimals = DEFAULT_TOKEN_DECIMALS
        try:
            client = self.client_factory(rpc_url, self.settings.network.chain_id)
            raw = client.get_token_balance(token, address)
            report.balance = raw_to_human(raw, decimals)
        except PaymentError as e:
            logger.warning(f"Could not fetch balance: {e}")
        return report
