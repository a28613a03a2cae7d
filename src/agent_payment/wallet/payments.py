"""Payment engine: turn a pay request into a submitted (and confirmed) transaction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from web3 import Web3

from agent_payment.errors import (
    InsufficientBalanceError,
    InvalidArgumentError,
    InvalidAmountError,
    InvalidConfigError,
    PaymentError,
    TransactionFailedError,
    WalletNotFoundError,
)
from agent_payment.wallet.amounts import gwei_to_wei, human_to_raw
from agent_payment.wallet.keystore import decrypt_key, read_password_file
from agent_payment.wallet.provider import NATIVE_TRANSFER_GAS, Web3ChainClient
from agent_payment.wallet.resolver import NetworkOverrides, resolve_network

if TYPE_CHECKING:
    from agent_payment.config import PaymentSettings, RuntimePaths

logger = logging.getLogger("agent_payment.wallet.payments")

# Applies to native transfers too when neither --decimals nor config sets it
DEFAULT_TOKEN_DECIMALS = 6

ChainClientFactory = Callable[[str, int], Web3ChainClient]


@dataclass(frozen=True)
class PaymentRequest:
    """Everything a single ``pay`` invocation was asked to do.

    ``amount`` is in human units. ``gas_price`` is in Gwei.
    """

    to: str
    amount: str
    token: str | None = None
    rpc_url: str | None = None
    chain_id: int | None = None
    wallet: Path | None = None
    password: str | None = None
    password_file: Path | None = None
    gas_price: float | str | Decimal | None = None
    decimals: int | None = None
    no_wait: bool = False


class PaymentEngine:
    """Runs the pay pipeline against one network.

    Steps run strictly in order and the first failure aborts the run.
    Cheap local validation (paths, password, recipient, amount) happens
    before the wallet is decrypted or the network is contacted.
    """

    def __init__(
        self,
        settings: PaymentSettings,
        paths: RuntimePaths,
        client_factory: ChainClientFactory | None = None,
    ) -> None:
        self.settings = settings
        self.paths = paths
        self.client_factory = client_factory or Web3ChainClient

    def pay(self, request: PaymentRequest) -> str:
        """Send a payment and return its transaction hash."""
        network = resolve_network(
            NetworkOverrides(rpc_url=request.rpc_url, chain_id=request.chain_id),
            self.settings,
        )

        wallet_path = request.wallet or self.settings.wallet_path(self.paths)
        if not wallet_path.exists():
            raise WalletNotFoundError(str(wallet_path))

        password = self._resolve_password(request)
        to_address = self._parse_address(request.to, "recipient address")

        decimals = self._resolve_decimals(request)
        try:
            amount = human_to_raw(request.amount, decimals)
        except InvalidAmountError as exc:
            raise InvalidArgumentError(f"Invalid amount '{request.amount}': {exc.detail}") from exc
        logger.info(f"Amount: {request.amount} (raw: {amount} with {decimals} decimals)")

        token = self._resolve_token(request)

        logger.info("Decrypting wallet...")
        account = decrypt_key(wallet_path, password)
        try:
            logger.info(f"From: {account.address}")
            logger.info(f"To: {to_address}")

            logger.info(f"Connecting to {network.rpc_url}...")
            client = self.client_factory(network.rpc_url, network.chain_id)
            actual_chain_id = client.get_chain_id()
            if actual_chain_id != network.chain_id:
                raise InvalidConfigError(
                    f"Chain ID mismatch: expected {network.chain_id}, got {actual_chain_id}"
                )

            gas_price = self._resolve_gas_price(request, client)

            if token is not None:
                balance = client.get_token_balance(token, account.address)
                if balance < amount:
                    raise InsufficientBalanceError(
                        f"Token balance {balance} is less than amount {amount}"
                    )
                logger.info(f"Sending {amount} tokens of {token} to {to_address}...")
                tx_hash = client.send_token_transfer(account, token, to_address, amount, gas_price)
            else:
                balance = client.get_balance(account.address)
                total_cost = amount + NATIVE_TRANSFER_GAS * gas_price
                if balance < total_cost:
                    raise InsufficientBalanceError(
                        f"Balance {balance} is less than amount + gas ({total_cost})"
                    )
                logger.info(f"Sending {amount} wei to {to_address}...")
                tx_hash = client.send_native(account, to_address, amount, gas_price)
        finally:
            del account

        logger.info(f"Transaction sent: {tx_hash}")

        if not request.no_wait:
            logger.info("Waiting for confirmation...")
            receipt = client.wait_for_receipt(tx_hash)
            if not receipt.status:
                raise TransactionFailedError("Transaction reverted")
            logger.info(f"Confirmed in block {receipt.block_number}")

        return tx_hash

    # ------------------------------------------------------------------
    # Resolution helpers
    # ------------------------------------------------------------------

    def _resolve_password(self, request: PaymentRequest) -> str:
        if request.password is not None:
            return request.password
        if request.password_file is not None:
            return self._read_password(request.password_file)
        configured = self.settings.password_path(self.paths)
        if configured.exists():
            return self._read_password(configured)
        raise InvalidArgumentError(
            "No password provided. Use --password, --password-file, "
            "or configure wallet.password_file"
        )

    @staticmethod
    def _read_password(path: Path) -> str:
        try:
            return read_password_file(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise PaymentError(f"Failed to read password file: {exc}") from exc

    @staticmethod
    def _parse_address(value: str, what: str) -> str:
        if not Web3.is_address(value):
            raise InvalidArgumentError(f"Invalid {what}: {value}")
        return Web3.to_checksum_address(value)

    def _resolve_decimals(self, request: PaymentRequest) -> int:
        if request.decimals is not None:
            return request.decimals
        configured = self.settings.payment.default_token_decimals
        if configured is not None:
            return configured
        return DEFAULT_TOKEN_DECIMALS

    def _resolve_token(self, request: PaymentRequest) -> str | None:
        if request.token:
            return self._parse_address(request.token, "token address")
        configured = self.settings.payment.default_token
        if not configured:
            return None
        if not Web3.is_address(configured):
            raise InvalidConfigError(f"Invalid payment.default_token: {configured}")
        return Web3.to_checksum_address(configured)

    @staticmethod
    def _resolve_gas_price(request: PaymentRequest, client: Web3ChainClient) -> int:
        if request.gas_price is not None:
            try:
                wei = gwei_to_wei(request.gas_price)
            except InvalidAmountError as exc:
                raise InvalidArgumentError(exc.detail) from exc
            logger.info(f"Using gas price: {request.gas_price} Gwei")
            return wei
        price = client.get_gas_price()
        logger.info(f"Network gas price: {Web3.from_wei(price, 'gwei')} Gwei")
        return price
