"""Web3-backed chain client for a single EVM network."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.middleware import ExtraDataToPOAMiddleware

from agent_payment.errors import NetworkError, TransactionFailedError

logger = logging.getLogger("agent_payment.wallet.provider")

NATIVE_TRANSFER_GAS = 21_000
RECEIPT_POLL_LATENCY = 1.0

ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


@dataclass(frozen=True)
class Receipt:
    """The parts of a transaction receipt the payment flow looks at."""

    tx_hash: str
    status: bool
    block_number: int | None


class Web3ChainClient:
    """Chain-RPC operations used by the payment engine.

    Reads and receipt polling raise :class:`NetworkError`; submission
    raises :class:`TransactionFailedError`. Nothing is retried.
    """

    def __init__(self, rpc_url: str, chain_id: int | None = None) -> None:
        self.rpc_url = rpc_url
        self.expected_chain_id = chain_id
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))

        # Base, Polygon and most testnets put more than 32 bytes in extraData
        if chain_id != 1:
            self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_chain_id(self) -> int:
        try:
            return self.w3.eth.chain_id
        except Exception as exc:
            raise NetworkError(f"Failed to get chain ID: {exc}") from exc

    def get_gas_price(self) -> int:
        try:
            return self.w3.eth.gas_price
        except Exception as exc:
            raise NetworkError(f"Failed to get gas price: {exc}") from exc

    def get_balance(self, address: str) -> int:
        try:
            return self.w3.eth.get_balance(Web3.to_checksum_address(address))
        except Exception as exc:
            raise NetworkError(f"Failed to get balance: {exc}") from exc

    def get_token_balance(self, token: str, owner: str) -> int:
        try:
            contract = self._erc20(token)
            return contract.functions.balanceOf(Web3.to_checksum_address(owner)).call()
        except Exception as exc:
            raise NetworkError(f"Failed to get token balance: {exc}") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def send_native(
        self, account: LocalAccount, to: str, value: int, gas_price: int
    ) -> str:
        """Sign and submit a plain value transfer. Returns the tx hash."""
        try:
            tx = {
                "to": Web3.to_checksum_address(to),
                "value": value,
                "gas": NATIVE_TRANSFER_GAS,
                "gasPrice": gas_price,
                "nonce": self.w3.eth.get_transaction_count(account.address, "pending"),
                "chainId": self._chain_id(),
            }
            return self._sign_and_send(account, tx)
        except Exception as exc:
            raise TransactionFailedError(f"Failed to send transaction: {exc}") from exc

    def send_token_transfer(
        self, account: LocalAccount, token: str, to: str, amount: int, gas_price: int
    ) -> str:
        """Sign and submit an ERC-20 ``transfer(to, amount)``. Returns the tx hash."""
        try:
            contract = self._erc20(token)
            tx = contract.functions.transfer(
                Web3.to_checksum_address(to), amount
            ).build_transaction(
                {
                    "from": account.address,
                    "gasPrice": gas_price,
                    "nonce": self.w3.eth.get_transaction_count(account.address, "pending"),
                    "chainId": self._chain_id(),
                }
            )
            return self._sign_and_send(account, tx)
        except Exception as exc:
            raise TransactionFailedError(f"Failed to send transaction: {exc}") from exc

    def wait_for_receipt(self, tx_hash: str, timeout: float | None = None) -> Receipt:
        """Poll until the transaction is mined.

        With no *timeout* this waits indefinitely. If a timeout is given and
        expires, :class:`NetworkError` is raised: the transaction may still
        be mined, so it is not reported as failed.
        """
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=RECEIPT_POLL_LATENCY
            )
        except TimeExhausted as exc:
            raise NetworkError(
                f"Transaction {tx_hash} not confirmed after {timeout}s; "
                "it may still be mined"
            ) from exc
        except Exception as exc:
            raise NetworkError(f"Failed to get receipt for {tx_hash}: {exc}") from exc

        return Receipt(
            tx_hash=tx_hash,
            status=receipt.get("status") == 1,
            block_number=receipt.get("blockNumber"),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _erc20(self, token: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)

    def _chain_id(self) -> int:
        if self.expected_chain_id is not None:
            return self.expected_chain_id
        return self.w3.eth.chain_id

    def _sign_and_send(self, account: LocalAccount, tx: dict) -> str:
        signed = account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        hex_hash = Web3.to_hex(tx_hash)
        logger.debug(f"Submitted {hex_hash} via {self.rpc_url}")
        return hex_hash
