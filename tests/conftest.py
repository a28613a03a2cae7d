import pytest

from agent_payment.config import PaymentSettings, RuntimePaths
from agent_payment.wallet.keystore import create_wallet
from agent_payment.wallet.provider import Receipt

PASSWORD = "correct horse battery staple"
RECIPIENT = "0x" + "ab" * 20
TOKEN = "0x" + "cd" * 20
TX_HASH = "0x" + "11" * 32
CHAIN_ID = 84532
RPC_URL = "http://rpc.test"

# pbkdf2 with a tiny work factor keeps keystore tests fast
FAST_KDF = {"kdf": "pbkdf2", "iterations": 16}


class FakeChainClient:
    """In-memory stand-in for Web3ChainClient that records every call."""

    def __init__(
        self,
        chain_id=CHAIN_ID,
        gas_price=1_000_000_000,
        balance=10**18,
        token_balance=10**12,
        receipt_status=True,
        fail_on=None,
    ):
        self.chain_id = chain_id
        self.gas_price = gas_price
        self.balance = balance
        self.token_balance = token_balance
        self.receipt_status = receipt_status
        self.fail_on = fail_on or {}
        self.calls = []
        self.connected_to = None

    def factory(self, rpc_url, chain_id):
        self.connected_to = (rpc_url, chain_id)
        return self

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail_on:
            raise self.fail_on[name]

    def call_names(self):
        return [name for name, _ in self.calls]

    def submits(self):
        return [c for c in self.calls if c[0] in ("send_native", "send_token_transfer")]

    def get_chain_id(self):
        self._record("get_chain_id")
        return self.chain_id

    def get_gas_price(self):
        self._record("get_gas_price")
        return self.gas_price

    def get_balance(self, address):
        self._record("get_balance", address)
        return self.balance

    def get_token_balance(self, token, owner):
        self._record("get_token_balance", token, owner)
        return self.token_balance

    def send_native(self, account, to, value, gas_price):
        self._record("send_native", account.address, to, value, gas_price)
        return TX_HASH

    def send_token_transfer(self, account, token, to, amount, gas_price):
        self._record("send_token_transfer", account.address, token, to, amount, gas_price)
        return TX_HASH

    def wait_for_receipt(self, tx_hash):
        self._record("wait_for_receipt", tx_hash)
        return Receipt(tx_hash=tx_hash, status=self.receipt_status, block_number=42)


@pytest.fixture
def paths(tmp_path):
    return RuntimePaths.from_data_dir(tmp_path / "home")


@pytest.fixture
def settings():
    config = PaymentSettings()
    config.network.name = "base-sepolia"
    config.network.chain_id = CHAIN_ID
    config.network.rpc_url = RPC_URL
    return config


@pytest.fixture
def wallet(paths):
    """A keystore at the default wallet path, encrypted with PASSWORD."""
    return create_wallet(paths.wallet_path, PASSWORD, **FAST_KDF)


@pytest.fixture
def chain():
    return FakeChainClient()
