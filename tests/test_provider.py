import pytest
from web3.exceptions import TimeExhausted

from agent_payment.errors import NetworkError
from agent_payment.wallet.provider import Web3ChainClient

from conftest import CHAIN_ID, RPC_URL, TX_HASH


class TestWaitForReceipt:
    @pytest.fixture
    def client(self):
        # HTTPProvider does not connect until the first request
        return Web3ChainClient(RPC_URL, CHAIN_ID)

    def _patch_wait(self, monkeypatch, client, result=None, error=None):
        seen = {}

        def fake_wait(tx_hash, timeout, poll_latency):
            seen.update(tx_hash=tx_hash, timeout=timeout)
            if error is not None:
                raise error
            return result

        monkeypatch.setattr(client.w3.eth, "wait_for_transaction_receipt", fake_wait)
        return seen

    def test_waits_without_a_deadline(self, monkeypatch, client):
        seen = self._patch_wait(
            monkeypatch, client, result={"status": 1, "blockNumber": 7}
        )

        receipt = client.wait_for_receipt(TX_HASH)

        assert seen == {"tx_hash": TX_HASH, "timeout": None}
        assert receipt.status is True
        assert receipt.block_number == 7

    def test_reverted_status(self, monkeypatch, client):
        self._patch_wait(monkeypatch, client, result={"status": 0, "blockNumber": 8})
        assert client.wait_for_receipt(TX_HASH).status is False

    def test_expired_timeout_is_not_a_failed_transaction(self, monkeypatch, client):
        self._patch_wait(monkeypatch, client, error=TimeExhausted("timed out"))

        with pytest.raises(NetworkError) as info:
            client.wait_for_receipt(TX_HASH, timeout=5)

        assert info.value.exit_code == 3
        assert "may still be mined" in str(info.value)

    def test_rpc_failure_while_polling(self, monkeypatch, client):
        self._patch_wait(monkeypatch, client, error=ConnectionError("refused"))
        with pytest.raises(NetworkError):
            client.wait_for_receipt(TX_HASH)
