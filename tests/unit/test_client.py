"""
Unit tests for the relay client operations.
"""

from unittest.mock import MagicMock, call, patch

import pytest
from hexbytes import HexBytes

from testimonium_toolkit import client as relay_client
from testimonium_toolkit.proofs.generators.header_codec import (
    BlockHeader,
    encode_header,
)
from testimonium_toolkit.proofs.types import TrieValueType
from testimonium_toolkit.shared.exceptions import (
    ConfigurationException,
    DatasetUnavailableError,
    NoSubmissionFoundError,
    RemoteUnavailableError,
    TransactionRevertedError,
)

RECEIPT = {"status": 1, "blockNumber": 42, "transactionHash": b"\x11" * 32}


@pytest.fixture
def transactions():
    """TransactionService stand-in returned for every chain."""
    with patch.object(relay_client, "TransactionService") as service_cls:
        yield service_cls.return_value


@pytest.fixture
def client(mock_web3_service, mock_account, transactions):
    return relay_client.TestimoniumClient(
        services={1: mock_web3_service}, account=mock_account
    )


class TestChains:
    def test_unknown_chain_raises(self, monkeypatch, mock_account):
        monkeypatch.delenv("CHAIN_7_RPC_URL", raising=False)
        client = relay_client.TestimoniumClient(account=mock_account)

        with pytest.raises(ConfigurationException, match="CHAIN_7_RPC_URL"):
            client.balance(7)

    def test_unreachable_chain_raises(self, monkeypatch, mock_account):
        monkeypatch.setenv("CHAIN_7_RPC_URL", "http://127.0.0.1:1")
        client = relay_client.TestimoniumClient(account=mock_account)

        with pytest.raises(RemoteUnavailableError) as exc_info:
            client.header_by_number(7, 1)
        assert exc_info.value.context == {"chain_id": 7}
        assert client.chains == []

    def test_missing_private_key_raises(self, monkeypatch):
        monkeypatch.delenv("TESTIMONIUM_PRIVATE_KEY", raising=False)

        with pytest.raises(ConfigurationException):
            relay_client.TestimoniumClient().account

    def test_account_from_private_key(self):
        client = relay_client.TestimoniumClient(private_key="0x" + "01" * 32)

        assert client.account.address.startswith("0x")

    def test_total_balance(self, mock_web3_service, mock_account):
        other = MagicMock()
        other.w3.eth.get_balance.return_value = 5
        mock_web3_service.w3.eth.get_balance.return_value = 7
        client = relay_client.TestimoniumClient(
            services={1: mock_web3_service, 2: other}, account=mock_account
        )

        assert client.total_balance() == 12
        assert client.total_balance([2]) == 5


class TestStake:
    def test_deposit_sends_value(
        self, client, mock_web3_service, transactions
    ):
        transactions.submit_and_await.return_value = (RECEIPT, None)
        testimonium = mock_web3_service.testimonium

        client.deposit_stake(1, 1000)

        testimonium.functions.depositStake.assert_called_once_with(1000)
        transactions.submit_and_await.assert_called_once_with(
            testimonium,
            testimonium.functions.depositStake.return_value,
            None,
            value=1000,
        )

    def test_withdraw_returns_withdrawn_amount(self, client, transactions):
        transactions.submit_and_await.return_value = (
            RECEIPT,
            {"args": {"client": "0x01", "withdrawnStake": 400}},
        )

        assert client.withdraw_stake(1, 500) == 400
        assert transactions.submit_and_await.call_args.args[2] == (
            "WithdrawStake"
        )


class TestHeaders:
    def test_submit_header(
        self, client, mock_web3_service, transactions, mainnet_block_1
    ):
        header = BlockHeader.from_block(mainnet_block_1)
        transactions.submit_and_await.return_value = (
            RECEIPT,
            {"args": {"blockHash": header.hash}},
        )

        block_hash = client.submit_header(1, header)

        assert block_hash == header.hash
        functions = mock_web3_service.testimonium.functions
        functions.submitBlock.assert_called_once_with(encode_header(header))
        assert transactions.submit_and_await.call_args.args[2] == (
            "SubmitHeader"
        )

    def test_header_by_number(
        self, client, mock_web3_service, mainnet_block_1
    ):
        mock_web3_service.w3.eth.get_block.return_value = mainnet_block_1

        header = client.header_by_number(1, 1)

        assert header.hash == bytes(mainnet_block_1["hash"])

    def test_get_block_header(self, client, mock_web3_service):
        get_header = mock_web3_service.testimonium.functions.getHeader
        get_header.return_value.call.return_value = (b"\xab" * 32, 100, 999)

        stored = client.get_block_header(1, "0x" + "ab" * 32)

        get_header.assert_called_once_with(b"\xab" * 32)
        assert stored == {
            "hash": b"\xab" * 32,
            "block_number": 100,
            "total_difficulty": 999,
        }


class TestDispute:
    @pytest.fixture
    def header(self, make_block):
        return BlockHeader.from_block(make_block(number=100))

    def test_dispute_flow(
        self, mock_web3_service, mock_account, transactions, header
    ):
        provider = MagicMock()
        provider.block_metadata.return_value = ([1, 2], [3])
        client = relay_client.TestimoniumClient(
            services={1: mock_web3_service},
            account=mock_account,
            dataset_provider=provider,
        )
        transactions.submit_and_await.return_value = (
            RECEIPT,
            {"args": {"returnCode": 1, "errorInfo": 5}},
        )
        transactions.find_events.return_value = [
            {"args": {"root": b"\x0f" * 32}}
        ]

        with patch.object(
            relay_client,
            "find_submitted_header_bytes",
            side_effect=[encode_header(header), b"parent"],
        ) as locate:
            result = client.dispute_block(1, header.hash)

        testimonium = mock_web3_service.testimonium
        assert locate.call_args_list == [
            call(mock_web3_service.w3, testimonium.address, header.hash, 0),
            call(
                mock_web3_service.w3,
                testimonium.address,
                header.parent_hash,
                0,
            ),
        ]
        testimonium.functions.disputeBlockHeader.assert_called_once_with(
            encode_header(header), b"parent", [1, 2], [3]
        )
        assert result.return_code == 1
        assert result.error_info == 5
        assert result.removed_branch_root == b"\x0f" * 32

    def test_missing_parent_propagates(
        self, mock_web3_service, mock_account, transactions, header
    ):
        client = relay_client.TestimoniumClient(
            services={1: mock_web3_service},
            account=mock_account,
            dataset_provider=MagicMock(
                block_metadata=MagicMock(return_value=([], []))
            ),
        )

        with patch.object(
            relay_client,
            "find_submitted_header_bytes",
            side_effect=[
                encode_header(header),
                NoSubmissionFoundError("no parent"),
            ],
        ):
            with pytest.raises(NoSubmissionFoundError):
                client.dispute_block(1, header.hash)
        transactions.submit_and_await.assert_not_called()

    def test_requires_dataset_provider(self, client, header):
        with pytest.raises(DatasetUnavailableError):
            client.dispute_block(1, header.hash)


class TestVerify:
    PROOF = {
        "rlp_header": b"header",
        "rlp_value": b"value",
        "path": b"\x80",
        "rlp_proof_nodes": b"nodes",
    }

    @pytest.mark.parametrize(
        "value_type,function_name,event_name",
        [
            (TrieValueType.TRANSACTION, "verifyTransaction", "VerifyTransaction"),
            (TrieValueType.RECEIPT, "verifyReceipt", "VerifyReceipt"),
            (TrieValueType.STATE, "verifyState", "VerifyState"),
        ],
    )
    def test_selects_contract_function(
        self,
        client,
        mock_web3_service,
        transactions,
        value_type,
        function_name,
        event_name,
    ):
        transactions.submit_and_await.return_value = (
            RECEIPT,
            {"args": {"result": 0}},
        )

        result = client.verify_merkle_proof(
            1, self.PROOF, value_type, fee_in_wei=100, no_of_confirmations=4
        )

        function = getattr(
            mock_web3_service.testimonium.functions, function_name
        )
        function.assert_called_once_with(
            100, b"header", 4, b"value", b"\x80", b"nodes"
        )
        assert transactions.submit_and_await.call_args.args[2] == event_name
        assert transactions.submit_and_await.call_args.kwargs["value"] == 100
        assert result.return_code == 0
        assert str(result) == "VerificationResult: { returnCode: 0 }"


class TestEpochData:
    EPOCH = {
        "epoch": 300,
        "full_size_in_128_resolution": 12345,
        "branch_depth": 22,
        "merkle_nodes": list(range(85)),
    }

    def test_chunks_of_forty(self, client, mock_web3_service, transactions):
        transactions.submit_and_await.return_value = (RECEIPT, None)

        sent = client.set_epoch_data(1, self.EPOCH)

        assert sent == 3
        set_epoch_data = mock_web3_service.ethash.functions.setEpochData
        assert set_epoch_data.call_args_list == [
            call(300, 12345, 22, list(range(0, 40)), 0, 40),
            call(300, 12345, 22, list(range(40, 80)), 40, 40),
            call(300, 12345, 22, list(range(80, 85)), 80, 5),
        ]

    def test_stops_at_first_failure(self, client, transactions):
        transactions.submit_and_await.side_effect = [
            (RECEIPT, None),
            TransactionRevertedError("bad epoch"),
        ]

        with pytest.raises(TransactionRevertedError):
            client.set_epoch_data(1, self.EPOCH)
        assert transactions.submit_and_await.call_count == 2
