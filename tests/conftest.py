"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests.
"""

from typing import Any, Callable, Dict, List, Tuple
from unittest.mock import MagicMock

import pytest
from eth_account import Account
from eth_utils import to_checksum_address
from hexbytes import HexBytes

# Ethereum mainnet block 1
MAINNET_BLOCK_1: Dict[str, Any] = {
    "hash": HexBytes(
        "0x88e96d4537bea4d9c05d12549907b32561d3bf31f45aae734cdc119f13406cb6"
    ),
    "parentHash": HexBytes(
        "0xd4e56740f876aef8c010b86a40d5f56745a118d0906a34e69aec8c0db1cb8fa3"
    ),
    "sha3Uncles": HexBytes(
        "0x1dcc4de8dec75d7aab85b567b6ccd41ad312451b948a7413f0a142fd40d49347"
    ),
    "miner": "0x05a56E2D52c817161883f50c441c3228CFe54d9f",
    "stateRoot": HexBytes(
        "0xd67e4d450343046425ae4271474353857ab860dbc0a1dde64b41b5cd3a532bf3"
    ),
    "transactionsRoot": HexBytes(
        "0x56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"
    ),
    "receiptsRoot": HexBytes(
        "0x56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"
    ),
    "logsBloom": HexBytes("0x" + "00" * 256),
    "difficulty": 17171480576,
    "number": 1,
    "gasLimit": 5000,
    "gasUsed": 0,
    "timestamp": 1438269988,
    "extraData": HexBytes("0x476574682f76312e302e302f6c696e75782f676f312e342e32"),
    "mixHash": HexBytes(
        "0x969b900de27b6ac6a67742365dd65f55a0526c41fd18e1b16f1a1215c2e66f59"
    ),
    "nonce": HexBytes("0x539bd4979fef1ec4"),
    "totalDifficulty": 34351349760,
    "transactions": [],
}


@pytest.fixture
def mainnet_block_1() -> Dict[str, Any]:
    """Header fields of Ethereum mainnet block 1."""
    return dict(MAINNET_BLOCK_1)


@pytest.fixture
def make_block() -> Callable[..., Dict[str, Any]]:
    """Build a block based on mainnet block 1, without its reported hash."""

    def _make_block(**overrides: Any) -> Dict[str, Any]:
        block = dict(MAINNET_BLOCK_1)
        del block["hash"]
        block.update(overrides)
        return block

    return _make_block


@pytest.fixture
def make_legacy_tx() -> Callable[[int], Dict[str, Any]]:
    """Build a signed-looking legacy transaction, distinct per nonce."""

    def _make_legacy_tx(nonce: int) -> Dict[str, Any]:
        return {
            "hash": HexBytes(bytes([nonce + 1]) * 32),
            "type": 0,
            "nonce": nonce,
            "gasPrice": 20_000_000_000,
            "gas": 21000,
            "to": "0x52f541764E6e90eeBc5c21Ff570De0e2D63766B6",
            "value": 10**18 + nonce,
            "input": HexBytes("0x"),
            "v": 27,
            "r": int("11" * 32, 16) + nonce,
            "s": int("22" * 32, 16),
        }

    return _make_legacy_tx


@pytest.fixture
def make_receipt() -> Callable[..., Dict[str, Any]]:
    """Build a successful receipt with one log."""

    def _make_receipt(index: int, tx_type: int = 0) -> Dict[str, Any]:
        return {
            "transactionHash": HexBytes(bytes([index + 1]) * 32),
            "transactionIndex": index,
            "type": tx_type,
            "status": 1,
            "cumulativeGasUsed": 21000 * (index + 1),
            "logsBloom": HexBytes("0x" + "00" * 256),
            "logs": [
                {
                    "address": "0x7E1444BA99dcdFfE8fBdb42C02fb0DA4AAAcE4d5",
                    "topics": [HexBytes(bytes([index]) * 32)],
                    "data": HexBytes("0x" + "ab" * 32),
                }
            ],
        }

    return _make_receipt


@pytest.fixture
def signed_transactions() -> List[Tuple[Dict[str, Any], Any]]:
    """Legacy, access list and dynamic fee transactions signed locally.

    Each entry pairs the transaction as a node returns it with the signed
    transaction eth_account produced for it.
    """
    signer = Account.from_key("0x" + "4c" * 32)
    to = to_checksum_address("0x52f541764e6e90eebc5c21ff570de0e2d63766b6")
    unsigned = [
        {
            "nonce": 7,
            "gasPrice": 20_000_000_000,
            "gas": 21000,
            "to": to,
            "value": 10**18,
            "data": "0x",
            "chainId": 1,
        },
        {
            "type": 1,
            "chainId": 1,
            "nonce": 8,
            "gasPrice": 20_000_000_000,
            "gas": 60000,
            "to": to,
            "value": 0,
            "data": "0x12345678",
            "accessList": [
                {
                    "address": to,
                    "storageKeys": ["0x" + "00" * 31 + "01"],
                }
            ],
        },
        {
            "type": 2,
            "chainId": 1,
            "nonce": 9,
            "maxPriorityFeePerGas": 10**9,
            "maxFeePerGas": 3 * 10**10,
            "gas": 100000,
            "to": to,
            "value": 5,
            "data": "0xabcdef",
            "accessList": [],
        },
    ]

    signed_transactions = []
    for tx in unsigned:
        signed = signer.sign_transaction(tx)
        as_returned = dict(
            tx,
            hash=HexBytes(signed.hash),
            input=HexBytes(tx["data"]),
            v=signed.v,
            r=signed.r,
            s=signed.s,
        )
        if "type" in tx:
            as_returned["yParity"] = signed.v
        signed_transactions.append((as_returned, signed))
    return signed_transactions


@pytest.fixture
def mock_web3_service():
    """Mock Web3Service for unit tests."""
    service = MagicMock()
    service.chain_id = 1
    service.w3 = MagicMock()
    service.testimonium = MagicMock()
    service.testimonium.address = "0x000000073D065Fc33a3050C2d4a8e82EE5C5C25a"
    service.ethash = MagicMock()
    return service


@pytest.fixture
def mock_account():
    """Mock LocalAccount signing every transaction to fixed bytes."""
    account = MagicMock()
    account.address = "0x52f541764E6e90eeBc5c21Ff570De0e2D63766B6"
    account.sign_transaction.return_value.rawTransaction = b"\x02signed"
    return account


@pytest.fixture
def sample_contract_address() -> str:
    """Sample Testimonium contract address for tests."""
    return "0x000000073D065Fc33a3050C2d4a8e82EE5C5C25a"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line("markers", "slow: mark test as slow-running")
