"""Merkle proof generator

Rebuilds the transactions or receipts trie of a block from its contents and
extracts the inclusion proof for one index, or wraps an eth_getProof account
proof for state proofs.
"""

from typing import Any, Callable, Mapping, Sequence

import rlp
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes
from web3 import Web3

from testimonium_toolkit.proofs.generators.header_codec import (
    BlockHeader,
    encode_header,
)
from testimonium_toolkit.proofs.generators.transaction_codec import (
    encode_account,
    encode_receipt,
    encode_transaction,
)
from testimonium_toolkit.proofs.trie import (
    build_trie,
    get_proof_nodes,
    verify_proof,
)
from testimonium_toolkit.proofs.types import MerkleProof
from testimonium_toolkit.shared.exceptions import (
    InvalidProofError,
    TrieInconsistencyError,
)
from testimonium_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)


def trie_key(index: int) -> bytes:
    """Key of the index-th item in a transactions or receipts trie"""
    return rlp.encode(index)


def encode_proof_nodes(nodes: Sequence[bytes]) -> bytes:
    """RLP list of the raw node encodings, root first"""
    return rlp.encode([bytes(HexBytes(node)) for node in nodes])


def _build_proof(
    block: Mapping[str, Any],
    items: Sequence[Any],
    encode_item: Callable[[Any], bytes],
    expected_root: bytes,
    tx_index: int,
    kind: str,
) -> MerkleProof:
    header = BlockHeader.from_block(block)
    context = {
        "block_number": header.number,
        "tx_index": tx_index,
        "kind": kind,
    }
    if not 0 <= tx_index < len(items):
        raise TrieInconsistencyError(
            f"Block holds {len(items)} {kind}s, index {tx_index} is out of "
            f"range",
            context,
        )

    values = [encode_item(item) for item in items]
    trie = build_trie(
        (trie_key(index), value) for index, value in enumerate(values)
    )

    if trie.root_hash != expected_root:
        raise TrieInconsistencyError(
            f"Rebuilt {kind} root 0x{trie.root_hash.hex()} does not match "
            f"the header root 0x{expected_root.hex()}",
            context,
        )

    path = trie_key(tx_index)
    nodes = get_proof_nodes(trie, path)
    _logger.debug(
        f"{kind} proof for block {header.number} index {tx_index}: "
        f"{len(nodes)} nodes"
    )
    return {
        "rlp_header": encode_header(header),
        "rlp_value": values[tx_index],
        "path": path,
        "rlp_proof_nodes": encode_proof_nodes(nodes),
    }


def build_transaction_proof(
    block: Mapping[str, Any], tx_index: int
) -> MerkleProof:
    """
    Build the inclusion proof of a transaction in its block.

    Args:
        block (Mapping): Block fetched with full transactions.
        tx_index (int): Index of the transaction in the block.

    Returns:
        MerkleProof: Header, encoded transaction, path and proof nodes.
    """
    return _build_proof(
        block,
        block["transactions"],
        encode_transaction,
        bytes(HexBytes(block["transactionsRoot"])),
        tx_index,
        "transaction",
    )


def build_receipt_proof(
    block: Mapping[str, Any],
    receipts: Sequence[Mapping[str, Any]],
    tx_index: int,
) -> MerkleProof:
    """
    Build the inclusion proof of a receipt in its block.

    Args:
        block (Mapping): The block holding the transaction.
        receipts (Sequence): Receipts of every transaction of the block, in
            block order.
        tx_index (int): Index of the transaction in the block.

    Returns:
        MerkleProof: Header, encoded receipt, path and proof nodes.
    """
    return _build_proof(
        block,
        receipts,
        encode_receipt,
        bytes(HexBytes(block["receiptsRoot"])),
        tx_index,
        "receipt",
    )


def generate_transaction_proof(web_3: Web3, tx_hash: str) -> MerkleProof:
    """Fetch the block of tx_hash and build its transaction proof"""
    receipt = web_3.eth.get_transaction_receipt(tx_hash)
    block = web_3.eth.get_block(receipt["blockHash"], full_transactions=True)
    return build_transaction_proof(block, receipt["transactionIndex"])


def generate_receipt_proof(web_3: Web3, tx_hash: str) -> MerkleProof:
    """Fetch the block and all its receipts, then build the receipt proof"""
    receipt = web_3.eth.get_transaction_receipt(tx_hash)
    block = web_3.eth.get_block(receipt["blockHash"], full_transactions=True)

    # one request per transaction, sequentially
    receipts = [
        web_3.eth.get_transaction_receipt(tx["hash"])
        for tx in block["transactions"]
    ]
    _logger.info(
        f"Fetched {len(receipts)} receipts of block {block['number']}"
    )
    return build_receipt_proof(block, receipts, receipt["transactionIndex"])


def generate_state_proof(
    web_3: Web3, address: str, block_number: int
) -> MerkleProof:
    """
    Build the inclusion proof of an account in the state trie.

    The account proof comes from eth_getProof and is checked against the
    header's state root before it is returned.

    Args:
        web_3 (Web3): Web3 instance of the target chain.
        address (str): The account address.
        block_number (int): Block whose state is proven.

    Returns:
        MerkleProof: Header, encoded account, keccak(address) path and nodes.
    """
    address = to_checksum_address(address)
    block = web_3.eth.get_block(block_number)
    header = BlockHeader.from_block(block)
    proof = web_3.eth.get_proof(address, [], block_number)

    path = keccak(bytes(HexBytes(address)))
    value = encode_account(proof)
    nodes = [bytes(HexBytes(node)) for node in proof["accountProof"]]

    proven = verify_proof(header.state_root, path, nodes)
    if proven != value:
        raise InvalidProofError(
            "Account proof does not prove the reported account fields",
            {"address": address, "block_number": block_number},
        )

    _logger.debug(
        f"State proof for {address} at block {block_number}: "
        f"{len(nodes)} nodes"
    )
    return {
        "rlp_header": encode_header(header),
        "rlp_value": value,
        "path": path,
        "rlp_proof_nodes": encode_proof_nodes(nodes),
    }
