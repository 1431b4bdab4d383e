"""
Merkle-Patricia trie helpers built on py-trie's HexaryTrie.

Proofs are passed around as the RLP encodings of the nodes on the path from
the root to the leaf, root first. Nodes shorter than 32 bytes live inside
their parent and are not repeated, which is the shape eth_getProof returns
and the Testimonium contract expects.
"""

from typing import Iterable, List, Sequence, Tuple

import rlp
from rlp.exceptions import DecodingError
from trie import HexaryTrie
from trie.constants import BLANK_NODE_HASH
from trie.exceptions import BadTrieProof

from testimonium_toolkit.shared.exceptions import (
    InvalidProofError,
    TrieInconsistencyError,
)

BLANK_ROOT = BLANK_NODE_HASH


def build_trie(items: Iterable[Tuple[bytes, bytes]]) -> HexaryTrie:
    """Insert (key, value) pairs into a fresh in-memory trie"""
    trie = HexaryTrie(db={})
    for key, value in items:
        trie.set(key, value)
    return trie


def get_proof_nodes(trie: HexaryTrie, key: bytes) -> List[bytes]:
    """
    Collect the encoded nodes on the path from the root to the leaf of key.

    Raises TrieInconsistencyError when no leaf holds key.
    """
    if trie.get(key) == b"":
        raise TrieInconsistencyError(
            "No leaf matches the computed path",
            {"root": trie.root_hash.hex(), "key": key.hex()},
        )

    encoded = [rlp.encode(node) for node in trie.get_proof(key)]
    return [
        node
        for position, node in enumerate(encoded)
        if position == 0 or len(node) >= 32
    ]


def verify_proof(
    root_hash: bytes, key: bytes, proof_nodes: Sequence[bytes]
) -> bytes:
    """
    Re-walk a proof from root_hash and return the value stored under key.

    Raises InvalidProofError when a node is missing or does not hash to the
    reference held by its parent, or when the proof excludes key.
    """
    context = {"root": bytes(root_hash).hex(), "key": bytes(key).hex()}
    try:
        nodes = [rlp.decode(bytes(node)) for node in proof_nodes]
    except DecodingError as e:
        raise InvalidProofError(f"Undecodable proof node: {e}", context) from e

    try:
        value = HexaryTrie.get_from_proof(bytes(root_hash), bytes(key), nodes)
    except BadTrieProof as e:
        raise InvalidProofError(
            f"Proof does not connect to the root: {e}", context
        ) from e

    if value == b"":
        raise InvalidProofError("Key is not present in the trie", context)
    return value
