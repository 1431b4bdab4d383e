"""
Unit tests for the trie helpers and the proof verifier.
"""

import pytest
import rlp
from eth_utils import keccak

from testimonium_toolkit.proofs.trie import (
    BLANK_ROOT,
    build_trie,
    get_proof_nodes,
    verify_proof,
)
from testimonium_toolkit.shared.exceptions import (
    InvalidProofError,
    TrieInconsistencyError,
)

DOGS = {b"doe": b"reindeer", b"dog": b"puppy", b"dogglesworth": b"cat"}
PUPPY = {
    b"do": b"verb",
    b"horse": b"stallion",
    b"doge": b"coin",
    b"dog": b"puppy",
}


def indexed_items(count, size=40):
    return {rlp.encode(i): (b"%d-" % i).ljust(size, b"x") for i in range(count)}


class TestRoots:
    """Roots of the reference trie fixtures."""

    def test_empty_root(self):
        assert build_trie([]).root_hash == BLANK_ROOT
        assert BLANK_ROOT.hex() == (
            "56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"
        )

    def test_dogs_root(self):
        assert build_trie(DOGS.items()).root_hash.hex() == (
            "8aad789dff2f538bca5d8ea56e8abe10f4c7ba3a5dea95fea4cd6e7c3a1168d3"
        )

    def test_puppy_root(self):
        assert build_trie(PUPPY.items()).root_hash.hex() == (
            "5991bb8c6514148a29db676a14ac506cd2cd5775ace63c30a4fe457715e9ac84"
        )

    def test_root_is_independent_of_insertion_order(self):
        forward = build_trie(PUPPY.items())
        backward = build_trie(reversed(list(PUPPY.items())))

        assert forward.root_hash == backward.root_hash


class TestProofNodes:
    def test_root_node_comes_first(self):
        trie = build_trie(DOGS.items())

        nodes = get_proof_nodes(trie, b"dog")

        assert keccak(nodes[0]) == trie.root_hash

    def test_embedded_nodes_are_not_repeated(self):
        trie = build_trie(PUPPY.items())

        nodes = get_proof_nodes(trie, b"dog")

        assert all(len(node) >= 32 for node in nodes[1:])

    def test_single_item_trie_has_one_node(self):
        items = indexed_items(1)
        trie = build_trie(items.items())

        assert len(get_proof_nodes(trie, rlp.encode(0))) == 1

    def test_missing_key_raises(self):
        trie = build_trie(DOGS.items())

        with pytest.raises(TrieInconsistencyError):
            get_proof_nodes(trie, b"cat")

    def test_empty_trie_raises(self):
        with pytest.raises(TrieInconsistencyError):
            get_proof_nodes(build_trie([]), b"\x80")


class TestVerifyProof:
    """Proofs re-walk to the stored value and fail on any tampering."""

    @pytest.mark.parametrize("key", sorted(PUPPY))
    def test_every_key_verifies(self, key):
        trie = build_trie(PUPPY.items())

        nodes = get_proof_nodes(trie, key)

        assert verify_proof(trie.root_hash, key, nodes) == PUPPY[key]

    @pytest.mark.parametrize("count", [2, 17, 129, 300])
    def test_indexed_values(self, count):
        items = indexed_items(count)
        trie = build_trie(items.items())

        for key, value in items.items():
            nodes = get_proof_nodes(trie, key)
            assert verify_proof(trie.root_hash, key, nodes) == value

    def test_wrong_root_raises(self):
        trie = build_trie(DOGS.items())

        with pytest.raises(InvalidProofError):
            verify_proof(b"\x00" * 32, b"dog", get_proof_nodes(trie, b"dog"))

    def test_absent_key_raises(self):
        trie = build_trie(DOGS.items())

        with pytest.raises(InvalidProofError):
            verify_proof(trie.root_hash, b"cat", get_proof_nodes(trie, b"dog"))

    def test_truncated_proof_raises(self):
        items = indexed_items(20)
        trie = build_trie(items.items())
        nodes = get_proof_nodes(trie, rlp.encode(5))

        with pytest.raises(InvalidProofError, match="connect"):
            verify_proof(trie.root_hash, rlp.encode(5), nodes[:-1])

    def test_undecodable_node_raises(self):
        trie = build_trie(DOGS.items())

        with pytest.raises(InvalidProofError, match="Undecodable"):
            verify_proof(trie.root_hash, b"dog", [b"\xf9"])
