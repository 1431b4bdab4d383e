"""
Type definitions for Testimonium proofs.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Sequence, TypedDict, Union


# =============================================================================
# PROOF TYPES
# =============================================================================


class TrieValueType(IntEnum):
    """Kind of value a Merkle proof attests to."""

    TRANSACTION = 0
    RECEIPT = 1
    STATE = 2


class MerkleProof(TypedDict):
    """Merkle-Patricia inclusion proof for a transaction, receipt or account."""

    rlp_header: bytes  # RLP encoded block header
    rlp_value: bytes  # Encoded leaf value
    path: bytes  # Trie key of the leaf
    rlp_proof_nodes: bytes  # RLP list of raw trie nodes, root first


class DisputeProof(TypedDict):
    """Ethash dataset lookup and witness for disputing a header."""

    dataset_lookup: Sequence[int]  # DAG elements read by hashimoto
    witness_for_lookup: Sequence[int]  # Merkle branches for those elements


class EpochData(TypedDict):
    """Ethash epoch data submitted in chunks to the Ethash contract."""

    epoch: int
    full_size_in_128_resolution: int
    branch_depth: int
    merkle_nodes: List[int]


def parse_int(value: Union[int, str]) -> int:
    """Parse an integer given as int, decimal string or 0x-prefixed hex"""
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass
class VerificationResult:
    """Outcome of a verifyTransaction/verifyReceipt/verifyState call.

    The return code is defined by the contract and kept opaque here.
    """

    return_code: int

    def __str__(self) -> str:
        return f"VerificationResult: {{ returnCode: {self.return_code} }}"


@dataclass
class PoWValidationResult:
    """Outcome of a dispute, with the removed branch root if any."""

    return_code: int
    error_info: int
    removed_branch_root: Optional[bytes] = None

    def __str__(self) -> str:
        return (
            f"PoWValidationResult: {{ returnCode: {self.return_code}, "
            f"errorInfo: {self.error_info} }}"
        )
