from testimonium_toolkit.proofs.dataset import (
    DatasetProvider,
    PrecomputedDatasetProvider,
)
from testimonium_toolkit.proofs.generators.header_codec import (
    BlockHeader,
    decode_header,
    encode_header,
    encode_header_without_nonce,
)
from testimonium_toolkit.proofs.types import (
    DisputeProof,
    EpochData,
    MerkleProof,
    PoWValidationResult,
    TrieValueType,
    VerificationResult,
)

__all__ = [
    "BlockHeader",
    "encode_header",
    "encode_header_without_nonce",
    "decode_header",
    "DatasetProvider",
    "PrecomputedDatasetProvider",
    "MerkleProof",
    "DisputeProof",
    "EpochData",
    "TrieValueType",
    "VerificationResult",
    "PoWValidationResult",
]
