"""Dispute proof generator"""

from testimonium_toolkit.proofs.dataset import DatasetProvider
from testimonium_toolkit.proofs.generators.header_codec import BlockHeader
from testimonium_toolkit.proofs.types import DisputeProof
from testimonium_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)


def build_dispute_proof(
    header: BlockHeader, dataset_provider: DatasetProvider
) -> DisputeProof:
    """
    Build the ethash lookup data the contract needs to re-check a header.

    Args:
        header (BlockHeader): The disputed header.
        dataset_provider (DatasetProvider): Source of the dataset metadata.

    Returns:
        DisputeProof: Dataset elements and their witnesses, unmodified.
    """
    pre_pow_hash = header.pre_pow_hash
    dataset_lookup, witness_for_lookup = dataset_provider.block_metadata(
        header.number, header.nonce_value, pre_pow_hash
    )
    _logger.info(
        f"Dispute data for block {header.number}: "
        f"{len(dataset_lookup)} dataset elements, "
        f"{len(witness_for_lookup)} witness nodes"
    )
    return {
        "dataset_lookup": dataset_lookup,
        "witness_for_lookup": witness_for_lookup,
    }
