"""
Ethash dataset collaborators.

Disputing a header requires the DAG elements hashimoto reads for the header
and a Merkle branch for each of them against the epoch's dataset root.
Generating the dataset takes gigabytes, so the derivation lives outside the
toolkit; a provider only has to answer for one (block number, nonce,
pre-PoW hash) triple.
"""

import json
from pathlib import Path
from typing import Any, Protocol, Sequence, Tuple, Union

from testimonium_toolkit.proofs.types import parse_int
from testimonium_toolkit.shared.exceptions import DatasetUnavailableError
from testimonium_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)


class DatasetProvider(Protocol):
    """Source of ethash dataset lookups and their witnesses."""

    def block_metadata(
        self, block_number: int, nonce: int, pre_pow_hash: bytes
    ) -> Tuple[Sequence[int], Sequence[int]]:
        """Return (dataset elements, witness for lookup) for a header."""
        ...


class PrecomputedDatasetProvider:
    """
    Reads metadata precomputed by an external ethash tool.

    Each header is described by ``<pre-PoW hash hex>.json`` in the directory::

        {
          "block_number": 100,
          "nonce": "0x539bd4979fef1ec4",
          "dataset_lookup": ["0x...", ...],
          "witness_for_lookup": ["0x...", ...]
        }
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def block_metadata(
        self, block_number: int, nonce: int, pre_pow_hash: bytes
    ) -> Tuple[Sequence[int], Sequence[int]]:
        path = self.directory / f"{pre_pow_hash.hex()}.json"
        context = {
            "block_number": block_number,
            "pre_pow_hash": "0x" + pre_pow_hash.hex(),
        }
        if not path.exists():
            raise DatasetUnavailableError(
                f"No dataset metadata at {path}", context
            )

        with open(path) as f:
            data: Any = json.load(f)

        try:
            computed_for = (
                parse_int(data["block_number"]),
                parse_int(data["nonce"]),
            )
            lookup = [parse_int(v) for v in data["dataset_lookup"]]
            witness = [parse_int(v) for v in data["witness_for_lookup"]]
        except KeyError as e:
            raise DatasetUnavailableError(
                f"Dataset metadata at {path} is missing field {e}", context
            ) from e
        except ValueError as e:
            raise DatasetUnavailableError(
                f"Dataset metadata at {path} holds a malformed number: {e}",
                context,
            ) from e

        if computed_for != (block_number, nonce):
            raise DatasetUnavailableError(
                f"Dataset metadata at {path} was computed for another header",
                context,
            )

        _logger.debug(f"Loaded dataset metadata from {path}")
        return lookup, witness
