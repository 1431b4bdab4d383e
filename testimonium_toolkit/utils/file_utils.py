import json
from typing import Any, Dict

from testimonium_toolkit.proofs.types import EpochData, parse_int

# Keys accepted in epoch data files, as written by ethash tooling
_EPOCH_KEYS = {
    "epoch": ("epoch", "Epoch"),
    "full_size_in_128_resolution": (
        "full_size_in_128_resolution",
        "FullSizeIn128Resolution",
    ),
    "branch_depth": ("branch_depth", "BranchDepth"),
    "merkle_nodes": ("merkle_nodes", "MerkleNodes"),
}


def load_json(file_path: str) -> Dict[str, Any]:
    """Load and parse a JSON file"""
    with open(file_path, "r") as file:
        return json.load(file)


def _lookup(data: Dict[str, Any], field: str) -> Any:
    for key in _EPOCH_KEYS[field]:
        if key in data:
            return data[key]
    raise ValueError(f"Epoch data is missing '{field}'")


def load_epoch_data(file_path: str) -> EpochData:
    """Load epoch data produced by an external ethash tool"""
    data = load_json(file_path)
    return {
        "epoch": parse_int(_lookup(data, "epoch")),
        "full_size_in_128_resolution": parse_int(
            _lookup(data, "full_size_in_128_resolution")
        ),
        "branch_depth": parse_int(_lookup(data, "branch_depth")),
        "merkle_nodes": [
            parse_int(n) for n in _lookup(data, "merkle_nodes")
        ],
    }
