"""Shared formatting and file utilities for commands."""

import json
from pathlib import Path
from typing import Any, Dict

from rich.console import Console
from rich.table import Table

from testimonium_toolkit.proofs.types import MerkleProof

# Shared console instance
console = Console()


def format_hex(value: bytes) -> str:
    """0x-prefixed hex of a byte string"""
    return "0x" + bytes(value).hex()


def proof_to_json(proof: MerkleProof) -> Dict[str, str]:
    """
    Convert a Merkle proof to JSON-serializable hex strings.

    Args:
        proof: The proof to convert

    Returns:
        Dict with the same keys, every value 0x-prefixed hex
    """
    return {key: format_hex(value) for key, value in proof.items()}


def proof_from_json(data: Dict[str, str]) -> MerkleProof:
    """Inverse of proof_to_json"""
    return {
        "rlp_header": bytes.fromhex(data["rlp_header"][2:]),
        "rlp_value": bytes.fromhex(data["rlp_value"][2:]),
        "path": bytes.fromhex(data["path"][2:]),
        "rlp_proof_nodes": bytes.fromhex(data["rlp_proof_nodes"][2:]),
    }


def create_header_table(header: Dict[str, Any]) -> Table:
    """
    Create a Rich table showing header metadata stored by the contract.

    Args:
        header: Dict with hash, block_number and total_difficulty

    Returns:
        Configured Rich Table
    """
    table = Table(
        show_header=True,
        header_style="bold cyan",
        show_lines=False,
        pad_edge=False,
        box=None,
    )
    table.add_column("Field", width=18)
    table.add_column("Value")
    table.add_row("Hash", format_hex(header["hash"]))
    table.add_row("Block number", str(header["block_number"]))
    table.add_row("Total difficulty", str(header["total_difficulty"]))
    return table


def save_json_output(
    data: Dict[str, Any],
    filename: str,
    output_dir: str = "output",
    print_path: bool = True,
) -> str:
    """
    Save data to a JSON file with automatic directory creation.

    Args:
        data: Data to save
        filename: Output filename (can include subdirectories)
        output_dir: Base output directory (default: 'output')
        print_path: Whether to print the saved file path

    Returns:
        Full path to saved file
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    filepath = output_path / filename

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)

    if print_path:
        console.print(f"[cyan]Data saved to:[/cyan] {filepath}")

    return str(filepath)
