from eth_utils import is_address, to_checksum_address
from hexbytes import HexBytes

from testimonium_toolkit.proofs.types import TrieValueType


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return checksum ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return to_checksum_address(address)


def validate_hash(value: str, param_name: str = "hash") -> bytes:
    """Validate a 0x-prefixed 32-byte hash and return its bytes"""
    if not value or not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"Invalid {param_name}: must be 0x-prefixed hex")
    try:
        data = bytes(HexBytes(value))
    except ValueError:
        raise ValueError(f"Invalid {param_name}: {value} is not hex")
    if len(data) != 32:
        raise ValueError(
            f"Invalid {param_name}: expected 32 bytes, got {len(data)}"
        )
    return data


def validate_chain_id(chain_id: int) -> int:
    """Validate a chain label (0-255, as used in CHAIN_<id>_* variables)"""
    if not 0 <= chain_id <= 255:
        raise ValueError(
            f"Invalid chain_id: {chain_id}. Must be between 0 and 255"
        )
    return chain_id


def validate_value_type(value_type: str) -> TrieValueType:
    """Validate and map a proof kind name to its trie value type"""
    name = value_type.lower()
    if name == "tx":
        name = "transaction"
    try:
        return TrieValueType[name.upper()]
    except KeyError:
        valid = {t.name.lower() for t in TrieValueType}
        raise ValueError(
            f"Invalid value type: {value_type}. Must be one of {valid}"
        )
