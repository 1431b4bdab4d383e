"""Block header encoder"""

from typing import Any, Mapping

import rlp
from eth_utils import keccak
from hexbytes import HexBytes
from rlp.exceptions import RLPException
from rlp.sedes import Binary, big_endian_int, binary

from testimonium_toolkit.shared.exceptions import MalformedHeaderError
from testimonium_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)

hash32 = Binary.fixed_length(32)
address = Binary.fixed_length(20, allow_empty=True)
bloom = Binary.fixed_length(256)
block_nonce = Binary.fixed_length(8)

# Web3 block keys, in header order
BLOCK_HEADER = (
    "parentHash",
    "sha3Uncles",
    "miner",
    "stateRoot",
    "transactionsRoot",
    "receiptsRoot",
    "logsBloom",
    "difficulty",
    "number",
    "gasLimit",
    "gasUsed",
    "timestamp",
    "extraData",
    "mixHash",
    "nonce",
)

# Fields hashed for the ethash seal (everything but mix hash and nonce)
PRE_POW_FIELD_COUNT = 13


class BlockHeader(rlp.Serializable):
    """Immutable proof-of-work block header with 15 fields."""

    fields = [
        ("parent_hash", hash32),
        ("uncles_hash", hash32),
        ("coinbase", address),
        ("state_root", hash32),
        ("transactions_root", hash32),
        ("receipts_root", hash32),
        ("bloom", bloom),
        ("difficulty", big_endian_int),
        ("number", big_endian_int),
        ("gas_limit", big_endian_int),
        ("gas_used", big_endian_int),
        ("timestamp", big_endian_int),
        ("extra_data", binary),
        ("mix_hash", hash32),
        ("nonce", block_nonce),
    ]

    @property
    def hash(self) -> bytes:
        return keccak(encode_header(self))

    @property
    def pre_pow_hash(self) -> bytes:
        """Hash of the header without mix hash and nonce."""
        return keccak(encode_header_without_nonce(self))

    @property
    def nonce_value(self) -> int:
        return int.from_bytes(self.nonce, byteorder="big")

    @classmethod
    def from_block(cls, block: Mapping[str, Any]) -> "BlockHeader":
        """Build a header from a web3 block (AttributeDict or dict)."""
        data = dict(block)
        if "extraData" not in data and "proofOfAuthorityData" in data:
            # geth_poa_middleware renames the field
            data["extraData"] = data["proofOfAuthorityData"]

        missing = [k for k in BLOCK_HEADER if k not in data]
        if missing:
            raise MalformedHeaderError(
                f"Block is missing header fields: {', '.join(missing)}",
                {"block_number": data.get("number")},
            )

        header = cls(
            parent_hash=bytes(HexBytes(data["parentHash"])),
            uncles_hash=bytes(HexBytes(data["sha3Uncles"])),
            coinbase=bytes(HexBytes(data["miner"])),
            state_root=bytes(HexBytes(data["stateRoot"])),
            transactions_root=bytes(HexBytes(data["transactionsRoot"])),
            receipts_root=bytes(HexBytes(data["receiptsRoot"])),
            bloom=bytes(HexBytes(data["logsBloom"])),
            difficulty=int(data["difficulty"]),
            number=int(data["number"]),
            gas_limit=int(data["gasLimit"]),
            gas_used=int(data["gasUsed"]),
            timestamp=int(data["timestamp"]),
            extra_data=bytes(HexBytes(data["extraData"])),
            mix_hash=bytes(HexBytes(data["mixHash"])),
            nonce=bytes(HexBytes(data["nonce"])),
        )

        reported = data.get("hash")
        if reported is not None and bytes(HexBytes(reported)) != header.hash:
            _logger.warning(
                f"Rebuilt header hash for block {header.number} differs from "
                f"the reported hash {HexBytes(reported).hex()}; the block "
                f"probably carries post-London header fields"
            )

        return header


def encode_header(header: BlockHeader) -> bytes:
    """Encode a block header -> RLP encoded"""
    return rlp.encode(header)


def encode_header_without_nonce(header: BlockHeader) -> bytes:
    """Encode the first 13 header fields, dropping mix hash and nonce"""
    fields = BlockHeader.serialize(header)
    return rlp.encode(fields[:PRE_POW_FIELD_COUNT])


def decode_header(data: bytes) -> BlockHeader:
    """Decode an RLP encoded block header, the inverse of encode_header"""
    try:
        return rlp.decode(bytes(data), sedes=BlockHeader)
    except RLPException as e:
        raise MalformedHeaderError(
            f"Bytes do not encode a block header: {e}",
            {"length": len(data)},
        ) from e


def randomize_header(header: BlockHeader) -> BlockHeader:
    """
    Rotate the state, transactions and receipts roots of a header.

    The result keeps the original proof-of-work fields, so the contract
    accepts its shape but the header itself is invalid; it is used to
    exercise disputes.
    """
    return header.copy(
        transactions_root=header.receipts_root,
        receipts_root=header.state_root,
        state_root=header.transactions_root,
    )
