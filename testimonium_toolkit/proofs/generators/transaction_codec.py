"""Canonical encodings of transactions, receipts and accounts

These are the byte strings the target chain stores as trie values, rebuilt
from the JSON-RPC representations returned by web3.
"""

from typing import Any, Mapping, Optional

import rlp
from eth_utils import to_int
from hexbytes import HexBytes
from rlp.sedes import Binary, CountableList, big_endian_int, binary

from testimonium_toolkit.shared.exceptions import DecodeError

hash32 = Binary.fixed_length(32)
address = Binary.fixed_length(20)
to_address = Binary.fixed_length(20, allow_empty=True)
bloom = Binary.fixed_length(256)

LEGACY_TX_TYPE = 0
ACCESS_LIST_TX_TYPE = 1
DYNAMIC_FEE_TX_TYPE = 2


class AccessListEntry(rlp.Serializable):
    fields = [
        ("address", address),
        ("storage_keys", CountableList(hash32)),
    ]


class LegacyTransaction(rlp.Serializable):
    """[nonce, gasPrice, gas, to, value, data, v, r, s]"""

    fields = [
        ("nonce", big_endian_int),
        ("gas_price", big_endian_int),
        ("gas", big_endian_int),
        ("to", to_address),
        ("value", big_endian_int),
        ("data", binary),
        ("v", big_endian_int),
        ("r", big_endian_int),
        ("s", big_endian_int),
    ]


class AccessListTransaction(rlp.Serializable):
    """EIP-2930 payload, prefixed with type 0x01 when encoded"""

    fields = [
        ("chain_id", big_endian_int),
        ("nonce", big_endian_int),
        ("gas_price", big_endian_int),
        ("gas", big_endian_int),
        ("to", to_address),
        ("value", big_endian_int),
        ("data", binary),
        ("access_list", CountableList(AccessListEntry)),
        ("y_parity", big_endian_int),
        ("r", big_endian_int),
        ("s", big_endian_int),
    ]


class DynamicFeeTransaction(rlp.Serializable):
    """EIP-1559 payload, prefixed with type 0x02 when encoded"""

    fields = [
        ("chain_id", big_endian_int),
        ("nonce", big_endian_int),
        ("max_priority_fee_per_gas", big_endian_int),
        ("max_fee_per_gas", big_endian_int),
        ("gas", big_endian_int),
        ("to", to_address),
        ("value", big_endian_int),
        ("data", binary),
        ("access_list", CountableList(AccessListEntry)),
        ("y_parity", big_endian_int),
        ("r", big_endian_int),
        ("s", big_endian_int),
    ]


class Log(rlp.Serializable):
    fields = [
        ("address", address),
        ("topics", CountableList(hash32)),
        ("data", binary),
    ]


class Receipt(rlp.Serializable):
    """Post-state root (pre-Byzantium) or status byte, gas, bloom, logs"""

    fields = [
        ("state_root_or_status", binary),
        ("cumulative_gas_used", big_endian_int),
        ("bloom", bloom),
        ("logs", CountableList(Log)),
    ]


class Account(rlp.Serializable):
    fields = [
        ("nonce", big_endian_int),
        ("balance", big_endian_int),
        ("storage_root", hash32),
        ("code_hash", hash32),
    ]


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return to_int(hexstr=value)
    return to_int(value)


def _to_bytes(value: Any) -> bytes:
    return bytes(HexBytes(value))


def _tx_type(data: Mapping[str, Any]) -> int:
    tx_type = data.get("type")
    return LEGACY_TX_TYPE if tx_type is None else _to_int(tx_type)


def _access_list(tx: Mapping[str, Any]) -> list:
    return [
        AccessListEntry(
            address=_to_bytes(entry["address"]),
            storage_keys=[_to_bytes(k) for k in entry["storageKeys"]],
        )
        for entry in tx.get("accessList") or []
    ]


def _common_fields(tx: Mapping[str, Any]) -> dict:
    to: Optional[Any] = tx.get("to")
    return {
        "nonce": _to_int(tx["nonce"]),
        "gas": _to_int(tx["gas"]),
        "to": _to_bytes(to) if to else b"",
        "value": _to_int(tx["value"]),
        "data": _to_bytes(tx.get("input", tx.get("data", b""))),
        "r": _to_int(tx["r"]),
        "s": _to_int(tx["s"]),
    }


def encode_transaction(tx: Mapping[str, Any]) -> bytes:
    """
    Encode a web3 transaction the way it is stored in the transactions trie.

    Legacy transactions are a plain RLP list; typed transactions are the type
    byte followed by the RLP payload (EIP-2718).
    """
    if not isinstance(tx, Mapping):
        raise DecodeError(
            "Block transactions must be fetched with full_transactions=True"
        )

    tx_type = _tx_type(tx)
    try:
        fields = _common_fields(tx)
        if tx_type == LEGACY_TX_TYPE:
            return rlp.encode(
                LegacyTransaction(
                    gas_price=_to_int(tx["gasPrice"]),
                    v=_to_int(tx["v"]),
                    **fields,
                )
            )

        y_parity = _to_int(tx["yParity"] if "yParity" in tx else tx["v"])
        if tx_type == ACCESS_LIST_TX_TYPE:
            payload = AccessListTransaction(
                chain_id=_to_int(tx["chainId"]),
                gas_price=_to_int(tx["gasPrice"]),
                access_list=_access_list(tx),
                y_parity=y_parity,
                **fields,
            )
        elif tx_type == DYNAMIC_FEE_TX_TYPE:
            payload = DynamicFeeTransaction(
                chain_id=_to_int(tx["chainId"]),
                max_priority_fee_per_gas=_to_int(
                    tx["maxPriorityFeePerGas"]
                ),
                max_fee_per_gas=_to_int(tx["maxFeePerGas"]),
                access_list=_access_list(tx),
                y_parity=y_parity,
                **fields,
            )
        else:
            raise DecodeError(
                f"Unsupported transaction type {tx_type}",
                {"tx_hash": _hash_hex(tx)},
            )
    except KeyError as e:
        raise DecodeError(
            f"Transaction is missing field {e}", {"tx_hash": _hash_hex(tx)}
        ) from e

    return bytes([tx_type]) + rlp.encode(payload)


def encode_receipt(receipt: Mapping[str, Any]) -> bytes:
    """Encode a web3 receipt the way it is stored in the receipts trie"""
    tx_type = _tx_type(receipt)
    if tx_type not in (
        LEGACY_TX_TYPE,
        ACCESS_LIST_TX_TYPE,
        DYNAMIC_FEE_TX_TYPE,
    ):
        raise DecodeError(
            f"Unsupported receipt type {tx_type}",
            {"tx_hash": _hash_hex(receipt, "transactionHash")},
        )

    root = receipt.get("root")
    if root:
        state_root_or_status = _to_bytes(root)
    else:
        state_root_or_status = b"\x01" if _to_int(receipt["status"]) else b""

    encoded = rlp.encode(
        Receipt(
            state_root_or_status=state_root_or_status,
            cumulative_gas_used=_to_int(receipt["cumulativeGasUsed"]),
            bloom=_to_bytes(receipt["logsBloom"]),
            logs=[
                Log(
                    address=_to_bytes(log["address"]),
                    topics=[_to_bytes(t) for t in log["topics"]],
                    data=_to_bytes(log["data"]),
                )
                for log in receipt["logs"]
            ],
        )
    )
    if tx_type == LEGACY_TX_TYPE:
        return encoded
    return bytes([tx_type]) + encoded


def encode_account(proof: Mapping[str, Any]) -> bytes:
    """Encode the account fields of an eth_getProof response"""
    return rlp.encode(
        Account(
            nonce=_to_int(proof["nonce"]),
            balance=_to_int(proof["balance"]),
            storage_root=_to_bytes(proof["storageHash"]),
            code_hash=_to_bytes(proof["codeHash"]),
        )
    )


def _hash_hex(data: Mapping[str, Any], key: str = "hash") -> Optional[str]:
    value = data.get(key)
    return HexBytes(value).hex() if value is not None else None
