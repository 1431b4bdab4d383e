"""Submitted header locator

Recovers the raw RLP header that was submitted for a block hash by replaying
the contract's SubmitHeader events and parsing the submission call data.

The contract does not index the block hash, so the scan is linear over the
contract's whole event history. It is paged to keep each eth_getLogs request
bounded.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

from eth_utils import keccak
from hexbytes import HexBytes
from web3 import Web3

from testimonium_toolkit.shared.constants import RelayConstants
from testimonium_toolkit.shared.exceptions import (
    DecodeError,
    NoSubmissionFoundError,
    PendingTransactionError,
    SignatureMismatchError,
)
from testimonium_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)

SUBMIT_HEADER_EVENT_SIGNATURE = "SubmitHeader(bytes32)"
SUBMIT_HEADER_TOPIC = keccak(text=SUBMIT_HEADER_EVENT_SIGNATURE)

WORD_SIZE = 32
SELECTOR_SIZE = 4


@dataclass(frozen=True)
class DynamicBytesCallLayout:
    """
    Call data of a function whose single parameter is a dynamic ``bytes``.

    Layout: selector (4 bytes), offset word, then at ``4 + offset`` a length
    word followed by ``length`` payload bytes.
    """

    signature: str
    selector: bytes

    def extract(self, call_data: bytes, context: Optional[dict] = None) -> bytes:
        """Return the bytes parameter encoded in call_data"""
        context = dict(context or {})
        if call_data[:SELECTOR_SIZE] != self.selector:
            raise SignatureMismatchError(
                f"Call data selector 0x{call_data[:SELECTOR_SIZE].hex()} does "
                f"not match {self.signature} (0x{self.selector.hex()})",
                context,
            )

        offset = self._read_word(call_data, SELECTOR_SIZE, context)
        length_start = SELECTOR_SIZE + offset
        length = self._read_word(call_data, length_start, context)

        payload_start = length_start + WORD_SIZE
        payload_end = payload_start + length
        if payload_end > len(call_data):
            raise DecodeError(
                f"Call data holds {len(call_data)} bytes but the payload "
                f"ends at {payload_end}",
                context,
            )
        return call_data[payload_start:payload_end]

    @staticmethod
    def _read_word(call_data: bytes, start: int, context: dict) -> int:
        word = call_data[start : start + WORD_SIZE]
        if len(word) != WORD_SIZE:
            raise DecodeError(
                f"Call data truncated at offset {start}", context
            )
        return int.from_bytes(word, byteorder="big")


SUBMIT_BLOCK_LAYOUT = DynamicBytesCallLayout(
    signature=RelayConstants.SUBMIT_BLOCK_SIGNATURE,
    selector=RelayConstants.SUBMIT_BLOCK_SELECTOR,
)


def iter_submit_header_logs(
    web_3: Web3,
    contract_address: str,
    from_block: int = 0,
    to_block: Optional[int] = None,
    page_size: int = RelayConstants.LOG_PAGE_SIZE,
) -> Iterator[dict]:
    """Yield SubmitHeader logs of a contract in ascending block order"""
    if to_block is None:
        to_block = web_3.eth.block_number

    start = from_block
    while start <= to_block:
        end = min(start + page_size - 1, to_block)
        logs = web_3.eth.get_logs(
            {
                "address": contract_address,
                "topics": [HexBytes(SUBMIT_HEADER_TOPIC)],
                "fromBlock": start,
                "toBlock": end,
            }
        )
        _logger.debug(
            f"Scanned blocks {start}-{end}: {len(logs)} SubmitHeader events"
        )
        yield from logs
        start = end + 1


def find_submitted_header_bytes(
    web_3: Web3,
    contract_address: str,
    block_hash: bytes,
    from_block: int = 0,
    to_block: Optional[int] = None,
    page_size: int = RelayConstants.LOG_PAGE_SIZE,
    layout: DynamicBytesCallLayout = SUBMIT_BLOCK_LAYOUT,
) -> bytes:
    """
    Find the RLP header that was submitted for block_hash.

    Args:
        web_3 (Web3): Web3 instance of the verifying chain.
        contract_address (str): The Testimonium contract.
        block_hash (bytes): Hash of the submitted block.
        from_block (int): First block to scan.
        to_block (int): Last block to scan, defaults to the latest block.
        page_size (int): Blocks per eth_getLogs request.
        layout (DynamicBytesCallLayout): Expected submission call layout.

    Returns:
        bytes: The raw header bytes passed to the submission call.
    """
    block_hash = bytes(HexBytes(block_hash))
    context = {"block_hash": "0x" + block_hash.hex()}

    for log in iter_submit_header_logs(
        web_3, contract_address, from_block, to_block, page_size
    ):
        # the event's only data item is the block hash, and a block hash
        # is submitted at most once
        if bytes(HexBytes(log["data"])) != block_hash:
            continue

        tx_hash = HexBytes(log["transactionHash"])
        context["tx_hash"] = tx_hash.hex()
        tx = web_3.eth.get_transaction(tx_hash)
        if tx.get("blockNumber") is None:
            raise PendingTransactionError(
                "Transaction that submitted the block is still pending",
                context,
            )

        call_data = bytes(HexBytes(tx["input"]))
        header_bytes = layout.extract(call_data, context)
        _logger.info(
            f"Recovered {len(header_bytes)} header bytes for block "
            f"{context['block_hash']} from tx {context['tx_hash']}"
        )
        return header_bytes

    raise NoSubmissionFoundError(
        f"No submit event for block {context['block_hash']} found", context
    )
