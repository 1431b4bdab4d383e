"""
Transaction Service module for signing, sending and awaiting contract calls.

Every write operation of the relay client goes through the same sequence:
fresh transaction parameters, local signing, raw submission, a bounded wait
for the receipt, then either a decoded revert reason or the operation's
event extracted from the receipt's block.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import (
    ContractLogicError,
    MismatchedABI,
    TransactionNotFound,
)

from testimonium_toolkit.shared.constants import RelayConstants
from testimonium_toolkit.shared.exceptions import (
    EventNotFoundError,
    ReceiptTimeoutError,
    TransactionRevertedError,
)
from testimonium_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)

_EXECUTION_REVERTED = "execution reverted: "


def _revert_message(error: ContractLogicError) -> str:
    message = str(error.args[0]) if error.args else str(error)
    if message.startswith(_EXECUTION_REVERTED):
        return message[len(_EXECUTION_REVERTED) :]
    return message


def decode_revert_reason(data: bytes) -> Optional[str]:
    """Decode an Error(string) revert payload, None for anything else"""
    data = bytes(HexBytes(data))
    if data[:4] != RelayConstants.REVERT_REASON_SELECTOR:
        return None
    try:
        (reason,) = decode(["string"], data[4:])
    except (DecodingError, UnicodeDecodeError):
        return None
    return reason


class TransactionService:
    """Signs and submits contract calls for one account on one chain."""

    def __init__(
        self,
        w3: Web3,
        account: Any,
        receipt_timeout: float = RelayConstants.RECEIPT_TIMEOUT,
        poll_interval: float = RelayConstants.RECEIPT_POLL_INTERVAL,
    ):
        """
        Initialize the TransactionService.

        Args:
            w3 (Web3): Web3 instance of the chain the calls are sent to.
            account (LocalAccount): The signing account.
            receipt_timeout (float): Seconds to wait for a receipt.
            poll_interval (float): Seconds between receipt requests.
        """
        self.w3 = w3
        self.account = account
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval

    def prepare_transaction(self, value: int = 0) -> Dict[str, Any]:
        """Fresh sender, pending nonce, gas price and value for one call"""
        return {
            "from": self.account.address,
            "nonce": self.w3.eth.get_transaction_count(
                self.account.address, "pending"
            ),
            "gasPrice": self.w3.eth.gas_price,
            "value": value,
        }

    def submit(self, call: Any, value: int = 0) -> Tuple[HexBytes, Dict]:
        """
        Build, sign and send a contract call.

        Args:
            call: A bound contract function, e.g. ``contract.functions.f(x)``.
            value (int): Wei attached to the call.

        Returns:
            Tuple[HexBytes, Dict]: The transaction hash and the built
            transaction.
        """
        params = self.prepare_transaction(value)
        try:
            tx = call.build_transaction(params)
        except ContractLogicError as e:
            # gas estimation already hit a revert
            raise TransactionRevertedError(
                _revert_message(e), {"from": self.account.address}
            ) from e

        signed = self.account.sign_transaction(tx)
        tx_hash = HexBytes(
            self.w3.eth.send_raw_transaction(signed.rawTransaction)
        )
        _logger.info(f"Tx submitted: {tx_hash.hex()}")
        return tx_hash, tx

    async def _poll_receipt(self, tx_hash: HexBytes) -> Dict:
        while True:
            try:
                return await asyncio.to_thread(
                    self.w3.eth.get_transaction_receipt, tx_hash
                )
            except TransactionNotFound:
                await asyncio.sleep(self.poll_interval)

    async def await_receipt_async(self, tx_hash: HexBytes) -> Dict:
        """Coroutine form of await_receipt for callers running a loop"""
        tx_hash = HexBytes(tx_hash)
        try:
            receipt = await asyncio.wait_for(
                self._poll_receipt(tx_hash), timeout=self.receipt_timeout
            )
        except asyncio.TimeoutError as e:
            raise ReceiptTimeoutError(
                f"No receipt for {tx_hash.hex()} after "
                f"{self.receipt_timeout} seconds",
                {"tx_hash": tx_hash.hex()},
            ) from e
        _logger.debug(
            f"Receipt for {tx_hash.hex()}: block "
            f"{receipt['blockNumber']}, status {receipt['status']}"
        )
        return receipt

    def await_receipt(self, tx_hash: HexBytes) -> Dict:
        """
        Block until the receipt of tx_hash is available.

        The polling task is cancelled when the timeout elapses, so no poller
        outlives the call. Only "receipt not yet available" is retried; any
        other remote error propagates.

        The wait runs in its own event loop, so this cannot be called from a
        coroutine (asyncio raises RuntimeError); use await_receipt_async
        there.
        """
        return asyncio.run(self.await_receipt_async(tx_hash))

    def get_failure_reason(self, tx: Dict[str, Any], receipt: Dict) -> str:
        """Replay a failed transaction with eth_call to recover its reason"""
        call = {
            "from": self.account.address,
            "to": tx["to"],
            "gas": tx.get("gas"),
            "gasPrice": tx.get("gasPrice"),
            "value": tx.get("value", 0),
            "data": tx["data"],
        }
        try:
            result = self.w3.eth.call(call, receipt["blockNumber"])
        except ContractLogicError as e:
            return _revert_message(e)

        reason = decode_revert_reason(result)
        return reason if reason is not None else "unknown reason"

    def find_events(
        self, contract: Any, event_name: str, receipt: Dict
    ) -> List[Any]:
        """
        Decode the events named event_name emitted by the receipt's
        transaction, looking only at the receipt's block.
        """
        event = getattr(contract.events, event_name)()
        block_number = receipt["blockNumber"]
        tx_hash = HexBytes(receipt["transactionHash"])

        logs = self.w3.eth.get_logs(
            {
                "address": contract.address,
                "fromBlock": block_number,
                "toBlock": block_number,
            }
        )
        events = []
        for log in logs:
            if HexBytes(log["transactionHash"]) != tx_hash:
                continue
            try:
                events.append(event.process_log(log))
            except MismatchedABI:
                continue
        return events

    def submit_and_await(
        self,
        contract: Any,
        call: Any,
        event_name: Optional[str],
        value: int = 0,
    ) -> Tuple[Dict, Optional[Any]]:
        """
        Submit a contract call and wait for its outcome.

        Args:
            contract: The contract emitting the expected event.
            call: The bound contract function to submit.
            event_name (str): Event to extract, None to skip extraction.
            value (int): Wei attached to the call.

        Returns:
            Tuple[Dict, Optional[Any]]: The receipt and the first matching
            event (None when event_name is None).
        """
        tx_hash, tx = self.submit(call, value)
        receipt = self.await_receipt(tx_hash)
        return self._settle(contract, event_name, tx_hash, tx, receipt)

    async def submit_and_await_async(
        self,
        contract: Any,
        call: Any,
        event_name: Optional[str],
        value: int = 0,
    ) -> Tuple[Dict, Optional[Any]]:
        """submit_and_await for callers already running an event loop"""
        tx_hash, tx = await asyncio.to_thread(self.submit, call, value)
        receipt = await self.await_receipt_async(tx_hash)
        return await asyncio.to_thread(
            self._settle, contract, event_name, tx_hash, tx, receipt
        )

    def _settle(
        self,
        contract: Any,
        event_name: Optional[str],
        tx_hash: HexBytes,
        tx: Dict[str, Any],
        receipt: Dict,
    ) -> Tuple[Dict, Optional[Any]]:
        context = {
            "tx_hash": tx_hash.hex(),
            "block_number": receipt["blockNumber"],
        }

        if receipt["status"] == 0:
            reason = self.get_failure_reason(tx, receipt)
            _logger.error(f"Tx failed: {tx_hash.hex()}: {reason}")
            raise TransactionRevertedError(reason, context)

        if event_name is None:
            _logger.info(f"Tx successful: {tx_hash.hex()}")
            return receipt, None

        events = self.find_events(contract, event_name, receipt)
        if not events:
            raise EventNotFoundError(
                f"Transaction {tx_hash.hex()} emitted no {event_name} event",
                context,
            )
        _logger.info(f"Tx successful: {event_name} {events[0]['args']}")
        return receipt, events[0]
