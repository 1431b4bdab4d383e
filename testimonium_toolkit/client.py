"""
Testimonium relay client.

Submits block headers of a target chain to the Testimonium contract of a
verifying chain, disputes headers with ethash lookup data, and generates and
verifies Merkle-Patricia inclusion proofs. Every chain is addressed by the
label used in the CHAIN_<id>_* configuration.
"""

from typing import Any, Dict, Iterable, Optional

from eth_account import Account
from hexbytes import HexBytes

from testimonium_toolkit.proofs.dataset import DatasetProvider
from testimonium_toolkit.proofs.generators.dispute_proof import (
    build_dispute_proof,
)
from testimonium_toolkit.proofs.generators.event_locator import (
    find_submitted_header_bytes,
)
from testimonium_toolkit.proofs.generators.header_codec import (
    BlockHeader,
    decode_header,
    encode_header,
)
from testimonium_toolkit.proofs.generators.merkle_proof import (
    generate_receipt_proof,
    generate_state_proof,
    generate_transaction_proof,
)
from testimonium_toolkit.proofs.types import (
    EpochData,
    MerkleProof,
    PoWValidationResult,
    TrieValueType,
    VerificationResult,
)
from testimonium_toolkit.shared.constants import (
    GlobalConstants,
    RelayConstants,
)
from testimonium_toolkit.shared.exceptions import (
    ConfigurationException,
    DatasetUnavailableError,
)
from testimonium_toolkit.shared.logging import get_logger
from testimonium_toolkit.shared.services.transaction_service import (
    TransactionService,
)
from testimonium_toolkit.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)

# Contract function and event per trie value type
VERIFY_CALLS = {
    TrieValueType.TRANSACTION: ("verifyTransaction", "VerifyTransaction"),
    TrieValueType.RECEIPT: ("verifyReceipt", "VerifyReceipt"),
    TrieValueType.STATE: ("verifyState", "VerifyState"),
}


class TestimoniumClient:
    """A global class for relaying headers and verifying proofs"""

    def __init__(
        self,
        private_key: Optional[str] = None,
        services: Optional[Dict[int, Web3Service]] = None,
        dataset_provider: Optional[DatasetProvider] = None,
        account: Optional[Any] = None,
    ):
        """
        Initialize the client.

        Args:
            private_key (str): Signing key, read from TESTIMONIUM_PRIVATE_KEY
                when needed and not given.
            services (Dict[int, Web3Service]): Preconfigured chains. Other
                chains are loaded from the environment on first use.
            dataset_provider (DatasetProvider): Ethash data for disputes.
            account (LocalAccount): Signing account, overrides private_key.
        """
        self._private_key = private_key
        self._account = account
        self._services: Dict[int, Web3Service] = dict(services or {})
        self._transaction_services: Dict[int, TransactionService] = {}
        self.dataset_provider = dataset_provider

    # -------------------------------------------------------------------------
    # chains and account
    # -------------------------------------------------------------------------

    @property
    def chains(self) -> list:
        """Labels of the chains loaded so far"""
        return sorted(self._services)

    def service(self, chain_id: int) -> Web3Service:
        """
        Web3 service of a chain, loaded from the environment on first use.

        Raises RemoteUnavailableError when the chain's RPC endpoint does not
        answer at load time.
        """
        if chain_id not in self._services:
            service = Web3Service.from_config(chain_id)
            service.ensure_connected()
            self._services[chain_id] = service
        return self._services[chain_id]

    @property
    def account(self) -> Any:
        """The local signing account"""
        if self._account is None:
            private_key = (
                self._private_key or GlobalConstants.get_private_key()
            )
            self._account = Account.from_key(private_key)
        return self._account

    def transactions(self, chain_id: int) -> TransactionService:
        if chain_id not in self._transaction_services:
            self._transaction_services[chain_id] = TransactionService(
                self.service(chain_id).w3, self.account
            )
        return self._transaction_services[chain_id]

    def balance(self, chain_id: int) -> int:
        """Balance of the account on a chain, in wei"""
        return self.service(chain_id).w3.eth.get_balance(self.account.address)

    def total_balance(self, chain_ids: Optional[Iterable[int]] = None) -> int:
        """Sum of the account balances, over the loaded chains by default"""
        chain_ids = self.chains if chain_ids is None else chain_ids
        return sum(self.balance(chain_id) for chain_id in chain_ids)

    # -------------------------------------------------------------------------
    # stake
    # -------------------------------------------------------------------------

    def get_stake(self, chain_id: int) -> int:
        testimonium = self.service(chain_id).testimonium
        return testimonium.functions.getStake().call(
            {"from": self.account.address}
        )

    def deposit_stake(self, chain_id: int, amount_in_wei: int) -> Dict:
        """Deposit stake, sending amount_in_wei along with the call"""
        testimonium = self.service(chain_id).testimonium
        receipt, _ = self.transactions(chain_id).submit_and_await(
            testimonium,
            testimonium.functions.depositStake(amount_in_wei),
            None,
            value=amount_in_wei,
        )
        return receipt

    def withdraw_stake(self, chain_id: int, amount_in_wei: int) -> int:
        """Withdraw stake, returning the amount the contract released"""
        testimonium = self.service(chain_id).testimonium
        _, event = self.transactions(chain_id).submit_and_await(
            testimonium,
            testimonium.functions.withdrawStake(amount_in_wei),
            "WithdrawStake",
        )
        return event["args"]["withdrawnStake"]

    # -------------------------------------------------------------------------
    # contract views
    # -------------------------------------------------------------------------

    def block_header_exists(self, chain_id: int, block_hash: bytes) -> bool:
        testimonium = self.service(chain_id).testimonium
        return testimonium.functions.isHeaderStored(
            bytes(HexBytes(block_hash))
        ).call()

    def longest_chain_endpoint(self, chain_id: int) -> bytes:
        testimonium = self.service(chain_id).testimonium
        return bytes(testimonium.functions.longestChainEndpoint().call())

    def get_block_header(self, chain_id: int, block_hash: bytes) -> Dict:
        """Header metadata stored by the contract for block_hash"""
        testimonium = self.service(chain_id).testimonium
        stored_hash, block_number, total_difficulty = (
            testimonium.functions.getHeader(bytes(HexBytes(block_hash))).call()
        )
        return {
            "hash": bytes(stored_hash),
            "block_number": block_number,
            "total_difficulty": total_difficulty,
        }

    def get_required_verification_fee(self, chain_id: int) -> int:
        testimonium = self.service(chain_id).testimonium
        return testimonium.functions.getRequiredVerificationFee().call()

    # -------------------------------------------------------------------------
    # target chain data
    # -------------------------------------------------------------------------

    def header_by_number(
        self, chain_id: int, block_number: int
    ) -> BlockHeader:
        block = self.service(chain_id).w3.eth.get_block(block_number)
        return BlockHeader.from_block(block)

    def header_by_hash(self, chain_id: int, block_hash: bytes) -> BlockHeader:
        block = self.service(chain_id).w3.eth.get_block(HexBytes(block_hash))
        return BlockHeader.from_block(block)

    def total_difficulty(self, chain_id: int, block_number: int) -> int:
        block = self.service(chain_id).w3.eth.get_block(block_number)
        return int(block["totalDifficulty"])

    # -------------------------------------------------------------------------
    # headers
    # -------------------------------------------------------------------------

    def submit_header(self, chain_id: int, header: BlockHeader) -> bytes:
        """Submit a header to the Testimonium contract of chain_id"""
        return self.submit_rlp_header(chain_id, encode_header(header))

    def submit_rlp_header(self, chain_id: int, rlp_header: bytes) -> bytes:
        """
        Submit an RLP encoded header.

        Args:
            chain_id (int): The verifying chain.
            rlp_header (bytes): The encoded header.

        Returns:
            bytes: Block hash reported by the SubmitHeader event.
        """
        testimonium = self.service(chain_id).testimonium
        _, event = self.transactions(chain_id).submit_and_await(
            testimonium,
            testimonium.functions.submitBlock(bytes(rlp_header)),
            "SubmitHeader",
        )
        block_hash = bytes(event["args"]["blockHash"])
        _logger.info(
            f"Header 0x{block_hash.hex()} submitted to chain {chain_id}"
        )
        return block_hash

    def dispute_block(
        self, chain_id: int, block_hash: bytes, from_block: int = 0
    ) -> PoWValidationResult:
        """
        Dispute a submitted header.

        The header and its parent are recovered from their submission
        transactions, then the ethash lookup data for the header is sent
        along with them.

        Args:
            chain_id (int): The verifying chain.
            block_hash (bytes): Hash of the disputed header.
            from_block (int): First block scanned for submissions.

        Returns:
            PoWValidationResult: Contract verdict, with the root of the
            removed branch when the header was invalid.
        """
        if self.dataset_provider is None:
            raise DatasetUnavailableError(
                "Disputes need a dataset provider",
                {"chain_id": chain_id},
            )

        service = self.service(chain_id)
        testimonium = service.testimonium

        rlp_header = find_submitted_header_bytes(
            service.w3, testimonium.address, block_hash, from_block
        )
        header = decode_header(rlp_header)
        proof = build_dispute_proof(header, self.dataset_provider)
        rlp_parent = find_submitted_header_bytes(
            service.w3, testimonium.address, header.parent_hash, from_block
        )

        transactions = self.transactions(chain_id)
        receipt, event = transactions.submit_and_await(
            testimonium,
            testimonium.functions.disputeBlockHeader(
                rlp_header,
                rlp_parent,
                list(proof["dataset_lookup"]),
                list(proof["witness_for_lookup"]),
            ),
            "PoWValidationResult",
        )

        removed = transactions.find_events(
            testimonium, "RemoveBranch", receipt
        )
        result = PoWValidationResult(
            return_code=event["args"]["returnCode"],
            error_info=event["args"]["errorInfo"],
            removed_branch_root=(
                bytes(removed[0]["args"]["root"]) if removed else None
            ),
        )
        _logger.info(f"Dispute of 0x{header.hash.hex()}: {result}")
        return result

    # -------------------------------------------------------------------------
    # proofs
    # -------------------------------------------------------------------------

    def generate_merkle_proof_for_tx(
        self, chain_id: int, tx_hash: str
    ) -> MerkleProof:
        return generate_transaction_proof(self.service(chain_id).w3, tx_hash)

    def generate_merkle_proof_for_receipt(
        self, chain_id: int, tx_hash: str
    ) -> MerkleProof:
        return generate_receipt_proof(self.service(chain_id).w3, tx_hash)

    def generate_merkle_proof_for_state(
        self, chain_id: int, address: str, block_number: int
    ) -> MerkleProof:
        return generate_state_proof(
            self.service(chain_id).w3, address, block_number
        )

    def verify_merkle_proof(
        self,
        chain_id: int,
        proof: MerkleProof,
        value_type: TrieValueType,
        fee_in_wei: int,
        no_of_confirmations: int,
    ) -> VerificationResult:
        """
        Ask the contract to verify a proof, paying the verification fee.

        Args:
            chain_id (int): The verifying chain.
            proof (MerkleProof): Proof built for a target chain item.
            value_type (TrieValueType): Kind of the proven value.
            fee_in_wei (int): Fee sent with the call.
            no_of_confirmations (int): Blocks required on top of the header.

        Returns:
            VerificationResult: The return code emitted by the contract.
        """
        try:
            function_name, event_name = VERIFY_CALLS[TrieValueType(value_type)]
        except ValueError as e:
            raise ConfigurationException(
                f"Unexpected trie value type: {value_type}"
            ) from e

        testimonium = self.service(chain_id).testimonium
        call = getattr(testimonium.functions, function_name)(
            fee_in_wei,
            proof["rlp_header"],
            no_of_confirmations,
            proof["rlp_value"],
            proof["path"],
            proof["rlp_proof_nodes"],
        )
        _, event = self.transactions(chain_id).submit_and_await(
            testimonium, call, event_name, value=fee_in_wei
        )
        result = VerificationResult(return_code=event["args"]["result"])
        _logger.info(f"{event_name}: {result}")
        return result

    # -------------------------------------------------------------------------
    # ethash
    # -------------------------------------------------------------------------

    def set_epoch_data(self, chain_id: int, epoch_data: EpochData) -> int:
        """
        Submit the Merkle nodes of an epoch to the Ethash contract in chunks.

        Stops at the first failing chunk by propagating its error.

        Returns:
            int: Number of transactions sent.
        """
        ethash = self.service(chain_id).ethash
        transactions = self.transactions(chain_id)
        nodes = list(epoch_data["merkle_nodes"])
        chunk_size = RelayConstants.EPOCH_DATA_CHUNK_SIZE

        sent = 0
        for start in range(0, len(nodes), chunk_size):
            chunk = nodes[start : start + chunk_size]
            transactions.submit_and_await(
                ethash,
                ethash.functions.setEpochData(
                    epoch_data["epoch"],
                    epoch_data["full_size_in_128_resolution"],
                    epoch_data["branch_depth"],
                    chunk,
                    start,
                    len(chunk),
                ),
                None,
            )
            sent += 1
            _logger.info(
                f"Epoch {epoch_data['epoch']}: nodes {start}-"
                f"{start + len(chunk) - 1} of {len(nodes)} submitted"
            )
        return sent
