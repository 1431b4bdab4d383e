"""All constants for the project"""

import os
from typing import Optional

from dotenv import load_dotenv

from testimonium_toolkit.shared.exceptions import ConfigurationException

load_dotenv()


class RelayConstants:
    """Global class constants for relay related ops"""

    # submitBlock(bytes) on the Testimonium contract
    SUBMIT_BLOCK_SIGNATURE = "submitBlock(bytes)"
    SUBMIT_BLOCK_SELECTOR = bytes.fromhex("d5107381")

    # Error(string), the standard revert payload
    REVERT_REASON_SELECTOR = bytes.fromhex("08c379a0")

    RECEIPT_TIMEOUT = 120  # seconds
    RECEIPT_POLL_INTERVAL = 0.5  # seconds

    # Block range scanned per eth_getLogs request
    LOG_PAGE_SIZE = 10_000

    # Merkle nodes per setEpochData transaction
    EPOCH_DATA_CHUNK_SIZE = 40


class GlobalConstants:
    """Global class constants for the project"""

    PRIVATE_KEY_ENV = "TESTIMONIUM_PRIVATE_KEY"

    @staticmethod
    def _chain_env(chain_id: int, key: str) -> Optional[str]:
        return os.getenv(f"CHAIN_{int(chain_id)}_{key}") or None

    @staticmethod
    def get_rpc_url(chain_id: int) -> str:
        """Get RPC URL for specified chain"""
        rpc_url = GlobalConstants._chain_env(chain_id, "RPC_URL")
        if not rpc_url:
            raise ConfigurationException(
                f"RPC URL not set for chain {chain_id} "
                f"(CHAIN_{chain_id}_RPC_URL)",
                {"chain_id": chain_id},
            )
        return rpc_url

    @staticmethod
    def get_testimonium_address(chain_id: int) -> Optional[str]:
        """Get the Testimonium contract address deployed on a chain"""
        return GlobalConstants._chain_env(chain_id, "TESTIMONIUM_ADDRESS")

    @staticmethod
    def get_ethash_address(chain_id: int) -> Optional[str]:
        """Get the Ethash contract address deployed on a chain"""
        return GlobalConstants._chain_env(chain_id, "ETHASH_ADDRESS")

    @staticmethod
    def is_poa(chain_id: int) -> bool:
        """Whether the chain needs the PoA extraData middleware"""
        value = GlobalConstants._chain_env(chain_id, "POA") or ""
        return value.lower() in ("1", "true", "yes")

    @staticmethod
    def get_private_key() -> str:
        """Get the private key used to sign transactions"""
        private_key = os.getenv(GlobalConstants.PRIVATE_KEY_ENV)
        if not private_key:
            raise ConfigurationException(
                f"{GlobalConstants.PRIVATE_KEY_ENV} is not set"
            )
        return private_key
