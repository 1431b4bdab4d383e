"""
Web3 Service module for interacting with the target and verifying chains.

This module provides a Web3Service class that manages the connection to one
chain and gives access to the Testimonium and Ethash contracts deployed on
it. It deliberately keeps no data caches: every relay operation rediscovers
the chain state it needs.
"""

from typing import Any, Dict, Optional

from web3 import Web3

from testimonium_toolkit.shared.constants import GlobalConstants
from testimonium_toolkit.shared.exceptions import (
    ConfigurationException,
    RemoteUnavailableError,
)
from testimonium_toolkit.shared.services.resource_manager import (
    resource_manager,
)


class Web3Service:
    """
    A service class for managing the Web3 connection of a single chain.

    The chain id is the toolkit's own label for a configured chain (the key
    used in the CHAIN_<id>_* environment variables), not necessarily the
    EIP-155 chain id.
    """

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        testimonium_address: Optional[str] = None,
        ethash_address: Optional[str] = None,
        poa: bool = False,
    ):
        """
        Initialize the Web3Service.

        Args:
            chain_id (int): The chain label to use.
            rpc_url (str): The RPC URL to use.
            testimonium_address (str): Testimonium contract on this chain.
            ethash_address (str): Ethash contract on this chain.
            poa (bool): Inject the PoA extraData middleware.
        """
        self.chain_id = chain_id
        self.rpc_url = rpc_url
        self.poa = poa
        self.testimonium_address = testimonium_address
        self.ethash_address = ethash_address
        self.w3 = self._initialize_web3(rpc_url)
        self._contract_cache: Dict[Any, Any] = {}

    def _initialize_web3(self, rpc_url: str) -> Web3:
        """Initialize Web3 instance with middleware if needed"""
        w3 = Web3(Web3.HTTPProvider(rpc_url))

        if self.poa:
            from web3.middleware import geth_poa_middleware

            w3.middleware_onion.inject(geth_poa_middleware, layer=0)

        return w3

    @classmethod
    def from_config(cls, chain_id: int) -> "Web3Service":
        """Create a service from the CHAIN_<id>_* environment variables"""
        return cls(
            chain_id,
            GlobalConstants.get_rpc_url(chain_id),
            testimonium_address=GlobalConstants.get_testimonium_address(
                chain_id
            ),
            ethash_address=GlobalConstants.get_ethash_address(chain_id),
            poa=GlobalConstants.is_poa(chain_id),
        )

    def ensure_connected(self) -> None:
        """Fail fast when the RPC endpoint does not answer"""
        if not self.w3.is_connected():
            raise RemoteUnavailableError(
                f"Cannot connect to chain {self.chain_id} ({self.rpc_url})",
                {"chain_id": self.chain_id},
            )

    def get_contract(self, address: str, abi_name: str) -> Any:
        """Get a contract instance for a given address and ABI name"""
        key = (address, abi_name)
        if key not in self._contract_cache:
            abi = resource_manager.load_abi(abi_name)
            self._contract_cache[key] = self.w3.eth.contract(
                address=Web3.to_checksum_address(address.lower()), abi=abi
            )
        return self._contract_cache[key]

    @property
    def testimonium(self) -> Any:
        """The Testimonium relay contract deployed on this chain"""
        if not self.testimonium_address:
            raise ConfigurationException(
                f"No Testimonium contract configured for chain "
                f"{self.chain_id} (CHAIN_{self.chain_id}_TESTIMONIUM_ADDRESS)",
                {"chain_id": self.chain_id},
            )
        return self.get_contract(self.testimonium_address, "testimonium")

    @property
    def ethash(self) -> Any:
        """The Ethash contract deployed on this chain"""
        if not self.ethash_address:
            raise ConfigurationException(
                f"No Ethash contract configured for chain "
                f"{self.chain_id} (CHAIN_{self.chain_id}_ETHASH_ADDRESS)",
                {"chain_id": self.chain_id},
            )
        return self.get_contract(self.ethash_address, "ethash")
