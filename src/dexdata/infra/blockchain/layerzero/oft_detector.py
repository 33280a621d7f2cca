"""OFT / OFT Adapter detection by eth_call, plus the LayerZero OFT list API."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from web3 import AsyncWeb3, Web3

from dexdata.domain.enums.contract_type import OftContractType
from dexdata.domain.models.layerzero import ContractDetection, OftFunctions
from dexdata.infra.blockchain.layerzero.chains import LAYERZERO_CHAINS, get_async_web3
from dexdata.infra.blockchain.layerzero.metadata import METADATA_TIMEOUT, METADATA_URL
from dexdata.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

OFT_LIST_URL = f"{METADATA_URL}/experiment/ofts/list"
# Any EID works for the peers() check; a reverting call means no OApp peers mapping
PEERS_CHECK_EID = LAYERZERO_CHAINS["ethereum"].eid

OFT_ABI = [
    {
        "name": "endpoint",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "peers",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "eid", "type": "uint32"}],
        "outputs": [{"name": "peer", "type": "bytes32"}],
    },
    {
        "name": "token",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "oftVersion",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "interfaceId", "type": "uint8"},
            {"name": "version", "type": "uint8"},
        ],
    },
    {
        "name": "totalSupply",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


class LayerZeroOftDetector:
    """Classify a contract as OFT, OFT Adapter or neither.

    An OFT answers ``endpoint()`` and ``peers(eid)``. An adapter also answers ``token()``,
    the ERC-20 it locks; adapters win when both hold.
    """

    def __init__(
        self, http_client: RateLimitedClient, w3_for: Callable[[str], AsyncWeb3] = get_async_web3
    ) -> None:
        self._http = http_client
        self._w3_for = w3_for

    def _oft(self, contract_address: str, chain: str):
        return self._w3_for(chain).eth.contract(address=Web3.to_checksum_address(contract_address), abi=OFT_ABI)

    async def get_available_functions(self, contract_address: str, chain: str) -> OftFunctions:
        """Each OFT view function is tried independently; any failure counts as absent."""
        try:
            contract = self._oft(contract_address, chain)
        except Exception:
            logger.exception("Error preparing OFT checks for %s on %s", contract_address, chain)
            return OftFunctions(has_endpoint=False, has_token=False, has_oft_version=False, has_peers=False)

        results = await asyncio.gather(
            contract.functions.endpoint().call(),
            contract.functions.token().call(),
            contract.functions.oftVersion().call(),
            contract.functions.peers(PEERS_CHECK_EID).call(),
            return_exceptions=True,
        )
        endpoint, token, oft_version, peers = (not isinstance(r, BaseException) for r in results)
        functions = OftFunctions(has_endpoint=endpoint, has_token=token, has_oft_version=oft_version, has_peers=peers)
        logger.debug("OFT functions of %s on %s: %s", contract_address, chain, functions)
        return functions

    async def is_oft_contract(self, contract_address: str, chain: str) -> bool:
        functions = await self.get_available_functions(contract_address, chain)
        return functions.has_endpoint and functions.has_peers

    async def is_oft_adapter_contract(self, contract_address: str, chain: str) -> bool:
        functions = await self.get_available_functions(contract_address, chain)
        return functions.has_endpoint and functions.has_peers and functions.has_token

    async def detect_contract_type(self, contract_address: str, chain: str) -> ContractDetection:
        functions = await self.get_available_functions(contract_address, chain)
        is_oft = functions.has_endpoint and functions.has_peers
        is_adapter = is_oft and functions.has_token

        if is_adapter:
            contract_type = OftContractType.OFT_ADAPTER
        elif is_oft:
            contract_type = OftContractType.OFT
        else:
            contract_type = OftContractType.UNKNOWN

        logger.info("Contract %s on %s detected as %s", contract_address, chain, contract_type.value)
        return ContractDetection(is_oft=is_oft, is_oft_adapter=is_adapter, contract_type=contract_type)

    async def get_oft_endpoint(self, contract_address: str, chain: str) -> str | None:
        try:
            return await self._oft(contract_address, chain).functions.endpoint().call()
        except Exception:
            logger.exception("Error getting OFT endpoint of %s on %s", contract_address, chain)
            return None

    async def get_oft_adapter_token(self, contract_address: str, chain: str) -> str | None:
        """The ERC-20 wrapped by an OFT Adapter. None for plain OFTs and on failure."""
        try:
            return await self._oft(contract_address, chain).functions.token().call()
        except Exception:
            logger.exception("Error getting OFT Adapter token of %s on %s", contract_address, chain)
            return None

    async def get_oft_info_from_api(self, contract_address: str, chain: str) -> dict[str, Any] | None:
        """Raw OFT list entry from the LayerZero metadata API, filtered to one contract."""
        params = {"chainNames": chain, "contractAddresses": contract_address}
        try:
            data = await self._http.get_json(OFT_LIST_URL, params=params, timeout=METADATA_TIMEOUT)
        except Exception:
            logger.exception("Error fetching OFT info for %s on %s", contract_address, chain)
            return None

        if not data or not isinstance(data, dict):
            logger.warning("No OFT info for %s on %s", contract_address, chain)
            return None
        logger.info("Retrieved OFT info for %s on %s", contract_address, chain)
        return data
