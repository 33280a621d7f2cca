"""Read an OApp's messaging config (libraries, executor, DVNs) from EndpointV2."""

import asyncio
import logging
from collections.abc import Callable

from eth_abi import decode
from web3 import AsyncWeb3, Web3

from dexdata.domain.models.layerzero import ExecutorConfig, OAppConfig, UlnConfig
from dexdata.infra.blockchain.layerzero.chains import LAYERZERO_CHAINS, get_async_web3
from dexdata.infra.blockchain.layerzero.metadata import LayerZeroMetadataClient

logger = logging.getLogger(__name__)

CONFIG_TYPE_EXECUTOR = 1
CONFIG_TYPE_ULN = 2

EXECUTOR_CONFIG_TYPE = "(uint32,address)"
ULN_CONFIG_TYPE = "(uint64,uint8,uint8,uint8,address[],address[])"

ENDPOINT_V2_ABI = [
    {
        "name": "getConfig",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "_oapp", "type": "address"},
            {"name": "_lib", "type": "address"},
            {"name": "_eid", "type": "uint32"},
            {"name": "_configType", "type": "uint32"},
        ],
        "outputs": [{"name": "config", "type": "bytes"}],
    },
    {
        "name": "getSendLibrary",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "_sender", "type": "address"},
            {"name": "_dstEid", "type": "uint32"},
        ],
        "outputs": [{"name": "lib", "type": "address"}],
    },
    {
        "name": "getReceiveLibrary",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "_receiver", "type": "address"},
            {"name": "_srcEid", "type": "uint32"},
        ],
        "outputs": [
            {"name": "lib", "type": "address"},
            {"name": "isDefault", "type": "bool"},
        ],
    },
]


def decode_executor_config(data: bytes) -> ExecutorConfig | None:
    if not data:
        return None
    max_message_size, executor = decode([EXECUTOR_CONFIG_TYPE], bytes(data))[0]
    return ExecutorConfig(max_message_size=max_message_size, executor=Web3.to_checksum_address(executor))


def decode_uln_config(data: bytes) -> UlnConfig | None:
    if not data:
        return None
    confirmations, required_count, optional_count, threshold, required, optional = decode(
        [ULN_CONFIG_TYPE], bytes(data)
    )[0]
    return UlnConfig(
        confirmations=confirmations,
        required_dvn_count=required_count,
        optional_dvn_count=optional_count,
        optional_dvn_threshold=threshold,
        required_dvns=[Web3.to_checksum_address(a) for a in required],
        optional_dvns=[Web3.to_checksum_address(a) for a in optional],
    )


class LayerZeroConfigReader:
    def __init__(
        self,
        metadata: LayerZeroMetadataClient,
        w3_for: Callable[[str], AsyncWeb3] = get_async_web3,
    ) -> None:
        self._metadata = metadata
        self._w3_for = w3_for

    def _endpoint(self, endpoint_address: str, chain: str):
        return self._w3_for(chain).eth.contract(
            address=Web3.to_checksum_address(endpoint_address), abi=ENDPOINT_V2_ABI
        )

    async def get_send_library(self, endpoint_address: str, oapp_address: str, chain: str, remote_eid: int) -> str:
        endpoint = self._endpoint(endpoint_address, chain)
        return await endpoint.functions.getSendLibrary(Web3.to_checksum_address(oapp_address), remote_eid).call()

    async def get_receive_library(self, endpoint_address: str, oapp_address: str, chain: str, remote_eid: int) -> str:
        endpoint = self._endpoint(endpoint_address, chain)
        lib, _is_default = await endpoint.functions.getReceiveLibrary(
            Web3.to_checksum_address(oapp_address), remote_eid
        ).call()
        return lib

    async def _get_config(
        self, endpoint_address: str, oapp_address: str, library: str, chain: str, remote_eid: int, config_type: int
    ) -> bytes:
        endpoint = self._endpoint(endpoint_address, chain)
        return await endpoint.functions.getConfig(
            Web3.to_checksum_address(oapp_address), Web3.to_checksum_address(library), remote_eid, config_type
        ).call()

    async def get_executor_config(
        self, endpoint_address: str, oapp_address: str, send_library: str, chain: str, remote_eid: int
    ) -> ExecutorConfig | None:
        try:
            data = await self._get_config(
                endpoint_address, oapp_address, send_library, chain, remote_eid, CONFIG_TYPE_EXECUTOR
            )
            return decode_executor_config(data)
        except Exception:
            logger.exception("Error reading executor config of %s on %s for eid %d", oapp_address, chain, remote_eid)
            return None

    async def get_uln_config(
        self, endpoint_address: str, oapp_address: str, library: str, chain: str, remote_eid: int
    ) -> UlnConfig | None:
        try:
            data = await self._get_config(endpoint_address, oapp_address, library, chain, remote_eid, CONFIG_TYPE_ULN)
            return decode_uln_config(data)
        except Exception:
            logger.exception("Error reading ULN config of %s on %s for eid %d", oapp_address, chain, remote_eid)
            return None

    async def get_oapp_config(self, oapp_address: str, chain: str, remote_chain: str) -> OAppConfig | None:
        """Libraries, executor and DVN sets ``oapp_address`` on ``chain`` uses towards ``remote_chain``.

        Returns None when the chain pair is unknown, the deployment has no EndpointV2,
        or the library lookups fail. Executor and ULN reads may individually be None.
        """
        remote = LAYERZERO_CHAINS.get(remote_chain)
        if remote is None or chain not in LAYERZERO_CHAINS:
            logger.warning("Unsupported LayerZero chain pair %s -> %s", chain, remote_chain)
            return None

        deployment = await self._metadata.get_chain_deployment_config(chain)
        endpoint_address = (deployment.endpoint_v2 or {}).get("address") if deployment else None
        if not endpoint_address:
            logger.warning("No EndpointV2 address for chain %s", chain)
            return None

        try:
            send_library, receive_library = await asyncio.gather(
                self.get_send_library(endpoint_address, oapp_address, chain, remote.eid),
                self.get_receive_library(endpoint_address, oapp_address, chain, remote.eid),
            )
        except Exception:
            logger.exception("Error reading message libraries of %s on %s", oapp_address, chain)
            return None

        executor, send_uln, receive_uln = await asyncio.gather(
            self.get_executor_config(endpoint_address, oapp_address, send_library, chain, remote.eid),
            self.get_uln_config(endpoint_address, oapp_address, send_library, chain, remote.eid),
            self.get_uln_config(endpoint_address, oapp_address, receive_library, chain, remote.eid),
        )

        logger.info(
            "OApp %s on %s -> %s: %s required send DVNs, %s required receive DVNs",
            oapp_address, chain, remote_chain,
            send_uln.required_dvn_count if send_uln else "?",
            receive_uln.required_dvn_count if receive_uln else "?",
        )
        return OAppConfig(
            oapp_address=oapp_address,
            source_chain=chain,
            remote_eid=remote.eid,
            send_library=send_library,
            receive_library=receive_library,
            send_executor=executor,
            send_uln=send_uln,
            receive_uln=receive_uln,
        )
