"""LayerZero metadata API: per-chain V2 deployment addresses."""

import logging
from typing import Any

from dexdata.domain.models.layerzero import DeploymentConfig, EssentialAddresses, LayerZeroChainConfig
from dexdata.infra.blockchain.layerzero.chains import get_chain
from dexdata.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

METADATA_URL = "https://metadata.layerzero-api.com/v1/metadata"
METADATA_TIMEOUT = 10.0


def _address(entry: dict[str, Any] | None) -> str | None:
    return entry.get("address") if entry else None


def validate_chain_support(chain: str) -> LayerZeroChainConfig | None:
    """Endpoint config for ``chain``, or None if LayerZero V2 does not cover it."""
    return get_chain(chain)


class LayerZeroMetadataClient:
    def __init__(self, http_client: RateLimitedClient) -> None:
        self._http = http_client

    async def get_all_deployment_configs(self) -> dict[str, Any] | None:
        """Raw metadata document keyed by chain key. None on failure."""
        try:
            data = await self._http.get_json(METADATA_URL, timeout=METADATA_TIMEOUT)
        except Exception:
            logger.exception("Error fetching LayerZero deployment metadata")
            return None
        if not isinstance(data, dict):
            logger.warning("Invalid LayerZero metadata response: %s", type(data).__name__)
            return None
        logger.info("Retrieved LayerZero metadata for %d chains", len(data))
        return data

    async def get_chain_deployment_config(self, chain: str) -> DeploymentConfig | None:
        data = await self.get_all_deployment_configs()
        if data is None:
            return None

        deployments = (data.get(chain) or {}).get("deployments") or []
        entry = next((d for d in deployments if "endpointV2" in d), None)
        if entry is None:
            logger.warning("No LayerZero V2 deployment found for chain %s", chain)
            return None

        config = DeploymentConfig(**entry)
        logger.info(
            "LayerZero deployment for %s: endpointV2=%s executor=%s",
            chain, _address(config.endpoint_v2), _address(config.executor),
        )
        return config

    async def get_essential_deployment_addresses(self, chain: str) -> EssentialAddresses | None:
        config = await self.get_chain_deployment_config(chain)
        if config is None:
            return None
        return EssentialAddresses(
            endpoint_v2=_address(config.endpoint_v2),
            send_uln301=_address(config.send_uln301),
            receive_uln301=_address(config.receive_uln301),
            executor=_address(config.executor),
        )
