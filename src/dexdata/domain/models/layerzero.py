"""LayerZero V2 deployment metadata and OApp peer/config views."""

from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from dexdata.domain.enums.contract_type import OftContractType


class LayerZeroChainConfig(BaseModel):
    model_config = {"frozen": True}

    name: str
    eid: int
    rpc_url: str
    native_chain_id: int
    native_currency: str = ""


class DeploymentConfig(BaseModel):
    """One ``deployments[]`` entry from the metadata API that carries an EndpointV2."""

    model_config = {"extra": "allow", "alias_generator": to_camel, "populate_by_name": True}

    eid: str | None = None
    version: int | None = None
    chain_key: str | None = None
    endpoint_v2: dict[str, Any] | None = None
    send_uln301: dict[str, Any] | None = None
    receive_uln301: dict[str, Any] | None = None
    send_uln302: dict[str, Any] | None = None
    receive_uln302: dict[str, Any] | None = None
    executor: dict[str, Any] | None = None


class EssentialAddresses(BaseModel):
    endpoint_v2: str | None = None
    send_uln301: str | None = None
    receive_uln301: str | None = None
    executor: str | None = None


class PeerInfo(BaseModel):
    chain: str
    eid: int
    peer_bytes32: str
    peer_address: str | None
    is_active: bool


class BridgeConfig(BaseModel):
    from_chain: str
    to_chain: str
    is_available: bool


class PeerAnalysis(BaseModel):
    oapp_address: str
    source_chain: str
    peers: list[PeerInfo]
    bridge_configs: list[BridgeConfig]
    total_peers: int
    supported_chains: list[str]


class PeerConnectivity(BaseModel):
    is_connected: bool
    peer_address: str | None = None
    source_eid: int | None = None
    target_eid: int | None = None


class ExecutorConfig(BaseModel):
    max_message_size: int
    executor: str


class UlnConfig(BaseModel):
    confirmations: int
    required_dvn_count: int
    optional_dvn_count: int
    optional_dvn_threshold: int
    required_dvns: list[str]
    optional_dvns: list[str]


class OAppConfig(BaseModel):
    oapp_address: str
    source_chain: str
    remote_eid: int
    send_library: str
    receive_library: str
    send_executor: ExecutorConfig | None = None
    send_uln: UlnConfig | None = None
    receive_uln: UlnConfig | None = None


class OftFunctions(BaseModel):
    """Which OFT entry points answered an eth_call."""

    has_endpoint: bool
    has_token: bool
    has_oft_version: bool
    has_peers: bool


class ContractDetection(BaseModel):
    is_oft: bool
    is_oft_adapter: bool
    contract_type: OftContractType
