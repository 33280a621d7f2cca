"""OApp peer discovery: which remote endpoints an OFT/OApp is wired to."""

import asyncio
import logging
from collections.abc import Callable

from web3 import AsyncWeb3, Web3

from dexdata.domain.models.layerzero import BridgeConfig, PeerAnalysis, PeerConnectivity, PeerInfo
from dexdata.infra.blockchain.layerzero.chains import LAYERZERO_CHAINS, get_async_web3

logger = logging.getLogger(__name__)

ZERO_BYTES32 = "0x" + "00" * 32

OAPP_ABI = [
    {
        "name": "peers",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "eid", "type": "uint32"}],
        "outputs": [{"name": "peer", "type": "bytes32"}],
    },
]


def _to_hex32(raw: bytes | str) -> str:
    if isinstance(raw, str):
        return raw.lower() if raw.startswith("0x") else "0x" + raw.lower()
    return "0x" + bytes(raw).hex()


def format_peer_address(bytes32_address: str) -> str:
    """EVM peers are left-padded addresses; keep the low 20 bytes, checksummed."""
    address = "0x" + bytes32_address.removeprefix("0x")[-40:]
    try:
        return Web3.to_checksum_address(address)
    except ValueError:
        logger.warning("Failed to checksum peer address %s", bytes32_address)
        return address


class LayerZeroPeerReader:
    def __init__(self, w3_for: Callable[[str], AsyncWeb3] = get_async_web3) -> None:
        self._w3_for = w3_for

    def _oapp(self, oapp_address: str, chain: str):
        return self._w3_for(chain).eth.contract(address=Web3.to_checksum_address(oapp_address), abi=OAPP_ABI)

    @staticmethod
    def _peer_info(chain: str, eid: int, raw: bytes | str) -> PeerInfo:
        peer_bytes32 = _to_hex32(raw)
        is_active = peer_bytes32 != ZERO_BYTES32
        return PeerInfo(
            chain=chain,
            eid=eid,
            peer_bytes32=peer_bytes32,
            peer_address=format_peer_address(peer_bytes32) if is_active else None,
            is_active=is_active,
        )

    async def get_peer(self, oapp_address: str, chain: str, target_chain: str) -> PeerInfo | None:
        """Active peer of ``oapp_address`` on ``chain`` for ``target_chain``; None if unset or unreadable."""
        if chain == target_chain:
            logger.warning("Source and target chain are the same: %s", chain)
            return None
        target = LAYERZERO_CHAINS.get(target_chain)
        if target is None:
            logger.warning("Target chain %s is not a LayerZero V2 chain", target_chain)
            return None

        try:
            raw = await self._oapp(oapp_address, chain).functions.peers(target.eid).call()
        except Exception:
            logger.exception("Error reading peer of %s on %s for %s", oapp_address, chain, target_chain)
            return None

        peer = self._peer_info(target_chain, target.eid, raw)
        if not peer.is_active:
            logger.debug("No active peer of %s on %s for %s", oapp_address, chain, target_chain)
            return None
        return peer

    async def get_all_peers(self, oapp_address: str, chain: str) -> list[PeerInfo]:
        """Active peers across every other known endpoint. Per-EID failures are skipped."""
        targets = [(key, cfg.eid) for key, cfg in LAYERZERO_CHAINS.items() if key != chain]
        try:
            contract = self._oapp(oapp_address, chain)
        except Exception:
            logger.exception("Error preparing peer lookup for %s on %s", oapp_address, chain)
            return []

        results = await asyncio.gather(
            *(contract.functions.peers(eid).call() for _, eid in targets), return_exceptions=True
        )

        peers = []
        for (target_chain, eid), raw in zip(targets, results):
            if isinstance(raw, BaseException):
                logger.debug("peers(%d) failed for %s on %s: %s", eid, oapp_address, chain, raw)
                continue
            peer = self._peer_info(target_chain, eid, raw)
            if peer.is_active:
                peers.append(peer)

        logger.info("Found %d active peers for %s on %s", len(peers), oapp_address, chain)
        return peers

    async def analyze_peer_relationships(self, oapp_address: str, chain: str) -> PeerAnalysis:
        peers = await self.get_all_peers(oapp_address, chain)
        if not peers:
            return PeerAnalysis(
                oapp_address=oapp_address, source_chain=chain, peers=[],
                bridge_configs=[], total_peers=0, supported_chains=[],
            )

        supported = [chain]
        for peer in peers:
            if peer.chain not in supported:
                supported.append(peer.chain)

        return PeerAnalysis(
            oapp_address=oapp_address,
            source_chain=chain,
            peers=peers,
            bridge_configs=[
                BridgeConfig(from_chain=chain, to_chain=p.chain, is_available=p.is_active) for p in peers
            ],
            total_peers=len(peers),
            supported_chains=supported,
        )

    async def validate_peer_connectivity(self, oapp_address: str, chain: str, target_chain: str) -> PeerConnectivity:
        source = LAYERZERO_CHAINS.get(chain)
        target = LAYERZERO_CHAINS.get(target_chain)
        if source is None or target is None:
            logger.warning("Unsupported chain in connectivity check: %s -> %s", chain, target_chain)
            return PeerConnectivity(
                is_connected=False,
                source_eid=source.eid if source else None,
                target_eid=target.eid if target else None,
            )

        peer = await self.get_peer(oapp_address, chain, target_chain)
        return PeerConnectivity(
            is_connected=bool(peer and peer.is_active),
            peer_address=peer.peer_address if peer else None,
            source_eid=source.eid,
            target_eid=target.eid,
        )
