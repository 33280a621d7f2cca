"""LayerZero V2 mainnet endpoints (EIDs) and per-chain RPC access."""

from functools import lru_cache

from web3 import AsyncWeb3

from dexdata.domain.models.layerzero import LayerZeroChainConfig

RPC_TIMEOUT = 15


def _chain(name: str, eid: int, rpc_url: str, native_chain_id: int, native_currency: str) -> LayerZeroChainConfig:
    return LayerZeroChainConfig(
        name=name, eid=eid, rpc_url=rpc_url, native_chain_id=native_chain_id, native_currency=native_currency
    )


LAYERZERO_CHAINS: dict[str, LayerZeroChainConfig] = {
    "ethereum": _chain("Ethereum", 30101, "https://eth.drpc.org", 1, "ETH"),
    "bsc": _chain("BSC", 30102, "https://bsc.drpc.org", 56, "BNB"),
    "polygon": _chain("Polygon", 30109, "https://polygon.drpc.org", 137, "MATIC"),
    "arbitrum": _chain("Arbitrum", 30110, "https://arbitrum.drpc.org", 42161, "ETH"),
    "optimism": _chain("Optimism", 30111, "https://optimism.drpc.org", 10, "ETH"),
    "base": _chain("Base", 30184, "https://base.drpc.org", 8453, "ETH"),
    "avalanche": _chain("Avalanche", 30106, "https://avalanche.drpc.org", 43114, "AVAX"),
    "mantle": _chain("Mantle", 30181, "https://rpc.mantle.xyz", 5000, "MNT"),
    "zkevm": _chain("Polygon zkEVM", 30158, "https://zkevm-rpc.com", 1101, "ETH"),
    "sei": _chain("Sei", 30280, "https://evm-rpc.sei-apis.com", 1329, "SEI"),
    "solana": _chain("Solana", 30168, "https://api.mainnet-beta.solana.com", 101, "SOL"),
    "sonic": _chain("Sonic", 30332, "https://rpc.soniclabs.com", 146, "S"),
    "hyperliquid": _chain("Hyperliquid", 30367, "https://api.hyperliquid.xyz/evm", 998, "ETH"),
}


def get_chain(chain: str) -> LayerZeroChainConfig | None:
    return LAYERZERO_CHAINS.get(chain)


def chain_for_eid(eid: int) -> str | None:
    for key, config in LAYERZERO_CHAINS.items():
        if config.eid == eid:
            return key
    return None


@lru_cache(maxsize=16)
def get_async_web3(chain: str) -> AsyncWeb3:
    config = LAYERZERO_CHAINS.get(chain)
    if config is None:
        raise ValueError(f"Unsupported LayerZero chain: {chain}")
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(config.rpc_url, request_kwargs={"timeout": RPC_TIMEOUT}))
