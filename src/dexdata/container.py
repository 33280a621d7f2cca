from dependency_injector import containers, providers

from dexdata.aggregator.price_aggregator import PriceAggregator
from dexdata.aggregator.token_aggregator import TokenAggregator
from dexdata.config import Settings
from dexdata.domain.models.okx import OkxDexMultiConfig
from dexdata.infra.blockchain.evm.etherscan_client import EtherscanClient
from dexdata.infra.blockchain.evm.token_reader import Erc20TokenReader
from dexdata.infra.blockchain.evm.v3_pool_reader import V3PoolReader, get_dex_config
from dexdata.infra.blockchain.layerzero.config_reader import LayerZeroConfigReader
from dexdata.infra.blockchain.layerzero.metadata import LayerZeroMetadataClient
from dexdata.infra.blockchain.layerzero.oft_detector import LayerZeroOftDetector
from dexdata.infra.blockchain.layerzero.peers import LayerZeroPeerReader
from dexdata.infra.cache.file import JsonFileCache
from dexdata.infra.cache.memory import MemoryCache
from dexdata.infra.cex.binance_client import BinanceFuturesClient
from dexdata.infra.cex.bitget_client import BitgetClient
from dexdata.infra.cex.bybit_client import BybitClient
from dexdata.infra.http.rate_limited_client import RateLimitedClient
from dexdata.infra.moralis.client import MoralisClient
from dexdata.infra.okx.client import OkxDexClient
from dexdata.infra.okx.config import load_multi_config
from dexdata.infra.price.coingecko import CoinGeckoClient


def build_okx_client(http_client: RateLimitedClient, multi_config: OkxDexMultiConfig) -> OkxDexClient | None:
    """OKX DEX is optional: without keys the aggregator records it as a failed source."""
    if not multi_config.configs:
        return None
    return OkxDexClient(http_client, multi_config)


class Container(containers.DeclarativeContainer):
    settings = providers.Singleton(Settings)

    http_client = providers.Singleton(
        RateLimitedClient,
        rate_per_second=settings.provided.http_rate_per_second,
        timeout=settings.provided.http_timeout,
    )

    memory_cache = providers.Singleton(MemoryCache)
    file_cache = providers.Singleton(JsonFileCache, directory=settings.provided.cache_dir)

    coingecko = providers.Singleton(
        CoinGeckoClient,
        http_client=http_client,
        api_key=settings.provided.coingecko_api_key,
        cache=file_cache,
    )
    moralis = providers.Singleton(
        MoralisClient,
        api_key=settings.provided.moralis_api_key,
        http_client=http_client,
    )
    bybit = providers.Singleton(BybitClient, http_client=http_client)
    binance = providers.Singleton(BinanceFuturesClient, http_client=http_client)
    bitget = providers.Singleton(BitgetClient, http_client=http_client)

    okx_config = providers.Singleton(load_multi_config, settings=settings)
    okx = providers.Singleton(build_okx_client, http_client=http_client, multi_config=okx_config)

    etherscan = providers.Singleton(
        EtherscanClient,
        api_key=settings.provided.etherscan_api_key,
        chain=settings.provided.etherscan_chain,
        http_client=http_client,
        cache=memory_cache,
    )

    dex_config = providers.Singleton(get_dex_config, rpc_url=settings.provided.binance_alpha_rpc_url)
    token_reader = providers.Singleton(
        Erc20TokenReader,
        config=dex_config,
        cache=memory_cache,
        coingecko=coingecko,
    )
    v3_pool_reader = providers.Singleton(V3PoolReader, config=dex_config, token_reader=token_reader)

    layerzero_metadata = providers.Singleton(LayerZeroMetadataClient, http_client=http_client)
    layerzero_peers = providers.Singleton(LayerZeroPeerReader)
    layerzero_config = providers.Singleton(LayerZeroConfigReader, metadata=layerzero_metadata)
    oft_detector = providers.Singleton(LayerZeroOftDetector, http_client=http_client)

    price_aggregator = providers.Singleton(
        PriceAggregator,
        coingecko=coingecko,
        bybit=bybit,
        binance=binance,
        bitget=bitget,
        okx=okx,
    )
    token_aggregator = providers.Singleton(TokenAggregator, coingecko=coingecko, moralis=moralis)
