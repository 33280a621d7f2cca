from dexdata.domain.models.price import (
    DEFAULT_CONFIG,
    Kline,
    MarketChartPoint,
    MarkPriceHistory,
    MultiSourcePriceData,
    PriceAggregatorConfig,
    PriceComparison,
    PriceDataPoint,
    PriceSource,
    SourcePriceData,
    TokenPriceData,
)
from dexdata.domain.models.result import FetchError, FetchResult
from dexdata.domain.models.token import (
    AggregatePrice,
    CoinListInfo,
    PairToken,
    PoolTransaction,
    Ticker,
    TokenAggregateInfo,
    TokenInfo,
    TokenPool,
    TokenTopHolders,
    TopPool,
)

__all__ = [
    "DEFAULT_CONFIG",
    "AggregatePrice",
    "CoinListInfo",
    "FetchError",
    "FetchResult",
    "Kline",
    "MarketChartPoint",
    "MarkPriceHistory",
    "MultiSourcePriceData",
    "PairToken",
    "PoolTransaction",
    "PriceAggregatorConfig",
    "PriceComparison",
    "PriceDataPoint",
    "PriceSource",
    "SourcePriceData",
    "Ticker",
    "TokenAggregateInfo",
    "TokenInfo",
    "TokenPool",
    "TokenPriceData",
    "TokenTopHolders",
    "TopPool",
]
