from enum import Enum


class PriceSourceName(str, Enum):
    """Price feeds the aggregator can fan out to."""

    COINGECKO = "coingecko"
    BYBIT = "bybit"
    OKX = "okx"
    BINANCE = "binance"
    BITGET = "bitget"
