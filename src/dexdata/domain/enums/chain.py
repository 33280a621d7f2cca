from enum import Enum


class Chain(str, Enum):
    """EVM networks addressed by name. Values lowercase to match API conventions."""

    ETHEREUM = "ethereum"
    BSC = "bsc"
    POLYGON = "polygon"
    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"
    BASE = "base"
    AVALANCHE = "avalanche"


class ChainId(int, Enum):
    ETHEREUM = 1
    OPTIMISM = 10
    BSC = 56
    POLYGON = 137
    BASE = 8453
    ARBITRUM = 42161
    AVALANCHE = 43114
