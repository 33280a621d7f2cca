"""Token metadata from CoinGecko and Moralis, and the aggregated token view."""

from typing import Any

from pydantic import BaseModel


class CoinListInfo(BaseModel):
    id: str
    symbol: str
    name: str
    platforms: dict[str, str | None] | None = None  # platform id -> contract address


class TokenInfo(BaseModel):
    id: str
    symbol: str
    name: str
    price: float
    market_cap: float | None = None
    volume_24h: float | None = None
    change_24h: float | None = None
    platforms: dict[str, str | None] | None = None


class Ticker(BaseModel):
    """Exchange ticker from /coins/{id}/tickers. Vendor fields beyond these are kept."""

    model_config = {"extra": "allow"}

    base: str
    target: str
    market: dict[str, Any] = {}
    last: float | None = None
    volume: float | None = None
    converted_last: dict[str, float] = {}
    converted_volume: dict[str, float] = {}
    trust_score: str | None = None
    is_anomaly: bool = False
    is_stale: bool = False


class TopPool(BaseModel):
    """On-chain pool from /onchain/networks/{network}/pools."""

    model_config = {"extra": "allow"}

    id: str
    type: str
    attributes: dict[str, Any] = {}
    relationships: dict[str, Any] = {}


class PairToken(BaseModel):
    model_config = {"extra": "allow"}

    token_address: str
    token_name: str | None = None
    token_symbol: str | None = None
    token_decimals: str | None = None
    token_logo: str | None = None
    liquidity_usd: float | None = None
    pair_token_type: str | None = None


class TokenPool(BaseModel):
    pair_address: str
    token0: PairToken
    token1: PairToken
    exchange_name: str | None = None
    exchange_address: str | None = None
    exchange_logo: str | None = None
    pair_label: str | None = None
    liquidity_usd: float = 0
    volume_24h_usd: float = 0


class TokenTopHolders(BaseModel):
    name: str | None = None
    symbol: str | None = None
    logo: str | None = None
    holders: list[dict[str, Any]] = []


class PoolTransaction(BaseModel):
    transaction_hash: str
    from_address: str
    to_address: str = ""
    value: str = "0"
    timestamp: str = ""
    type: str = "transfer"


class AggregatePrice(BaseModel):
    current: float
    change_24h: float | None = None


class TokenAggregateInfo(BaseModel):
    basic_info: TokenInfo
    price: AggregatePrice
    platforms: dict[str, str | None]
    pools: list[TokenPool] = []
    top_holders: TokenTopHolders | None = None
    is_native_token: bool = False
    tickers: list[Ticker] = []
