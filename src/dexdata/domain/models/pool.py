"""Uniswap/PancakeSwap V3 pool state and derived prices."""

from pydantic import BaseModel


class TokenRatios(BaseModel):
    """token1/token0 ratio computed from tick and from sqrtPriceX96, for cross-checking."""

    token_ratio_from_tick: float
    token_ratio_from_sqrt_price: float
    adjusted_token_ratio: float  # from sqrt price, scaled by 10^(d0 - d1)
    token_ratio: float
    precision_difference: float
    precision_difference_percent: float
    decimal_adjustment: float
    current_tick: int
    sqrt_price: float
    sqrt_price_x96: str  # uint160 does not fit a float losslessly


class PoolBaseInfo(BaseModel):
    pool_address: str
    token0_address: str
    token1_address: str
    current_tick: int
    sqrt_price_x96: int
    liquidity: int
    tick_spacing: int
    token_ratio: float
    token_ratio_from_tick: float
    token_ratio_from_sqrt_price: float


class PoolPriceInfo(BaseModel):
    token0_price: float
    token1_price: float
    price_ratio: float
    sqrt_price_x96: int
    tick: int
    price_from_sqrt_price_x96: float
    price_from_tick: float
    price_difference: float
    price_difference_percent: float
    adjusted_price: float


class DexConfig(BaseModel):
    model_config = {"frozen": True}

    name: str
    factory_address: str
    chain_id: int
    rpc_url: str
    version: str = "v3"


class Erc20TokenInfo(BaseModel):
    address: str
    symbol: str
    decimals: int
    name: str


class PoolToken(Erc20TokenInfo):
    """Token metadata plus its balance held by a pool, in whole tokens and USD."""

    price_usd: float
    token_balance: float
    token_usd: float


class PoolComposition(BaseModel):
    token0_percent: float
    token1_percent: float


class PoolInfoWithTokens(BaseModel):
    pool_address: str
    token0: PoolToken
    token1: PoolToken
    current_tick: int
    sqrt_price_x96: int
    liquidity: int
    tick_spacing: int
    token0_total: float
    token1_total: float
    token0_total_usd: float
    token1_total_usd: float
    total_usd: float
    token_ratio: PoolComposition  # USD split between the two sides
    raw_token_ratio: float
    raw_token_ratio_from_tick: float
    raw_token_ratio_from_sqrt_price: float
    adjusted_token_ratio: float


class TokenRatioAnalysis(BaseModel):
    pool_address: str
    token0_symbol: str
    token1_symbol: str
    current_tick: int
    liquidity: int
    raw_ratios: TokenRatios
    adjusted_ratios: TokenRatios
    token0_per_token1: float
    token1_per_token0: float
    adjusted_token0_per_token1: float
    adjusted_token1_per_token0: float


class TickLiquidity(BaseModel):
    tick: int
    liquidity_net: int
    liquidity_gross: int
    available_liquidity: int  # active liquidity at this tick, walked out from the current tick
    token0_amount_adjusted: float
    token1_amount_adjusted: float
    token0_total_usd_adjusted: float
    token1_total_usd_adjusted: float
    total_usd_adjusted: float
    initialized: bool
    is_current_tick: bool


class LiquidityCliff(BaseModel):
    tick: int
    previous_liquidity: int
    current_liquidity: int
    delta_pct: float  # percent, two decimals


class Observation(BaseModel):
    seconds_ago: int
    tick_cumulative: int
    seconds_per_liquidity_cumulative_x128: int


class TwapResult(BaseModel):
    average_tick: int
    observations: list[Observation]
    twap_ratio_from_tick: float
    twap_ratio_from_sqrt_price: float  # current sqrtPriceX96; observe() has no price accumulator
    current_ratio_from_tick: float
    current_ratio_from_sqrt_price: float


class TwalResult(BaseModel):
    twal: int  # harmonic mean of in-range liquidity over the window
    observations: list[Observation]
    current_liquidity: int
    current_tick: int
