"""Read V3 pool state (PancakeSwap/Uniswap forks on BSC) over JSON-RPC.

Beyond slot0 pricing this covers token-aware pool composition, the initialized-tick
liquidity distribution (via tickBitmap) and oracle TWAP/TWAL over ``observe``.
"""

import asyncio
import logging
import re

from web3 import AsyncWeb3, Web3

from dexdata.domain.models.pool import (
    DexConfig,
    LiquidityCliff,
    Observation,
    PoolBaseInfo,
    PoolComposition,
    PoolInfoWithTokens,
    PoolPriceInfo,
    PoolToken,
    TickLiquidity,
    TokenRatioAnalysis,
    TwalResult,
    TwapResult,
)
from dexdata.exceptions import ConfigurationError
from dexdata.infra.blockchain.evm.token_reader import DEFAULT_TOKEN_PRICE_USD, Erc20TokenReader
from dexdata.onchain.pool_math import (
    active_liquidity_by_tick,
    adjust_price_for_decimals,
    average_tick,
    bitmap_position,
    calculate_token_ratios,
    compress_tick,
    detect_liquidity_cliffs,
    price_from_sqrt_price_x96,
    price_from_tick,
    ticks_in_bitmap_word,
    time_weighted_liquidity,
    token_amounts_at_tick,
)

logger = logging.getLogger(__name__)

BSC_RPC_URL = "https://bsc-dataseed.binance.org"
RPC_TIMEOUT = 15
OBSERVATION_WINDOW = 60  # seconds, for TWAP/TWAL

DEX_CONFIGS: dict[str, DexConfig] = {
    "pancakeswap-v3-bsc": DexConfig(
        name="PancakeSwap V3",
        factory_address="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
        chain_id=56,
        rpc_url=BSC_RPC_URL,
    ),
    "uniswap-v3-bsc": DexConfig(
        name="Uniswap V3",
        factory_address="0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",
        chain_id=56,
        rpc_url=BSC_RPC_URL,
    ),
}
DEFAULT_DEX = "pancakeswap-v3-bsc"

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

FACTORY_ABI = [
    {
        "name": "getPool",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "fee", "type": "uint24"},
        ],
        "outputs": [{"name": "pool", "type": "address"}],
    },
]

# feeProtocol is uint8 on Uniswap and uint32 on PancakeSwap; uint32 decodes both.
POOL_ABI = [
    {
        "name": "slot0",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "sqrtPriceX96", "type": "uint160"},
            {"name": "tick", "type": "int24"},
            {"name": "observationIndex", "type": "uint16"},
            {"name": "observationCardinality", "type": "uint16"},
            {"name": "observationCardinalityNext", "type": "uint16"},
            {"name": "feeProtocol", "type": "uint32"},
            {"name": "unlocked", "type": "bool"},
        ],
    },
    {
        "name": "liquidity",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint128"}],
    },
    {
        "name": "tickSpacing",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "int24"}],
    },
    {
        "name": "token0",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "token1",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "tickBitmap",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "wordPosition", "type": "int16"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "ticks",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "tick", "type": "int24"}],
        "outputs": [
            {"name": "liquidityGross", "type": "uint128"},
            {"name": "liquidityNet", "type": "int128"},
            {"name": "feeGrowthOutside0X128", "type": "uint256"},
            {"name": "feeGrowthOutside1X128", "type": "uint256"},
            {"name": "tickCumulativeOutside", "type": "int56"},
            {"name": "secondsPerLiquidityOutsideX128", "type": "uint160"},
            {"name": "secondsOutside", "type": "uint32"},
            {"name": "initialized", "type": "bool"},
        ],
    },
    {
        "name": "observe",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "secondsAgos", "type": "uint32[]"}],
        "outputs": [
            {"name": "tickCumulatives", "type": "int56[]"},
            {"name": "secondsPerLiquidityCumulativeX128s", "type": "uint160[]"},
        ],
    },
]


def get_dex_config(key: str = DEFAULT_DEX, rpc_url: str | None = None) -> DexConfig:
    if key not in DEX_CONFIGS:
        raise ConfigurationError(f"Unknown DEX configuration: {key}")
    config = DEX_CONFIGS[key]
    if rpc_url:
        config = config.model_copy(update={"rpc_url": rpc_url})
    return config


def validate_dex_config(config: DexConfig) -> None:
    if not (
        config.rpc_url
        and config.name
        and config.chain_id > 0
        and _ADDRESS_RE.match(config.factory_address)
    ):
        raise ConfigurationError(f"Invalid DEX configuration: {config.name or '<unnamed>'}")


class V3PoolReader:
    def __init__(
        self,
        config: DexConfig | None = None,
        w3: AsyncWeb3 | None = None,
        token_reader: Erc20TokenReader | None = None,
    ) -> None:
        self._config = config or DEX_CONFIGS[DEFAULT_DEX]
        validate_dex_config(self._config)
        self._w3 = w3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(self._config.rpc_url, request_kwargs={"timeout": RPC_TIMEOUT})
        )
        self._tokens = token_reader or Erc20TokenReader(self._config, w3=self._w3)

    @property
    def config(self) -> DexConfig:
        return self._config

    def _pool(self, pool_address: str):
        return self._w3.eth.contract(address=Web3.to_checksum_address(pool_address), abi=POOL_ABI)

    async def get_pool_address(self, token_a: str, token_b: str, fee: int) -> str:
        """Factory ``getPool`` lookup; the zero address means no pool for this fee tier."""
        token0, token1 = sorted([token_a, token_b], key=str.lower)
        factory = self._w3.eth.contract(
            address=Web3.to_checksum_address(self._config.factory_address), abi=FACTORY_ABI
        )
        try:
            pool = await factory.functions.getPool(
                Web3.to_checksum_address(token0), Web3.to_checksum_address(token1), fee
            ).call()
        except Exception:
            logger.exception("Error getting %s pool address for %s/%s fee=%d", self._config.name, token0, token1, fee)
            raise
        logger.info("%s pool for %s/%s fee=%d: %s", self._config.name, token0, token1, fee, pool)
        return pool

    async def get_pool_base_info(self, pool_address: str) -> PoolBaseInfo:
        pool = self._pool(pool_address)
        try:
            slot0, liquidity, tick_spacing, token0, token1 = await asyncio.gather(
                pool.functions.slot0().call(),
                pool.functions.liquidity().call(),
                pool.functions.tickSpacing().call(),
                pool.functions.token0().call(),
                pool.functions.token1().call(),
            )
        except Exception:
            logger.exception("Error getting pool base info for %s", pool_address)
            raise

        sqrt_price_x96, current_tick = int(slot0[0]), int(slot0[1])
        ratios = calculate_token_ratios(current_tick, sqrt_price_x96)
        logger.info("Pool %s: %s/%s tick=%d", pool_address, token0, token1, current_tick)
        return PoolBaseInfo(
            pool_address=pool_address,
            token0_address=token0,
            token1_address=token1,
            current_tick=current_tick,
            sqrt_price_x96=sqrt_price_x96,
            liquidity=int(liquidity),
            tick_spacing=int(tick_spacing),
            token_ratio=ratios.token_ratio,
            token_ratio_from_tick=ratios.token_ratio_from_tick,
            token_ratio_from_sqrt_price=ratios.token_ratio_from_sqrt_price,
        )

    async def get_pool_price(
        self, pool_address: str, token0_decimals: int = 18, token1_decimals: int = 18
    ) -> PoolPriceInfo:
        try:
            slot0 = await self._pool(pool_address).functions.slot0().call()
        except Exception:
            logger.exception("Error reading slot0 for %s", pool_address)
            raise

        sqrt_price_x96, tick = int(slot0[0]), int(slot0[1])
        from_sqrt = price_from_sqrt_price_x96(sqrt_price_x96)
        from_tick = price_from_tick(tick)
        difference = abs(from_sqrt - from_tick)
        adjusted = adjust_price_for_decimals(from_sqrt, token0_decimals, token1_decimals)

        logger.info(
            "Pool %s price: sqrt=%.8f tick=%.8f adjusted=%.8f", pool_address, from_sqrt, from_tick, adjusted
        )
        return PoolPriceInfo(
            token0_price=1 / adjusted if adjusted else 0.0,
            token1_price=adjusted,
            price_ratio=adjusted,
            sqrt_price_x96=sqrt_price_x96,
            tick=tick,
            price_from_sqrt_price_x96=from_sqrt,
            price_from_tick=from_tick,
            price_difference=difference,
            price_difference_percent=difference / from_sqrt * 100 if from_sqrt else 0.0,
            adjusted_price=adjusted,
        )

    # -- token-aware views -----------------------------------------------------------------

    async def get_pool_base_info_with_token_info(self, pool_address: str) -> PoolInfoWithTokens:
        """Pool state plus both tokens' metadata, pool balances and USD values."""
        try:
            base = await self.get_pool_base_info(pool_address)
            token0, token1, balance0, balance1 = await asyncio.gather(
                self._tokens.get_token_info(base.token0_address),
                self._tokens.get_token_info(base.token1_address),
                self._tokens.get_balance(base.token0_address, pool_address),
                self._tokens.get_balance(base.token1_address, pool_address),
            )
            price0 = await self._tokens.get_token_price_usd(base.token0_address, token0.symbol)
            price1 = await self._tokens.get_token_price_usd(base.token1_address, token1.symbol)
        except Exception:
            logger.exception("Error getting pool base info with tokens for %s", pool_address)
            raise

        total0 = balance0 / 10**token0.decimals
        total1 = balance1 / 10**token1.decimals
        usd0, usd1 = total0 * price0, total1 * price1
        total_usd = usd0 + usd1
        ratios = calculate_token_ratios(base.current_tick, base.sqrt_price_x96, token0.decimals, token1.decimals)

        logger.info(
            "Pool %s: %s/%s tick=%d total=$%.2f",
            pool_address, token0.symbol, token1.symbol, base.current_tick, total_usd,
        )
        return PoolInfoWithTokens(
            pool_address=pool_address,
            token0=PoolToken(**token0.model_dump(), price_usd=price0, token_balance=total0, token_usd=usd0),
            token1=PoolToken(**token1.model_dump(), price_usd=price1, token_balance=total1, token_usd=usd1),
            current_tick=base.current_tick,
            sqrt_price_x96=base.sqrt_price_x96,
            liquidity=base.liquidity,
            tick_spacing=base.tick_spacing,
            token0_total=total0,
            token1_total=total1,
            token0_total_usd=usd0,
            token1_total_usd=usd1,
            total_usd=total_usd,
            token_ratio=PoolComposition(
                token0_percent=usd0 / total_usd * 100 if total_usd > 0 else 0.0,
                token1_percent=usd1 / total_usd * 100 if total_usd > 0 else 0.0,
            ),
            raw_token_ratio=ratios.token_ratio,
            raw_token_ratio_from_tick=ratios.token_ratio_from_tick,
            raw_token_ratio_from_sqrt_price=ratios.token_ratio_from_sqrt_price,
            adjusted_token_ratio=ratios.adjusted_token_ratio,
        )

    async def analyze_token_ratios(self, pool_address: str) -> TokenRatioAnalysis:
        info = await self.get_pool_base_info_with_token_info(pool_address)
        raw = calculate_token_ratios(info.current_tick, info.sqrt_price_x96)
        adjusted = calculate_token_ratios(
            info.current_tick, info.sqrt_price_x96, info.token0.decimals, info.token1.decimals
        )
        return TokenRatioAnalysis(
            pool_address=pool_address,
            token0_symbol=info.token0.symbol,
            token1_symbol=info.token1.symbol,
            current_tick=info.current_tick,
            liquidity=info.liquidity,
            raw_ratios=raw,
            adjusted_ratios=adjusted,
            token0_per_token1=raw.token_ratio,
            token1_per_token0=1 / raw.token_ratio if raw.token_ratio else 0.0,
            adjusted_token0_per_token1=adjusted.adjusted_token_ratio,
            adjusted_token1_per_token0=1 / adjusted.adjusted_token_ratio if adjusted.adjusted_token_ratio else 0.0,
        )

    # -- tick distribution -----------------------------------------------------------------

    async def _initialized_ticks(
        self, pool, pool_address: str, current_word: int, word_range: int, spacing: int
    ) -> set[int]:
        words = range(current_word - word_range, current_word + word_range + 1)
        bitmaps = await asyncio.gather(
            *(pool.functions.tickBitmap(word).call() for word in words), return_exceptions=True
        )
        ticks: set[int] = set()
        for word, bitmap in zip(words, bitmaps):
            if isinstance(bitmap, Exception):
                logger.warning("Failed to read tickBitmap word %d of %s: %s", word, pool_address, bitmap)
                continue
            ticks.update(ticks_in_bitmap_word(word, int(bitmap), spacing))
        logger.info("Pool %s: %d initialized ticks in %d bitmap words", pool_address, len(ticks), len(words))
        return ticks

    async def get_tick_liquidity_distribution(self, pool_address: str, word_range: int = 10) -> list[TickLiquidity]:
        """Initialized ticks within ``word_range`` bitmap words of the current tick, with token amounts.

        The current tick is always present. Unreadable bitmap words and ticks are skipped.
        """
        try:
            info = await self.get_pool_base_info_with_token_info(pool_address)
            pool = self._pool(pool_address)
            current = info.current_tick
            current_word, _ = bitmap_position(compress_tick(current, info.tick_spacing))

            ticks = await self._initialized_ticks(pool, pool_address, current_word, word_range, info.tick_spacing)
            ticks.add(current)
            ordered = sorted(ticks)
            results = await asyncio.gather(
                *(pool.functions.ticks(tick).call() for tick in ordered), return_exceptions=True
            )
        except Exception:
            logger.exception("Error getting tick liquidity distribution for %s", pool_address)
            raise

        state: dict[int, tuple[int, int, bool]] = {}
        for tick, result in zip(ordered, results):
            if isinstance(result, Exception):
                logger.warning("Failed to read tick %d of %s: %s", tick, pool_address, result)
                continue
            gross, net, initialized = int(result[0]), int(result[1]), bool(result[7])
            if tick == current or net or gross:
                state[tick] = (net, gross, initialized)

        active = active_liquidity_by_tick({t: s[0] for t, s in state.items()}, current, info.liquidity)
        price0 = info.token0.price_usd or DEFAULT_TOKEN_PRICE_USD
        price1 = info.token1.price_usd or DEFAULT_TOKEN_PRICE_USD

        distribution = []
        for tick in sorted(state):
            net, gross, initialized = state[tick]
            available = active.get(tick, 0)
            amount0, amount1 = token_amounts_at_tick(tick, current, available)
            amount0 /= 10**info.token0.decimals
            amount1 /= 10**info.token1.decimals
            distribution.append(TickLiquidity(
                tick=tick,
                liquidity_net=net,
                liquidity_gross=gross,
                available_liquidity=available,
                token0_amount_adjusted=amount0,
                token1_amount_adjusted=amount1,
                token0_total_usd_adjusted=amount0 * price0,
                token1_total_usd_adjusted=amount1 * price1,
                total_usd_adjusted=amount0 * price0 + amount1 * price1,
                initialized=initialized,
                is_current_tick=tick == current,
            ))
        return distribution

    async def get_liquidity_cliffs(
        self, pool_address: str, threshold_pct: float = 0.2, word_range: int = 10
    ) -> list[LiquidityCliff]:
        distribution = await self.get_tick_liquidity_distribution(pool_address, word_range)
        current = next((t for t in distribution if t.is_current_tick), None)
        if current is None:
            return []
        return detect_liquidity_cliffs(
            [(t.tick, t.liquidity_net, t.is_current_tick) for t in distribution],
            current.available_liquidity,
            threshold_pct,
        )

    # -- oracle ----------------------------------------------------------------------------

    async def _observe(self, pool_address: str, seconds_ago: int, label: str) -> list[Observation] | None:
        """Observations at ``seconds_ago`` and now; None when the oracle window is too short."""
        if seconds_ago <= 0:
            raise ValueError(f"seconds_ago must be positive, got {seconds_ago}")
        windows = [seconds_ago, 0]
        try:
            tick_cumulatives, seconds_per_liquidity = await self._pool(pool_address).functions.observe(windows).call()
        except Exception as e:
            if "OLD" in str(e):
                logger.warning("%s observation data too old for pool %s", label, pool_address)
                return None
            raise
        return [
            Observation(
                seconds_ago=window,
                tick_cumulative=int(tick_cumulative),
                seconds_per_liquidity_cumulative_x128=int(spl),
            )
            for window, tick_cumulative, spl in zip(windows, tick_cumulatives, seconds_per_liquidity)
        ]

    async def get_twap(self, pool_address: str, seconds_ago: int = OBSERVATION_WINDOW) -> TwapResult | None:
        observations = await self._observe(pool_address, seconds_ago, "TWAP")
        if observations is None:
            return None
        tick = average_tick(observations[0].tick_cumulative, observations[1].tick_cumulative, seconds_ago)
        base = await self.get_pool_base_info(pool_address)
        twap = calculate_token_ratios(tick, base.sqrt_price_x96)
        current = calculate_token_ratios(base.current_tick, base.sqrt_price_x96)
        return TwapResult(
            average_tick=tick,
            observations=observations,
            twap_ratio_from_tick=twap.token_ratio_from_tick,
            twap_ratio_from_sqrt_price=twap.token_ratio_from_sqrt_price,
            current_ratio_from_tick=current.token_ratio_from_tick,
            current_ratio_from_sqrt_price=current.token_ratio_from_sqrt_price,
        )

    async def get_twal(self, pool_address: str, seconds_ago: int = OBSERVATION_WINDOW) -> TwalResult | None:
        observations = await self._observe(pool_address, seconds_ago, "TWAL")
        if observations is None:
            return None
        twal = time_weighted_liquidity(
            observations[0].seconds_per_liquidity_cumulative_x128,
            observations[1].seconds_per_liquidity_cumulative_x128,
            seconds_ago,
        )
        base = await self.get_pool_base_info(pool_address)
        return TwalResult(
            twal=twal,
            observations=observations,
            current_liquidity=base.liquidity,
            current_tick=base.current_tick,
        )
