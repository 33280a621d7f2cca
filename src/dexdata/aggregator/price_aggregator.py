"""Multi-source token price aggregation.

Every enabled source is queried concurrently. A source that fails contributes a
zero-price placeholder instead of failing the whole call, so callers always get
one entry per attempted source (CoinGecko is omitted when it has no price
or its lookup fails).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from dexdata.domain.enums.price_source import PriceSourceName
from dexdata.domain.models.price import (
    DEFAULT_CONFIG,
    MultiSourcePriceData,
    PriceAggregatorConfig,
    PriceComparison,
    PriceDataPoint,
    SourcePriceData,
    utc_now_iso,
)
from dexdata.domain.models.result import FetchResult
from dexdata.infra.cex.binance_client import BinanceFuturesClient
from dexdata.infra.cex.bitget_client import BitgetClient
from dexdata.infra.cex.bybit_client import BybitClient
from dexdata.infra.cex.common import usdt_perp_symbol
from dexdata.infra.okx.client import MAX_CANDLES_PER_REQUEST, OkxDexClient, convert_candles_to_price_data
from dexdata.infra.okx.config import OKX_DEX_CHAIN_INDEX
from dexdata.infra.pagination import fetch_backward
from dexdata.infra.price.coingecko import CoinGeckoClient

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440

ConfigOverrides = PriceAggregatorConfig | dict[str, Any] | None
SourceResult = FetchResult[SourcePriceData | None]


def _from_history(current_price: float, history: list[PriceDataPoint]) -> SourcePriceData:
    return SourcePriceData(current_price=current_price, last_updated=utc_now_iso(), historical_data=history)


def _empty() -> SourcePriceData:
    return _from_history(0, [])


def compare_price_sources(data: MultiSourcePriceData) -> list[PriceComparison]:
    """Each source's price against the first source in ``data.sources``."""
    prices = [(source, entry.current_price) for source, entry in data.sources.items()]
    if len(prices) < 2:
        return [PriceComparison(source=s, price=p, difference=0, percentage_diff=0) for s, p in prices]

    base = prices[0][1]
    return [
        PriceComparison(
            source=source,
            price=price,
            difference=price - base,
            percentage_diff=(price - base) / base * 100 if base > 0 else 0,
        )
        for source, price in prices
    ]


class PriceAggregator:
    def __init__(
        self,
        coingecko: CoinGeckoClient,
        bybit: BybitClient,
        binance: BinanceFuturesClient,
        bitget: BitgetClient,
        okx: OkxDexClient | None = None,
    ) -> None:
        self._coingecko = coingecko
        self._bybit = bybit
        self._binance = binance
        self._bitget = bitget
        self._okx = okx
        self._adapters: dict[PriceSourceName, Callable[..., Awaitable[SourceResult]]] = {
            PriceSourceName.COINGECKO: self._fetch_coingecko,
            PriceSourceName.BYBIT: self._fetch_bybit,
            PriceSourceName.OKX: self._fetch_okx,
            PriceSourceName.BINANCE: self._fetch_binance,
            PriceSourceName.BITGET: self._fetch_bitget,
        }

    # -- source adapters -------------------------------------------------------------------

    async def _fetch_coingecko(
        self, token_address: str, token_symbol: str | None, platform: str, config: PriceAggregatorConfig
    ) -> SourceResult:
        try:
            data = await self._coingecko.get_token_full_price_data(
                platform, token_address, config.default_days, config.default_currency
            )
        except Exception as e:
            # CoinGecko has no placeholder entry: a failed lookup leaves the key out.
            logger.error("[PriceAggregator] CoinGecko fetch failed for %s: %s", token_address, e)
            return FetchResult.success(None)
        if data is None:
            return FetchResult.success(None)

        history = None
        if data.historical_data is not None:
            history = [
                PriceDataPoint(timestamp=p.timestamp, price=p.price, source=PriceSourceName.COINGECKO.value)
                for p in data.historical_data
            ]
        return FetchResult.success(
            SourcePriceData(current_price=data.current_price, last_updated=data.last_updated, historical_data=history)
        )

    async def _fetch_bybit(
        self, token_address: str, token_symbol: str | None, platform: str, config: PriceAggregatorConfig
    ) -> SourceResult:
        if not token_symbol:
            logger.error("[PriceAggregator] No token symbol provided for Bybit (token %s)", token_address)
            return FetchResult.success(_empty())

        symbol = usdt_perp_symbol(token_symbol)
        try:
            history = await self._bybit.get_kline_for_days(symbol, config.default_days, "1")
        except Exception as e:
            return FetchResult.failure(PriceSourceName.BYBIT.value, e)

        if not history:
            logger.warning("[PriceAggregator] No Bybit kline data for %s", symbol)
            return FetchResult.success(_empty())
        return FetchResult.success(_from_history(history[-1].price, history))

    async def _fetch_binance(
        self, token_address: str, token_symbol: str | None, platform: str, config: PriceAggregatorConfig
    ) -> SourceResult:
        if not token_symbol:
            logger.error("[PriceAggregator] No token symbol provided for Binance (token %s)", token_address)
            return FetchResult.success(_empty())

        symbol = usdt_perp_symbol(token_symbol)
        try:
            data = await self._binance.get_mark_price_with_history(symbol, config.default_days)
        except Exception as e:
            return FetchResult.failure(PriceSourceName.BINANCE.value, e)

        if data is None or not data.history:
            logger.warning("[PriceAggregator] No Binance mark price data for %s", symbol)
            return FetchResult.success(_empty())
        return FetchResult.success(_from_history(data.history[-1].price, data.history))

    async def _fetch_bitget(
        self, token_address: str, token_symbol: str | None, platform: str, config: PriceAggregatorConfig
    ) -> SourceResult:
        if not token_symbol:
            logger.error("[PriceAggregator] No token symbol provided for Bitget (token %s)", token_address)
            return FetchResult.success(_empty())

        symbol = usdt_perp_symbol(token_symbol)
        try:
            data = await self._bitget.get_mark_price_with_history(symbol, config.default_days)
        except Exception as e:
            return FetchResult.failure(PriceSourceName.BITGET.value, e)

        if data is None or not data.history:
            logger.warning("[PriceAggregator] No Bitget mark price data for %s", symbol)
            return FetchResult.success(_empty())
        current = data.current_price or data.history[-1].price or 0
        return FetchResult.success(_from_history(current, data.history))

    async def _fetch_okx(
        self, token_address: str, token_symbol: str | None, platform: str, config: PriceAggregatorConfig
    ) -> SourceResult:
        """1m DEX candles on BSC, paged backwards with ``after`` until ``days`` are covered."""
        if self._okx is None:
            return FetchResult.failure(PriceSourceName.OKX.value, "OKX DEX client is not configured")

        okx = self._okx
        total_minutes = config.default_days * MINUTES_PER_DAY
        logger.info(
            "[PriceAggregator] OKX DEX pagination for %s: %d minutes in %d-candle pages",
            token_address, total_minutes, MAX_CANDLES_PER_REQUEST,
        )

        async def _page(limit: int, cursor: int | None):
            return await okx.get_candles(
                token_address,
                chain_index=OKX_DEX_CHAIN_INDEX,
                bar="1m",
                limit=limit,
                after=str(cursor) if cursor is not None else None,
            )

        try:
            candles = await fetch_backward(
                _page, total_minutes, MAX_CANDLES_PER_REQUEST, timestamp_of=lambda c: int(c.ts)
            )
        except Exception as e:
            return FetchResult.failure(PriceSourceName.OKX.value, e)

        if not candles:
            return FetchResult.success(_empty())
        history = convert_candles_to_price_data(candles)
        return FetchResult.success(_from_history(history[-1].price, history))

    # -- public API ------------------------------------------------------------------------

    async def get_multi_source_token_price(
        self,
        token_address: str,
        token_symbol: str | None = None,
        platform: str = "ethereum",
        config: ConfigOverrides = None,
    ) -> MultiSourcePriceData:
        """Current and historical prices from every enabled source. Never raises for a source failure."""
        final = DEFAULT_CONFIG.merged(config)
        enabled = final.enabled_sources()
        logger.info(
            "[PriceAggregator] Fetching %s for %s on %s",
            [s.name.value for s in enabled], token_address, platform,
        )

        results = await asyncio.gather(
            *(self._adapters[s.name](token_address, token_symbol, platform, final) for s in enabled),
            return_exceptions=True,
        )

        sources: dict[str, SourcePriceData] = {}
        for source, result in zip(enabled, results):
            name = source.name.value
            if isinstance(result, BaseException):
                logger.error("[PriceAggregator] %s fetch raised for %s: %s", name, token_address, result)
                sources[name] = SourcePriceData.placeholder()
            elif not result.ok:
                logger.error("[PriceAggregator] %s fetch failed for %s: %s", name, token_address, result.error.message)
                sources[name] = SourcePriceData.placeholder()
            elif result.value is not None:
                history = result.value.historical_data
                logger.info(
                    "[PriceAggregator] %s: price=%s points=%d",
                    name, result.value.current_price, len(history) if history else 0,
                )
                sources[name] = result.value

        logger.info("[PriceAggregator] Completed multi-source fetch for %s: %s", token_address, list(sources))
        return MultiSourcePriceData(token_address=token_address, sources=sources)

    async def get_current_token_price(
        self,
        token_address: str,
        token_symbol: str | None = None,
        platform: str = "ethereum",
        config: ConfigOverrides = None,
    ) -> dict[str, float]:
        data = await self.get_multi_source_token_price(token_address, token_symbol, platform, config)
        return {source: entry.current_price for source, entry in data.sources.items()}

    async def get_historical_token_prices(
        self,
        token_address: str,
        token_symbol: str | None = None,
        platform: str = "binance-smart-chain",
        config: ConfigOverrides = None,
    ) -> dict[str, list[PriceDataPoint]]:
        data = await self.get_multi_source_token_price(token_address, token_symbol, platform, config)
        return {
            source: entry.historical_data
            for source, entry in data.sources.items()
            if entry.historical_data is not None
        }

    @staticmethod
    def compare_price_sources(data: MultiSourcePriceData) -> list[PriceComparison]:
        return compare_price_sources(data)
