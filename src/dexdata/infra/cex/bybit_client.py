"""Bybit v5 public market data for USDT perpetuals: mark-price klines, tickers and instrument specs."""

import logging

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from dexdata.domain.models.market import LotSize, PerpTicker
from dexdata.domain.models.price import Kline, PriceDataPoint
from dexdata.exceptions import ExternalServiceError, NotFoundError
from dexdata.infra.cex.common import usdt_perp_symbol
from dexdata.infra.http.rate_limited_client import RateLimitedClient
from dexdata.infra.pagination import fetch_backward

logger = logging.getLogger(__name__)

BASE_URL = "https://api.bybit.com"
MAX_KLINES_PER_REQUEST = 1000
MINUTES_PER_DAY = 1440


class BybitClient:
    def __init__(self, http_client: RateLimitedClient) -> None:
        self._http = http_client

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _get(self, path: str, params: dict) -> dict:
        return await self._http.get_json(f"{BASE_URL}{path}", params=params)

    async def get_mark_price_kline(
        self,
        symbol: str,
        interval: str = "1",
        start: int | None = None,
        end: int | None = None,
        limit: int = 200,
    ) -> list[Kline] | None:
        """GET /v5/market/mark-price-kline (linear). None when Bybit answers with a non-zero retCode.

        Rows come back newest first as ``[startTime, open, high, low, close]``.
        """
        params: dict = {"category": "linear", "symbol": symbol, "interval": interval, "limit": limit}
        if start is not None:
            params["start"] = start
        if end is not None:
            params["end"] = end

        data = await self._get("/v5/market/mark-price-kline", params)
        if data.get("retCode") != 0:
            logger.error("Bybit kline error for %s: %s %s", symbol, data.get("retCode"), data.get("retMsg"))
            return None

        rows = (data.get("result") or {}).get("list") or []
        return [
            Kline(
                timestamp=int(row[0]),
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                source="bybit",
            )
            for row in rows
        ]

    async def get_kline_for_days(self, symbol: str, days: int, interval: str = "1") -> list[PriceDataPoint]:
        """``days`` worth of 1-minute mark-price closes, oldest first."""
        total_minutes = days * MINUTES_PER_DAY
        logger.info(
            "Bybit kline pagination for %s: %d minutes in %d-row pages",
            symbol, total_minutes, MAX_KLINES_PER_REQUEST,
        )

        async def _page(limit: int, cursor: int | None) -> list[Kline]:
            return await self.get_mark_price_kline(symbol, interval, end=cursor, limit=limit) or []

        klines = await fetch_backward(
            _page, total_minutes, MAX_KLINES_PER_REQUEST, timestamp_of=lambda k: k.timestamp, inclusive_cursor=True
        )
        return [k.to_point() for k in klines]

    async def _linear_tickers(self) -> list[PerpTicker]:
        data = await self._get("/v5/market/tickers", {"category": "linear"})
        if data.get("retCode") != 0:
            raise ExternalServiceError(f"Bybit tickers error {data.get('retCode')}: {data.get('retMsg', '')}")
        rows = (data.get("result") or {}).get("list") or []
        return [PerpTicker.model_validate(row) for row in rows]

    async def get_supported_symbols(self) -> list[str]:
        """Every linear contract symbol Bybit currently lists."""
        tickers = await self._linear_tickers()
        logger.info("Bybit lists %d linear symbols", len(tickers))
        return [t.symbol for t in tickers]

    async def get_perp_tickers(self, token_symbols: list[str]) -> list[PerpTicker]:
        """Tickers for the USDT perpetuals of ``token_symbols`` (``"link"`` -> ``LINKUSDT``)."""
        wanted = {usdt_perp_symbol(s.upper()) for s in token_symbols}
        return [t for t in await self._linear_tickers() if t.symbol in wanted]

    async def get_instrument_info(self, symbol: str) -> LotSize:
        """Order size step and minimum for a linear contract. Raises NotFoundError for unknown symbols."""
        data = await self._get("/v5/market/instruments-info", {"category": "linear", "symbol": symbol})
        rows = (data.get("result") or {}).get("list") or []
        if data.get("retCode") != 0 or not rows:
            raise NotFoundError(f"No instrument info found for symbol: {symbol}")
        lot = rows[0].get("lotSizeFilter") or {}
        return LotSize(qty_step=float(lot["qtyStep"]), min_order_qty=float(lot["minOrderQty"]))
