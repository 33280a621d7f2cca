"""Binance USDⓈ-M futures public market data: mark-price klines, book tickers, depth and symbols."""

import logging
import time

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from dexdata.domain.models.market import BookTicker, OrderBook, levels
from dexdata.domain.models.price import Kline, MarkPriceHistory, PriceDataPoint
from dexdata.exceptions import ExternalServiceError
from dexdata.infra.cex.common import kline_window
from dexdata.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

BASE_URL = "https://fapi.binance.com"
DEPTH_LIMITS = (5, 10, 20, 50, 100, 500, 1000)


class BinanceFuturesClient:
    """Unauthenticated USDⓈ-M futures client; only public endpoints are used."""

    def __init__(self, http_client: RateLimitedClient) -> None:
        self._http = http_client

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        reraise=True,
    )
    async def _request(self, path: str, params: dict | None = None) -> list | dict:
        data = await self._http.get_json(f"{BASE_URL}{path}", params=params)
        if isinstance(data, dict) and "code" in data and data["code"] != 200:
            raise ExternalServiceError(f"Binance API error {data.get('code')}: {data.get('msg', '')}")
        return data

    async def get_mark_price_klines(self, symbol: str, interval: str = "1h", limit: int = 1000) -> list[Kline]:
        """GET /fapi/v1/markPriceKlines; rows are ``[openTime, open, high, low, close, ...]``."""
        rows = await self._request(
            "/fapi/v1/markPriceKlines", {"symbol": symbol, "interval": interval, "limit": limit}
        )
        if not isinstance(rows, list):
            return []
        return [
            Kline(
                timestamp=int(row[0]),
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]) if len(row) > 5 else 0,
                source="binance",
            )
            for row in rows
        ]

    async def get_mark_price_history(self, symbol: str, days: int = 7) -> list[PriceDataPoint]:
        interval, limit = kline_window(days)
        klines = await self.get_mark_price_klines(symbol, interval, limit)
        logger.info("Binance mark price history for %s: %d points at %s", symbol, len(klines), interval)
        return [k.to_point() for k in sorted(klines, key=lambda k: k.timestamp)]

    async def get_mark_price_with_history(self, symbol: str, days: int = 7) -> MarkPriceHistory | None:
        """Mark-price history with the latest close as current price. None when there is no data."""
        if not symbol:
            logger.error("Binance mark price requested without a symbol")
            return None
        history = await self.get_mark_price_history(symbol, days)
        if not history:
            return None
        return MarkPriceHistory(symbol=symbol, current_price=history[-1].price or None, history=history)

    async def get_symbol_order_book_ticker(self, symbol: str) -> BookTicker | None:
        if not symbol:
            logger.error("Binance book ticker requested without a symbol")
            return None
        try:
            data = await self._request("/fapi/v1/ticker/bookTicker", {"symbol": symbol})
        except Exception:
            logger.exception("Failed to fetch Binance book ticker for %s", symbol)
            return None
        if not isinstance(data, dict) or not data:
            logger.warning("No Binance book ticker for %s", symbol)
            return None
        ticker = BookTicker.model_validate(data)
        logger.info("Binance %s bid=%s ask=%s", symbol, ticker.bid_price, ticker.ask_price)
        return ticker

    async def get_symbol_order_book_tickers(self, symbols: list[str]) -> list[BookTicker]:
        """Book tickers for ``symbols`` only, taken from the all-symbol snapshot. [] on failure."""
        if not symbols:
            logger.warning("No symbols given for Binance book tickers")
            return []
        try:
            rows = await self._request("/fapi/v1/ticker/bookTicker")
        except Exception:
            logger.exception("Failed to fetch Binance book tickers")
            return []
        if not isinstance(rows, list):
            return []

        wanted = set(symbols)
        tickers = [BookTicker.model_validate(row) for row in rows if row.get("symbol") in wanted]
        logger.info("Binance book tickers: %d requested, %d received", len(symbols), len(tickers))
        return tickers

    async def get_all_usdt_perp_symbols(self) -> list[str]:
        """Trading USDT-margined perpetuals from ``/fapi/v1/exchangeInfo``."""
        try:
            info = await self._request("/fapi/v1/exchangeInfo")
        except Exception:
            logger.exception("Failed to fetch Binance exchange info")
            return []
        if not isinstance(info, dict) or not info.get("symbols"):
            logger.warning("No Binance exchange info received")
            return []

        symbols = [
            s["symbol"]
            for s in info["symbols"]
            if s.get("symbol", "").endswith("USDT")
            and s.get("contractType") == "PERPETUAL"
            and s.get("status") == "TRADING"
        ]
        logger.info("Binance lists %d USDT perpetuals", len(symbols))
        return symbols

    async def get_order_book(self, symbol: str, limit: int = 100) -> OrderBook | None:
        if not symbol:
            logger.error("Binance order book requested without a symbol")
            return None
        if limit not in DEPTH_LIMITS:
            raise ValueError(f"Unsupported Binance depth limit: {limit}")
        try:
            data = await self._request("/fapi/v1/depth", {"symbol": symbol, "limit": limit})
        except Exception:
            logger.exception("Failed to fetch Binance order book for %s", symbol)
            return None
        if not isinstance(data, dict) or not data:
            logger.warning("No Binance order book for %s", symbol)
            return None

        book = OrderBook(
            symbol=symbol,
            bids=levels(data.get("bids") or []),
            asks=levels(data.get("asks") or []),
            last_update_id=int(data.get("lastUpdateId") or 0),
            time=int(time.time() * 1000),
        )
        logger.info("Binance %s depth: %d bids, %d asks", symbol, len(book.bids), len(book.asks))
        return book
