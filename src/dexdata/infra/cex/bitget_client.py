"""Bitget v2 mix (USDT-M futures) public market data: historic mark-price candles and contract specs."""

import logging

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from dexdata.domain.models.market import FuturesContract
from dexdata.domain.models.price import Kline, MarkPriceHistory, PriceDataPoint
from dexdata.exceptions import ExternalServiceError
from dexdata.infra.cex.common import kline_window
from dexdata.infra.http.rate_limited_client import RateLimitedClient
from dexdata.infra.pagination import fetch_backward

logger = logging.getLogger(__name__)

BASE_URL = "https://api.bitget.com"
PRODUCT_TYPE = "USDT-FUTURES"
MAX_CANDLES_PER_REQUEST = 200
SUCCESS_CODE = "00000"


def granularity(interval: str) -> str:
    """Bitget spells hour/day/week granularities in upper case (``1H``, ``4H``, ``1D``); minutes stay ``1m``."""
    number, unit = interval[:-1], interval[-1]
    return f"{number}{unit if unit == 'm' else unit.upper()}"


class BitgetClient:
    def __init__(self, http_client: RateLimitedClient) -> None:
        self._http = http_client

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        reraise=True,
    )
    async def _get(self, path: str, params: dict) -> list:
        data = await self._http.get_json(f"{BASE_URL}{path}", params=params)
        if data.get("code") != SUCCESS_CODE:
            raise ExternalServiceError(f"Bitget API error {data.get('code')}: {data.get('msg', '')}")
        return data.get("data") or []

    async def get_historic_mark_price_candles(
        self, symbol: str, interval: str = "1m", limit: int = 200, end_time: int | None = None
    ) -> list[Kline]:
        params: dict = {
            "productType": PRODUCT_TYPE,
            "symbol": symbol,
            "granularity": granularity(interval),
            "limit": str(min(limit, MAX_CANDLES_PER_REQUEST)),
        }
        if end_time is not None:
            params["endTime"] = str(end_time)

        rows = await self._get("/api/v2/mix/market/history-mark-candles", params)
        return [
            Kline(
                timestamp=int(row[0]),
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]) if len(row) > 5 else 0,
                source="bitget",
            )
            for row in rows
        ]

    async def get_mark_price_klines_with_pagination(
        self, symbol: str, interval: str = "1m", limit: int = 200
    ) -> list[Kline]:
        """Up to ``limit`` candles, paging backwards with ``endTime``; stops on a short page."""

        async def _page(page_limit: int, cursor: int | None) -> list[Kline]:
            return await self.get_historic_mark_price_candles(symbol, interval, page_limit, end_time=cursor)

        return await fetch_backward(
            _page, limit, MAX_CANDLES_PER_REQUEST, timestamp_of=lambda k: k.timestamp, stop_on_short_page=True
        )

    async def get_mark_price_history(self, symbol: str, days: int = 7) -> list[PriceDataPoint]:
        interval, limit = kline_window(days)
        klines = await self.get_mark_price_klines_with_pagination(symbol, interval, limit)
        logger.info("Bitget mark price history for %s: %d points at %s", symbol, len(klines), interval)
        return [k.to_point() for k in klines]

    async def get_mark_price_with_history(self, symbol: str, days: int = 7) -> MarkPriceHistory | None:
        if not symbol:
            logger.error("Bitget mark price requested without a symbol")
            return None
        history = await self.get_mark_price_history(symbol, days)
        if not history:
            return None
        return MarkPriceHistory(symbol=symbol, current_price=history[-1].price or None, history=history)

    async def fetch_all_contracts(self) -> list[FuturesContract]:
        """Every USDT-FUTURES contract. Errors propagate."""
        rows = await self._get("/api/v2/mix/market/contracts", {"productType": PRODUCT_TYPE})
        logger.info("Bitget lists %d %s contracts", len(rows), PRODUCT_TYPE)
        return [FuturesContract.model_validate(row) for row in rows]

    async def get_contract_by_symbol(
        self, symbol: str, contracts: list[FuturesContract] | None = None
    ) -> FuturesContract | None:
        if contracts is None:
            contracts = await self.fetch_all_contracts()
        contract = next((c for c in contracts if c.symbol == symbol.upper()), None)
        if contract is None:
            logger.warning("Bitget contract not found: %s", symbol)
        return contract

    async def get_contracts_by_base_coin(
        self, base_coin: str, contracts: list[FuturesContract] | None = None
    ) -> list[FuturesContract]:
        if contracts is None:
            contracts = await self.fetch_all_contracts()
        return [c for c in contracts if c.base_coin.upper() == base_coin.upper()]

    async def get_active_contracts(self, contracts: list[FuturesContract] | None = None) -> list[FuturesContract]:
        if contracts is None:
            contracts = await self.fetch_all_contracts()
        active = [c for c in contracts if c.is_active]
        logger.info("Bitget active contracts: %d of %d", len(active), len(contracts))
        return active
