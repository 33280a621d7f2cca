from unittest.mock import AsyncMock, MagicMock

import pytest

from dexdata.aggregator.price_aggregator import PriceAggregator, compare_price_sources
from dexdata.domain.models.okx import OkxDexCandle
from dexdata.domain.models.price import (
    MarketChartPoint,
    MarkPriceHistory,
    MultiSourcePriceData,
    PriceDataPoint,
    SourcePriceData,
    TokenPriceData,
)
from dexdata.exceptions import ExternalServiceError
from dexdata.infra.cex.bybit_client import BybitClient

TOKEN = "0x514910771af9ca656af840dff83e8264ecf986ca"
NOW_MS = 1_700_000_000_000
MINUTE_MS = 60_000


def _points(source: str, *prices: float) -> list[PriceDataPoint]:
    return [PriceDataPoint(timestamp=NOW_MS + i * MINUTE_MS, price=p, source=source) for i, p in enumerate(prices)]


def _okx_pages(limit_total: int | None = None):
    """``get_candles`` double serving newest-first candles strictly older than ``after``."""
    served = {"count": 0}

    async def _get_candles(token, chain_index="56", bar="1m", limit=299, after=None, before=None):
        top = NOW_MS if after is None else int(after) - MINUTE_MS
        if limit_total is not None:
            limit = min(limit, limit_total - served["count"])
        served["count"] += max(limit, 0)
        return [OkxDexCandle(ts=str(top - i * MINUTE_MS), c="14.5") for i in range(max(limit, 0))]

    return AsyncMock(side_effect=_get_candles)


@pytest.fixture()
def clients():
    coingecko = MagicMock()
    coingecko.get_token_full_price_data = AsyncMock(return_value=None)
    bybit = MagicMock()
    bybit.get_kline_for_days = AsyncMock(return_value=_points("bybit", 14.0, 14.2))
    binance = MagicMock()
    binance.get_mark_price_with_history = AsyncMock(
        return_value=MarkPriceHistory(symbol="LINKUSDT", current_price=14.1, history=_points("binance", 14.0, 14.1))
    )
    bitget = MagicMock()
    bitget.get_mark_price_with_history = AsyncMock(
        return_value=MarkPriceHistory(symbol="LINKUSDT", current_price=14.3, history=_points("bitget", 14.3))
    )
    okx = MagicMock()
    okx.get_candles = _okx_pages(limit_total=3)
    return {"coingecko": coingecko, "bybit": bybit, "binance": binance, "bitget": bitget, "okx": okx}


@pytest.fixture()
def aggregator(clients):
    return PriceAggregator(**clients)


class TestMultiSource:
    @pytest.mark.asyncio
    async def test_default_sources_in_priority_order(self, aggregator, clients):
        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK")

        assert list(data.sources) == ["bybit", "okx", "binance", "bitget"]
        assert data.sources["bybit"].current_price == 14.2
        assert data.sources["okx"].current_price == 14.5
        assert data.sources["binance"].current_price == 14.1
        assert data.sources["bitget"].current_price == 14.3
        clients["coingecko"].get_token_full_price_data.assert_not_awaited()
        clients["bybit"].get_kline_for_days.assert_awaited_once_with("LINKUSDT", 1, "1")
        clients["binance"].get_mark_price_with_history.assert_awaited_once_with("LINKUSDT", 1)

    @pytest.mark.asyncio
    async def test_failures_become_placeholders(self, aggregator, clients):
        clients["bybit"].get_kline_for_days.side_effect = ExternalServiceError("HTTP 503")
        clients["binance"].get_mark_price_with_history.side_effect = RuntimeError("boom")

        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK")

        for name in ("bybit", "binance"):
            assert data.sources[name].current_price == 0
            assert data.sources[name].historical_data == []
        assert data.sources["bitget"].current_price == 14.3

    @pytest.mark.asyncio
    async def test_every_source_failing_still_returns(self, aggregator, clients):
        for client, method in [
            ("bybit", "get_kline_for_days"),
            ("binance", "get_mark_price_with_history"),
            ("bitget", "get_mark_price_with_history"),
            ("okx", "get_candles"),
        ]:
            getattr(clients[client], method).side_effect = ExternalServiceError("down")

        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK")

        assert set(data.sources) == {"bybit", "okx", "binance", "bitget"}
        assert all(entry.current_price == 0 for entry in data.sources.values())

    @pytest.mark.asyncio
    async def test_missing_symbol_skips_exchange_calls(self, aggregator, clients):
        data = await aggregator.get_multi_source_token_price(TOKEN)

        assert data.sources["bybit"].current_price == 0
        assert data.sources["binance"].historical_data == []
        clients["bybit"].get_kline_for_days.assert_not_awaited()
        clients["binance"].get_mark_price_with_history.assert_not_awaited()
        clients["bitget"].get_mark_price_with_history.assert_not_awaited()
        assert data.sources["okx"].current_price == 14.5

    @pytest.mark.asyncio
    async def test_empty_exchange_data(self, aggregator, clients):
        clients["bybit"].get_kline_for_days.return_value = []
        clients["binance"].get_mark_price_with_history.return_value = None

        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK")

        assert data.sources["bybit"].current_price == 0
        assert data.sources["binance"].current_price == 0

    @pytest.mark.asyncio
    async def test_bitget_falls_back_to_last_close(self, aggregator, clients):
        clients["bitget"].get_mark_price_with_history.return_value = MarkPriceHistory(
            symbol="LINKUSDT", current_price=None, history=_points("bitget", 13.9, 14.4)
        )

        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK")

        assert data.sources["bitget"].current_price == 14.4

    @pytest.mark.asyncio
    async def test_without_okx_client(self, clients):
        clients.pop("okx")
        aggregator = PriceAggregator(**clients)

        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK")

        assert data.sources["okx"].current_price == 0
        assert data.sources["okx"].historical_data == []


class TestCoinGeckoSource:
    CONFIG = {"sources": {"coingecko": {"enabled": True, "priority": 1}}}

    @pytest.mark.asyncio
    async def test_only_listed_sources_run(self, aggregator, clients):
        clients["coingecko"].get_token_full_price_data.return_value = TokenPriceData(
            token_address=TOKEN,
            platform="ethereum",
            current_price=14.25,
            last_updated="2024-01-01T00:00:00Z",
            historical_data=[MarketChartPoint(timestamp=NOW_MS, price=14.0)],
        )

        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK", "ethereum", self.CONFIG)

        assert list(data.sources) == ["coingecko"]
        entry = data.sources["coingecko"]
        assert entry.current_price == 14.25
        assert entry.historical_data == [PriceDataPoint(timestamp=NOW_MS, price=14.0, source="coingecko")]
        clients["coingecko"].get_token_full_price_data.assert_awaited_once_with("ethereum", TOKEN, 1, "usd")
        clients["bybit"].get_kline_for_days.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_price_omits_source(self, aggregator):
        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK", "ethereum", self.CONFIG)
        assert data.sources == {}

    @pytest.mark.asyncio
    async def test_lookup_error_omits_source(self, aggregator, clients):
        clients["coingecko"].get_token_full_price_data.side_effect = ExternalServiceError("HTTP 500")
        config = {"sources": {"coingecko": {"enabled": True, "priority": 1}, "bitget": {"enabled": True, "priority": 2}}}

        data = await aggregator.get_multi_source_token_price(TOKEN, "LINK", "ethereum", config)

        assert list(data.sources) == ["bitget"]

    @pytest.mark.asyncio
    async def test_days_override(self, aggregator, clients):
        await aggregator.get_multi_source_token_price(TOKEN, "LINK", config={"default_days": 7})
        clients["bybit"].get_kline_for_days.assert_awaited_once_with("LINKUSDT", 7, "1")


class TestOkxPagination:
    CONFIG = {"sources": {"okx": {"enabled": True, "priority": 1}}}

    @pytest.mark.asyncio
    async def test_covers_one_day_of_minutes(self, aggregator, clients):
        clients["okx"].get_candles = _okx_pages()

        data = await aggregator.get_multi_source_token_price(TOKEN, config=self.CONFIG)

        calls = clients["okx"].get_candles.await_args_list
        assert [c.kwargs["limit"] for c in calls] == [299, 299, 299, 299, 244]
        assert calls[0].kwargs["after"] is None
        assert calls[1].kwargs["after"] == str(NOW_MS - 298 * MINUTE_MS)
        history = data.sources["okx"].historical_data
        assert len(history) == 1440
        assert [p.timestamp for p in history] == sorted(p.timestamp for p in history)
        assert history[-1].timestamp == NOW_MS

    @pytest.mark.asyncio
    async def test_stops_on_empty_page(self, aggregator, clients):
        clients["okx"].get_candles = _okx_pages(limit_total=400)

        data = await aggregator.get_multi_source_token_price(TOKEN, config=self.CONFIG)

        assert clients["okx"].get_candles.await_count == 3
        assert len(data.sources["okx"].historical_data) == 400


class TestConvenienceViews:
    @pytest.mark.asyncio
    async def test_current_prices(self, aggregator):
        prices = await aggregator.get_current_token_price(TOKEN, "LINK")
        assert prices == {"bybit": 14.2, "okx": 14.5, "binance": 14.1, "bitget": 14.3}

    @pytest.mark.asyncio
    async def test_historical_prices(self, aggregator):
        history = await aggregator.get_historical_token_prices(TOKEN, "LINK")

        assert set(history) == {"bybit", "okx", "binance", "bitget"}
        assert [p.price for p in history["bybit"]] == [14.0, 14.2]


class TestCompare:
    def _data(self, **prices: float) -> MultiSourcePriceData:
        return MultiSourcePriceData(
            token_address=TOKEN,
            sources={
                name: SourcePriceData(current_price=price, last_updated="2024-01-01T00:00:00Z")
                for name, price in prices.items()
            },
        )

    def test_against_first_source(self):
        result = compare_price_sources(self._data(bybit=10.0, binance=11.0, bitget=9.0))

        assert [(c.source, c.difference) for c in result] == [("bybit", 0), ("binance", 1.0), ("bitget", -1.0)]
        assert result[1].percentage_diff == pytest.approx(10.0)
        assert result[2].percentage_diff == pytest.approx(-10.0)

    def test_single_source(self):
        result = PriceAggregator.compare_price_sources(self._data(bybit=10.0))
        assert [(c.source, c.price, c.difference, c.percentage_diff) for c in result] == [("bybit", 10.0, 0, 0)]

    def test_zero_base(self):
        result = compare_price_sources(self._data(bybit=0.0, binance=11.0))
        assert result[1].difference == 11.0
        assert result[1].percentage_diff == 0

    def test_empty(self):
        assert compare_price_sources(self._data()) == []


class TestBybitOnlyScenario:
    @pytest.mark.asyncio
    async def test_link_on_bsc(self, clients, mock_http):
        async def _get_json(url, params=None, **kwargs):
            top = params.get("end", NOW_MS)
            rows = [[str(top - i * MINUTE_MS), "14", "15", "13", str(14 + i / 1000)] for i in range(params["limit"])]
            return {"retCode": 0, "result": {"list": rows}}

        mock_http.get_json.side_effect = _get_json
        clients["bybit"] = BybitClient(http_client=mock_http)
        aggregator = PriceAggregator(**clients)

        data = await aggregator.get_multi_source_token_price(
            "0xTOKEN", "LINK", "binance-smart-chain", {"sources": {"bybit": {"enabled": True, "priority": 2}}}
        )

        assert list(data.sources) == ["bybit"]
        history = data.sources["bybit"].historical_data
        timestamps = [p.timestamp for p in history]
        assert timestamps == sorted(timestamps)
        assert data.sources["bybit"].current_price == history[-1].price
        assert all(c.kwargs["params"]["symbol"] == "LINKUSDT" for c in mock_http.get_json.call_args_list)

    @pytest.mark.asyncio
    async def test_enabled_flag_alone_keeps_default_priority(self, clients, mock_http):
        async def _get_json(url, params=None, **kwargs):
            rows = [[str(NOW_MS - i * MINUTE_MS), "14", "15", "13", "14.2"] for i in range(params["limit"])]
            return {"retCode": 0, "result": {"list": rows}}

        mock_http.get_json.side_effect = _get_json
        clients["bybit"] = BybitClient(http_client=mock_http)
        aggregator = PriceAggregator(**clients)

        data = await aggregator.get_multi_source_token_price(
            "0xTOKEN", "LINK", "binance-smart-chain", {"sources": {"bybit": {"enabled": True}}}
        )

        assert list(data.sources) == ["bybit"]
        assert data.sources["bybit"].current_price == 14.2
