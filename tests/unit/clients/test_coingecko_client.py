"""Tests for CoinGeckoClient with mocked HTTP."""

import pytest

from dexdata.exceptions import ExternalServiceError
from dexdata.infra.cache.file import JsonFileCache
from dexdata.infra.cache.memory import MemoryCache
from dexdata.infra.price.coingecko import (
    BASE_URL,
    COIN_LIST_CACHE_KEY,
    CoinGeckoClient,
    get_platform_from_chain_id,
)

COINS = [
    {"id": "chainlink", "symbol": "link", "name": "Chainlink", "platforms": {"ethereum": "0x514910771af9ca656af840dff83e8264ecf986ca"}},
    {"id": "ethereum", "symbol": "eth", "name": "Ethereum", "platforms": {"": ""}},
    {"id": "link-2", "symbol": "LINK", "name": "Link Two", "platforms": {}},
]


@pytest.fixture()
def client(mock_http):
    return CoinGeckoClient(http_client=mock_http, api_key="cg-key", cache=MemoryCache())


class TestPlatformMapping:
    def test_known_chain(self):
        assert get_platform_from_chain_id(56) == "binance-smart-chain"

    def test_unknown_chain(self):
        assert get_platform_from_chain_id(999999) is None


class TestCoinList:
    @pytest.mark.asyncio
    async def test_fetches_and_caches(self, client, mock_http):
        mock_http.get_json.return_value = COINS

        first = await client.get_all_coin_lists()
        second = await client.get_all_coin_lists()

        assert [c.id for c in first] == ["chainlink", "ethereum", "link-2"]
        assert second == first
        assert mock_http.get_json.await_count == 1
        args, kwargs = mock_http.get_json.call_args
        assert args[0] == f"{BASE_URL}/coins/list"
        assert kwargs["params"] == {"include_platform": "true"}
        assert kwargs["headers"]["x-cg-demo-api-key"] == "cg-key"

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, client, mock_http):
        mock_http.get_json.return_value = COINS
        await client.get_all_coin_lists()
        await client.get_all_coin_lists(force_refresh=True)
        assert mock_http.get_json.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_without_cache_returns_empty(self, mock_http):
        mock_http.get_json.side_effect = ExternalServiceError("HTTP 500")
        client = CoinGeckoClient(http_client=mock_http)

        assert await client.get_all_coin_lists() == []
        assert mock_http.get_json.await_count == 4  # 1 + 3 retries

    @pytest.mark.asyncio
    async def test_failure_serves_stale_cache(self, tmp_path, mock_http):
        cache = JsonFileCache(tmp_path, clock=lambda: 0.0)
        cache.set(COIN_LIST_CACHE_KEY, COINS[:1], ttl=-1)
        mock_http.get_json.side_effect = ExternalServiceError("HTTP 500")
        client = CoinGeckoClient(http_client=mock_http, cache=cache)

        coins = await client.get_all_coin_lists()
        assert [c.id for c in coins] == ["chainlink"]

    @pytest.mark.asyncio
    async def test_symbol_search_is_exact_and_case_insensitive(self, client, mock_http):
        mock_http.get_json.return_value = COINS
        coins = await client.get_coin_info_by_symbol("Link")
        assert [c.id for c in coins] == ["chainlink", "link-2"]

    @pytest.mark.asyncio
    async def test_substring_search(self, client, mock_http):
        mock_http.get_json.return_value = COINS
        coins = await client.get_coin_info("ether")
        assert [c.id for c in coins] == ["ethereum"]


class TestPrices:
    @pytest.mark.asyncio
    async def test_coin_price(self, client, mock_http):
        mock_http.get_json.return_value = {"chainlink": {"usd": 14.2}}
        assert await client.get_coin_price("chainlink") == 14.2

    @pytest.mark.asyncio
    async def test_coin_price_missing(self, client, mock_http):
        mock_http.get_json.return_value = {}
        assert await client.get_coin_price("nope") is None

    @pytest.mark.asyncio
    async def test_coin_addresses(self, client, mock_http):
        mock_http.get_json.return_value = {"id": "chainlink", "platforms": {"ethereum": "0xabc"}}
        assert await client.get_coin_addresses("chainlink") == {"ethereum": "0xabc"}
        _, kwargs = mock_http.get_json.call_args
        assert kwargs["params"]["tickers"] == "false"

    @pytest.mark.asyncio
    async def test_coin_addresses_failure(self, client, mock_http):
        mock_http.get_json.side_effect = ExternalServiceError("HTTP 404")
        assert await client.get_coin_addresses("nope") is None

    @pytest.mark.asyncio
    async def test_token_price(self, client, mock_http):
        mock_http.get_json.return_value = {
            "0xabc": {
                "usd": 1.5,
                "usd_market_cap": 1000,
                "usd_24h_vol": 50,
                "usd_24h_change": -2.5,
                "last_updated_at": 1700000000,
            }
        }

        price = await client.get_token_price("ethereum", "0xABC")

        assert price.current_price == 1.5
        assert price.market_cap == 1000
        assert price.price_change_24h == -2.5
        assert price.last_updated == "2023-11-14T22:13:20Z"
        assert price.source == "coingecko"

    @pytest.mark.asyncio
    async def test_market_chart_zips_series(self, client, mock_http):
        mock_http.get_json.return_value = {
            "prices": [[1000, 1.0], [2000, 2.0]],
            "market_caps": [[1000, 10.0], [2000, 20.0]],
            "total_volumes": [[1000, 5.0]],
        }

        points = await client.get_token_market_chart("ethereum", "0xabc", days=1)

        assert [(p.timestamp, p.price, p.market_cap, p.volume) for p in points] == [
            (1000, 1.0, 10.0, 5.0),
            (2000, 2.0, 20.0, 0),
        ]

    @pytest.mark.asyncio
    async def test_full_price_data_none_without_price(self, client, mock_http):
        async def _get_json(url, **kwargs):
            if "simple/token_price" in url:
                return {}
            return {"prices": [[1000, 1.0]]}

        mock_http.get_json.side_effect = _get_json
        assert await client.get_token_full_price_data("ethereum", "0xabc", days=1) is None

    @pytest.mark.asyncio
    async def test_full_price_data_attaches_chart(self, client, mock_http):
        async def _get_json(url, **kwargs):
            if "simple/token_price" in url:
                return {"0xabc": {"usd": 2.0, "last_updated_at": 1700000000}}
            return {"prices": [[1000, 1.0], [2000, 2.0]]}

        mock_http.get_json.side_effect = _get_json
        data = await client.get_token_full_price_data("ethereum", "0xabc", days=1)

        assert data.current_price == 2.0
        assert [p.price for p in data.historical_data] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_price_by_unknown_chain_id(self, client, mock_http):
        assert await client.get_token_price_by_chain_id(999999, "0xabc") is None
        mock_http.get_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_coin_markets_propagates_errors(self, client, mock_http):
        mock_http.get_json.side_effect = ExternalServiceError("HTTP 500")
        with pytest.raises(ExternalServiceError):
            await client.get_coin_markets(per_page=5)


class TestTickersAndPools:
    @pytest.mark.asyncio
    async def test_tickers(self, client, mock_http):
        mock_http.get_json.return_value = {
            "tickers": [{"base": "LINK", "target": "USDT", "market": {"name": "Binance"}, "last": 14.1, "coin_id": "chainlink"}]
        }

        tickers = await client.get_coin_tickers("chainlink")

        assert tickers[0].base == "LINK"
        assert tickers[0].coin_id == "chainlink"
        _, kwargs = mock_http.get_json.call_args
        assert kwargs["params"]["dex_pair_format"] == "contract_address"

    @pytest.mark.asyncio
    async def test_all_top_pools_capped_at_ten_pages(self, client, mock_http):
        mock_http.get_json.return_value = {"data": [{"id": "bsc_0x1", "type": "pool"}]}

        pools = await client.get_all_top_pools_by_network("bsc", max_pages=25)

        assert len(pools) == 10
        assert mock_http.get_json.await_count == 10

    @pytest.mark.asyncio
    async def test_top_pools_page_failure_is_empty(self, client, mock_http):
        mock_http.get_json.side_effect = ExternalServiceError("HTTP 500")
        assert await client.get_top_pools_by_network("bsc", page=2) == []
