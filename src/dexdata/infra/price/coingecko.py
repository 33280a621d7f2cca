"""CoinGecko v3 client: coin list/search, prices, tickers, market charts and on-chain pools."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from dexdata.domain.models.price import MarketChartPoint, TokenPriceData
from dexdata.domain.models.token import CoinListInfo, Ticker, TokenInfo, TopPool
from dexdata.exceptions import ExternalServiceError
from dexdata.infra.cache.base import CacheBackend
from dexdata.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

BASE_URL = "https://api.coingecko.com/api/v3"
REQUEST_TIMEOUT = 15.0
COIN_LIST_CACHE_KEY = "coingecko_coinlist"
COIN_LIST_TTL = 3600  # 1 hour
MAX_TOP_POOL_PAGES = 10

# EVM chain id -> CoinGecko asset platform id
CHAIN_TO_PLATFORM: dict[int, str] = {
    1: "ethereum",
    10: "optimistic-ethereum",
    56: "binance-smart-chain",
    137: "polygon-pos",
    324: "zksync-era",
    5000: "mantle",
    8453: "base",
    42161: "arbitrum-one",
    43114: "avalanche",
    534352: "scroll",
}


def get_platform_from_chain_id(chain_id: int) -> str | None:
    return CHAIN_TO_PLATFORM.get(chain_id)


def _iso_from_unix(seconds: float) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class CoinGeckoClient:
    """CoinGecko REST client.

    Every public method is best-effort: failures are logged and mapped to an
    empty value (``[]`` or ``None``). Only ``get_coin_markets`` propagates errors.
    """

    def __init__(self, http_client: RateLimitedClient, api_key: str = "", cache: CacheBackend | None = None) -> None:
        self._http = http_client
        self._api_key = api_key
        self._cache = cache
        if not api_key:
            logger.warning("COINGECKO_API_KEY not set, using public API (rate limits may apply)")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key
        return headers

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(4),
        wait=wait_fixed(1.5),
        reraise=True,
    )
    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        logger.debug("CoinGecko GET %s %s", path, params)
        return await self._http.get_json(
            f"{BASE_URL}{path}", params=params, headers=self._headers(), timeout=REQUEST_TIMEOUT
        )

    # -- coin list / search ---------------------------------------------------------------

    async def get_all_coin_lists(self, force_refresh: bool = False) -> list[CoinListInfo]:
        """Full coin list with platform addresses, cached for an hour.

        On fetch failure the last cached list is returned even if expired.
        """
        if not force_refresh and self._cache is not None:
            cached = self._cache.get(COIN_LIST_CACHE_KEY)
            if cached is not None:
                logger.info("Returning %d coins from cache", len(cached))
                return [CoinListInfo(**c) for c in cached]

        try:
            data = await self._get("/coins/list", {"include_platform": "true"})
        except Exception:
            logger.exception("Error fetching CoinGecko coin list")
            stale = self._cache.get_stale(COIN_LIST_CACHE_KEY) if self._cache is not None else None
            if stale is not None:
                logger.warning("Returning potentially stale coin list (%d coins)", len(stale))
                return [CoinListInfo(**c) for c in stale]
            return []

        coins = [CoinListInfo(**c) for c in data]
        logger.info("Fetched %d coins from CoinGecko", len(coins))
        if self._cache is not None:
            self._cache.set(COIN_LIST_CACHE_KEY, [c.model_dump() for c in coins], COIN_LIST_TTL)
        return coins

    async def get_coin_info(self, query: str) -> list[CoinListInfo]:
        """Coins whose id, symbol or name contains ``query`` (case-insensitive)."""
        q = query.lower()
        coins = await self.get_all_coin_lists()
        matches = [c for c in coins if q in c.id.lower() or q in c.symbol.lower() or q in c.name.lower()]
        logger.info("Found %d/%d coins matching %r", len(matches), len(coins), query)
        return matches

    async def get_coin_info_by_symbol(self, symbol: str) -> list[CoinListInfo]:
        s = symbol.lower()
        coins = await self.get_all_coin_lists()
        return [c for c in coins if c.symbol.lower() == s]

    # -- prices ----------------------------------------------------------------------------

    async def get_coin_price(self, coin_id: str, currency: str = "usd") -> float | None:
        try:
            data = await self._get("/simple/price", {"ids": coin_id, "vs_currencies": currency})
        except Exception:
            logger.exception("Error fetching price for %s", coin_id)
            return None

        price = (data or {}).get(coin_id, {}).get(currency)
        if not price:
            logger.warning("No price data found for %s/%s", coin_id, currency)
            return None
        return float(price)

    async def get_coin_addresses(self, coin_id: str) -> dict[str, str | None] | None:
        """Platform id -> contract address for a coin, or None if the lookup fails."""
        params = {
            "localization": "false",
            "tickers": "false",
            "market_data": "false",
            "community_data": "false",
            "developer_data": "false",
            "sparkline": "false",
        }
        try:
            data = await self._get(f"/coins/{coin_id}", params)
        except Exception:
            logger.exception("Error fetching addresses for %s", coin_id)
            return None

        platforms = (data or {}).get("platforms")
        if platforms is None:
            logger.warning("No platform addresses found for %s", coin_id)
        return platforms

    async def get_top_tokens(self, limit: int = 10) -> list[TokenInfo]:
        params = {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": limit,
            "page": 1,
            "sparkline": "false",
            "locale": "en",
        }
        try:
            data = await self._get("/coins/markets", params)
        except Exception:
            logger.exception("Error fetching top %d tokens", limit)
            return []
        if not isinstance(data, list):
            return []
        return [
            TokenInfo(
                id=c["id"],
                symbol=c["symbol"],
                name=c["name"],
                price=c.get("current_price") or 0,
                market_cap=c.get("market_cap"),
                volume_24h=c.get("total_volume"),
                change_24h=c.get("price_change_percentage_24h"),
            )
            for c in data
        ]

    async def get_coin_markets(self, vs_currency: str = "usd", **params: Any) -> list[dict]:
        """Raw /coins/markets rows. Errors propagate."""
        return await self._get("/coins/markets", {"vs_currency": vs_currency, **params})

    async def get_coin_tickers(self, coin_id: str, **options: Any) -> list[Ticker]:
        params = {"include_exchange_logo": "true", "dex_pair_format": "contract_address", **options}
        try:
            data = await self._get(f"/coins/{coin_id}/tickers", params)
        except Exception:
            logger.exception("Error fetching tickers for %s", coin_id)
            return []
        tickers = [Ticker(**t) for t in (data or {}).get("tickers", [])]
        logger.info("Fetched %d tickers for %s", len(tickers), coin_id)
        return tickers

    async def get_token_market_chart(
        self, platform: str, contract_address: str, days: int | str = 30, currency: str = "usd"
    ) -> list[MarketChartPoint]:
        try:
            data = await self._get(
                f"/coins/{platform}/contract/{contract_address}/market_chart",
                {"vs_currency": currency, "days": str(days)},
            )
        except Exception:
            logger.exception("Error fetching market chart for %s on %s", contract_address, platform)
            return []

        caps = data.get("market_caps", [])
        volumes = data.get("total_volumes", [])
        points = []
        for i, (ts, price) in enumerate(data.get("prices", [])):
            points.append(MarketChartPoint(
                timestamp=int(ts),
                price=price,
                market_cap=caps[i][1] if i < len(caps) and caps[i][1] is not None else 0,
                volume=volumes[i][1] if i < len(volumes) and volumes[i][1] is not None else 0,
            ))
        return points

    async def get_token_price(
        self, platform: str, contract_address: str, currency: str = "usd"
    ) -> TokenPriceData | None:
        params = {
            "contract_addresses": contract_address,
            "vs_currencies": currency,
            "include_market_cap": "true",
            "include_24hr_vol": "true",
            "include_24hr_change": "true",
            "include_last_updated_at": "true",
        }
        try:
            data = await self._get(f"/simple/token_price/{platform}", params)
        except Exception:
            logger.exception("Error fetching token price for %s on %s", contract_address, platform)
            return None

        token = (data or {}).get(contract_address.lower()) or (data or {}).get(contract_address)
        if not token:
            logger.warning("Token %s not found on %s", contract_address, platform)
            return None

        updated_at = token.get("last_updated_at") or datetime.now(timezone.utc).timestamp()
        return TokenPriceData(
            token_address=contract_address,
            platform=platform,
            current_price=token.get(currency) or 0,
            market_cap=token.get(f"{currency}_market_cap") or 0,
            volume_24h=token.get(f"{currency}_24h_vol") or 0,
            price_change_24h=token.get(f"{currency}_24h_change") or 0,
            last_updated=_iso_from_unix(updated_at),
        )

    async def get_token_full_price_data(
        self, platform: str, contract_address: str, days: int = 30, currency: str = "usd"
    ) -> TokenPriceData | None:
        """Current price plus market chart, fetched concurrently. None when there is no price."""
        price, chart = await asyncio.gather(
            self.get_token_price(platform, contract_address, currency),
            self.get_token_market_chart(platform, contract_address, days, currency),
        )
        if price is None:
            return None
        return price.model_copy(update={"historical_data": chart})

    async def get_token_price_by_chain_id(
        self, chain_id: int, token_address: str, currency: str = "usd"
    ) -> TokenPriceData | None:
        platform = get_platform_from_chain_id(chain_id)
        if platform is None:
            logger.warning("Unsupported chain id %d for price lookup of %s", chain_id, token_address)
            return None
        return await self.get_token_price(platform, token_address, currency)

    # -- on-chain pools --------------------------------------------------------------------

    async def get_top_pools_by_network(
        self, network: str, page: int | None = None, include: list[str] | None = None
    ) -> list[TopPool]:
        params: dict[str, Any] = {}
        if page:
            params["page"] = page
        if include:
            params["include"] = ",".join(include)
        try:
            data = await self._get(f"/onchain/networks/{network}/pools", params)
        except Exception:
            logger.exception("Error fetching top pools for %s (page %s)", network, page)
            return []
        return [TopPool(**p) for p in (data or {}).get("data", [])]

    async def get_all_top_pools_by_network(
        self, network: str, max_pages: int = 10, include: list[str] | None = None
    ) -> list[TopPool]:
        pages = min(max_pages, MAX_TOP_POOL_PAGES)
        results = await asyncio.gather(*(
            self.get_top_pools_by_network(network, page=p, include=include) for p in range(1, pages + 1)
        ))
        pools = [pool for page_pools in results for pool in page_pools]
        logger.info("Fetched %d top pools for %s over %d pages", len(pools), network, pages)
        return pools

    async def get_top_pools_with_retry(
        self,
        network: str,
        max_pages: int = 10,
        include: list[str] | None = None,
        retry_attempts: int = 3,
    ) -> list[TopPool]:
        """Retry the whole multi-page fetch while it comes back empty (2^n second backoff)."""
        for attempt in range(1, retry_attempts + 1):
            pools = await self.get_all_top_pools_by_network(network, max_pages, include)
            if pools:
                return pools
            logger.warning("No pools for %s on attempt %d/%d", network, attempt, retry_attempts)
            if attempt < retry_attempts:
                await asyncio.sleep(2 ** attempt)
        return []
