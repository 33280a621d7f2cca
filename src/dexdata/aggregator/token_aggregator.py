"""Token search and detail view combining CoinGecko metadata with Moralis pools and holders."""

import asyncio
import logging

from dexdata.domain.models.token import (
    AggregatePrice,
    CoinListInfo,
    TokenAggregateInfo,
    TokenInfo,
    TokenPool,
    TokenTopHolders,
)
from dexdata.infra.moralis.client import MoralisClient
from dexdata.infra.price.coingecko import CoinGeckoClient

logger = logging.getLogger(__name__)

# Native coins have no contract; pools and holders are looked up on the wrapped token.
WRAPPED_TOKEN_ADDRESSES: dict[str, dict[str, str]] = {
    "ethereum": {
        "ethereum": "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2",  # WETH
        "binance-smart-chain": "0x2170ed0880ac9a755fd29b2688956bd959f933f8",
        "polygon-pos": "0x7ceb23fd6bc0add59e62ac25578270cff1b9f619",
    },
    "bitcoin": {
        "ethereum": "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599",  # WBTC
        "binance-smart-chain": "0x7130d2a12b9bcbfae4f2634d864a1ee1ce3ead9c",  # BTCB
        "polygon-pos": "0x1bfd67037b42cf73acf2047067bd4f2c47d9bfd6",
    },
}

CHAIN_TO_PLATFORM: dict[str, str] = {
    "eth": "ethereum",
    "0x1": "ethereum",
    "bsc": "binance-smart-chain",
    "0x56": "binance-smart-chain",
    "polygon": "polygon-pos",
    "0x89": "polygon-pos",
    "avalanche": "avalanche",
    "0xa86a": "avalanche",
}


def get_platform_for_chain(chain: str) -> str:
    return CHAIN_TO_PLATFORM.get(chain.lower(), chain.lower())


def is_native_token(token_id: str) -> bool:
    return token_id in WRAPPED_TOKEN_ADDRESSES


def get_wrapped_token_address(token_id: str, platform_id: str) -> str | None:
    return WRAPPED_TOKEN_ADDRESSES.get(token_id, {}).get(platform_id)


class TokenAggregator:
    def __init__(self, coingecko: CoinGeckoClient, moralis: MoralisClient) -> None:
        self._coingecko = coingecko
        self._moralis = moralis

    async def search_tokens(self, query: str, limit: int = 20) -> list[CoinListInfo]:
        """Coins whose symbol equals ``query``, for the user to pick one. [] on failure."""
        try:
            coins = await self._coingecko.get_coin_info_by_symbol(query)
        except Exception:
            logger.exception("Error searching tokens for %r", query)
            return []

        results = [
            CoinListInfo(id=c.id, symbol=c.symbol, name=c.name, platforms=c.platforms or {})
            for c in coins[:limit]
        ]
        logger.info("Token search %r: %d results", query, len(results))
        return results

    async def get_token_details(
        self,
        token_id: str,
        chain: str = "0x1",
        include_holders: bool = True,
        include_pools: bool = True,
        pool_limit: int = 10,
        holders_limit: int = 10,
    ) -> TokenAggregateInfo | None:
        """Price, tickers, platforms, pools and top holders for a CoinGecko coin id.

        ``chain`` is a Moralis chain (``eth``, ``0x1``, ``bsc``, ...) and selects which
        platform address pools and holders are fetched for. Returns None when the coin
        is unknown or anything unexpected fails.
        """
        try:
            return await self._get_token_details(
                token_id, chain, include_holders, include_pools, pool_limit, holders_limit
            )
        except Exception:
            logger.exception("Error fetching token details for %s on %s", token_id, chain)
            return None

    async def _get_token_details(
        self,
        token_id: str,
        chain: str,
        include_holders: bool,
        include_pools: bool,
        pool_limit: int,
        holders_limit: int,
    ) -> TokenAggregateInfo | None:
        price, tickers, platforms = await asyncio.gather(
            self._coingecko.get_coin_price(token_id),
            self._coingecko.get_coin_tickers(token_id),
            self._coingecko.get_coin_addresses(token_id),
        )
        if platforms is None:
            logger.warning("No platform addresses for %s", token_id)
            return None

        platform_id = get_platform_for_chain(chain)
        address = platforms.get(platform_id) or None
        native = is_native_token(token_id)
        if address is None and native:
            address = get_wrapped_token_address(token_id, platform_id)
            if address is None:
                logger.warning("No wrapped token for native %s on %s", token_id, platform_id)

        matches = await self._coingecko.get_coin_info(token_id)
        coin = next((c for c in matches if c.id == token_id), None)
        if coin is None:
            logger.error("Token %s not found in coin list", token_id)
            return None

        current = price or 0
        basic = TokenInfo(id=coin.id, symbol=coin.symbol, name=coin.name, price=current)
        pools: list[TokenPool] = []
        top_holders: TokenTopHolders | None = None

        if address is None and not native:
            logger.warning(
                "%s is not available on %s (platforms: %s)", token_id, platform_id, ", ".join(platforms)
            )
        elif address is not None:
            pools, top_holders = await asyncio.gather(
                self._moralis.get_token_pools(address, chain, pool_limit)
                if include_pools else asyncio.sleep(0, result=[]),
                self._moralis.safe_get_token_top_holders(address, chain, holders_limit)
                if include_holders else asyncio.sleep(0, result=None),
            )
            logger.info(
                "%s: %d pools, %d top holders", token_id, len(pools), len(top_holders.holders) if top_holders else 0
            )

        return TokenAggregateInfo(
            basic_info=basic,
            price=AggregatePrice(current=current, change_24h=None),
            platforms=platforms,
            pools=pools,
            top_holders=top_holders,
            is_native_token=native,
            tickers=tickers,
        )
