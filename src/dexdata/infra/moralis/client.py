"""Moralis Web3 Data API client (token pairs, top holders, wallet history)."""

import logging
from typing import Any

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from dexdata.domain.models.token import PairToken, PoolTransaction, TokenPool, TokenTopHolders
from dexdata.exceptions import ConfigurationError, ExternalServiceError
from dexdata.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

BASE_URL = "https://deep-index.moralis.io/api/v2.2"

# Chains supported by the top-gainers (top profitable wallets) endpoint
TOP_HOLDER_CHAINS = ("eth", "0x1", "matic", "polygon", "0x89", "base", "0x2105")


def _to_pool(pair: dict) -> TokenPool:
    tokens = pair.get("pair") or []
    return TokenPool(
        pair_address=pair["pair_address"],
        pair_label=pair.get("pair_label"),
        exchange_name=pair.get("exchange_name"),
        exchange_address=pair.get("exchange_address"),
        exchange_logo=pair.get("exchange_logo"),
        liquidity_usd=pair.get("liquidity_usd") or 0,
        volume_24h_usd=pair.get("volume_24h_usd") or 0,
        token0=PairToken(**tokens[0]),
        token1=PairToken(**tokens[1]),
    )


class MoralisClient:
    def __init__(self, api_key: str, http_client: RateLimitedClient) -> None:
        self._api_key = api_key
        self._http = http_client

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        if not self._api_key:
            raise ConfigurationError("MORALIS_API_KEY is not set")
        headers = {"X-API-Key": self._api_key, "accept": "application/json"}
        return await self._http.get_json(f"{BASE_URL}{path}", params=params, headers=headers)

    async def get_token_pools(self, token_address: str, chain: str, limit: int = 30) -> list[TokenPool]:
        """Liquidity pairs containing the token. Returns [] on any failure."""
        try:
            data = await self._get(f"/erc20/{token_address}/pairs", {"chain": chain, "limit": limit})
        except Exception:
            logger.exception("Error fetching pools for %s on %s", token_address, chain)
            return []

        pools = []
        for pair in (data or {}).get("pairs", []):
            if len(pair.get("pair") or []) < 2:
                continue
            pools.append(_to_pool(pair))
        logger.info("Fetched %d pools for %s on %s", len(pools), token_address, chain)
        return pools

    async def get_token_top_holders(self, address: str, chain: str, limit: int = 30) -> TokenTopHolders:
        """Most profitable wallets for a token. Raises ValueError on unsupported chains."""
        if chain not in TOP_HOLDER_CHAINS:
            raise ValueError(
                f"Chain {chain} is not supported, (the supported chains are: {', '.join(TOP_HOLDER_CHAINS)})"
            )
        data = await self._get(f"/erc20/{address}/top-gainers", {"chain": chain, "limit": limit})
        return TokenTopHolders(
            name=data.get("name"),
            symbol=data.get("symbol"),
            logo=data.get("logo"),
            holders=data.get("result") or [],
        )

    async def safe_get_token_top_holders(self, address: str, chain: str, limit: int = 30) -> TokenTopHolders | None:
        try:
            return await self.get_token_top_holders(address, chain, limit)
        except Exception as e:
            logger.warning("Failed to get top holders for %s on %s: %s", address, chain, e)
            return None

    async def get_pool_recent_transactions(
        self, pool_address: str, chain: str, limit: int = 100
    ) -> list[PoolTransaction]:
        data = await self._get(f"/wallets/{pool_address}/history", {"chain": chain, "limit": limit})
        return [
            PoolTransaction(
                transaction_hash=tx["hash"],
                from_address=tx.get("from_address") or "",
                to_address=tx.get("to_address") or "",
                value=str(tx.get("value") or "0"),
                timestamp=tx.get("block_timestamp") or "",
                type=tx.get("category") or "transfer",
            )
            for tx in (data or {}).get("result", [])
        ]
