"""Etherscan v2 unified API client (token transfers, block-by-time) for all EVM chains."""

import logging
import time
from typing import Any

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from dexdata.domain.enums.chain import Chain, ChainId
from dexdata.domain.models.etherscan import BlockRange, TokenTransfer
from dexdata.exceptions import ExternalServiceError
from dexdata.infra.cache.base import CacheBackend
from dexdata.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

# Etherscan v2 uses a single base URL + chainid param
BASE_URL = "https://api.etherscan.io/v2/api"

CHAIN_IDS: dict[str, int] = {
    Chain.ETHEREUM: ChainId.ETHEREUM,
    Chain.BSC: ChainId.BSC,
    Chain.POLYGON: ChainId.POLYGON,
    Chain.ARBITRUM: ChainId.ARBITRUM,
    Chain.OPTIMISM: ChainId.OPTIMISM,
    Chain.BASE: ChainId.BASE,
    Chain.AVALANCHE: ChainId.AVALANCHE,
}

TOKEN_TX_CACHE_TTL = 5 * 60
LATEST_BLOCK = 99999999


class EtherscanClient:
    def __init__(
        self,
        api_key: str,
        chain: str,
        http_client: RateLimitedClient,
        cache: CacheBackend | None = None,
    ) -> None:
        if chain not in CHAIN_IDS:
            raise ValueError(f"Unsupported chain: {chain}")
        self._api_key = api_key
        self._chain = chain
        self._chain_id = int(CHAIN_IDS[chain])
        self._http = http_client
        self._cache = cache

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call(self, params: dict[str, Any]) -> Any:
        params = {**params, "apikey": self._api_key, "chainid": self._chain_id}
        data = await self._http.get_json(BASE_URL, params=params)

        status = data.get("status")
        message = data.get("message", "")
        result = data.get("result")

        # "No transactions found" is valid empty result
        if message == "No transactions found" or (status == "0" and result == []):
            return []

        # Rate limit or server error → retriable
        if message == "NOTOK" or status is None:
            raise ExternalServiceError(f"Etherscan error: {data.get('result', message)}")

        if status == "0":
            error_msg = result if isinstance(result, str) else message
            raise ExternalServiceError(f"Etherscan API error: {error_msg}")

        return result

    async def get_token_transactions(
        self,
        address: str,
        contract_address: str | None = None,
        start_block: int = 0,
        end_block: int = LATEST_BLOCK,
        page: int = 1,
        offset: int = 100,
        sort: str = "asc",
        force_refresh: bool = False,
    ) -> list[TokenTransfer]:
        """ERC-20 transfers touching ``address`` (one page), cached for five minutes. [] on failure."""
        cache_key = f"etherscan:tokentx:{self._chain_id}:{address}:{contract_address}:{start_block}:{end_block}:{page}:{offset}:{sort}"
        if not force_refresh and self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.info("Returning %d cached token transfers for %s", len(cached), address)
                return [TokenTransfer(**t) for t in cached]

        params: dict[str, Any] = {
            "module": "account",
            "action": "tokentx",
            "address": address,
            "startblock": start_block,
            "endblock": end_block,
            "page": page,
            "offset": offset,
            "sort": sort,
        }
        if contract_address:
            params["contractaddress"] = contract_address

        try:
            rows = await self._call(params)
        except Exception:
            logger.exception("Error fetching token transfers for %s on chain %d", address, self._chain_id)
            return []

        transfers = [TokenTransfer.from_api(r) for r in rows] if isinstance(rows, list) else []
        if self._cache is not None:
            self._cache.set(cache_key, [t.model_dump() for t in transfers], TOKEN_TX_CACHE_TTL)
        logger.info("Fetched %d token transfers for %s", len(transfers), address)
        return transfers

    async def get_block_number_by_timestamp(self, timestamp: int, closest: str = "before") -> int:
        result = await self._call({
            "module": "block",
            "action": "getblocknobytime",
            "timestamp": str(timestamp),
            "closest": closest,
        })
        return int(result)

    async def get_latest_block(self) -> int:
        """Get latest block number. Uses proxy endpoint which returns hex, not the standard list format."""
        params = {
            "module": "proxy",
            "action": "eth_blockNumber",
            "apikey": self._api_key,
            "chainid": self._chain_id,
        }
        data = await self._http.get_json(BASE_URL, params=params)
        result = data.get("result", "0x0")
        if isinstance(result, str) and result.startswith("0x"):
            return int(result, 16)
        return int(result)

    async def calculate_block_range(self, interval_minutes: int = 5) -> BlockRange:
        """Blocks covering the last ``interval_minutes``; falls back to an estimate if lookups fail."""
        now = int(time.time())
        start_time = now - interval_minutes * 60
        try:
            start_block = await self.get_block_number_by_timestamp(start_time, "before")
            end_block = await self.get_block_number_by_timestamp(now)
            return BlockRange(start_block=start_block, end_block=end_block)
        except Exception as e:
            logger.warning("Falling back to estimated block range on chain %d: %s", self._chain_id, e)

        blocks_per_second = 3 if self._chain_id == ChainId.BSC else 1
        estimated = interval_minutes * 60 * blocks_per_second
        return BlockRange(start_block=max(0, estimated), end_block=LATEST_BLOCK)
