"""OKX DEX (Web3) API client with per-key rate-limit rotation."""

import json
import logging
from typing import Any
from urllib.parse import urlencode

from dexdata.domain.models.okx import OkxBatchPrice, OkxDexCandle, OkxDexConfig, OkxDexMultiConfig, SwapQuote
from dexdata.domain.models.price import PriceDataPoint
from dexdata.exceptions import ConfigurationError, ExternalServiceError, RateLimitError
from dexdata.infra.http.rate_limited_client import RateLimitedClient
from dexdata.infra.okx.auth import create_signed_headers
from dexdata.infra.okx.config import (
    API_BASE_URL,
    DEFAULT_SLIPPAGE,
    MAX_WAIT_TIME,
    OKX_DEX_CHAIN_INDEX,
    RATE_LIMIT_CODES,
    RATE_LIMIT_WINDOW,
    SUCCESS_CODE,
)
from dexdata.infra.rate_limit import RateLimitManager
from dexdata.infra.retry import is_rate_limit_error, with_retry

logger = logging.getLogger(__name__)

RETRY_DELAY = 2.0
MAX_CANDLES_PER_REQUEST = 299


def convert_candles_to_price_data(candles: list[OkxDexCandle]) -> list[PriceDataPoint]:
    """Close price of each candle as a ``PriceDataPoint`` tagged ``okx``."""
    return [PriceDataPoint(timestamp=int(c.ts), price=float(c.c), source="okx") for c in candles]


class OkxDexClient:
    """Signed OKX DEX client.

    With several key-sets every request takes a key from a ``RateLimitManager`` (one
    request per key per second) and rate-limit failures are retried twice on a fresh
    key. With a single key-set the manager is skipped and one retry is allowed.
    """

    def __init__(self, http_client: RateLimitedClient, multi_config: OkxDexMultiConfig) -> None:
        if not multi_config.configs:
            raise ConfigurationError("No valid OKX DEX configurations found")
        self._http = http_client
        self._configs = multi_config.configs
        self._rotation_enabled = multi_config.rotation_enabled and len(self._configs) > 1
        self._rate_limiter: RateLimitManager[OkxDexConfig] | None = None
        if len(self._configs) > 1:
            self._rate_limiter = RateLimitManager(
                self._configs, RATE_LIMIT_WINDOW, "OKX-DEX-API", max_wait=MAX_WAIT_TIME
            )
        logger.debug(
            "OKX DEX client with %d configuration(s), rotation %s",
            len(self._configs), "enabled" if self._rotation_enabled else "disabled",
        )

    @property
    def config_count(self) -> int:
        return len(self._configs)

    @property
    def rotation_enabled(self) -> bool:
        return self._rotation_enabled

    async def _acquire(self) -> tuple[OkxDexConfig, int]:
        if self._rate_limiter is None:
            return self._configs[0], 0
        return await self._rate_limiter.acquire_and_mark_config_as_used()

    def _check(self, data: Any) -> list:
        code = str(data.get("code")) if isinstance(data, dict) else None
        if code in RATE_LIMIT_CODES:
            raise RateLimitError(f"OKX DEX rate limit exceeded: {data.get('msg')}")
        if code != SUCCESS_CODE:
            raise ExternalServiceError(f"OKX DEX API error: {data.get('msg') or code}")
        if not isinstance(data.get("data"), list):
            raise ExternalServiceError("Invalid response format from OKX DEX API")
        return data["data"]

    async def _with_rotation(self, operation, label: str) -> Any:
        def _on_error(error: BaseException, attempt: int) -> None:
            logger.warning("OKX DEX %s attempt %d failed: %s", label, attempt + 1, error)

        try:
            return await with_retry(
                operation,
                max_retries=2 if self._rotation_enabled else 1,
                retry_delay=RETRY_DELAY,
                should_retry=is_rate_limit_error,
                on_error=_on_error,
            )
        except Exception:
            logger.exception("OKX DEX %s failed after retries", label)
            raise

    async def _signed_get(self, path: str, params: dict[str, str], label: str) -> list:
        request_path = f"/api/v5/{path}"
        query_string = "?" + urlencode(params)
        url = f"{API_BASE_URL}{path}{query_string}"

        async def _operation() -> list:
            config, index = await self._acquire()
            logger.debug("OKX DEX %s using config %d/%d (***%s)", label, index + 1, len(self._configs), config.api_key[-4:])
            headers = create_signed_headers(config, "GET", request_path, query_string)
            return self._check(await self._http.get_json(url, headers=headers))

        return await self._with_rotation(_operation, label)

    async def _signed_post(self, path: str, body: list | dict, label: str) -> list:
        request_path = f"/api/v5/{path}"
        payload = json.dumps(body, separators=(",", ":"))
        url = f"{API_BASE_URL}{path}"

        async def _operation() -> list:
            config, _ = await self._acquire()
            headers = create_signed_headers(config, "POST", request_path, payload)
            return self._check(await self._http.post_json(url, headers=headers, content=payload))

        return await self._with_rotation(_operation, label)

    # -- market data -----------------------------------------------------------------------

    async def get_candles(
        self,
        token_contract_address: str,
        chain_index: str = OKX_DEX_CHAIN_INDEX,
        bar: str = "1m",
        limit: int = MAX_CANDLES_PER_REQUEST,
        after: str | None = None,
        before: str | None = None,
    ) -> list[OkxDexCandle]:
        """GET dex/market/candles, newest first. ``after`` pages to older candles."""
        params = {
            "chainIndex": chain_index,
            "tokenContractAddress": token_contract_address.lower(),
            "bar": bar,
            "limit": str(limit),
        }
        if after:
            params["after"] = after
        if before:
            params["before"] = before

        rows = await self._signed_get("dex/market/candles", params, "candles")
        return [OkxDexCandle.from_row(row) for row in rows]

    async def get_batch_token_prices(
        self, token_contract_addresses: list[str], chain_index: str = OKX_DEX_CHAIN_INDEX
    ) -> list[OkxBatchPrice]:
        if not token_contract_addresses:
            raise ValueError("token_contract_addresses must be a non-empty list")
        body = [{"chainIndex": chain_index, "tokenContractAddress": a} for a in token_contract_addresses]
        rows = await self._signed_post("dex/market/price-info", body, "batch price")
        return [OkxBatchPrice(**row) for row in rows]

    # -- aggregator ------------------------------------------------------------------------

    async def get_swap_quote(
        self,
        from_token_address: str,
        to_token_address: str,
        amount: str,
        slippage: str = DEFAULT_SLIPPAGE,
        chain_index: str = OKX_DEX_CHAIN_INDEX,
    ) -> SwapQuote | None:
        params = {
            "chainIndex": chain_index,
            "fromTokenAddress": from_token_address,
            "toTokenAddress": to_token_address,
            "amount": amount,
            "slippage": slippage,
        }
        rows = await self._signed_get("dex/aggregator/quote", params, "swap quote")
        return SwapQuote(**rows[0]) if rows else None

    async def get_swap_data(
        self,
        from_token_address: str,
        to_token_address: str,
        amount: str,
        user_wallet_address: str,
        slippage: str = DEFAULT_SLIPPAGE,
        chain_index: str = OKX_DEX_CHAIN_INDEX,
        swap_receiver_address: str | None = None,
    ) -> dict | None:
        params = {
            "chainIndex": chain_index,
            "fromTokenAddress": from_token_address,
            "toTokenAddress": to_token_address,
            "amount": amount,
            "slippage": slippage,
            "userWalletAddress": user_wallet_address,
        }
        if swap_receiver_address:
            params["swapReceiverAddress"] = swap_receiver_address
        rows = await self._signed_get("dex/aggregator/swap", params, "swap data")
        return rows[0] if rows else None

    async def get_approve_transaction(
        self, token_address: str, amount: str, chain_index: str = OKX_DEX_CHAIN_INDEX
    ) -> dict | None:
        params = {"chainId": chain_index, "tokenContractAddress": token_address, "approveAmount": amount}
        rows = await self._signed_get("dex/aggregator/approve-transaction", params, "approve transaction")
        return rows[0] if rows else None
