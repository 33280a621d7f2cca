import asyncio
import time
from typing import Any

import httpx

from dexdata.exceptions import ExternalServiceError, RateLimitError


def decode_response(resp: httpx.Response) -> Any:
    """Return the JSON body, mapping HTTP failures onto the service error hierarchy."""
    if resp.status_code == 429:
        raise RateLimitError("rate limit exceeded (HTTP 429)")
    if resp.status_code >= 400:
        raise ExternalServiceError(f"HTTP {resp.status_code}: {resp.text[:200]}")
    try:
        return resp.json()
    except ValueError as e:
        raise ExternalServiceError(f"Invalid JSON response: {resp.text[:200]}") from e


class RateLimitedClient:
    """Async HTTP client with simple interval-based rate limiting.

    Shared by every vendor client. ``get``/``post`` return raw responses,
    ``get_json``/``post_json`` decode them and raise ``ExternalServiceError``
    (or ``RateLimitError`` on 429) so tenacity can retry at the call site.
    """

    def __init__(self, rate_per_second: float = 5.0, timeout: float = 30.0) -> None:
        self._min_interval = 1.0 / rate_per_second
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()
        self._client = httpx.AsyncClient(timeout=timeout)

    async def _wait_for_slot(self) -> None:
        async with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()

    async def get(
        self,
        url: str,
        params: dict | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        await self._wait_for_slot()
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if timeout is not None:
            kwargs["timeout"] = timeout
        return await self._client.get(url, **kwargs)

    async def post(
        self,
        url: str,
        json: dict | list | None = None,
        headers: dict[str, str] | None = None,
        content: str | None = None,
    ) -> httpx.Response:
        """POST a JSON body, or pre-serialized ``content`` when the exact bytes are signed."""
        await self._wait_for_slot()
        if content is not None:
            return await self._client.post(url, content=content, headers=headers)
        return await self._client.post(url, json=json, headers=headers)

    async def get_json(
        self,
        url: str,
        params: dict | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        try:
            resp = await self.get(url, params=params, headers=headers, timeout=timeout)
        except httpx.TransportError as e:
            raise ExternalServiceError(f"{type(e).__name__}: {e}") from e
        return decode_response(resp)

    async def post_json(
        self,
        url: str,
        json: dict | list | None = None,
        headers: dict[str, str] | None = None,
        content: str | None = None,
    ) -> Any:
        try:
            resp = await self.post(url, json=json, headers=headers, content=content)
        except httpx.TransportError as e:
            raise ExternalServiceError(f"{type(e).__name__}: {e}") from e
        return decode_response(resp)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
