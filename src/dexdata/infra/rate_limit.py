"""Rotation over several API key-sets, each allowed one request per window."""

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

from dexdata.exceptions import ConfigurationError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ACQUIRE_ROUNDS = 3


class RateLimitManager(Generic[T]):
    """Hands out the least-recently-blocked config and marks it used in the same step.

    State is in-memory and guarded by an ``asyncio.Lock``, so concurrent callers in one
    process never receive the same key inside one window.
    """

    def __init__(
        self,
        configs: Sequence[T],
        window: float,
        service_name: str,
        max_wait: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not configs:
            raise ConfigurationError(f"{service_name}: no configurations to rotate")
        self._configs = list(configs)
        self._window = window
        self._service_name = service_name
        self._max_wait = max_wait if max_wait is not None else window + 5.0
        self._clock = clock
        self._sleep = sleep
        self._last_used: dict[int, float] = {}
        self._lock = asyncio.Lock()

    @property
    def config_count(self) -> int:
        return len(self._configs)

    def _available(self, now: float) -> list[int]:
        return [
            i for i in range(len(self._configs))
            if i not in self._last_used or now - self._last_used[i] >= self._window
        ]

    async def acquire_and_mark_config_as_used(self) -> tuple[T, int]:
        for round_no in range(MAX_ACQUIRE_ROUNDS):
            async with self._lock:
                now = self._clock()
                available = self._available(now)
                if available:
                    index = random.choice(available)
                    self._last_used[index] = now
                    return self._configs[index], index
                wait = min(self._last_used.values()) + self._window - now

            if wait > self._max_wait:
                raise RateLimitError(
                    f"{self._service_name}: all {len(self._configs)} keys cooling down, "
                    f"wait {wait:.1f}s exceeds max {self._max_wait:.1f}s"
                )
            logger.debug(
                "%s: all keys on cooldown, waiting %.3fs (round %d)",
                self._service_name, wait, round_no + 1,
            )
            await self._sleep(max(wait, 0.0))

        raise RateLimitError(f"{self._service_name}: could not acquire a key after {MAX_ACQUIRE_ROUNDS} rounds")

    def clear_stale_usage(self) -> int:
        """Forget usage older than two windows. Returns how many entries were dropped."""
        cutoff = self._clock() - 2 * self._window
        stale = [i for i, ts in self._last_used.items() if ts < cutoff]
        for i in stale:
            del self._last_used[i]
        return len(stale)

    def cooldown_remaining(self) -> list[float]:
        """Seconds until each key is usable again (0 when ready)."""
        now = self._clock()
        return [
            max(0.0, self._last_used[i] + self._window - now) if i in self._last_used else 0.0
            for i in range(len(self._configs))
        ]
