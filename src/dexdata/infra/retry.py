"""Predicate-driven retry helper for call sites that cannot use a static @retry decorator."""

import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_fixed

from dexdata.exceptions import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_MESSAGES = ("ETIMEDOUT", "ECONNRESET", "ECONNREFUSED", "rate limit exceeded")


def is_rate_limit_error(error: BaseException) -> bool:
    if isinstance(error, RateLimitError):
        return True
    message = str(error).lower()
    return "rate limit" in message or "429" in message or "too many requests" in message


def is_retryable_error(error: BaseException) -> bool:
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    message = str(error)
    return any(m.lower() in message.lower() for m in RETRYABLE_MESSAGES)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    retry_delay: float = 1.0,
    should_retry: Callable[[BaseException], bool] = is_retryable_error,
    on_error: Callable[[BaseException, int], None] | None = None,
) -> T:
    """Run ``operation`` up to ``max_retries + 1`` times, waiting ``retry_delay`` seconds between tries.

    The last error is re-raised once attempts are exhausted or ``should_retry`` says no.
    """

    def _before_sleep(state: RetryCallState) -> None:
        if on_error is not None and state.outcome is not None:
            on_error(state.outcome.exception(), state.attempt_number - 1)

    retrying = AsyncRetrying(
        retry=retry_if_exception(should_retry),
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_fixed(retry_delay),
        before_sleep=_before_sleep,
        reraise=True,
    )
    return await retrying(operation)
