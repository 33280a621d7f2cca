"""Backward (newest → oldest) cursor pagination shared by kline/candle endpoints."""

import asyncio
import logging
import math
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAGE_DELAY = 0.1  # seconds between pages


async def fetch_backward(
    fetch_page: Callable[[int, int | None], Awaitable[list[T]]],
    total: int,
    page_size: int,
    timestamp_of: Callable[[T], int],
    stop_on_short_page: bool = False,
    inclusive_cursor: bool = False,
    delay: float = PAGE_DELAY,
) -> list[T]:
    """Collect up to ``total`` items by walking back in time.

    ``fetch_page(limit, cursor)`` receives the earliest timestamp of the previous page
    as ``cursor`` (None for the first page). When the vendor treats the cursor as
    inclusive, pass ``inclusive_cursor`` and the cursor moves one millisecond earlier
    so page boundaries do not repeat a row. Stops early on an empty page, or on a
    short page when ``stop_on_short_page``. The result is sorted ascending by timestamp
    with duplicate timestamps removed; only new timestamps count towards ``total``.
    """
    num_requests = math.ceil(total / page_size) if total > 0 else 0
    by_ts: dict[int, T] = {}
    cursor: int | None = None
    remaining = total

    for i in range(num_requests):
        limit = min(page_size, remaining)
        if limit <= 0:
            break

        page = await fetch_page(limit, cursor)
        if not page:
            logger.debug("No more data after %d pages", i)
            break

        before = len(by_ts)
        for item in page:
            by_ts.setdefault(timestamp_of(item), item)
        remaining -= len(by_ts) - before

        earliest = min(timestamp_of(item) for item in page)
        cursor = earliest - 1 if inclusive_cursor else earliest

        if stop_on_short_page and len(page) < limit:
            break
        if i < num_requests - 1:
            await asyncio.sleep(delay)

    return [by_ts[ts] for ts in sorted(by_ts)]
