"""Concentrated-liquidity (V3) price math.

Prices here are token1 per token0 in raw units. ``adjusted`` values apply
``10 ** (token0_decimals - token1_decimals)`` to express them in whole tokens.
"""

import math

from dexdata.domain.models.pool import LiquidityCliff, TokenRatios

Q96 = 2**96
TICK_BASE = 1.0001


def price_from_sqrt_price_x96(sqrt_price_x96: int) -> float:
    sqrt_price = sqrt_price_x96 / Q96
    return sqrt_price * sqrt_price


def price_from_tick(tick: int) -> float:
    return math.exp(tick * math.log(TICK_BASE))


def adjust_price_for_decimals(price: float, token0_decimals: int, token1_decimals: int) -> float:
    return price * 10 ** (token0_decimals - token1_decimals)


def calculate_token_ratios(
    current_tick: int,
    sqrt_price_x96: int,
    token0_decimals: int = 18,
    token1_decimals: int = 18,
) -> TokenRatios:
    """Ratio from the tick and from sqrtPriceX96, plus their relative disagreement.

    The sqrtPriceX96 figure is exact pool state and is the one reported as ``token_ratio``;
    the tick figure is rounded to the tick grid and serves as a cross-check.
    """
    from_tick = TICK_BASE**current_tick
    sqrt_price = sqrt_price_x96 / Q96
    from_sqrt = sqrt_price * sqrt_price
    decimal_adjustment = 10.0 ** (token0_decimals - token1_decimals)

    difference = abs(from_tick - from_sqrt)
    difference_percent = difference / from_sqrt * 100 if from_sqrt else 0.0

    return TokenRatios(
        token_ratio_from_tick=from_tick,
        token_ratio_from_sqrt_price=from_sqrt,
        adjusted_token_ratio=from_sqrt * decimal_adjustment,
        token_ratio=from_sqrt,
        precision_difference=difference,
        precision_difference_percent=difference_percent,
        decimal_adjustment=decimal_adjustment,
        current_tick=current_tick,
        sqrt_price=sqrt_price,
        sqrt_price_x96=str(sqrt_price_x96),
    )


def sqrt_price_x96_from_tick(tick: int) -> int:
    """Float approximation of ``TickMath.getSqrtRatioAtTick``; good to ~15 significant digits."""
    return int(math.sqrt(price_from_tick(tick)) * Q96)


# -- tick bitmap -------------------------------------------------------------------------


def compress_tick(tick: int, tick_spacing: int) -> int:
    # Floor division rounds negative ticks toward -inf, as TickBitmap does
    return tick // tick_spacing


def bitmap_position(compressed: int) -> tuple[int, int]:
    """(word, bit) for a compressed tick; 256 ticks per word."""
    return compressed >> 8, compressed & 0xFF


def ticks_in_bitmap_word(word: int, bitmap: int, tick_spacing: int) -> list[int]:
    return [((word << 8) + bit) * tick_spacing for bit in range(256) if bitmap >> bit & 1]


# -- liquidity distribution --------------------------------------------------------------


def active_liquidity_by_tick(
    liquidity_net: dict[int, int], current_tick: int, current_liquidity: int
) -> dict[int, int]:
    """Active liquidity at each tick, walked out from the current tick.

    Moving up a tick adds its liquidityNet; moving down subtracts the net of the tick left behind.
    If the current tick is not among ``liquidity_net`` only the current tick is returned.
    """
    active = {current_tick: current_liquidity}
    if current_tick not in liquidity_net:
        return active

    ticks = sorted(liquidity_net)
    index = ticks.index(current_tick)

    running = current_liquidity
    for tick in ticks[index + 1:]:
        running += liquidity_net[tick]
        active[tick] = running

    running = current_liquidity
    for tick in reversed(ticks[:index]):
        running -= liquidity_net[tick]
        active[tick] = running
    return active


def token_amounts_at_tick(tick: int, current_tick: int, liquidity: int) -> tuple[float, float]:
    """Raw (token0, token1) amounts ``liquidity`` represents between ``tick`` and the current tick.

    Below the current tick liquidity is held as token1, above it as token0.
    At the current tick both legs are reported: L/sqrtP of token0 and L*sqrtP of token1.
    """
    if liquidity == 0:
        return 0.0, 0.0

    sqrt_tick = sqrt_price_x96_from_tick(tick)
    sqrt_current = sqrt_price_x96_from_tick(current_tick)
    amount0 = amount1 = 0.0
    if tick < current_tick:
        amount1 = liquidity * (sqrt_current - sqrt_tick) / Q96
    elif tick > current_tick:
        amount0 = liquidity * (sqrt_tick - sqrt_current) * Q96 / (sqrt_tick * sqrt_current)
    else:
        amount0 = liquidity * Q96 / sqrt_current
        amount1 = liquidity * sqrt_current / Q96
    return abs(amount0), abs(amount1)


def detect_liquidity_cliffs(
    ticks: list[tuple[int, int, bool]], starting_liquidity: int, threshold_pct: float = 0.2
) -> list[LiquidityCliff]:
    """Ticks where active liquidity jumps by at least ``threshold_pct`` from the tick below.

    ``ticks`` holds (tick, liquidityNet, is_current) triples. Without a current tick there is
    nothing to anchor on and no cliffs are reported.
    """
    ordered = sorted(ticks)
    current = next((tick for tick, _, is_current in ordered if is_current), None)
    if current is None:
        return []

    active = active_liquidity_by_tick({tick: net for tick, net, _ in ordered}, current, starting_liquidity)
    cliffs = []
    for (previous_tick, _, _), (tick, _, _) in zip(ordered, ordered[1:]):
        previous = active.get(previous_tick, 0)
        if previous == 0:
            continue
        liquidity = active.get(tick, 0)
        pct = abs(liquidity - previous) / previous
        if pct >= threshold_pct:
            cliffs.append(LiquidityCliff(
                tick=tick,
                previous_liquidity=previous,
                current_liquidity=liquidity,
                delta_pct=math.floor(pct * 10000 + 0.5) / 100,
            ))
    return cliffs


# -- oracle ------------------------------------------------------------------------------


def average_tick(tick_cumulative_start: int, tick_cumulative_end: int, seconds: int) -> int:
    """Arithmetic mean tick over the window, truncated toward zero."""
    diff = tick_cumulative_end - tick_cumulative_start
    quotient = abs(diff) // seconds
    return quotient if diff >= 0 else -quotient


def time_weighted_liquidity(seconds_per_liquidity_start: int, seconds_per_liquidity_end: int, seconds: int) -> int:
    diff = seconds_per_liquidity_end - seconds_per_liquidity_start
    if diff == 0:
        return 0
    return (seconds << 128) // diff
