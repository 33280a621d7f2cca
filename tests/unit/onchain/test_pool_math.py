import math

import pytest

from dexdata.onchain.pool_math import (
    Q96,
    active_liquidity_by_tick,
    adjust_price_for_decimals,
    average_tick,
    bitmap_position,
    calculate_token_ratios,
    compress_tick,
    detect_liquidity_cliffs,
    price_from_sqrt_price_x96,
    price_from_tick,
    sqrt_price_x96_from_tick,
    ticks_in_bitmap_word,
    time_weighted_liquidity,
    token_amounts_at_tick,
)


class TestPrices:
    def test_unit_price(self):
        assert price_from_sqrt_price_x96(Q96) == 1.0
        assert price_from_tick(0) == 1.0

    def test_sqrt_price_is_squared(self):
        assert price_from_sqrt_price_x96(2 * Q96) == 4.0
        assert price_from_sqrt_price_x96(Q96 // 2) == 0.25

    def test_tick_price(self):
        assert price_from_tick(100) == pytest.approx(1.0001**100)
        assert price_from_tick(-100) == pytest.approx(1 / 1.0001**100)

    def test_decimal_adjustment(self):
        assert adjust_price_for_decimals(2.0, 18, 6) == pytest.approx(2.0e12)
        assert adjust_price_for_decimals(2.0, 6, 18) == pytest.approx(2.0e-12)
        assert adjust_price_for_decimals(2.0, 18, 18) == 2.0


class TestTokenRatios:
    def test_tick_zero_at_unit_price(self):
        ratios = calculate_token_ratios(0, Q96)

        assert ratios.token_ratio == 1.0
        assert ratios.token_ratio_from_tick == 1.0
        assert ratios.token_ratio_from_sqrt_price == 1.0
        assert ratios.adjusted_token_ratio == 1.0
        assert ratios.precision_difference == 0.0
        assert ratios.precision_difference_percent == 0.0
        assert ratios.decimal_adjustment == 1.0
        assert ratios.sqrt_price == 1.0
        assert ratios.sqrt_price_x96 == str(Q96)

    def test_adjusted_ratio_uses_decimals(self):
        ratios = calculate_token_ratios(0, Q96, token0_decimals=18, token1_decimals=6)

        assert ratios.decimal_adjustment == pytest.approx(1e12)
        assert ratios.adjusted_token_ratio == pytest.approx(1e12)
        assert ratios.token_ratio == 1.0

    def test_tick_and_sqrt_price_agree_on_real_pool(self):
        tick = 13863  # price just under 4
        sqrt_price_x96 = int(math.sqrt(1.0001**tick) * Q96)

        ratios = calculate_token_ratios(tick, sqrt_price_x96)

        assert ratios.token_ratio == pytest.approx(4.0, rel=1e-4)
        assert ratios.precision_difference_percent < 1e-6

    def test_zero_sqrt_price(self):
        ratios = calculate_token_ratios(0, 0)

        assert ratios.token_ratio == 0.0
        assert ratios.precision_difference == 1.0
        assert ratios.precision_difference_percent == 0.0


class TestTickBitmap:
    @pytest.mark.parametrize(
        "tick, spacing, compressed",
        [(0, 10, 0), (25, 10, 2), (-10, 10, -1), (-5, 10, -1), (-15, 10, -2), (-2560, 10, -256)],
    )
    def test_compress_rounds_toward_negative_infinity(self, tick, spacing, compressed):
        assert compress_tick(tick, spacing) == compressed

    def test_position(self):
        assert bitmap_position(0) == (0, 0)
        assert bitmap_position(257) == (1, 1)
        assert bitmap_position(-1) == (-1, 255)
        assert bitmap_position(-256) == (-1, 0)

    def test_ticks_in_word(self):
        assert ticks_in_bitmap_word(0, 0b1001, 10) == [0, 30]
        assert ticks_in_bitmap_word(-1, 1 << 254, 10) == [-20]
        assert ticks_in_bitmap_word(3, 0, 60) == []

    def test_word_round_trip(self):
        for tick in (-887220, -60, 0, 60, 887220):
            word, bit = bitmap_position(compress_tick(tick, 60))
            assert tick in ticks_in_bitmap_word(word, 1 << bit, 60)


class TestActiveLiquidity:
    def test_walks_out_from_current_tick(self):
        nets = {-20: 300, -10: 200, 0: 0, 10: -100, 20: -400}

        active = active_liquidity_by_tick(nets, 0, 1000)

        assert active == {0: 1000, 10: 900, 20: 500, -10: 800, -20: 500}

    def test_current_tick_missing(self):
        assert active_liquidity_by_tick({-20: 300, 20: -300}, 0, 1000) == {0: 1000}


class TestTokenAmounts:
    def test_zero_liquidity(self):
        assert token_amounts_at_tick(-100, 0, 0) == (0.0, 0.0)

    def test_below_current_is_token1(self):
        amount0, amount1 = token_amounts_at_tick(-100, 0, 10**18)

        assert amount0 == 0.0
        expected = 10**18 * (1 - math.sqrt(1.0001**-100))
        assert amount1 == pytest.approx(expected, rel=1e-9)

    def test_above_current_is_token0(self):
        amount0, amount1 = token_amounts_at_tick(100, 0, 10**18)

        assert amount1 == 0.0
        expected = 10**18 * (1 - 1 / math.sqrt(1.0001**100))
        assert amount0 == pytest.approx(expected, rel=1e-9)

    def test_current_tick_holds_both(self):
        assert token_amounts_at_tick(0, 0, 1000) == (1000.0, 1000.0)

    def test_sqrt_price_from_tick(self):
        assert sqrt_price_x96_from_tick(0) == Q96
        assert sqrt_price_x96_from_tick(13863) == pytest.approx(2 * Q96, rel=1e-4)


class TestLiquidityCliffs:
    def test_flags_large_jumps(self):
        ticks = [(-20, 500, False), (0, 0, True), (10, -50, False), (30, -500, False)]

        cliffs = detect_liquidity_cliffs(ticks, 1000)

        # active: -20 -> 500, 0 -> 1000, 10 -> 950, 30 -> 450
        assert [c.tick for c in cliffs] == [0, 30]
        assert cliffs[0].previous_liquidity == 500
        assert cliffs[0].current_liquidity == 1000
        assert cliffs[0].delta_pct == 100.0
        assert cliffs[1].delta_pct == pytest.approx(52.63)

    def test_threshold(self):
        ticks = [(0, 0, True), (10, -50, False)]

        assert detect_liquidity_cliffs(ticks, 1000) == []
        assert [c.tick for c in detect_liquidity_cliffs(ticks, 1000, threshold_pct=0.05)] == [10]

    def test_zero_previous_liquidity_is_skipped(self):
        ticks = [(-10, 1000, False), (0, 0, True), (10, 500, False)]

        cliffs = detect_liquidity_cliffs(ticks, 1000)

        # active liquidity at -10 is zero, so the step up into tick 0 is not measured
        assert [c.tick for c in cliffs] == [10]

    def test_no_current_tick(self):
        assert detect_liquidity_cliffs([(0, 100, False), (10, -100, False)], 1000) == []


class TestOracleMath:
    def test_average_tick(self):
        assert average_tick(1000, 1000 + 60 * 13863, 60) == 13863

    def test_average_tick_truncates_toward_zero(self):
        assert average_tick(0, -61, 60) == -1
        assert average_tick(0, 61, 60) == 1

    def test_time_weighted_liquidity(self):
        assert time_weighted_liquidity(5, 5 + 2**124, 64) == 1024

    def test_time_weighted_liquidity_without_change(self):
        assert time_weighted_liquidity(7, 7, 60) == 0
