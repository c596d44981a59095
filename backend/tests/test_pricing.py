"""
BestPrice Compare - Price Arithmetic Tests
==========================================

1. Любой мусор на входе → None, без исключений и NaN
2. Десятичная запятая
3. Скидка всегда в [0, 100]

Запуск: pytest backend/tests/test_pricing.py -v
"""

import math

import pytest

from bestprice_compare.pricing import (
    discount_percent,
    margin_info,
    margin_percent,
    parse_price,
    price_analysis,
    to_local_cost,
)

RATE = 3.95


# ============================================================================
# TEST: parse_price
# ============================================================================

class TestParsePrice:

    def test_numbers_pass_through(self):
        assert parse_price(12) == 12.0
        assert parse_price(12.5) == 12.5

    def test_decimal_comma_string(self):
        assert parse_price("12,50") == pytest.approx(12.5)
        assert parse_price(" 3,75 ") == pytest.approx(3.75)
        assert parse_price("7.25") == pytest.approx(7.25)

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", True, False, float('nan'), float('inf'), "inf", [], {}])
    def test_garbage_is_none(self, value):
        assert parse_price(value) is None


# ============================================================================
# TEST: to_local_cost
# ============================================================================

class TestToLocalCost:

    def test_cost_formula(self):
        assert to_local_cost(10, RATE, 1.3) == pytest.approx(10 * 3.95 * 1.3)

    def test_comma_price(self):
        assert to_local_cost("10,5", 1.0, 2.0) == pytest.approx(21.0)

    @pytest.mark.parametrize("price,rate,markup", [
        (None, RATE, 1.3),
        (10, RATE, None),
        (10, RATE, 0),
        (10, RATE, -1.2),
        (10, None, 1.3),
        (10, 0, 1.3),
        (10, -3.95, 1.3),
        ("abc", RATE, 1.3),
        (float('nan'), RATE, 1.3),
        (10, RATE, "n/a"),
    ])
    def test_missing_or_invalid_inputs(self, price, rate, markup):
        assert to_local_cost(price, rate, markup) is None


# ============================================================================
# TEST: discount_percent
# ============================================================================

class TestDiscountPercent:

    def test_regular_discount(self):
        # cost = 10 * 3.95 * 1.3 = 51.35
        assert discount_percent(10, 1.3, 100, RATE) == pytest.approx(48.65)

    def test_comma_string_price(self):
        assert discount_percent("10,0", 1.3, 100, RATE) == pytest.approx(48.65)

    @pytest.mark.parametrize("price,markup,retail", [
        (None, 1.3, 100),
        (10, None, 100),
        (10, 0, 100),
        (10, 1.3, None),
        (10, 1.3, 0),
        ("abc", 1.3, 100),
        (0, 1.3, 100),
    ])
    def test_missing_inputs_return_none(self, price, markup, retail):
        assert discount_percent(price, markup, retail, RATE) is None

    def test_missing_rate_returns_none(self):
        assert discount_percent(10, 1.3, 100, None) is None

    def test_loss_making_offer_clamped_to_zero(self):
        # cost 51.35 > retail 40
        assert discount_percent(10, 1.3, 40, RATE) == 0.0

    @pytest.mark.parametrize("price,markup,retail", [
        (10, 1.3, -100),      # negative retail
        (10, 0.01, 100),      # tiny markup
        (1e9, 1.3, 100),      # absurd price
        (-5, 1.3, 100),       # negative price
        (0.0001, 2.0, 1e12),
        (1e9, 0.01, -1e-6),
    ])
    def test_adversarial_inputs_stay_in_range(self, price, markup, retail):
        result = discount_percent(price, markup, retail, RATE)
        assert result is not None
        assert not math.isnan(result)
        assert 0.0 <= result <= 100.0

    def test_negative_retail_clamped_to_hundred(self):
        assert discount_percent(10, 1.3, -100, RATE) == 100.0

    def test_huge_price_clamped_to_zero(self):
        assert discount_percent(1e9, 1.3, 100, RATE) == 0.0


# ============================================================================
# TEST: margins / analysis
# ============================================================================

class TestMargins:

    def test_margin_percent(self):
        assert margin_percent(100, 60) == pytest.approx(40.0)
        assert margin_percent(100, 120) == pytest.approx(-20.0)
        assert margin_percent(None, 60) is None
        assert margin_percent(100, 0) is None

    def test_margin_levels(self):
        # cost = 51.35
        assert margin_info(10, 100, 1.3, RATE).level == 'success'
        assert margin_info(10, 70, 1.3, RATE).level == 'warning'
        assert margin_info(10, 60, 1.3, RATE).level == 'error'

    def test_margin_info_missing_data(self):
        assert margin_info(None, 100, 1.3, RATE) is None
        assert margin_info(10, None, 1.3, RATE) is None
        assert margin_info(10, 100, None, RATE) is None


class TestPriceAnalysis:

    def test_numeric_entries_only(self):
        analysis = price_analysis([10, '5', None, 20.0, float('nan'), True])
        assert analysis.lowest == 10
        assert analysis.highest == 20
        assert analysis.average == pytest.approx(15)

    def test_empty(self):
        assert price_analysis([]) is None
        assert price_analysis(None) is None
        assert price_analysis(['a', None]) is None
