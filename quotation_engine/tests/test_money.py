"""
Tests for the money helpers.
"""

from decimal import Decimal

import pytest

from quotation_engine.utils.money import clamp_non_negative, percent_of, to_decimal, to_money


class TestToMoney:
    """Tests for fixed-point conversion."""

    def test_float_has_no_binary_drift(self):
        assert to_money(0.1) + to_money(0.2) == Decimal("0.30")

    def test_half_up_rounding(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money("2.344") == Decimal("2.34")

    def test_int_and_string(self):
        assert to_money(10000) == Decimal("10000.00")
        assert to_money("8100") == Decimal("8100.00")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "ten", None, True])
    def test_rejects_non_numbers(self, value):
        with pytest.raises((TypeError, ValueError)):
            to_money(value)

    def test_out_of_range_is_a_value_error(self):
        with pytest.raises(ValueError):
            to_money("1e40")

    def test_to_decimal_keeps_precision(self):
        assert to_decimal("12.345") == Decimal("12.345")


class TestPercentAndClamp:
    """Tests for percent arithmetic and clamping."""

    def test_percent_of(self):
        assert percent_of(Decimal("9000.00"), Decimal("10")) == Decimal("900.00")
        assert percent_of(Decimal("0.05"), Decimal("50")) == Decimal("0.03")

    def test_clamp(self):
        assert clamp_non_negative(Decimal("-0.01")) == Decimal("0.00")
        assert clamp_non_negative(Decimal("5.00")) == Decimal("5.00")
