"""Tests for Decimal money helpers."""

from decimal import Decimal

from commerce.shared.money import ZERO, as_amount, percentage_of, quantize, to_decimal


class TestMoney:
    def test_to_decimal_uses_string_form(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(None) == ZERO

    def test_quantize_rounds_half_up(self):
        assert quantize(Decimal("2.345")) == Decimal("2.35")
        assert quantize(Decimal("2.344")) == Decimal("2.34")

    def test_percentage_is_divided_by_hundred(self):
        assert percentage_of(200, 5) == Decimal("10.00")
        assert percentage_of("19.99", 3) == Decimal("0.60")

    def test_zero_percentage(self):
        assert percentage_of(100, 0) == ZERO

    def test_as_amount(self):
        assert as_amount(Decimal("10.005")) == 10.01
