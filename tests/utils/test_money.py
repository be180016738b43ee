"""Tests for utils/money.py - Decimal money helpers."""

from decimal import Decimal

import pytest
from pydantic import BaseModel

from utils.money import DecimalNumber, Money, sum_money, to_decimal, to_money


class TestToDecimal:
    """Tests for to_decimal()."""

    def test_float_goes_through_str(self):
        """0.1 becomes exactly Decimal('0.1')."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_string_and_int(self):
        """Numeric strings and ints convert."""
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal(3) == Decimal("3")

    def test_decimal_passes_through(self):
        """Decimal input is returned unchanged."""
        value = Decimal("1.005")
        assert to_decimal(value) is value

    @pytest.mark.parametrize("value", [None, True, "abc", object()])
    def test_rejects_non_numeric(self, value):
        """None, bools and garbage raise ValueError."""
        with pytest.raises(ValueError):
            to_decimal(value)


class TestToMoney:
    """Tests for to_money()."""

    @pytest.mark.parametrize("value,expected", [
        ("1.005", "1.01"),
        ("1.004", "1.00"),
        ("2.5", "2.50"),
        ("-1.005", "-1.01"),
    ])
    def test_rounds_half_up(self, value, expected):
        """Rounds to cents, half away from zero."""
        assert to_money(value) == Decimal(expected)


class TestSumMoney:
    """Tests for sum_money()."""

    def test_sums_without_rounding(self):
        """Partial cents survive the sum."""
        assert sum_money(["0.005", "0.005"]) == Decimal("0.010")

    def test_empty(self):
        """Empty iterable sums to zero."""
        assert sum_money([]) == Decimal("0")


class TestSerialization:
    """Money and DecimalNumber JSON output."""

    class Sample(BaseModel):
        amount: Money
        quantity: DecimalNumber

    def test_json_numbers(self):
        """Money is rounded to cents, other decimals are not."""
        sample = self.Sample(amount=Decimal("10.005"), quantity=Decimal("1.125"))

        assert sample.model_dump(mode="json") == {"amount": 10.01, "quantity": 1.125}

    def test_python_mode_keeps_decimal(self):
        """Python dumps keep Decimal at full precision."""
        sample = self.Sample(amount=Decimal("10.005"), quantity=Decimal("1"))

        assert sample.model_dump()["amount"] == Decimal("10.005")
