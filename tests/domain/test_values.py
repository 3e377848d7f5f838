"""
Tests for the CLP Decimal helpers.

Covers:
- Conversion rules (no floats, no bools)
- Half-up peso rounding vs. truncation
- Percentage to rate conversion
"""

from decimal import Decimal

import pytest

from cpq_kernel.domain.values import (
    ZERO,
    floor_clp,
    pct_to_rate,
    round_clp,
    sum_clp,
    to_decimal,
)


class TestToDecimal:
    """Inbound value conversion."""

    def test_decimal_passes_through(self):
        value = Decimal("600000.50")
        assert to_decimal(value) is value

    def test_int_and_string_accepted(self):
        assert to_decimal(600000) == Decimal("600000")
        assert to_decimal(" 7.5 ") == Decimal("7.5")

    def test_float_rejected(self):
        with pytest.raises(TypeError, match="float"):
            to_decimal(0.1)

    def test_bool_rejected(self):
        with pytest.raises(TypeError, match="bool"):
            to_decimal(True)

    def test_invalid_string_rejected(self):
        with pytest.raises(ValueError, match="Invalid decimal literal"):
            to_decimal("six hundred")


class TestRounding:
    """Peso rounding."""

    def test_round_half_up(self):
        assert round_clp(Decimal("10.5")) == Decimal("11")
        assert round_clp(Decimal("11.5")) == Decimal("12")
        assert round_clp(Decimal("10.49")) == Decimal("10")

    def test_floor_truncates(self):
        assert floor_clp(Decimal("84525.99")) == Decimal("84525")

    def test_pct_to_rate(self):
        assert pct_to_rate(Decimal("13")) == Decimal("0.13")

    def test_sum_of_nothing_is_zero(self):
        assert sum_clp([]) == ZERO
        assert sum_clp([Decimal("1"), Decimal("2")]) == Decimal("3")
