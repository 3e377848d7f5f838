"""
Values -- Decimal helpers for CLP amounts and percentages.

Responsibility:
    Every monetary figure in the engine is a ``Decimal`` number of Chilean
    pesos.  This module is the single place that converts inbound values
    to ``Decimal``, rounds to whole pesos, and turns percentages into
    rates.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: ``to_decimal`` rejects ``float`` so binary
      rounding errors never enter a cost figure.
    - CLP has no minor unit; ``round_clp`` rounds half-up to an integer
      peso and ``floor_clp`` truncates toward zero for withheld
      contributions.

Failure modes:
    - TypeError when a float (or other non-numeric type) is passed.
    - ValueError when a string is not a valid decimal literal.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = Decimal("12")

_PESO = Decimal("1")


def to_decimal(value: Any) -> Decimal:
    """
    Convert an inbound value to Decimal.

    Accepts Decimal, int and decimal strings.  Floats are rejected.

    Raises:
        TypeError: for float or unsupported types.
        ValueError: for strings that are not decimal literals.
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a numeric amount")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid decimal literal: {value!r}") from exc
    raise TypeError(
        f"Expected Decimal, int or str, got {type(value).__name__}"
    )


def round_clp(amount: Decimal) -> Decimal:
    """Round to whole pesos, half-up."""
    return amount.quantize(_PESO, rounding=ROUND_HALF_UP)


def floor_clp(amount: Decimal) -> Decimal:
    """Truncate to whole pesos (used for withheld worker contributions)."""
    return amount.quantize(_PESO, rounding=ROUND_DOWN)


def pct_to_rate(pct: Decimal) -> Decimal:
    """13 -> 0.13"""
    return pct / HUNDRED


def sum_clp(amounts) -> Decimal:
    """Sum an iterable of Decimal amounts, starting from zero."""
    total = ZERO
    for amount in amounts:
        total += amount
    return total
