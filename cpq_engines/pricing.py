"""
Sale Price Back-Solve.

Margin is earned on delivery cost only.  Financial and policy charges are
pass-throughs added after the margin:

    sale_price = costs_base / (1 - margin_pct / 100) + financial + policy

so that ``(sale - financial - policy - costs_base) / (sale - financial - policy)``
recovers ``margin_pct / 100``.
"""

from __future__ import annotations

from decimal import Decimal

from cpq_engines.tracer import traced_engine
from cpq_kernel.domain.values import HUNDRED, ONE, ZERO, round_clp, to_decimal
from cpq_kernel.exceptions import InvalidMarginPercentError
from cpq_kernel.logging_config import get_logger

logger = get_logger("engines.pricing")

DEFAULT_MONTHLY_HOURS = Decimal("180")


def _validate_margin(margin_pct: Decimal) -> None:
    if margin_pct <= ZERO or margin_pct >= HUNDRED:
        logger.error("invalid_margin_percent", extra={"margin_pct": str(margin_pct)})
        raise InvalidMarginPercentError(str(margin_pct))


@traced_engine(
    "sale_price",
    "1.0",
    fingerprint_fields=("costs_base", "margin_pct", "monthly_financial", "monthly_policy"),
)
def compute_sale_price(
    costs_base: Decimal,
    margin_pct: Decimal,
    monthly_financial: Decimal = ZERO,
    monthly_policy: Decimal = ZERO,
) -> Decimal:
    """
    Monthly sale price, rounded to whole pesos.

    Raises:
        InvalidMarginPercentError: margin_pct <= 0 or >= 100.
    """
    margin_pct = to_decimal(margin_pct)
    _validate_margin(margin_pct)
    base_with_margin = to_decimal(costs_base) / (ONE - margin_pct / HUNDRED)
    return round_clp(
        base_with_margin + to_decimal(monthly_financial) + to_decimal(monthly_policy)
    )


def implied_margin_pct(
    sale_price: Decimal,
    costs_base: Decimal,
    monthly_financial: Decimal = ZERO,
    monthly_policy: Decimal = ZERO,
) -> Decimal:
    """Inverse of ``compute_sale_price``: the margin percent a price carries."""
    priced_base = sale_price - monthly_financial - monthly_policy
    if priced_base <= ZERO:
        return ZERO
    return (priced_base - costs_base) / priced_base * HUNDRED


def compute_hourly_cost(
    monthly_cost: Decimal,
    monthly_hours: Decimal = DEFAULT_MONTHLY_HOURS,
) -> Decimal:
    """Monthly figure spread over the standard monthly hours, in pesos."""
    monthly_hours = to_decimal(monthly_hours)
    if monthly_hours <= ZERO:
        return ZERO
    return round_clp(to_decimal(monthly_cost) / monthly_hours)
