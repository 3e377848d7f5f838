"""
Quote Cost Summary Builder.

Responsibility:
    Aggregate already-costed positions and every ancillary category into a
    ``CpqQuoteCostSummary``: per-category monthly totals, holiday
    adjustment, financial and policy charges, extras, grand total and
    the cost base the sale price is solved from.

Architecture position:
    Engines -- pure aggregation over in-memory data.  Fetching positions,
    lines, catalog and parameters is done by
    ``cpq_services.quote_costing_service`` before this runs; writing the
    result back onto the quote header is done after, by the caller.

Invariants enforced:
    - Every category figure is rounded to whole pesos before summing, so
      ``monthly_total == monthly_positions + monthly_extras`` holds
      exactly and ``monthly_extras`` is the exact sum of the non-position
      categories.
    - ``costs_base`` excludes financial and policy charges.
    - Positions are critical: an uncosted position aborts the summary.
    - Ancillary categories are degradable: a CatalogError or ValueError
      in one category zeroes that category, logs ``category_degraded``
      and is listed in ``degraded_categories``.  Other categories are
      unaffected.

Failure modes:
    - InvalidPositionError when a position has no computed employer cost.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Sequence

from cpq_engines.ancillary import CATEGORIES, CostingContext, merge_catalog_defaults
from cpq_engines.tracer import traced_engine
from cpq_kernel.domain.quote import (
    AncillaryCostLine,
    CatalogItem,
    CostCategoryKind,
    CpqQuoteCostSummary,
    Position,
    QuoteParameters,
)
from cpq_kernel.domain.values import (
    HUNDRED,
    MONTHS_PER_YEAR,
    ONE,
    ZERO,
    pct_to_rate,
    round_clp,
    sum_clp,
)
from cpq_kernel.exceptions import CatalogError, InvalidPositionError
from cpq_kernel.logging_config import get_logger

logger = get_logger("engines.quote_summary")

# Each holiday worked is paid double for one of the 30 days in a month.
_DAYS_PER_MONTH = Decimal("30")
_HOLIDAY_SURCHARGE = Decimal("0.5")

_SUMMARY_FIELD_BY_KIND: dict[CostCategoryKind, str] = {
    CostCategoryKind.UNIFORM: "monthly_uniforms",
    CostCategoryKind.EXAM: "monthly_exams",
    CostCategoryKind.MEAL: "monthly_meals",
    CostCategoryKind.VEHICLE: "monthly_vehicles",
    CostCategoryKind.INFRASTRUCTURE: "monthly_infrastructure",
    CostCategoryKind.COST_ITEM: "monthly_cost_items",
}


def compute_holiday_adjustment(
    monthly_positions: Decimal, parameters: QuoteParameters
) -> Decimal:
    """Holiday surcharge on position cost; zero unless a holiday count is set."""
    if parameters.holiday_annual_count is None:
        return ZERO
    monthly_factor = parameters.holiday_annual_count / MONTHS_PER_YEAR
    commercial_factor = ONE + parameters.holiday_commercial_buffer_pct / HUNDRED
    return (
        monthly_positions / _DAYS_PER_MONTH
        * _HOLIDAY_SURCHARGE
        * monthly_factor
        * commercial_factor
    )


def compute_financial_charge(costs_base: Decimal, parameters: QuoteParameters) -> Decimal:
    if not parameters.financial_enabled or costs_base <= ZERO:
        return ZERO
    return costs_base * pct_to_rate(parameters.financial_rate_pct)


def compute_policy_charge(costs_base: Decimal, parameters: QuoteParameters) -> Decimal:
    """Performance bond: guarantee over the contract term, premium spread monthly."""
    if not parameters.policy_enabled or costs_base <= ZERO:
        return ZERO
    guarantee = (
        costs_base
        * parameters.policy_contract_months
        * pct_to_rate(parameters.policy_contract_pct)
    )
    premium_rate = pct_to_rate(parameters.policy_rate_pct + parameters.policy_admin_rate_pct)
    return guarantee * premium_rate / MONTHS_PER_YEAR


def _position_total(positions: Sequence[Position]) -> Decimal:
    total = ZERO
    for position in positions:
        cost = position.monthly_position_cost_clp
        if cost is None:
            raise InvalidPositionError(
                str(position.id), "employer cost has not been computed"
            )
        total += cost
    return total


@traced_engine("quote_summary", "1.0")
def build_quote_cost_summary(
    parameters: QuoteParameters,
    positions: Sequence[Position],
    lines: Mapping[CostCategoryKind, Sequence[AncillaryCostLine]],
    catalog: Sequence[CatalogItem] = (),
    merge_defaults: bool = True,
) -> CpqQuoteCostSummary:
    """
    Build the monthly cost summary of one quote.

    Args:
        parameters: Quote-wide knobs.
        positions: Positions with a computed employer cost.
        lines: Ancillary lines per category.  Missing keys mean no lines.
        catalog: Tenant catalog used for price lookup and default merging.
        merge_defaults: Append active default catalog items not yet on
            the quote.

    Raises:
        InvalidPositionError: a position has no computed employer cost.
    """
    monthly_positions = round_clp(_position_total(positions))
    total_guards = sum(p.num_guards for p in positions)
    total_positions = sum(p.num_puestos for p in positions)

    context = CostingContext(
        parameters=parameters,
        total_guards=total_guards,
        catalog={item.id: item for item in catalog},
    )

    category_totals: dict[str, Decimal] = {}
    degraded: list[str] = []
    for category in CATEGORIES:
        category_lines = list(lines.get(category.kind, ()))
        if merge_defaults:
            category_lines = merge_catalog_defaults(category.kind, category_lines, catalog)
        try:
            total = round_clp(category.compute(category_lines, context))
        except (CatalogError, ValueError) as exc:
            logger.warning("category_degraded", extra={
                "quote_id": str(parameters.quote_id),
                "category": category.kind.value,
                "error_type": type(exc).__name__,
                "error_code": getattr(exc, "code", None),
                "error": str(exc),
            })
            total = ZERO
            degraded.append(category.kind.value)
        category_totals[_SUMMARY_FIELD_BY_KIND[category.kind]] = total

    holiday = round_clp(compute_holiday_adjustment(monthly_positions, parameters))
    costs_base = monthly_positions + holiday + sum_clp(category_totals.values())

    financial = round_clp(compute_financial_charge(costs_base, parameters))
    policy = round_clp(compute_policy_charge(costs_base, parameters))

    monthly_extras = holiday + sum_clp(category_totals.values()) + financial + policy
    monthly_total = monthly_positions + monthly_extras

    summary = CpqQuoteCostSummary(
        quote_id=parameters.quote_id,
        total_positions=total_positions,
        total_guards=total_guards,
        monthly_positions=monthly_positions,
        monthly_holiday_adjustment=holiday,
        monthly_financial=financial,
        monthly_policy=policy,
        monthly_extras=monthly_extras,
        monthly_total=monthly_total,
        costs_base=costs_base,
        degraded_categories=tuple(degraded),
        **category_totals,
    )

    logger.info("quote_cost_summary_built", extra={
        "quote_id": str(parameters.quote_id),
        "position_count": len(positions),
        "total_guards": total_guards,
        "monthly_positions": str(monthly_positions),
        "monthly_extras": str(monthly_extras),
        "monthly_total": str(monthly_total),
        "degraded_categories": list(degraded),
    })
    return summary
