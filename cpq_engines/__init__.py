"""
Quote costing engines.

Pure calculation layer: every function takes its inputs (salary, payroll
rule snapshot, positions, ancillary lines, catalog, quote parameters) as
arguments and returns immutable results.  No engine touches the record
store or reads the clock.

Modules:
    employer_cost   -- monthly cost of one guard to the employer
    income_tax      -- progressive second-category tax
    position_cost   -- cached per-position cost and concurrent fan-out
    ancillary       -- uniform, exam, meal, vehicle, infrastructure and
                       cost-item category calculators
    quote_summary   -- quote-level aggregation
    pricing         -- margin back-solve and hourly cost
    recalculation   -- recompute / refresh / lazy-fill predicates
    tracer          -- CPQ_ENGINE_TRACE decorator
"""

from cpq_engines.ancillary import (
    CATEGORIES,
    CATEGORY_BY_KIND,
    CostCategory,
    CostingContext,
    merge_catalog_defaults,
    normalize_unit_price,
)
from cpq_engines.employer_cost import compute_employer_cost
from cpq_engines.income_tax import compute_income_tax
from cpq_engines.position_cost import recompute_position, recompute_positions
from cpq_engines.pricing import compute_hourly_cost, compute_sale_price, implied_margin_pct
from cpq_engines.quote_summary import build_quote_cost_summary
from cpq_engines.recalculation import (
    COST_BEARING_FIELDS,
    PositionEvent,
    changed_cost_fields,
    check_rule_version,
    position_input_key,
    should_fill_sale_price,
    should_recompute_position,
    should_refresh_quote,
)

__all__ = [
    "CATEGORIES",
    "CATEGORY_BY_KIND",
    "COST_BEARING_FIELDS",
    "CostCategory",
    "CostingContext",
    "PositionEvent",
    "build_quote_cost_summary",
    "changed_cost_fields",
    "check_rule_version",
    "compute_employer_cost",
    "compute_hourly_cost",
    "compute_income_tax",
    "compute_sale_price",
    "implied_margin_pct",
    "merge_catalog_defaults",
    "normalize_unit_price",
    "position_input_key",
    "recompute_position",
    "recompute_positions",
    "should_fill_sale_price",
    "should_recompute_position",
    "should_refresh_quote",
]
