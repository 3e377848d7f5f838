"""
Recalculation Trigger Policy -- When a cached figure may be reused.

Responsibility:
    Decide, as pure predicates, whether:
      * a position's employer cost must be recomputed (cost-bearing input
        changed, or the caller forces it);
      * a position event requires the quote header totals to be refreshed;
      * the quote's cached sale price must be (re)filled;
      * a pinned payroll rule version is behind the latest one.

Architecture position:
    Engines -- pure policy, no I/O.  Consumed by the position cost
    aggregator and by ``cpq_services.quote_costing_service``.

Invariants enforced:
    - Only COST_BEARING_FIELDS trigger a recompute: every salary input,
      the costing assumptions, cargo and role.  Schedule,
      description or name edits keep the cached result verbatim.
    - Created and deleted positions always refresh the quote.
    - A stale rule version is advisory unless ``strict`` is requested.

Failure modes:
    - StaleRuleVersionError from ``check_rule_version(strict=True)``.
"""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal
from enum import Enum

from cpq_kernel.domain.cached import Cached, is_stale, is_version_behind
from cpq_kernel.domain.quote import Position, QuoteParameters
from cpq_kernel.domain.salary import SalaryAssumptions
from cpq_kernel.domain.values import ZERO
from cpq_kernel.exceptions import StaleRuleVersionError
from cpq_kernel.logging_config import get_logger

logger = get_logger("engines.recalculation")

COST_BEARING_FIELDS: tuple[str, ...] = (
    "base_salary_clp",
    "afp_provider",
    "health_system",
    "health_plan_pct",
    "contract_type",
    "work_injury_risk",
    "overtime_hours_50",
    "commissions_clp",
    "taxable_bonuses_clp",
    "transport_allowance_clp",
    "meal_allowance_clp",
    "num_dependents",
    "has_maternal_allowance",
    "assumptions",
    "cargo_id",
    "rol_id",
)

_POSITION_FIELDS = frozenset({"cargo_id", "rol_id"})


class PositionEvent(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


def _key_part(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        # 600000 and 600000.00 are the same salary
        return str(value.normalize())
    if isinstance(value, SalaryAssumptions):
        return ";".join(
            f"{f.name}={_key_part(getattr(value, f.name))}" for f in fields(value)
        )
    return str(value)


def _field_value(position: Position, name: str):
    if name in _POSITION_FIELDS:
        return getattr(position, name)
    return getattr(position.salary, name)


def position_input_key(position: Position) -> tuple:
    """Every input a cached employer cost depends on, in a fixed order."""
    return tuple(_key_part(_field_value(position, name)) for name in COST_BEARING_FIELDS)


def changed_cost_fields(previous: Position | None, current: Position) -> tuple[str, ...]:
    """Names of cost-bearing fields that differ between two versions."""
    if previous is None:
        return COST_BEARING_FIELDS
    old_key = position_input_key(previous)
    new_key = position_input_key(current)
    return tuple(
        name
        for name, old, new in zip(COST_BEARING_FIELDS, old_key, new_key)
        if old != new
    )


def should_recompute_position(position: Position, force: bool = False) -> bool:
    return is_stale(position.employer_cost, position_input_key(position), force)


def should_refresh_quote(
    event: PositionEvent,
    previous: Position | None = None,
    current: Position | None = None,
) -> bool:
    """True when the quote header totals must be rebuilt after ``event``."""
    event = PositionEvent(event)
    if event in (PositionEvent.CREATED, PositionEvent.DELETED):
        return True
    if previous is None or current is None:
        return True
    return (
        previous.num_guards != current.num_guards
        or previous.num_puestos != current.num_puestos
        or previous.monthly_position_cost_clp != current.monthly_position_cost_clp
    )


def should_fill_sale_price(parameters: QuoteParameters, force: bool = False) -> bool:
    """Lazy fill: only when the cached price is unset (<= 0) or forced."""
    return force or parameters.sale_price_monthly <= ZERO


def check_rule_version(
    cached: Cached | None,
    latest_version_id: str,
    strict: bool = False,
) -> bool:
    """
    True when ``cached`` was computed with ``latest_version_id``.

    A mismatch is logged as ``stale_rule_version``; with ``strict`` it
    raises StaleRuleVersionError instead.
    """
    if not is_version_behind(cached, latest_version_id):
        return True
    if strict:
        raise StaleRuleVersionError(cached.computed_at_version, latest_version_id)
    logger.warning("stale_rule_version", extra={
        "computed_at_version": cached.computed_at_version,
        "latest_version_id": latest_version_id,
    })
    return False
