"""
Position Cost Aggregator.

Turns a staffing position into a monthly cost: the per-guard employer cost
(cached on the position together with the rule version and inputs that
produced it) times guards times posts.

``recompute_position`` reuses the cached employer cost unless a
cost-bearing field changed or the caller forces it, so editing a
position's schedule never drifts a historical quote.  A failed
computation raises before a new Position is built; the caller's copy is
untouched.

``recompute_positions`` fans the per-position work out over a thread pool
and joins before returning, so aggregation only ever sees a complete set.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime
from typing import Sequence

from cpq_engines.employer_cost import compute_employer_cost
from cpq_engines.recalculation import position_input_key
from cpq_kernel.domain.cached import Cached, is_stale
from cpq_kernel.domain.payroll_rules import PayrollRuleSnapshot
from cpq_kernel.domain.quote import Position
from cpq_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.position_cost")


def recompute_position(
    position: Position,
    rules: PayrollRuleSnapshot,
    force_recalculate: bool = False,
    computed_at: datetime | None = None,
) -> Position:
    """
    Return ``position`` with an up-to-date cached employer cost.

    Args:
        position: Position as edited by the caller.
        rules: Payroll rule snapshot to compute with.
        force_recalculate: Recompute even when no cost-bearing input changed.
        computed_at: Timestamp for a fresh result.  Required when a
            recompute happens.

    Returns:
        The same object on a cache hit, otherwise a new Position.

    Raises:
        Anything ``compute_employer_cost`` raises.
        ValueError: a recompute is needed but ``computed_at`` is None.
    """
    key = position_input_key(position)
    if not is_stale(position.employer_cost, key, force_recalculate):
        logger.debug("position_cost_cache_hit", extra={
            "position_id": str(position.id),
            "computed_at_version": position.employer_cost.computed_at_version,
        })
        return position

    if computed_at is None:
        raise ValueError("computed_at is required to recompute a position")

    result = compute_employer_cost(position.salary, rules, computed_at)
    updated = replace(
        position,
        employer_cost=Cached(
            value=result,
            computed_at_version=rules.version_id,
            input_key=key,
            computed_at=computed_at,
        ),
    )
    logger.info("position_cost_recomputed", extra={
        "position_id": str(position.id),
        "payroll_rule_version_id": rules.version_id,
        "num_guards": updated.num_guards,
        "num_puestos": updated.num_puestos,
        "monthly_position_cost_clp": str(updated.monthly_position_cost_clp),
        "forced": force_recalculate,
    })
    return updated


def recompute_positions(
    positions: Sequence[Position],
    rules: PayrollRuleSnapshot,
    force_recalculate: bool = False,
    computed_at: datetime | None = None,
    max_workers: int | None = None,
) -> list[Position]:
    """
    Recompute many positions concurrently; order is preserved.

    Every worker must finish before this returns.  The first failure is
    re-raised after the pool has drained.
    """
    if not positions:
        return []

    context = LogContext.get_all()

    def _run(position: Position) -> Position:
        with LogContext.bind(**{**context, "position_id": str(position.id)}):
            return recompute_position(position, rules, force_recalculate, computed_at)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(_run, p) for p in positions]
    return [f.result() for f in futures]
