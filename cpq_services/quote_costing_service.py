"""
cpq_services.quote_costing_service -- Quote costing orchestration.

Responsibility:
    The imperative shell around the pure costing engines.  Loads quote
    parameters, positions, ancillary lines, catalog and payroll rules from a
    ``QuoteRecordStore``; runs the engines; writes back position caches,
    the quote header totals and the lazily filled sale price.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  The engines
    never see the store; this service never does arithmetic itself.

Invariants enforced:
    - ``compute_cpq_quote_costs`` never writes.  ``refresh_quote_totals``
      is the only writer of the header totals.
    - New computations always use the latest payroll rule snapshot.  A
      cached result computed with an older snapshot is kept until a
      cost-bearing input changes or recomputation is forced; the drift is
      reported through ``check_rule_version`` (raised only when
      ``strict_rule_version`` is set).
    - Position recomputation fans out over a thread pool and joins before
      anything is persisted or aggregated.
    - The sale price is filled only when unset (<= 0) or when forced.

Failure modes:
    - QuoteNotFoundError: no parameters stored for the quote.
    - PositionNotFoundError: update/delete of an unknown position.
    - RuleVersionNotFoundError: the store holds no payroll rule snapshot.
    - StaleRuleVersionError: strict mode and a cached cost is behind.
    - Anything the employer cost calculator raises (invalid salary input,
      unknown AFP provider or health system) propagates unchanged.
    - InvalidMarginPercentError when filling the sale price.

Audit relevance:
    Every public operation runs inside ``LogContext.bind(quote_id=...)``
    and logs a completion event with the figures it produced.
"""

from __future__ import annotations

import time
from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from cpq_engines.pricing import compute_sale_price
from cpq_engines.position_cost import recompute_position, recompute_positions
from cpq_engines.quote_summary import build_quote_cost_summary
from cpq_engines.recalculation import (
    PositionEvent,
    changed_cost_fields,
    check_rule_version,
    should_fill_sale_price,
    should_refresh_quote,
)
from cpq_kernel.domain.clock import Clock, SystemClock
from cpq_kernel.domain.payroll_rules import PayrollRuleSnapshot
from cpq_kernel.domain.quote import (
    CostCategoryKind,
    CpqQuoteCostSummary,
    Position,
    QuoteParameters,
)
from cpq_kernel.exceptions import (
    PositionNotFoundError,
    QuoteNotFoundError,
    RuleVersionNotFoundError,
)
from cpq_kernel.logging_config import LogContext, get_logger
from cpq_services.record_store import QuoteRecordStore

logger = get_logger("services.quote_costing")


class QuoteCostingService:
    """
    Costs quotes held in a record store.

    Contract:
        Receives the store and a Clock via constructor injection.  The
        clock is read once per operation and the same timestamp is stamped
        on every result that operation computes.
    Guarantees:
        - ``create_position`` / ``update_position`` return the stored
          position with an up-to-date cached employer cost.
        - Header totals are refreshed after every position event that
          can move them.
    Non-goals:
        - No transaction management; a SQL-backed store only flushes.
        - No locking; concurrent edits to one position are last-write-wins.
    """

    def __init__(
        self,
        store: QuoteRecordStore,
        clock: Clock | None = None,
        max_workers: int | None = None,
        strict_rule_version: bool = False,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._max_workers = max_workers
        self._strict_rule_version = strict_rule_version

    # -- lookups ------------------------------------------------------------

    def _parameters(self, quote_id: UUID) -> QuoteParameters:
        parameters = self._store.find_quote_parameters(quote_id)
        if parameters is None:
            raise QuoteNotFoundError(str(quote_id))
        return parameters

    def _latest_rules(self) -> PayrollRuleSnapshot:
        rules = self._store.find_latest_payroll_rule_snapshot()
        if rules is None:
            raise RuleVersionNotFoundError("latest")
        return rules

    def _position(self, position_id: UUID) -> Position:
        position = self._store.find_position(position_id)
        if position is None:
            raise PositionNotFoundError(str(position_id))
        return position

    # -- quote totals -------------------------------------------------------

    def compute_cpq_quote_costs(self, quote_id: UUID) -> CpqQuoteCostSummary:
        """
        Fresh cost summary of a quote.  Reads only.

        Raises:
            QuoteNotFoundError: unknown quote.
            InvalidPositionError: a position was never costed.
            StaleRuleVersionError: strict mode and a position is behind.
        """
        with LogContext.bind(quote_id=str(quote_id)):
            parameters = self._parameters(quote_id)
            positions = self._store.find_positions_by_quote(quote_id)

            latest = self._store.find_latest_payroll_rule_snapshot()
            if latest is not None:
                for position in positions:
                    check_rule_version(
                        position.employer_cost,
                        latest.version_id,
                        strict=self._strict_rule_version,
                    )

            lines = {
                kind: self._store.find_ancillary_lines(quote_id, kind)
                for kind in CostCategoryKind
            }
            return build_quote_cost_summary(
                parameters,
                positions,
                lines,
                self._store.find_catalog_items(),
            )

    def refresh_quote_totals(self, quote_id: UUID) -> CpqQuoteCostSummary:
        """Recompute the summary and write it onto the quote header."""
        with LogContext.bind(quote_id=str(quote_id)):
            summary = self.compute_cpq_quote_costs(quote_id)
            self._store.persist_quote_summary(quote_id, summary)
            logger.info("quote_totals_refreshed", extra={
                "total_positions": summary.total_positions,
                "total_guards": summary.total_guards,
                "monthly_total": str(summary.monthly_total),
            })
            return summary

    def ensure_sale_price(self, quote_id: UUID, force: bool = False) -> Decimal:
        """
        The quote's monthly sale price, solved and stored when unset or forced.

        Raises:
            InvalidMarginPercentError: stored margin outside (0, 100).
        """
        with LogContext.bind(quote_id=str(quote_id)):
            parameters = self._parameters(quote_id)
            if not should_fill_sale_price(parameters, force):
                return parameters.sale_price_monthly

            summary = self.compute_cpq_quote_costs(quote_id)
            sale_price = compute_sale_price(
                summary.costs_base,
                parameters.margin_pct,
                summary.monthly_financial,
                summary.monthly_policy,
            )
            self._store.persist_sale_price(quote_id, sale_price)
            logger.info("sale_price_filled", extra={
                "costs_base": str(summary.costs_base),
                "margin_pct": str(parameters.margin_pct),
                "sale_price_monthly": str(sale_price),
                "forced": force,
            })
            return sale_price

    # -- position lifecycle -------------------------------------------------

    def create_position(self, position: Position) -> Position:
        """Cost, store and total a new position."""
        with LogContext.bind(quote_id=str(position.quote_id), position_id=str(position.id)):
            self._parameters(position.quote_id)
            costed = recompute_position(
                position,
                self._latest_rules(),
                force_recalculate=True,
                computed_at=self._clock.now(),
            )
            self._store.persist_position(costed)
            if should_refresh_quote(PositionEvent.CREATED, None, costed):
                self.refresh_quote_totals(costed.quote_id)
            logger.info("position_created", extra={
                "monthly_position_cost_clp": str(costed.monthly_position_cost_clp),
            })
            return costed

    def update_position(self, position: Position, force_recalculate: bool = False) -> Position:
        """
        Store an edited position.

        The employer cost is recomputed only when a cost-bearing field
        changed or ``force_recalculate`` is set; otherwise the stored
        result is carried over verbatim.

        Raises:
            PositionNotFoundError: no stored position has ``position.id``.
        """
        with LogContext.bind(quote_id=str(position.quote_id), position_id=str(position.id)):
            previous = self._position(position.id)
            if position.employer_cost is None:
                position = replace(position, employer_cost=previous.employer_cost)

            changed = changed_cost_fields(previous, position)
            costed = recompute_position(
                position,
                self._latest_rules(),
                force_recalculate=force_recalculate,
                computed_at=self._clock.now(),
            )
            self._store.persist_position(costed)

            refreshed = should_refresh_quote(PositionEvent.UPDATED, previous, costed)
            if refreshed:
                self.refresh_quote_totals(costed.quote_id)
            logger.info("position_updated", extra={
                "changed_cost_fields": list(changed),
                "recomputed": costed is not position,
                "quote_refreshed": refreshed,
            })
            return costed

    def delete_position(self, position_id: UUID) -> CpqQuoteCostSummary:
        """Remove a position and return the refreshed quote summary."""
        previous = self._position(position_id)
        with LogContext.bind(quote_id=str(previous.quote_id), position_id=str(position_id)):
            self._store.delete_position(position_id)
            logger.info("position_deleted")
            return self.refresh_quote_totals(previous.quote_id)

    def recompute_quote_positions(
        self, quote_id: UUID, force_recalculate: bool = True
    ) -> CpqQuoteCostSummary:
        """
        Recompute every position of a quote concurrently, then refresh totals.

        Nothing is persisted unless every position succeeds.
        """
        with LogContext.bind(quote_id=str(quote_id)):
            self._parameters(quote_id)
            positions = self._store.find_positions_by_quote(quote_id)
            start = time.monotonic()
            costed = recompute_positions(
                positions,
                self._latest_rules(),
                force_recalculate=force_recalculate,
                computed_at=self._clock.now(),
                max_workers=self._max_workers,
            )
            for position in costed:
                self._store.persist_position(position)
            logger.info("quote_positions_recomputed", extra={
                "position_count": len(costed),
                "forced": force_recalculate,
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            })
            return self.refresh_quote_totals(quote_id)
