"""
Record store collaborator for quote costing.

Responsibility:
    ``QuoteRecordStore`` is the keyed-record interface the costing service
    reads from and writes to.  ``InMemoryRecordStore`` is the reference
    implementation used by tests and by callers that cost quotes without
    a database.  ``cpq_services.sql_store`` provides the SQLAlchemy
    implementation.

Architecture position:
    Services -- imperative shell.  Engines never see a store.

Invariants enforced:
    - Last write wins per key.  The store does not implement optimistic
      locking; callers needing it must serialize writes per position id.
    - Everything handed out is an immutable domain object.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from cpq_kernel.domain.payroll_rules import PayrollRuleSnapshot
from cpq_kernel.domain.quote import (
    AncillaryCostLine,
    CatalogItem,
    CostCategoryKind,
    CpqQuoteCostSummary,
    Position,
    QuoteParameters,
)
from cpq_kernel.domain.values import ZERO


@dataclass(frozen=True)
class QuoteHeader:
    """Cached totals displayed on the quote header."""

    quote_id: UUID
    total_positions: int = 0
    total_guards: int = 0
    monthly_cost: Decimal = ZERO
    sale_price_monthly: Decimal = ZERO


@runtime_checkable
class QuoteRecordStore(Protocol):
    def find_quote_parameters(self, quote_id: UUID) -> QuoteParameters | None: ...

    def find_quote_header(self, quote_id: UUID) -> QuoteHeader | None: ...

    def find_positions_by_quote(self, quote_id: UUID) -> list[Position]: ...

    def find_position(self, position_id: UUID) -> Position | None: ...

    def find_ancillary_lines(
        self, quote_id: UUID, category: CostCategoryKind
    ) -> list[AncillaryCostLine]: ...

    def find_catalog_item(self, item_id: UUID) -> CatalogItem | None: ...

    def find_catalog_items(self) -> list[CatalogItem]: ...

    def find_latest_payroll_rule_snapshot(self) -> PayrollRuleSnapshot | None: ...

    def find_payroll_rule_snapshot(self, version_id: str) -> PayrollRuleSnapshot | None: ...

    def persist_position(self, position: Position) -> None: ...

    def delete_position(self, position_id: UUID) -> None: ...

    def persist_quote_summary(self, quote_id: UUID, summary: CpqQuoteCostSummary) -> None: ...

    def persist_sale_price(self, quote_id: UUID, sale_price_monthly: Decimal) -> None: ...


class InMemoryRecordStore:
    """Dict-backed QuoteRecordStore.  Thread-safe for concurrent reads and writes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._parameters: dict[UUID, QuoteParameters] = {}
        self._headers: dict[UUID, QuoteHeader] = {}
        self._summaries: dict[UUID, CpqQuoteCostSummary] = {}
        self._positions: dict[UUID, Position] = {}
        self._lines: dict[UUID, list[AncillaryCostLine]] = {}
        self._catalog: dict[UUID, CatalogItem] = {}
        self._rules: dict[str, PayrollRuleSnapshot] = {}
        self._latest_rules: str | None = None

    # -- seeding ------------------------------------------------------------

    def add_quote(self, parameters: QuoteParameters) -> None:
        with self._lock:
            self._parameters[parameters.quote_id] = parameters
            self._headers.setdefault(parameters.quote_id, QuoteHeader(parameters.quote_id))
            self._lines.setdefault(parameters.quote_id, [])

    def add_ancillary_line(self, quote_id: UUID, line: AncillaryCostLine) -> None:
        with self._lock:
            self._lines.setdefault(quote_id, []).append(line)

    def add_catalog_item(self, item: CatalogItem) -> None:
        with self._lock:
            self._catalog[item.id] = item

    def add_payroll_rule_snapshot(
        self, snapshot: PayrollRuleSnapshot, latest: bool = True
    ) -> None:
        with self._lock:
            self._rules[snapshot.version_id] = snapshot
            if latest or self._latest_rules is None:
                self._latest_rules = snapshot.version_id

    # -- reads --------------------------------------------------------------

    def find_quote_parameters(self, quote_id: UUID) -> QuoteParameters | None:
        return self._parameters.get(quote_id)

    def find_quote_header(self, quote_id: UUID) -> QuoteHeader | None:
        return self._headers.get(quote_id)

    def find_quote_summary(self, quote_id: UUID) -> CpqQuoteCostSummary | None:
        return self._summaries.get(quote_id)

    def find_positions_by_quote(self, quote_id: UUID) -> list[Position]:
        with self._lock:
            return [p for p in self._positions.values() if p.quote_id == quote_id]

    def find_position(self, position_id: UUID) -> Position | None:
        return self._positions.get(position_id)

    def find_ancillary_lines(
        self, quote_id: UUID, category: CostCategoryKind
    ) -> list[AncillaryCostLine]:
        with self._lock:
            return [
                line
                for line in self._lines.get(quote_id, ())
                if line.category == CostCategoryKind(category)
            ]

    def find_catalog_item(self, item_id: UUID) -> CatalogItem | None:
        return self._catalog.get(item_id)

    def find_catalog_items(self) -> list[CatalogItem]:
        with self._lock:
            return list(self._catalog.values())

    def find_latest_payroll_rule_snapshot(self) -> PayrollRuleSnapshot | None:
        if self._latest_rules is None:
            return None
        return self._rules[self._latest_rules]

    def find_payroll_rule_snapshot(self, version_id: str) -> PayrollRuleSnapshot | None:
        return self._rules.get(version_id)

    # -- writes -------------------------------------------------------------

    def persist_position(self, position: Position) -> None:
        with self._lock:
            self._positions[position.id] = position

    def delete_position(self, position_id: UUID) -> None:
        with self._lock:
            self._positions.pop(position_id, None)

    def persist_quote_summary(self, quote_id: UUID, summary: CpqQuoteCostSummary) -> None:
        with self._lock:
            header = self._headers.get(quote_id) or QuoteHeader(quote_id)
            self._headers[quote_id] = replace(
                header,
                total_positions=summary.total_positions,
                total_guards=summary.total_guards,
                monthly_cost=summary.monthly_total,
            )
            self._summaries[quote_id] = summary

    def persist_sale_price(self, quote_id: UUID, sale_price_monthly: Decimal) -> None:
        with self._lock:
            parameters = self._parameters[quote_id]
            self._parameters[quote_id] = replace(parameters, sale_price_monthly=sale_price_monthly)
            header = self._headers.get(quote_id) or QuoteHeader(quote_id)
            self._headers[quote_id] = replace(header, sale_price_monthly=sale_price_monthly)
