"""
cpq_services.sql_store -- SQLAlchemy-backed QuoteRecordStore.

Responsibility:
    Load and persist quotes, positions, ancillary lines, catalog items and
    payroll rule versions through the ORM models of ``cpq_services.orm``.

Architecture position:
    Services -- persistence adapter.  Receives a Session via constructor
    injection; never creates one.

Invariants enforced:
    - Flush only.  The caller owns the transaction and decides when to
      commit (``cpq_kernel.db.engine.session_scope``).
    - Reads return domain objects, never ORM instances.
    - The latest payroll rule snapshot is the published version with the
      highest (version, effective_from).

Failure modes:
    - QuoteNotFoundError from ``persist_quote_summary`` and
      ``persist_sale_price`` when the quote row does not exist.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from cpq_config.lifecycle import ConfigStatus
from cpq_kernel.domain.payroll_rules import PayrollRuleSnapshot
from cpq_kernel.domain.quote import (
    AncillaryCostLine,
    CatalogItem,
    CostCategoryKind,
    CpqQuoteCostSummary,
    Position,
    QuoteParameters,
)
from cpq_kernel.exceptions import QuoteNotFoundError
from cpq_kernel.logging_config import get_logger
from cpq_services.orm import (
    AncillaryLineModel,
    CatalogItemModel,
    PayrollRuleVersionModel,
    PositionModel,
    QuoteModel,
)
from cpq_services.record_store import QuoteHeader

logger = get_logger("services.sql_store")


class SqlRecordStore:
    """
    QuoteRecordStore over a SQLAlchemy Session.

    Contract:
        Every write is followed by ``session.flush()``.  Nothing here
        commits or rolls back.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # -- seeding ------------------------------------------------------------

    def add_quote(self, parameters: QuoteParameters, code: str | None = None) -> None:
        self._session.add(QuoteModel.from_dto(parameters, code=code))
        self._session.flush()

    def add_ancillary_line(self, quote_id: UUID, line: AncillaryCostLine) -> None:
        self._session.add(AncillaryLineModel.from_dto(quote_id, line))
        self._session.flush()

    def add_catalog_item(self, item: CatalogItem) -> None:
        self._session.add(CatalogItemModel.from_dto(item))
        self._session.flush()

    def add_rule_set(self, entry) -> None:
        """Store a ``cpq_config.loader.RuleSetEntry``."""
        self._session.add(PayrollRuleVersionModel.from_entry(entry))
        self._session.flush()

    # -- reads --------------------------------------------------------------

    def _quote(self, quote_id: UUID) -> QuoteModel | None:
        return self._session.get(QuoteModel, quote_id)

    def find_quote_parameters(self, quote_id: UUID) -> QuoteParameters | None:
        model = self._quote(quote_id)
        return model.to_dto() if model is not None else None

    def find_quote_header(self, quote_id: UUID) -> QuoteHeader | None:
        model = self._quote(quote_id)
        if model is None:
            return None
        return QuoteHeader(
            quote_id=model.id,
            total_positions=model.total_positions,
            total_guards=model.total_guards,
            monthly_cost=model.monthly_cost,
            sale_price_monthly=model.sale_price_monthly,
        )

    def find_positions_by_quote(self, quote_id: UUID) -> list[Position]:
        rows = self._session.execute(
            select(PositionModel)
            .where(PositionModel.quote_id == quote_id)
            .order_by(PositionModel.created_at, PositionModel.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def find_position(self, position_id: UUID) -> Position | None:
        model = self._session.get(PositionModel, position_id)
        return model.to_dto() if model is not None else None

    def find_ancillary_lines(
        self, quote_id: UUID, category: CostCategoryKind
    ) -> list[AncillaryCostLine]:
        rows = self._session.execute(
            select(AncillaryLineModel)
            .where(
                AncillaryLineModel.quote_id == quote_id,
                AncillaryLineModel.category == CostCategoryKind(category).value,
            )
            .order_by(AncillaryLineModel.created_at, AncillaryLineModel.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def find_catalog_item(self, item_id: UUID) -> CatalogItem | None:
        model = self._session.get(CatalogItemModel, item_id)
        return model.to_dto() if model is not None else None

    def find_catalog_items(self) -> list[CatalogItem]:
        rows = self._session.execute(
            select(CatalogItemModel).order_by(CatalogItemModel.name)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def find_latest_payroll_rule_snapshot(self) -> PayrollRuleSnapshot | None:
        row = self._session.execute(
            select(PayrollRuleVersionModel)
            .where(PayrollRuleVersionModel.status == ConfigStatus.PUBLISHED.value)
            .order_by(
                PayrollRuleVersionModel.version.desc(),
                PayrollRuleVersionModel.effective_from.desc(),
            )
            .limit(1)
        ).scalars().first()
        return row.to_dto() if row is not None else None

    def find_payroll_rule_snapshot(self, version_id: str) -> PayrollRuleSnapshot | None:
        row = self._session.execute(
            select(PayrollRuleVersionModel).where(
                PayrollRuleVersionModel.version_id == version_id
            )
        ).scalars().first()
        return row.to_dto() if row is not None else None

    # -- writes -------------------------------------------------------------

    def persist_position(self, position: Position) -> None:
        model = self._session.get(PositionModel, position.id)
        if model is None:
            self._session.add(PositionModel.from_dto(position))
        else:
            model.apply_dto(position)
        self._session.flush()

    def delete_position(self, position_id: UUID) -> None:
        model = self._session.get(PositionModel, position_id)
        if model is not None:
            self._session.delete(model)
            self._session.flush()

    def persist_quote_summary(self, quote_id: UUID, summary: CpqQuoteCostSummary) -> None:
        model = self._quote(quote_id)
        if model is None:
            raise QuoteNotFoundError(str(quote_id))
        model.total_positions = summary.total_positions
        model.total_guards = summary.total_guards
        model.monthly_cost = summary.monthly_total
        model.summary = {
            **{name: str(value) for name, value in summary.category_totals().items()},
            "monthly_positions": str(summary.monthly_positions),
            "monthly_extras": str(summary.monthly_extras),
            "monthly_total": str(summary.monthly_total),
            "costs_base": str(summary.costs_base),
            "degraded_categories": list(summary.degraded_categories),
        }
        self._session.flush()
        logger.debug("quote_header_persisted", extra={
            "quote_id": str(quote_id),
            "monthly_cost": str(summary.monthly_total),
        })

    def persist_sale_price(self, quote_id: UUID, sale_price_monthly: Decimal) -> None:
        model = self._quote(quote_id)
        if model is None:
            raise QuoteNotFoundError(str(quote_id))
        model.sale_price_monthly = sale_price_monthly
        self._session.flush()
