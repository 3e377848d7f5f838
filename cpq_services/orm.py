"""
Quote Costing ORM Persistence Models (``cpq_services.orm``).

Responsibility:
    SQLAlchemy ORM models that persist the frozen dataclasses of
    ``cpq_kernel.domain.quote`` and ``cpq_kernel.domain.payroll_rules``.
    Each ORM class mirrors a domain object and provides ``to_dto()`` /
    ``from_dto()`` conversion.

Architecture position:
    **Services layer** -- persistence companions used only by
    ``cpq_services.sql_store``.  Inherits from ``TrackedBase``, which
    provides id (UUID PK), created_at, updated_at, created_by_id and
    updated_by_id.

Invariants enforced:
    - All CLP amounts and rates use Decimal (Numeric(38,9)) -- NEVER float.
    - Enum fields are stored as String(50) holding the enum ``.value``.
    - JSON payloads store Decimals as strings so no amount passes
      through a binary float.
    - The cached employer cost is stored whole (breakdown, deductions,
      rule version, input key) so a reloaded position reuses it verbatim.
"""

from __future__ import annotations

import dataclasses
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from cpq_kernel.db.base import TrackedBase
from cpq_kernel.domain.cached import Cached
from cpq_kernel.domain.quote import (
    LINE_TYPES,
    AncillaryCostLine,
    CatalogItem,
    CostCategoryKind,
    Position,
    QuoteParameters,
)
from cpq_kernel.domain.salary import (
    EmployerCostBreakdown,
    EmployerCostResult,
    SalaryInput,
    WorkerDeductions,
)


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _decimal_dict(obj: Any) -> dict[str, str]:
    return {f.name: str(getattr(obj, f.name)) for f in dataclasses.fields(obj)}


# ---------------------------------------------------------------------------
# QuoteModel
# ---------------------------------------------------------------------------

class QuoteModel(TrackedBase):
    """
    ORM model for a quote header and its ``QuoteParameters``.

    Guarantees:
        - ``total_positions``, ``total_guards`` and ``monthly_cost`` are a
          cache of the last ``CpqQuoteCostSummary``; never a source of truth.
        - ``summary`` holds the last summary's category totals as strings.
    """

    __tablename__ = "cpq_quotes"

    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="draft", nullable=False)

    monthly_hours_standard: Mapped[Decimal] = mapped_column(nullable=False)
    avg_stay_months: Mapped[Decimal] = mapped_column(nullable=False)
    uniform_changes_per_year: Mapped[Decimal] = mapped_column(nullable=False)
    financial_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    financial_rate_pct: Mapped[Decimal] = mapped_column(nullable=False)
    policy_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    policy_rate_pct: Mapped[Decimal] = mapped_column(nullable=False)
    policy_admin_rate_pct: Mapped[Decimal] = mapped_column(nullable=False)
    policy_contract_months: Mapped[Decimal] = mapped_column(nullable=False)
    policy_contract_pct: Mapped[Decimal] = mapped_column(nullable=False)
    margin_pct: Mapped[Decimal] = mapped_column(nullable=False)
    sale_price_monthly: Mapped[Decimal] = mapped_column(nullable=False)
    holiday_annual_count: Mapped[Decimal | None] = mapped_column(nullable=True)
    holiday_commercial_buffer_pct: Mapped[Decimal] = mapped_column(nullable=False)

    total_positions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_guards: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    monthly_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_cpq_quote_status", "status"),
    )

    def to_dto(self) -> QuoteParameters:
        return QuoteParameters(
            quote_id=self.id,
            monthly_hours_standard=self.monthly_hours_standard,
            avg_stay_months=self.avg_stay_months,
            uniform_changes_per_year=self.uniform_changes_per_year,
            financial_enabled=self.financial_enabled,
            financial_rate_pct=self.financial_rate_pct,
            policy_enabled=self.policy_enabled,
            policy_rate_pct=self.policy_rate_pct,
            policy_admin_rate_pct=self.policy_admin_rate_pct,
            policy_contract_months=self.policy_contract_months,
            policy_contract_pct=self.policy_contract_pct,
            margin_pct=self.margin_pct,
            sale_price_monthly=self.sale_price_monthly,
            holiday_annual_count=self.holiday_annual_count,
            holiday_commercial_buffer_pct=self.holiday_commercial_buffer_pct,
        )

    @classmethod
    def from_dto(
        cls, dto: QuoteParameters, code: str | None = None, created_by_id: UUID | None = None
    ) -> QuoteModel:
        values = {
            f.name: getattr(dto, f.name)
            for f in dataclasses.fields(dto)
            if f.name != "quote_id"
        }
        return cls(id=dto.quote_id, code=code, created_by_id=created_by_id, **values)

    def __repr__(self) -> str:
        return f"<QuoteModel {self.code or self.id}: {self.total_guards} guards, {self.monthly_cost}>"


# ---------------------------------------------------------------------------
# PositionModel
# ---------------------------------------------------------------------------

class PositionModel(TrackedBase):
    """
    ORM model for ``Position`` with its cached employer cost.

    Guarantees:
        - ``salary`` is ``SalaryInput.to_dict()``.
        - The cost columns are all NULL or all set.
    """

    __tablename__ = "cpq_positions"

    quote_id: Mapped[UUID] = mapped_column(ForeignKey("cpq_quotes.id"), nullable=False)
    num_guards: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    num_puestos: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    puesto_trabajo_id: Mapped[UUID | None] = mapped_column(nullable=True)
    cargo_id: Mapped[UUID | None] = mapped_column(nullable=True)
    rol_id: Mapped[UUID | None] = mapped_column(nullable=True)
    custom_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    weekdays: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    salary: Mapped[dict] = mapped_column(JSON, nullable=False)

    monthly_employer_cost_clp: Mapped[Decimal | None] = mapped_column(nullable=True)
    worker_net_salary_estimate_clp: Mapped[Decimal | None] = mapped_column(nullable=True)
    cost_to_net_ratio: Mapped[Decimal | None] = mapped_column(nullable=True)
    payroll_rule_version_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cost_computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cost_input_key: Mapped[list | None] = mapped_column(JSON, nullable=True)
    cost_breakdown: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    cost_deductions: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_cpq_position_quote", "quote_id"),
    )

    def _cached_cost(self) -> Cached[EmployerCostResult] | None:
        if self.monthly_employer_cost_clp is None:
            return None
        result = EmployerCostResult(
            monthly_employer_cost_clp=self.monthly_employer_cost_clp,
            worker_net_salary_estimate_clp=self.worker_net_salary_estimate_clp,
            payroll_rule_version_id=self.payroll_rule_version_id,
            computed_at=self.cost_computed_at,
            breakdown=EmployerCostBreakdown(
                **{k: Decimal(v) for k, v in self.cost_breakdown.items()}
            ),
            worker_deductions=WorkerDeductions(
                **{k: Decimal(v) for k, v in self.cost_deductions.items()}
            ),
            cost_to_net_ratio=self.cost_to_net_ratio,
        )
        return Cached(
            value=result,
            computed_at_version=self.payroll_rule_version_id,
            input_key=tuple(self.cost_input_key),
            computed_at=self.cost_computed_at,
        )

    def to_dto(self) -> Position:
        return Position(
            id=self.id,
            quote_id=self.quote_id,
            salary=SalaryInput.from_dict(self.salary),
            num_guards=self.num_guards,
            num_puestos=self.num_puestos,
            puesto_trabajo_id=self.puesto_trabajo_id,
            cargo_id=self.cargo_id,
            rol_id=self.rol_id,
            custom_name=self.custom_name,
            description=self.description,
            weekdays=tuple(self.weekdays or ()),
            start_time=self.start_time,
            end_time=self.end_time,
            employer_cost=self._cached_cost(),
        )

    def apply_dto(self, dto: Position) -> None:
        """Copy every field of ``dto`` onto this row."""
        self.quote_id = dto.quote_id
        self.num_guards = dto.num_guards
        self.num_puestos = dto.num_puestos
        self.puesto_trabajo_id = dto.puesto_trabajo_id
        self.cargo_id = dto.cargo_id
        self.rol_id = dto.rol_id
        self.custom_name = dto.custom_name
        self.description = dto.description
        self.weekdays = list(dto.weekdays)
        self.start_time = dto.start_time
        self.end_time = dto.end_time
        self.salary = dto.salary.to_dict()

        cached = dto.employer_cost
        if cached is None:
            self.monthly_employer_cost_clp = None
            self.worker_net_salary_estimate_clp = None
            self.cost_to_net_ratio = None
            self.payroll_rule_version_id = None
            self.cost_computed_at = None
            self.cost_input_key = None
            self.cost_breakdown = None
            self.cost_deductions = None
            return
        result = cached.value
        self.monthly_employer_cost_clp = result.monthly_employer_cost_clp
        self.worker_net_salary_estimate_clp = result.worker_net_salary_estimate_clp
        self.cost_to_net_ratio = result.cost_to_net_ratio
        self.payroll_rule_version_id = cached.computed_at_version
        self.cost_computed_at = cached.computed_at
        self.cost_input_key = list(cached.input_key)
        self.cost_breakdown = _decimal_dict(result.breakdown)
        self.cost_deductions = _decimal_dict(result.worker_deductions)

    @classmethod
    def from_dto(cls, dto: Position, created_by_id: UUID | None = None) -> PositionModel:
        model = cls(id=dto.id, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def __repr__(self) -> str:
        return f"<PositionModel {self.id}: {self.num_guards}x{self.num_puestos}>"


# ---------------------------------------------------------------------------
# AncillaryLineModel
# ---------------------------------------------------------------------------

_COMMON_LINE_FIELDS = frozenset(
    f.name for f in dataclasses.fields(AncillaryCostLine)
)


class AncillaryLineModel(TrackedBase):
    """
    ORM model for every ancillary line kind.

    Guarantees:
        - ``category`` selects the line class from ``LINE_TYPES``.
        - ``params`` holds the kind-specific fields, Decimals as strings.
    """

    __tablename__ = "cpq_ancillary_lines"

    quote_id: Mapped[UUID] = mapped_column(ForeignKey("cpq_quotes.id"), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    catalog_item_id: Mapped[UUID | None] = mapped_column(nullable=True)
    unit_price_override: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    visibility: Mapped[str] = mapped_column(String(50), nullable=False)
    calc_mode: Mapped[str] = mapped_column(String(50), nullable=False)
    params: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    __table_args__ = (
        Index("idx_cpq_line_quote_category", "quote_id", "category"),
    )

    def to_dto(self) -> AncillaryCostLine:
        line_type = LINE_TYPES[CostCategoryKind(self.category)]
        decimal_fields = {
            f.name for f in dataclasses.fields(line_type) if "Decimal" in str(f.type)
        }
        params = {
            name: Decimal(value) if name in decimal_fields and value is not None else value
            for name, value in (self.params or {}).items()
        }
        return line_type(
            id=self.id,
            catalog_item_id=self.catalog_item_id,
            unit_price_override=self.unit_price_override,
            is_enabled=self.is_enabled,
            visibility=self.visibility,
            calc_mode=self.calc_mode,
            **params,
        )

    @classmethod
    def from_dto(
        cls, quote_id: UUID, dto: AncillaryCostLine, created_by_id: UUID | None = None
    ) -> AncillaryLineModel:
        params = {
            f.name: _json_value(getattr(dto, f.name))
            for f in dataclasses.fields(dto)
            if f.name not in _COMMON_LINE_FIELDS
        }
        return cls(
            id=dto.id,
            quote_id=quote_id,
            category=dto.category.value,
            catalog_item_id=dto.catalog_item_id,
            unit_price_override=dto.unit_price_override,
            is_enabled=dto.is_enabled,
            visibility=dto.visibility.value,
            calc_mode=dto.calc_mode.value,
            params=params,
            created_by_id=created_by_id,
        )


# ---------------------------------------------------------------------------
# CatalogItemModel
# ---------------------------------------------------------------------------

class CatalogItemModel(TrackedBase):
    """ORM model for ``CatalogItem``."""

    __tablename__ = "cpq_catalog_items"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    item_type: Mapped[str] = mapped_column(String(50), nullable=False)
    base_price: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(50), default="mes", nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    default_visibility: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_cpq_catalog_type_active", "item_type", "active"),
    )

    def to_dto(self) -> CatalogItem:
        return CatalogItem(
            id=self.id,
            name=self.name,
            item_type=self.item_type,
            base_price=self.base_price,
            unit=self.unit,
            is_default=self.is_default,
            active=self.active,
            default_visibility=self.default_visibility,
        )

    @classmethod
    def from_dto(cls, dto: CatalogItem, created_by_id: UUID | None = None) -> CatalogItemModel:
        return cls(
            id=dto.id,
            name=dto.name,
            item_type=dto.item_type.value,
            base_price=dto.base_price,
            unit=dto.unit,
            is_default=dto.is_default,
            active=dto.active,
            default_visibility=dto.default_visibility.value,
            created_by_id=created_by_id,
        )


# ---------------------------------------------------------------------------
# PayrollRuleVersionModel
# ---------------------------------------------------------------------------

class PayrollRuleVersionModel(TrackedBase):
    """
    ORM model for a published payroll rule set.

    Contract:
        ``document`` is the rule set exactly as loaded from YAML; it is
        re-parsed with ``cpq_config.loader.parse_payroll_rules`` on read,
        so the stored ``content_hash`` and the snapshot's always agree.
    """

    __tablename__ = "cpq_payroll_rule_versions"

    version_id: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    document: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("version_id", name="uq_cpq_payroll_rule_version_id"),
        Index("idx_cpq_payroll_rule_effective", "status", "effective_from"),
    )

    def to_dto(self):
        from cpq_config.loader import parse_payroll_rules

        return parse_payroll_rules(self.document)

    @classmethod
    def from_entry(cls, entry, created_by_id: UUID | None = None) -> PayrollRuleVersionModel:
        """Build from a ``cpq_config.loader.RuleSetEntry``."""
        return cls(
            version_id=entry.snapshot.version_id,
            status=entry.status.value,
            version=entry.version,
            effective_from=entry.snapshot.effective_from,
            content_hash=entry.snapshot.content_hash,
            document=_json_document(entry.document),
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PayrollRuleVersionModel {self.version_id} v{self.version} ({self.status})>"


def _json_document(data: Any) -> Any:
    # YAML may yield dates; JSON columns only take JSON scalars.
    if isinstance(data, dict):
        return {str(k): _json_document(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_json_document(v) for v in data]
    if isinstance(data, date):
        return data.isoformat()
    return data
