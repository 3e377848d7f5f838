"""
Quote domain value objects.

Responsibility:
    Immutable shapes for everything a commercial quote is costed from:
    staffing positions, the six kinds of ancillary cost lines, catalog
    items, quote-wide parameters, and the resulting cost summary.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.  Engines consume these;
    services load and persist them through the record store.

Invariants enforced:
    - ``Position.num_guards >= 1``.  ``num_puestos`` is floored to 1 on
      construction (a zero-post line is meaningless, not an error).
    - A disabled ancillary line is retained but contributes zero.
    - Every ancillary line's ``calc_mode`` is one its category supports.
    - ``QuoteParameters`` rejects negative rates, counts and prices.
      The margin range is enforced where the sale price is solved.

Failure modes:
    - ValueError on construction with invalid field values.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import time
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID, uuid4

from cpq_kernel.domain.cached import Cached
from cpq_kernel.domain.salary import EmployerCostResult, SalaryInput
from cpq_kernel.domain.values import ZERO, to_decimal


class CostCategoryKind(str, Enum):
    """The closed set of ancillary cost categories."""

    UNIFORM = "uniform"
    EXAM = "exam"
    MEAL = "meal"
    VEHICLE = "vehicle"
    INFRASTRUCTURE = "infrastructure"
    COST_ITEM = "cost_item"


class Visibility(str, Enum):
    INTERNAL = "internal"
    CLIENT_VISIBLE = "client_visible"


class CalcMode(str, Enum):
    """How a line's unit price turns into a monthly figure."""

    PER_GUARD = "per_guard"  # x guards covered by the quote
    PER_MONTH = "per_month"  # x quantity, once a month
    PER_CONSUMPTION = "per_consumption"  # x consumption (meals/day x days)
    PER_UNIT = "per_unit"  # rent + running costs per vehicle / installation


class CatalogItemType(str, Enum):
    UNIFORM = "uniform"
    EXAM = "exam"
    MEAL = "meal"
    PHONE = "phone"
    RADIO = "radio"
    FLASHLIGHT = "flashlight"
    INFRASTRUCTURE = "infrastructure"
    FUEL = "fuel"
    TRANSPORT = "transport"
    SYSTEM = "system"
    FINANCIAL = "financial"
    POLICY = "policy"


# Catalog types priced as a percentage of the quote, never as cost items.
PASS_THROUGH_ITEM_TYPES = frozenset({CatalogItemType.FINANCIAL, CatalogItemType.POLICY})


@dataclass(frozen=True)
class CatalogItem:
    """A priced item in the tenant's CPQ catalog."""

    name: str
    item_type: CatalogItemType
    base_price: Decimal
    unit: str = "mes"
    is_default: bool = False
    active: bool = True
    default_visibility: Visibility = Visibility.INTERNAL
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_price", to_decimal(self.base_price))
        object.__setattr__(self, "item_type", CatalogItemType(self.item_type))
        object.__setattr__(self, "default_visibility", Visibility(self.default_visibility))
        if self.base_price < ZERO:
            raise ValueError("Catalog base price cannot be negative")


# ---------------------------------------------------------------------------
# Ancillary cost lines
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AncillaryCostLine:
    """
    Common shape of every ancillary line.

    ``unit_price_override`` wins over the catalog base price when set.
    """

    category: ClassVar[CostCategoryKind]
    allowed_calc_modes: ClassVar[frozenset[CalcMode]]

    catalog_item_id: UUID | None = None
    unit_price_override: Decimal | None = None
    is_enabled: bool = True
    visibility: Visibility = Visibility.INTERNAL
    calc_mode: CalcMode = CalcMode.PER_MONTH
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if self.unit_price_override is not None:
            override = to_decimal(self.unit_price_override)
            if override < ZERO:
                raise ValueError("unit_price_override cannot be negative")
            object.__setattr__(self, "unit_price_override", override)
        object.__setattr__(self, "visibility", Visibility(self.visibility))
        object.__setattr__(self, "calc_mode", CalcMode(self.calc_mode))
        if self.calc_mode not in self.allowed_calc_modes:
            raise ValueError(
                f"calc_mode {self.calc_mode.value} not supported for "
                f"{self.category.value} lines"
            )
        self._coerce_decimals()

    def _coerce_decimals(self) -> None:
        for name in self._decimal_fields:
            value = to_decimal(getattr(self, name))
            if value < ZERO:
                raise ValueError(f"{name} cannot be negative")
            object.__setattr__(self, name, value)

    _decimal_fields: ClassVar[tuple[str, ...]] = ()

    def disabled(self) -> AncillaryCostLine:
        return replace(self, is_enabled=False)


@dataclass(frozen=True)
class UniformLine(AncillaryCostLine):
    """Uniform kit item, replaced ``changes_per_year`` times for each guard."""

    category: ClassVar[CostCategoryKind] = CostCategoryKind.UNIFORM
    allowed_calc_modes: ClassVar[frozenset[CalcMode]] = frozenset({CalcMode.PER_GUARD})

    calc_mode: CalcMode = CalcMode.PER_GUARD
    guards: int | None = None  # None: total guards of the quote
    changes_per_year: Decimal | None = None  # None: quote parameter

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.changes_per_year is not None:
            changes = to_decimal(self.changes_per_year)
            if changes < ZERO:
                raise ValueError("changes_per_year cannot be negative")
            object.__setattr__(self, "changes_per_year", changes)


@dataclass(frozen=True)
class ExamLine(AncillaryCostLine):
    """Pre-employment exam, repeated on every rotation or uniform change."""

    category: ClassVar[CostCategoryKind] = CostCategoryKind.EXAM
    allowed_calc_modes: ClassVar[frozenset[CalcMode]] = frozenset({CalcMode.PER_GUARD})

    calc_mode: CalcMode = CalcMode.PER_GUARD
    guards: int | None = None


@dataclass(frozen=True)
class MealLine(AncillaryCostLine):
    """Meals served on site; priced by catalog id or by meal name."""

    category: ClassVar[CostCategoryKind] = CostCategoryKind.MEAL
    allowed_calc_modes: ClassVar[frozenset[CalcMode]] = frozenset({CalcMode.PER_CONSUMPTION})
    _decimal_fields: ClassVar[tuple[str, ...]] = ("meals_per_day", "days_of_service")

    calc_mode: CalcMode = CalcMode.PER_CONSUMPTION
    meal_type: str = ""
    meals_per_day: Decimal = Decimal("1")
    days_of_service: Decimal = Decimal("30")


@dataclass(frozen=True)
class VehicleLine(AncillaryCostLine):
    """Patrol vehicle: rent + maintenance + fuel for the distance driven.

    ``unit_price_override`` (or the catalog base price) replaces
    ``rent_monthly`` when present.
    """

    category: ClassVar[CostCategoryKind] = CostCategoryKind.VEHICLE
    allowed_calc_modes: ClassVar[frozenset[CalcMode]] = frozenset({CalcMode.PER_UNIT})
    _decimal_fields: ClassVar[tuple[str, ...]] = (
        "vehicles_count",
        "rent_monthly",
        "maintenance_monthly",
        "km_per_day",
        "work_days_per_month",
        "km_per_liter",
        "fuel_price_per_liter",
    )

    calc_mode: CalcMode = CalcMode.PER_UNIT
    vehicles_count: Decimal = Decimal("1")
    rent_monthly: Decimal = ZERO
    maintenance_monthly: Decimal = ZERO
    km_per_day: Decimal = ZERO
    work_days_per_month: Decimal = Decimal("30")
    km_per_liter: Decimal = Decimal("10")
    fuel_price_per_liter: Decimal = ZERO

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.km_per_liter == ZERO and self.km_per_day > ZERO:
            raise ValueError("km_per_liter must be positive when km_per_day is set")


@dataclass(frozen=True)
class InfrastructureLine(AncillaryCostLine):
    """Guard booth, generator, container... with optional fuel consumption."""

    category: ClassVar[CostCategoryKind] = CostCategoryKind.INFRASTRUCTURE
    allowed_calc_modes: ClassVar[frozenset[CalcMode]] = frozenset({CalcMode.PER_UNIT})
    _decimal_fields: ClassVar[tuple[str, ...]] = (
        "quantity",
        "rent_monthly",
        "fuel_liters_per_hour",
        "fuel_hours_per_day",
        "fuel_days_per_month",
        "fuel_price_per_liter",
    )

    calc_mode: CalcMode = CalcMode.PER_UNIT
    quantity: Decimal = Decimal("1")
    rent_monthly: Decimal = ZERO
    has_fuel: bool = False
    fuel_liters_per_hour: Decimal = ZERO
    fuel_hours_per_day: Decimal = ZERO
    fuel_days_per_month: Decimal = ZERO
    fuel_price_per_liter: Decimal = ZERO


@dataclass(frozen=True)
class CostItemLine(AncillaryCostLine):
    """Generic catalog item (phone, radio, system...), per month or per guard."""

    category: ClassVar[CostCategoryKind] = CostCategoryKind.COST_ITEM
    allowed_calc_modes: ClassVar[frozenset[CalcMode]] = frozenset(
        {CalcMode.PER_MONTH, CalcMode.PER_GUARD}
    )
    _decimal_fields: ClassVar[tuple[str, ...]] = ("quantity",)

    calc_mode: CalcMode = CalcMode.PER_MONTH
    quantity: Decimal = Decimal("1")


LINE_TYPES: dict[CostCategoryKind, type[AncillaryCostLine]] = {
    cls.category: cls
    for cls in (UniformLine, ExamLine, MealLine, VehicleLine, InfrastructureLine, CostItemLine)
}


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Position:
    """
    A staffing line in a quote.

    ``puesto_trabajo_id`` / ``cargo_id`` / ``rol_id`` are role tags;
    ``cargo_id`` and ``rol_id`` take part in the recompute trigger.
    """

    quote_id: UUID
    salary: SalaryInput
    num_guards: int = 1
    num_puestos: int = 1
    puesto_trabajo_id: UUID | None = None
    cargo_id: UUID | None = None
    rol_id: UUID | None = None
    custom_name: str | None = None
    description: str | None = None
    weekdays: tuple[str, ...] = ()
    start_time: time | None = None
    end_time: time | None = None
    employer_cost: Cached[EmployerCostResult] | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if self.num_guards < 1:
            raise ValueError("num_guards must be at least 1")
        object.__setattr__(self, "num_puestos", max(1, self.num_puestos))
        object.__setattr__(self, "weekdays", tuple(self.weekdays))

    @property
    def monthly_position_cost_clp(self) -> Decimal | None:
        """employer cost x guards x posts; None until first computed."""
        if self.employer_cost is None:
            return None
        return (
            self.employer_cost.value.monthly_employer_cost_clp
            * self.num_guards
            * self.num_puestos
        )

    @property
    def payroll_rule_version_id(self) -> str | None:
        if self.employer_cost is None:
            return None
        return self.employer_cost.computed_at_version


# ---------------------------------------------------------------------------
# Quote parameters and summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuoteParameters:
    """Quote-wide knobs.  Percentages are expressed as 0-100."""

    quote_id: UUID
    monthly_hours_standard: Decimal = Decimal("180")
    avg_stay_months: Decimal = Decimal("4")
    uniform_changes_per_year: Decimal = Decimal("3")
    financial_enabled: bool = False
    financial_rate_pct: Decimal = Decimal("2.5")
    policy_enabled: bool = False
    policy_rate_pct: Decimal = ZERO
    policy_admin_rate_pct: Decimal = ZERO
    policy_contract_months: Decimal = Decimal("12")
    policy_contract_pct: Decimal = Decimal("20")
    margin_pct: Decimal = Decimal("13")
    sale_price_monthly: Decimal = ZERO
    holiday_annual_count: Decimal | None = None  # None: no holiday adjustment
    holiday_commercial_buffer_pct: Decimal = Decimal("10")

    def __post_init__(self) -> None:
        for name in (
            "monthly_hours_standard",
            "avg_stay_months",
            "uniform_changes_per_year",
            "financial_rate_pct",
            "policy_rate_pct",
            "policy_admin_rate_pct",
            "policy_contract_months",
            "policy_contract_pct",
            "margin_pct",
            "sale_price_monthly",
            "holiday_commercial_buffer_pct",
        ):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        if self.holiday_annual_count is not None:
            object.__setattr__(
                self, "holiday_annual_count", to_decimal(self.holiday_annual_count)
            )
        for name in (
            "monthly_hours_standard",
            "uniform_changes_per_year",
            "financial_rate_pct",
            "policy_rate_pct",
            "policy_admin_rate_pct",
            "policy_contract_months",
            "policy_contract_pct",
            "holiday_commercial_buffer_pct",
        ):
            if getattr(self, name) < ZERO:
                raise ValueError(f"{name} cannot be negative")
        if self.avg_stay_months <= ZERO:
            raise ValueError("avg_stay_months must be positive")


@dataclass(frozen=True)
class CpqQuoteCostSummary:
    """
    Fresh aggregate of one quote's monthly cost structure.

    Never the source of truth: the quote header copy is a cache.

    Guarantees:
        - ``monthly_extras`` is the sum of every non-position category,
          financial and policy included.
        - ``monthly_total == monthly_positions + monthly_extras``.
        - ``costs_base`` is ``monthly_total`` minus financial and policy.
    """

    quote_id: UUID
    total_positions: int
    total_guards: int
    monthly_positions: Decimal
    monthly_holiday_adjustment: Decimal
    monthly_uniforms: Decimal
    monthly_exams: Decimal
    monthly_meals: Decimal
    monthly_vehicles: Decimal
    monthly_infrastructure: Decimal
    monthly_cost_items: Decimal
    monthly_financial: Decimal
    monthly_policy: Decimal
    monthly_extras: Decimal
    monthly_total: Decimal
    costs_base: Decimal
    degraded_categories: tuple[str, ...] = ()

    CATEGORY_FIELDS: ClassVar[tuple[str, ...]] = (
        "monthly_positions",
        "monthly_holiday_adjustment",
        "monthly_uniforms",
        "monthly_exams",
        "monthly_meals",
        "monthly_vehicles",
        "monthly_infrastructure",
        "monthly_cost_items",
        "monthly_financial",
        "monthly_policy",
    )

    def category_totals(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in self.CATEGORY_FIELDS}
