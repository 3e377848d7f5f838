"""
Ancillary Cost Category Calculators.

Responsibility:
    Convert each category of ancillary lines (uniforms, exams, meals,
    vehicles, infrastructure, generic catalog cost items) into a monthly
    CLP figure.

Architecture position:
    Engines -- pure calculation, no I/O.  The catalog is handed in as a
    mapping on ``CostingContext``; nothing here queries a store.

Invariants enforced:
    - Disabled lines contribute zero and are otherwise ignored.
    - An empty line list is a zero total, never an error.
    - Unit price = ``unit_price_override`` when set, else the catalog
      base price normalized to a monthly figure (yearly prices / 12,
      semester prices / 6).
    - Financial and policy catalog items never count as cost items; they
      are priced from the quote parameters by the summary builder.
    - Category calculators are independent: a line only ever affects the
      total of its own category.

Failure modes:
    - MissingCatalogItemError: a line references an unknown catalog id,
      or a meal type has no catalog entry and no override.
    - ValueError: a line has neither a price override nor a catalog item,
      or is handed to the wrong category.

Usage:
    from cpq_engines.ancillary import CATEGORIES, CostingContext

    context = CostingContext(parameters=params, total_guards=4, catalog=catalog)
    for category in CATEGORIES:
        total = category.compute(lines_by_kind[category.kind], context)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar, Sequence
from uuid import UUID

from cpq_kernel.domain.quote import (
    PASS_THROUGH_ITEM_TYPES,
    AncillaryCostLine,
    CalcMode,
    CatalogItem,
    CatalogItemType,
    CostCategoryKind,
    CostItemLine,
    ExamLine,
    InfrastructureLine,
    MealLine,
    QuoteParameters,
    UniformLine,
    VehicleLine,
)
from cpq_kernel.domain.values import MONTHS_PER_YEAR, ZERO
from cpq_kernel.exceptions import MissingCatalogItemError
from cpq_kernel.logging_config import get_logger

logger = get_logger("engines.ancillary")

_YEARLY_UNIT_MARKERS = ("año", "ano", "anual", "year")
_SEMESTER_UNIT_MARKERS = ("semestre", "semester")
_MONTHS_PER_SEMESTER = Decimal("6")


def normalize_unit_price(price: Decimal, unit: str | None) -> Decimal:
    """Express a catalog price per month according to its unit label."""
    label = (unit or "").strip().lower()
    if any(marker in label for marker in _YEARLY_UNIT_MARKERS):
        return price / MONTHS_PER_YEAR
    if any(marker in label for marker in _SEMESTER_UNIT_MARKERS):
        return price / _MONTHS_PER_SEMESTER
    return price


@dataclass(frozen=True)
class CostingContext:
    """Everything a category calculator may read besides its lines."""

    parameters: QuoteParameters
    total_guards: int
    catalog: Mapping[UUID, CatalogItem] = field(default_factory=dict)

    def catalog_item(self, item_id: UUID, category: CostCategoryKind) -> CatalogItem:
        item = self.catalog.get(item_id)
        if item is None:
            raise MissingCatalogItemError(str(item_id), category.value)
        return item

    def meal_item(self, meal_type: str) -> CatalogItem | None:
        wanted = meal_type.strip().lower()
        for item in self.catalog.values():
            if item.item_type == CatalogItemType.MEAL and item.name.strip().lower() == wanted:
                return item
        return None


class CostCategory(ABC):
    """
    One ancillary cost category.

    Contract:
        ``compute`` sums ``line_cost`` over the enabled lines.  Subclasses
        implement ``line_cost`` only.

    Guarantees:
        - Pure and deterministic.
        - Returns an unrounded Decimal; rounding to pesos is the summary
          builder's job.
    """

    kind: ClassVar[CostCategoryKind]
    line_type: ClassVar[type[AncillaryCostLine]]

    def compute(self, lines: Sequence[AncillaryCostLine], context: CostingContext) -> Decimal:
        total = ZERO
        for line in lines:
            if not isinstance(line, self.line_type):
                raise ValueError(
                    f"{type(line).__name__} cannot be costed as {self.kind.value}"
                )
            if not line.is_enabled:
                continue
            total += self.line_cost(line, context)
        return total

    @abstractmethod
    def line_cost(self, line, context: CostingContext) -> Decimal:
        ...

    def unit_price(self, line: AncillaryCostLine, context: CostingContext) -> Decimal:
        """
        Override, else catalog base price, per month by the catalog unit.

        An override is quoted in the linked catalog item's unit, so a
        yearly item's override is divided by 12 as well.
        """
        if line.unit_price_override is not None:
            item = context.catalog.get(line.catalog_item_id) if line.catalog_item_id else None
            return normalize_unit_price(line.unit_price_override, item.unit if item else None)
        if line.catalog_item_id is None:
            raise ValueError(
                f"{self.kind.value} line {line.id} has no price override and no catalog item"
            )
        item = context.catalog_item(line.catalog_item_id, self.kind)
        return normalize_unit_price(item.base_price, item.unit)


def _guards_for(line_guards: int | None, context: CostingContext) -> Decimal:
    return Decimal(context.total_guards if line_guards is None else line_guards)


class UniformCategory(CostCategory):
    """unit price x changes per year / 12 x guards"""

    kind = CostCategoryKind.UNIFORM
    line_type = UniformLine

    def line_cost(self, line: UniformLine, context: CostingContext) -> Decimal:
        changes = (
            context.parameters.uniform_changes_per_year
            if line.changes_per_year is None
            else line.changes_per_year
        )
        guards = _guards_for(line.guards, context)
        return self.unit_price(line, context) * changes / MONTHS_PER_YEAR * guards


class ExamCategory(CostCategory):
    """Exams are repeated on every rotation (12 / average stay) or uniform
    change, whichever is more frequent."""

    kind = CostCategoryKind.EXAM
    line_type = ExamLine

    def line_cost(self, line: ExamLine, context: CostingContext) -> Decimal:
        params = context.parameters
        frequency = max(
            MONTHS_PER_YEAR / params.avg_stay_months,
            params.uniform_changes_per_year,
        )
        guards = _guards_for(line.guards, context)
        return self.unit_price(line, context) * frequency / MONTHS_PER_YEAR * guards


class MealCategory(CostCategory):
    kind = CostCategoryKind.MEAL
    line_type = MealLine

    def unit_price(self, line: MealLine, context: CostingContext) -> Decimal:
        if line.unit_price_override is not None or line.catalog_item_id is not None:
            return super().unit_price(line, context)
        item = context.meal_item(line.meal_type)
        if item is None:
            raise MissingCatalogItemError(line.meal_type, self.kind.value)
        return normalize_unit_price(item.base_price, item.unit)

    def line_cost(self, line: MealLine, context: CostingContext) -> Decimal:
        if line.meals_per_day == ZERO or line.days_of_service == ZERO:
            return ZERO
        return self.unit_price(line, context) * line.meals_per_day * line.days_of_service


class VehicleCategory(CostCategory):
    """(rent + maintenance + fuel for km/day x days) x vehicles"""

    kind = CostCategoryKind.VEHICLE
    line_type = VehicleLine

    def line_cost(self, line: VehicleLine, context: CostingContext) -> Decimal:
        rent = line.rent_monthly
        if line.unit_price_override is not None or line.catalog_item_id is not None:
            rent = self.unit_price(line, context)
        fuel = ZERO
        if line.km_per_liter > ZERO:
            liters = line.km_per_day * line.work_days_per_month / line.km_per_liter
            fuel = liters * line.fuel_price_per_liter
        return (rent + line.maintenance_monthly + fuel) * line.vehicles_count


class InfrastructureCategory(CostCategory):
    """(rent + optional generator fuel) x quantity"""

    kind = CostCategoryKind.INFRASTRUCTURE
    line_type = InfrastructureLine

    def line_cost(self, line: InfrastructureLine, context: CostingContext) -> Decimal:
        rent = line.rent_monthly
        if line.unit_price_override is not None or line.catalog_item_id is not None:
            rent = self.unit_price(line, context)
        fuel = ZERO
        if line.has_fuel:
            liters = (
                line.fuel_liters_per_hour * line.fuel_hours_per_day * line.fuel_days_per_month
            )
            fuel = liters * line.fuel_price_per_liter
        return (rent + fuel) * line.quantity


class CostItemCategory(CostCategory):
    kind = CostCategoryKind.COST_ITEM
    line_type = CostItemLine

    def line_cost(self, line: CostItemLine, context: CostingContext) -> Decimal:
        if line.catalog_item_id is not None:
            item = context.catalog_item(line.catalog_item_id, self.kind)
            if item.item_type in PASS_THROUGH_ITEM_TYPES:
                logger.debug("pass_through_cost_item_skipped", extra={
                    "catalog_item_id": str(item.id),
                    "item_type": item.item_type.value,
                })
                return ZERO
        price = self.unit_price(line, context) * line.quantity
        if line.calc_mode == CalcMode.PER_GUARD:
            return price * context.total_guards
        return price


CATEGORIES: tuple[CostCategory, ...] = (
    UniformCategory(),
    ExamCategory(),
    MealCategory(),
    VehicleCategory(),
    InfrastructureCategory(),
    CostItemCategory(),
)

CATEGORY_BY_KIND: dict[CostCategoryKind, CostCategory] = {c.kind: c for c in CATEGORIES}


def merge_catalog_defaults(
    kind: CostCategoryKind,
    lines: Sequence[AncillaryCostLine],
    catalog: Sequence[CatalogItem],
) -> list[AncillaryCostLine]:
    """
    Append a line for every active default catalog item of this category
    that the quote does not already carry.

    Uniform, exam and cost-item defaults are matched by catalog id; meal
    defaults by meal name and start at zero consumption.  Vehicles and
    infrastructure have no catalog defaults.
    """
    merged = list(lines)
    defaults = [item for item in catalog if item.is_default and item.active]

    if kind in (CostCategoryKind.UNIFORM, CostCategoryKind.EXAM):
        wanted = CatalogItemType(kind.value)
        present = {line.catalog_item_id for line in lines}
        line_type = UniformLine if kind == CostCategoryKind.UNIFORM else ExamLine
        merged.extend(
            line_type(catalog_item_id=item.id, visibility=item.default_visibility)
            for item in defaults
            if item.item_type == wanted and item.id not in present
        )
    elif kind == CostCategoryKind.COST_ITEM:
        present = {line.catalog_item_id for line in lines}
        merged.extend(
            CostItemLine(catalog_item_id=item.id, visibility=item.default_visibility)
            for item in defaults
            if item.item_type not in (CatalogItemType.UNIFORM, CatalogItemType.EXAM, CatalogItemType.MEAL)
            and item.id not in present
        )
    elif kind == CostCategoryKind.MEAL:
        present = {line.meal_type.strip().lower() for line in lines}
        merged.extend(
            MealLine(
                meal_type=item.name,
                meals_per_day=ZERO,
                days_of_service=ZERO,
                visibility=item.default_visibility,
            )
            for item in defaults
            if item.item_type == CatalogItemType.MEAL
            and item.name.strip().lower() not in present
        )
    return merged
