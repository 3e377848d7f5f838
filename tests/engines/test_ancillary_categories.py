"""
Tests for the ancillary cost category calculators.

Covers:
- Per-category formulas (uniform, exam, meal, vehicle, infrastructure, cost item)
- Price resolution: override, catalog base price, unit normalization
- Disabled lines and empty categories
- Default catalog item merging
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from cpq_engines.ancillary import (
    CATEGORY_BY_KIND,
    CostingContext,
    merge_catalog_defaults,
    normalize_unit_price,
)
from cpq_kernel.domain.quote import (
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
    Visibility,
)
from cpq_kernel.exceptions import MissingCatalogItemError


def _context(total_guards=4, catalog=(), **params) -> CostingContext:
    return CostingContext(
        parameters=QuoteParameters(quote_id=uuid4(), **params),
        total_guards=total_guards,
        catalog={item.id: item for item in catalog},
    )


def _compute(kind, lines, context):
    return CATEGORY_BY_KIND[kind].compute(lines, context)


class TestNormalizeUnitPrice:
    def test_monthly_unchanged(self):
        assert normalize_unit_price(Decimal("15000"), "mes") == Decimal("15000")
        assert normalize_unit_price(Decimal("15000"), None) == Decimal("15000")

    def test_yearly(self):
        assert normalize_unit_price(Decimal("120000"), "año") == Decimal("10000")
        assert normalize_unit_price(Decimal("120000"), "Anual") == Decimal("10000")

    def test_semester(self):
        assert normalize_unit_price(Decimal("60000"), "semestre") == Decimal("10000")


class TestUniform:
    def test_explicit_guards_and_changes(self):
        line = UniformLine(unit_price_override="30000", guards=2, changes_per_year="2")
        assert _compute(CostCategoryKind.UNIFORM, [line], _context()) == Decimal("10000")

    def test_defaults_from_quote(self):
        # 4 guards on the quote, 3 changes a year from the parameters
        line = UniformLine(unit_price_override="30000")
        assert _compute(CostCategoryKind.UNIFORM, [line], _context()) == Decimal("30000")

    def test_catalog_price(self):
        item = CatalogItem(name="Parka", item_type=CatalogItemType.UNIFORM, base_price="30000")
        line = UniformLine(catalog_item_id=item.id)
        context = _context(catalog=[item])
        assert _compute(CostCategoryKind.UNIFORM, [line], context) == Decimal("30000")

    def test_override_wins_over_catalog(self):
        item = CatalogItem(name="Parka", item_type=CatalogItemType.UNIFORM, base_price="99000")
        line = UniformLine(catalog_item_id=item.id, unit_price_override="30000")
        context = _context(catalog=[item])
        assert _compute(CostCategoryKind.UNIFORM, [line], context) == Decimal("30000")

    def test_override_takes_catalog_unit(self):
        item = CatalogItem(
            name="Parka", item_type=CatalogItemType.UNIFORM, base_price="99000", unit="año"
        )
        line = UniformLine(catalog_item_id=item.id, unit_price_override="120000")
        context = _context(catalog=[item])
        # 120,000 a year -> 10,000 a month, x 3 changes / 12 x 4 guards
        assert _compute(CostCategoryKind.UNIFORM, [line], context) == Decimal("10000")

    def test_disabled_line_contributes_zero(self):
        line = UniformLine(unit_price_override="30000").disabled()
        assert _compute(CostCategoryKind.UNIFORM, [line], _context()) == Decimal("0")

    def test_empty_category(self):
        assert _compute(CostCategoryKind.UNIFORM, [], _context()) == Decimal("0")

    def test_unknown_catalog_item(self):
        line = UniformLine(catalog_item_id=uuid4())
        with pytest.raises(MissingCatalogItemError) as exc_info:
            _compute(CostCategoryKind.UNIFORM, [line], _context())
        assert exc_info.value.category == "uniform"

    def test_no_price_source(self):
        with pytest.raises(ValueError, match="no price override"):
            _compute(CostCategoryKind.UNIFORM, [UniformLine()], _context())

    def test_wrong_line_type(self):
        with pytest.raises(ValueError, match="cannot be costed as uniform"):
            _compute(CostCategoryKind.UNIFORM, [ExamLine(unit_price_override="1")], _context())


class TestExam:
    def test_frequency_from_uniform_changes(self):
        # max(12 / 4, 3) = 3 exams a year
        line = ExamLine(unit_price_override="40000", guards=2)
        assert _compute(CostCategoryKind.EXAM, [line], _context()) == Decimal("20000")

    def test_frequency_from_rotation(self):
        # max(12 / 2, 3) = 6 exams a year
        line = ExamLine(unit_price_override="40000", guards=2)
        context = _context(avg_stay_months="2")
        assert _compute(CostCategoryKind.EXAM, [line], context) == Decimal("40000")


class TestMeal:
    def test_override(self):
        line = MealLine(
            meal_type="Almuerzo", unit_price_override="3500",
            meals_per_day="2", days_of_service="30",
        )
        assert _compute(CostCategoryKind.MEAL, [line], _context()) == Decimal("210000")

    def test_priced_by_meal_name(self):
        item = CatalogItem(name="Almuerzo", item_type=CatalogItemType.MEAL, base_price="3500")
        line = MealLine(meal_type="almuerzo ", meals_per_day="2", days_of_service="30")
        context = _context(catalog=[item])
        assert _compute(CostCategoryKind.MEAL, [line], context) == Decimal("210000")

    def test_zero_consumption_needs_no_price(self):
        line = MealLine(meal_type="Cena", meals_per_day="0", days_of_service="30")
        assert _compute(CostCategoryKind.MEAL, [line], _context()) == Decimal("0")

    def test_unknown_meal_type(self):
        line = MealLine(meal_type="Brunch", meals_per_day="1", days_of_service="30")
        with pytest.raises(MissingCatalogItemError, match="Brunch"):
            _compute(CostCategoryKind.MEAL, [line], _context())


class TestVehicle:
    def _line(self, **overrides):
        values = {
            "rent_monthly": "450000",
            "maintenance_monthly": "50000",
            "km_per_day": "100",
            "work_days_per_month": "30",
            "km_per_liter": "10",
            "fuel_price_per_liter": "1200",
            "vehicles_count": "2",
        }
        values.update(overrides)
        return VehicleLine(**values)

    def test_rent_maintenance_and_fuel(self):
        # (450,000 + 50,000 + 300 l x 1,200) x 2
        assert _compute(CostCategoryKind.VEHICLE, [self._line()], _context()) == Decimal("1720000")

    def test_override_replaces_rent(self):
        line = self._line(unit_price_override="500000", vehicles_count="1")
        assert _compute(CostCategoryKind.VEHICLE, [line], _context()) == Decimal("910000")

    def test_zero_efficiency_rejected(self):
        with pytest.raises(ValueError, match="km_per_liter"):
            self._line(km_per_liter="0")


class TestInfrastructure:
    def test_rent_and_generator_fuel(self):
        line = InfrastructureLine(
            rent_monthly="200000",
            has_fuel=True,
            fuel_liters_per_hour="2",
            fuel_hours_per_day="12",
            fuel_days_per_month="30",
            fuel_price_per_liter="1100",
        )
        assert _compute(CostCategoryKind.INFRASTRUCTURE, [line], _context()) == Decimal("992000")

    def test_fuel_ignored_without_flag(self):
        line = InfrastructureLine(
            rent_monthly="200000", quantity="2",
            fuel_liters_per_hour="2", fuel_hours_per_day="12",
            fuel_days_per_month="30", fuel_price_per_liter="1100",
        )
        assert _compute(CostCategoryKind.INFRASTRUCTURE, [line], _context()) == Decimal("400000")


class TestCostItem:
    def test_per_month(self):
        line = CostItemLine(unit_price_override="15000", quantity="2")
        assert _compute(CostCategoryKind.COST_ITEM, [line], _context()) == Decimal("30000")

    def test_per_guard(self):
        line = CostItemLine(unit_price_override="15000", calc_mode=CalcMode.PER_GUARD)
        assert _compute(CostCategoryKind.COST_ITEM, [line], _context()) == Decimal("60000")

    def test_yearly_catalog_price(self):
        item = CatalogItem(
            name="Software", item_type=CatalogItemType.SYSTEM, base_price="120000", unit="año"
        )
        line = CostItemLine(catalog_item_id=item.id)
        context = _context(catalog=[item])
        assert _compute(CostCategoryKind.COST_ITEM, [line], context) == Decimal("10000")

    def test_financial_item_is_not_a_cost(self):
        item = CatalogItem(name="Costo financiero", item_type=CatalogItemType.FINANCIAL, base_price="5000")
        line = CostItemLine(catalog_item_id=item.id)
        context = _context(catalog=[item])
        assert _compute(CostCategoryKind.COST_ITEM, [line], context) == Decimal("0")

    def test_unsupported_calc_mode(self):
        with pytest.raises(ValueError, match="not supported"):
            CostItemLine(unit_price_override="1", calc_mode=CalcMode.PER_CONSUMPTION)


class TestMergeCatalogDefaults:
    def setup_method(self):
        self.parka = CatalogItem(
            name="Parka", item_type=CatalogItemType.UNIFORM, base_price="30000",
            is_default=True, default_visibility=Visibility.CLIENT_VISIBLE,
        )
        self.boots = CatalogItem(
            name="Botas", item_type=CatalogItemType.UNIFORM, base_price="45000",
        )
        self.lunch = CatalogItem(
            name="Almuerzo", item_type=CatalogItemType.MEAL, base_price="3500", is_default=True,
        )
        self.radio = CatalogItem(
            name="Radio", item_type=CatalogItemType.RADIO, base_price="8000", is_default=True,
        )
        self.retired = CatalogItem(
            name="Linterna", item_type=CatalogItemType.FLASHLIGHT, base_price="2000",
            is_default=True, active=False,
        )
        self.catalog = [self.parka, self.boots, self.lunch, self.radio, self.retired]

    def test_uniform_default_appended(self):
        merged = merge_catalog_defaults(CostCategoryKind.UNIFORM, [], self.catalog)
        assert len(merged) == 1
        assert merged[0].catalog_item_id == self.parka.id
        assert merged[0].visibility == Visibility.CLIENT_VISIBLE

    def test_present_default_not_duplicated(self):
        existing = UniformLine(catalog_item_id=self.parka.id, guards=1)
        merged = merge_catalog_defaults(CostCategoryKind.UNIFORM, [existing], self.catalog)
        assert merged == [existing]

    def test_meal_default_starts_at_zero(self):
        merged = merge_catalog_defaults(CostCategoryKind.MEAL, [], self.catalog)
        assert len(merged) == 1
        assert merged[0].meal_type == "Almuerzo"
        assert merged[0].meals_per_day == Decimal("0")
        context = _context(catalog=self.catalog)
        assert _compute(CostCategoryKind.MEAL, merged, context) == Decimal("0")

    def test_cost_item_defaults_skip_inactive(self):
        merged = merge_catalog_defaults(CostCategoryKind.COST_ITEM, [], self.catalog)
        assert [line.catalog_item_id for line in merged] == [self.radio.id]

    def test_vehicles_have_no_defaults(self):
        assert merge_catalog_defaults(CostCategoryKind.VEHICLE, [], self.catalog) == []
