"""
Tests for the quote value objects.

Covers:
- Position guard/post validation and monthly cost
- Ancillary line validation
- QuoteParameters validation
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from cpq_kernel.domain.cached import Cached
from cpq_kernel.domain.quote import (
    LINE_TYPES,
    CalcMode,
    CatalogItem,
    CostCategoryKind,
    CostItemLine,
    MealLine,
    Position,
    QuoteParameters,
    UniformLine,
    VehicleLine,
)
from cpq_kernel.domain.salary import (
    EmployerCostBreakdown,
    EmployerCostResult,
    SalaryInput,
    WorkerDeductions,
)

NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)
Z = Decimal("0")


def _result(cost: str) -> EmployerCostResult:
    breakdown = EmployerCostBreakdown(*([Z] * 16))
    deductions = WorkerDeductions(Z, Z, Z, Z, Z, Z)
    return EmployerCostResult(
        monthly_employer_cost_clp=Decimal(cost),
        worker_net_salary_estimate_clp=Z,
        payroll_rule_version_id="cl-2026-02",
        computed_at=NOW,
        breakdown=breakdown,
        worker_deductions=deductions,
        cost_to_net_ratio=Z,
    )


class TestPosition:
    def setup_method(self):
        self.quote_id = uuid4()
        self.salary = SalaryInput(base_salary_clp=600000)

    def test_zero_guards_rejected(self):
        with pytest.raises(ValueError, match="num_guards"):
            Position(quote_id=self.quote_id, salary=self.salary, num_guards=0)

    def test_zero_posts_floored_to_one(self):
        position = Position(quote_id=self.quote_id, salary=self.salary, num_puestos=0)
        assert position.num_puestos == 1

    def test_uncosted_position_has_no_monthly_cost(self):
        position = Position(quote_id=self.quote_id, salary=self.salary)
        assert position.monthly_position_cost_clp is None
        assert position.payroll_rule_version_id is None

    def test_monthly_cost_is_cost_times_guards_times_posts(self):
        position = Position(
            quote_id=self.quote_id,
            salary=self.salary,
            num_guards=3,
            num_puestos=2,
            employer_cost=Cached(_result("880395"), "cl-2026-02", (), NOW),
        )
        assert position.monthly_position_cost_clp == Decimal("5282370")
        assert position.payroll_rule_version_id == "cl-2026-02"


class TestAncillaryLines:
    def test_line_types_cover_every_category(self):
        assert set(LINE_TYPES) == set(CostCategoryKind)

    def test_unsupported_calc_mode_rejected(self):
        with pytest.raises(ValueError, match="not supported"):
            UniformLine(calc_mode=CalcMode.PER_MONTH)

    def test_cost_item_supports_per_guard(self):
        line = CostItemLine(calc_mode="per_guard", quantity="2")
        assert line.calc_mode == CalcMode.PER_GUARD
        assert line.quantity == Decimal("2")

    def test_negative_override_rejected(self):
        with pytest.raises(ValueError, match="unit_price_override"):
            UniformLine(unit_price_override="-1")

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValueError, match="meals_per_day"):
            MealLine(meal_type="almuerzo", meals_per_day="-1")

    def test_vehicle_needs_efficiency_when_driving(self):
        with pytest.raises(ValueError, match="km_per_liter"):
            VehicleLine(km_per_day="100", km_per_liter="0")

    def test_disabled_copy(self):
        line = UniformLine(unit_price_override="30000")
        off = line.disabled()
        assert not off.is_enabled
        assert off.id == line.id
        assert line.is_enabled


class TestCatalogItem:
    def test_negative_price_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            CatalogItem(name="Casaca", item_type="uniform", base_price="-5")

    def test_item_type_coerced(self):
        item = CatalogItem(name="Casaca", item_type="uniform", base_price="25000")
        assert item.item_type.value == "uniform"


class TestQuoteParameters:
    def test_defaults(self):
        params = QuoteParameters(quote_id=uuid4())
        assert params.margin_pct == Decimal("13")
        assert params.holiday_annual_count is None
        assert params.sale_price_monthly == Decimal("0")

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError, match="financial_rate_pct"):
            QuoteParameters(quote_id=uuid4(), financial_rate_pct="-1")

    def test_average_stay_must_be_positive(self):
        with pytest.raises(ValueError, match="avg_stay_months"):
            QuoteParameters(quote_id=uuid4(), avg_stay_months=0)
