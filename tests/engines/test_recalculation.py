"""
Tests for the recalculation trigger policy.

Covers:
- Cost-bearing fields and the position input key
- Quote refresh decisions per position event
- Lazy sale price fill
- Advisory and strict rule version checks
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from cpq_engines.position_cost import recompute_position
from cpq_engines.recalculation import (
    COST_BEARING_FIELDS,
    PositionEvent,
    changed_cost_fields,
    check_rule_version,
    position_input_key,
    should_fill_sale_price,
    should_recompute_position,
    should_refresh_quote,
)
from cpq_kernel.domain.quote import Position, QuoteParameters
from cpq_kernel.domain.salary import SalaryAssumptions, SalaryInput
from cpq_kernel.exceptions import StaleRuleVersionError

NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


def _position(**salary_overrides) -> Position:
    salary = {"base_salary_clp": "600000", "afp_provider": "habitat"}
    salary.update(salary_overrides)
    return Position(quote_id=uuid4(), salary=SalaryInput(**salary))


class TestCostBearingFields:
    def test_input_key_order(self):
        key = position_input_key(_position())
        assert len(key) == len(COST_BEARING_FIELDS)
        assert key[0] == "6E+5"
        assert key[1:4] == ("habitat", "fonasa", "7")
        assert key[4:6] == ("indefinite", "medium")
        assert key[-2:] == (None, None)

    def test_no_previous_means_all_changed(self):
        assert changed_cost_fields(None, _position()) == COST_BEARING_FIELDS

    def test_salary_and_health_changes(self):
        previous = _position()
        current = replace(
            previous,
            salary=replace(previous.salary, base_salary_clp=Decimal("650000"),
                           health_system="isapre"),
        )
        assert changed_cost_fields(previous, current) == ("base_salary_clp", "health_system")

    def test_contract_and_risk_changes(self):
        previous = _position()
        current = replace(
            previous,
            salary=replace(previous.salary, contract_type="fixed_term", work_injury_risk="high"),
        )
        assert changed_cost_fields(previous, current) == ("contract_type", "work_injury_risk")

    def test_assumptions_change(self):
        previous = _position()
        current = replace(
            previous,
            salary=replace(
                previous.salary,
                assumptions=SalaryAssumptions(work_injury_override_rate="0.02"),
            ),
        )
        assert changed_cost_fields(previous, current) == ("assumptions",)

    def test_equal_assumptions_share_key(self):
        a = _position(assumptions=SalaryAssumptions(vacation_provision_pct="10"))
        b = replace(a, salary=replace(
            a.salary, assumptions=SalaryAssumptions(vacation_provision_pct="10.00")
        ))
        assert position_input_key(a) == position_input_key(b)

    def test_role_change(self):
        previous = _position()
        current = replace(previous, rol_id=uuid4())
        assert changed_cost_fields(previous, current) == ("rol_id",)

    def test_schedule_change_is_not_cost_bearing(self):
        previous = _position()
        current = replace(previous, weekdays=("sat", "sun"), custom_name="Weekend")
        assert changed_cost_fields(previous, current) == ()

    def test_should_recompute(self, rules):
        position = _position()
        assert should_recompute_position(position)
        costed = recompute_position(position, rules, computed_at=NOW)
        assert not should_recompute_position(costed)
        assert should_recompute_position(costed, force=True)


class TestShouldRefreshQuote:
    def setup_method(self):
        self.position = _position()

    def test_created_and_deleted_always_refresh(self):
        assert should_refresh_quote(PositionEvent.CREATED)
        assert should_refresh_quote("deleted", self.position, None)

    def test_update_without_total_change(self):
        edited = replace(self.position, description="Main gate")
        assert not should_refresh_quote(PositionEvent.UPDATED, self.position, edited)

    def test_guard_count_change(self):
        edited = replace(self.position, num_guards=2)
        assert should_refresh_quote(PositionEvent.UPDATED, self.position, edited)

    def test_cost_change(self, rules):
        costed = recompute_position(self.position, rules, computed_at=NOW)
        assert should_refresh_quote(PositionEvent.UPDATED, self.position, costed)


class TestShouldFillSalePrice:
    def test_unset_price(self):
        assert should_fill_sale_price(QuoteParameters(quote_id=uuid4()))

    def test_stored_price_kept(self):
        params = QuoteParameters(quote_id=uuid4(), sale_price_monthly="1000000")
        assert not should_fill_sale_price(params)
        assert should_fill_sale_price(params, force=True)


class TestCheckRuleVersion:
    def test_current_version(self, rules):
        costed = recompute_position(_position(), rules, computed_at=NOW)
        assert check_rule_version(costed.employer_cost, "cl-2026-02")

    def test_uncached_is_current(self):
        assert check_rule_version(None, "cl-2026-03")

    def test_behind_is_advisory(self, rules, captured_logs):
        costed = recompute_position(_position(), rules, computed_at=NOW)
        assert not check_rule_version(costed.employer_cost, "cl-2026-03")
        stale = [r for r in captured_logs() if r["message"] == "stale_rule_version"]
        assert stale[0]["computed_at_version"] == "cl-2026-02"

    def test_behind_strict(self, rules):
        costed = recompute_position(_position(), rules, computed_at=NOW)
        with pytest.raises(StaleRuleVersionError, match="cl-2026-03") as exc_info:
            check_rule_version(costed.employer_cost, "cl-2026-03", strict=True)
        assert exc_info.value.requested_version_id == "cl-2026-02"
