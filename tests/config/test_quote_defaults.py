"""Tests for quote parameter and salary defaults."""

from decimal import Decimal
from uuid import uuid4

import pytest
import yaml

from cpq_config import load_quote_defaults


class TestQuoteDefaults:
    def test_packaged_defaults(self):
        defaults = load_quote_defaults()
        assert defaults.quote_parameters["margin_pct"] == Decimal("13")
        assert defaults.quote_parameters["financial_enabled"] is False
        assert defaults.holiday_annual_count is None
        assert defaults.salary["afp_provider"] == "habitat"
        assert defaults.salary["health_plan_pct"] == Decimal("7")

    def test_parameters_for_new_quote(self):
        quote_id = uuid4()
        params = load_quote_defaults().parameters_for(quote_id)
        assert params.quote_id == quote_id
        assert params.margin_pct == Decimal("13")
        assert params.monthly_hours_standard == Decimal("180")
        assert params.holiday_annual_count is None
        assert params.sale_price_monthly == Decimal("0")

    def test_overrides_win(self):
        params = load_quote_defaults().parameters_for(
            uuid4(), margin_pct=Decimal("20"), financial_enabled=True
        )
        assert params.margin_pct == Decimal("20")
        assert params.financial_enabled is True

    def test_holidays_enabled(self, tmp_path):
        path = tmp_path / "defaults.yaml"
        path.write_text(yaml.safe_dump({
            "quote_parameters": {"margin_pct": "15"},
            "holidays": {"enabled": True, "annual_count": "16", "commercial_buffer_pct": "5"},
        }))
        defaults = load_quote_defaults(path)
        params = defaults.parameters_for(uuid4())
        assert params.holiday_annual_count == Decimal("16")
        assert params.holiday_commercial_buffer_pct == Decimal("5")
        assert params.margin_pct == Decimal("15")

    def test_invalid_number(self, tmp_path):
        path = tmp_path / "defaults.yaml"
        path.write_text(yaml.safe_dump({"quote_parameters": {"margin_pct": "thirteen"}}))
        with pytest.raises(ValueError, match="quote_parameters.margin_pct"):
            load_quote_defaults(path)
