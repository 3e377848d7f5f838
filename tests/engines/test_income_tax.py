"""Tests for the progressive second-category income tax."""

from decimal import Decimal

from cpq_engines.income_tax import compute_income_tax, effective_tax_rate
from cpq_kernel.domain.payroll_rules import TaxBracket

BRACKETS = (
    TaxBracket(Decimal("1000"), Decimal("0")),
    TaxBracket(Decimal("2000"), Decimal("0.10")),
    TaxBracket(None, Decimal("0.20")),
)


class TestComputeIncomeTax:
    def test_exempt_bracket(self):
        assert compute_income_tax(Decimal("1000"), BRACKETS) == Decimal("0")

    def test_marginal_rate_on_excess_only(self):
        assert compute_income_tax(Decimal("1500"), BRACKETS) == Decimal("50")

    def test_open_bracket(self):
        # 1000 x 0.10 + 500 x 0.20
        assert compute_income_tax(Decimal("2500"), BRACKETS) == Decimal("200")

    def test_non_positive_base(self):
        assert compute_income_tax(Decimal("-5"), BRACKETS) == Decimal("0")

    def test_seed_brackets(self, rules):
        brackets = rules.income_tax_brackets
        assert compute_income_tax(Decimal("939748.5"), brackets) == Decimal("0")
        assert compute_income_tax(Decimal("1000000"), brackets) == Decimal("2410.060")
        assert compute_income_tax(Decimal("2500000"), brackets) == Decimal("78876.860")

    def test_effective_rate(self):
        assert effective_tax_rate(Decimal("2500"), BRACKETS) == Decimal("0.08")
        assert effective_tax_rate(Decimal("0"), BRACKETS) == Decimal("0")
