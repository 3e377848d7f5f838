"""
Second-category income tax (Impuesto Único) on monthly wages.

Pure marginal computation over the bracket table carried by the payroll
rule snapshot: each slice of income between two bounds is taxed at that
bracket's marginal rate.  Equivalent to the SII "factor minus rebate"
table, without having to store the rebate column.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from cpq_kernel.domain.payroll_rules import TaxBracket
from cpq_kernel.domain.values import ZERO


def compute_income_tax(taxable_base: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """
    Progressive tax on ``taxable_base`` (unrounded).

    Args:
        taxable_base: Taxable income net of pension, health and AFC.
            Negative values are treated as zero.
        brackets: Ascending brackets, last one open-ended.

    Returns:
        Tax amount as Decimal.
    """
    if taxable_base <= ZERO:
        return ZERO

    tax = ZERO
    lower = ZERO
    for bracket in brackets:
        upper = bracket.upper_bound_clp
        if upper is None or taxable_base <= upper:
            tax += (taxable_base - lower) * bracket.marginal_rate
            return tax
        tax += (upper - lower) * bracket.marginal_rate
        lower = upper
    # Table without an open bracket: income above the last bound is untaxed.
    return tax


def effective_tax_rate(taxable_base: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Tax / base, zero for a non-positive base."""
    if taxable_base <= ZERO:
        return ZERO
    return compute_income_tax(taxable_base, brackets) / taxable_base
