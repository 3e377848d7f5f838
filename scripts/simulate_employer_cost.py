#!/usr/bin/env python3
"""
Payroll simulator: employer cost of one guard under the active rule set.

Prints the employer-side breakdown, the worker's deductions and net pay,
and optionally the monthly position cost, hourly cost and the sale price
at a given margin.

Usage:
    python3 scripts/simulate_employer_cost.py 600000
    python3 scripts/simulate_employer_cost.py 600000 --afp modelo --health isapre --health-plan-pct 8.5
    python3 scripts/simulate_employer_cost.py 750000 --guards 4 --puestos 2 --margin 13
    python3 scripts/simulate_employer_cost.py 600000 --rule-version cl-2026-02 --json
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _fmt(amount: Decimal) -> str:
    return f"{amount:>14,.0f}".replace(",", ".")


def _print_row(label: str, amount: Decimal) -> None:
    print(f"  {label:<34}{_fmt(amount)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chilean guard employer-cost simulator")
    parser.add_argument("base_salary", help="Monthly base salary in CLP")
    parser.add_argument("--contract-type", default="indefinite",
                        choices=["indefinite", "fixed_term"])
    parser.add_argument("--afp", default="habitat", help="AFP provider code")
    parser.add_argument("--health", default="fonasa", choices=["fonasa", "isapre"])
    parser.add_argument("--health-plan-pct", default="7",
                        help="Isapre plan percentage (ignored for fonasa)")
    parser.add_argument("--risk", default="security_industry",
                        help="Work injury risk level")
    parser.add_argument("--overtime-hours", default="0", help="Overtime hours at 50%%")
    parser.add_argument("--commissions", default="0")
    parser.add_argument("--bonuses", default="0", help="Taxable bonuses in CLP")
    parser.add_argument("--transport", default="0", help="Transport allowance in CLP")
    parser.add_argument("--meal", default="0", help="Meal allowance in CLP")
    parser.add_argument("--dependents", type=int, default=0)
    parser.add_argument("--maternal", action="store_true")
    parser.add_argument("--no-gratification", action="store_true")
    parser.add_argument("--no-provisions", action="store_true",
                        help="Exclude vacation and severance provisions")
    parser.add_argument("--guards", type=int, default=1)
    parser.add_argument("--puestos", type=int, default=1)
    parser.add_argument("--monthly-hours", default="180")
    parser.add_argument("--margin", default=None, help="Margin %% for a sale price")
    parser.add_argument("--as-of", default=None, help="Rule set date (YYYY-MM-DD)")
    parser.add_argument("--rule-version", default=None, help="Pin a rule set version id")
    parser.add_argument("--config-dir", default=None, help="Rule sets directory")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def main() -> int:
    args = build_parser().parse_args()

    from cpq_config import get_active_rules, get_rules_by_version
    from cpq_engines import compute_employer_cost, compute_hourly_cost, compute_sale_price
    from cpq_kernel.domain.salary import SalaryAssumptions, SalaryInput
    from cpq_kernel.domain.values import to_decimal
    from cpq_kernel.exceptions import CpqEngineError
    from cpq_kernel.logging_config import configure_logging

    configure_logging(level=getattr(logging, args.log_level.upper(), logging.WARNING))

    config_dir = Path(args.config_dir) if args.config_dir else None
    try:
        if args.rule_version:
            rules = get_rules_by_version(args.rule_version, config_dir)
        else:
            as_of = date.fromisoformat(args.as_of) if args.as_of else date.today()
            rules = get_active_rules(as_of, config_dir)

        salary = SalaryInput(
            base_salary_clp=args.base_salary,
            contract_type=args.contract_type,
            afp_provider=args.afp,
            health_system=args.health,
            health_plan_pct=args.health_plan_pct,
            work_injury_risk=args.risk,
            overtime_hours_50=args.overtime_hours,
            commissions_clp=args.commissions,
            taxable_bonuses_clp=args.bonuses,
            transport_allowance_clp=args.transport,
            meal_allowance_clp=args.meal,
            num_dependents=args.dependents,
            has_maternal_allowance=args.maternal,
            assumptions=SalaryAssumptions(
                include_gratification=not args.no_gratification,
                include_vacation_provision=not args.no_provisions,
                include_severance_provision=not args.no_provisions,
            ),
        )
        result = compute_employer_cost(salary, rules, datetime.now(timezone.utc))

        position_cost = result.monthly_employer_cost_clp * args.guards * max(1, args.puestos)
        hourly = compute_hourly_cost(result.monthly_employer_cost_clp, to_decimal(args.monthly_hours))
        sale_price = (
            compute_sale_price(position_cost, to_decimal(args.margin))
            if args.margin is not None
            else None
        )
    except (CpqEngineError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.json:
        payload = asdict(result)
        payload["monthly_position_cost_clp"] = position_cost
        payload["hourly_cost_clp"] = hourly
        payload["sale_price_monthly"] = sale_price
        print(json.dumps(payload, default=str, indent=2))
        return 0

    b = result.breakdown
    d = result.worker_deductions
    print(f"Payroll rules: {rules.version_id} ({rules.name})")
    print()
    print("Taxable income")
    _print_row("Base salary", b.base_salary)
    _print_row("Gratification", b.gratification)
    _print_row("Overtime", b.overtime)
    _print_row("Commissions", b.commissions)
    _print_row("Taxable bonuses", b.taxable_bonuses)
    _print_row("Total taxable", b.total_taxable_income)
    print("Non-taxable income")
    _print_row("Transport", b.transport_allowance)
    _print_row("Meal", b.meal_allowance)
    _print_row("Family allowance", b.family_allowance)
    _print_row("Total non-taxable", b.total_non_taxable_income)
    print("Employer charges")
    _print_row("SIS", b.sis_employer)
    _print_row("AFC employer", b.afc_employer)
    _print_row(f"Work injury ({b.work_injury_rate * 100:.2f}%)", b.work_injury_employer)
    _print_row("Vacation provision", b.vacation_provision)
    _print_row("Severance provision", b.severance_provision)
    print("Worker deductions")
    _print_row(f"AFP ({d.afp_rate * 100:.2f}%)", d.afp)
    _print_row(f"Health ({d.health_rate * 100:.2f}%)", d.health)
    _print_row("AFC worker", d.afc)
    _print_row("Income tax", d.income_tax)
    print()
    _print_row("MONTHLY EMPLOYER COST", result.monthly_employer_cost_clp)
    _print_row("Net salary estimate", result.worker_net_salary_estimate_clp)
    print(f"  {'Cost / net ratio':<34}{result.cost_to_net_ratio:>14}")
    _print_row(f"Position cost ({args.guards} x {max(1, args.puestos)})", position_cost)
    _print_row(f"Hourly cost ({args.monthly_hours} h)", hourly)
    if sale_price is not None:
        _print_row(f"Sale price at {args.margin}% margin", sale_price)
    return 0


if __name__ == "__main__":
    sys.exit(main())
