"""
Employer Cost Engine -- Monthly cost of one guard to the employer.

Responsibility:
    Given one guard's ``SalaryInput`` and an explicit
    ``PayrollRuleSnapshot``, compute gratification, taxable income,
    employer-side charges (SIS, AFC employer share, work-injury insurance,
    vacation and severance provisions), employee-side deductions (AFP,
    health, AFC employee share), second-category income tax, the worker's
    net salary estimate and the total monthly employer cost.

Architecture position:
    Engines -- pure calculation, no I/O.  The snapshot and ``computed_at``
    are arguments; this module never loads rules nor reads the clock.

Invariants enforced:
    - Deterministic: identical (salary, rules, computed_at) give identical
      results.
    - Monotonic in base salary: every term except the family allowance
      is non-decreasing in base salary.  The allowance steps down across
      income tranches, so monotonicity holds for guards without
      dependents.
    - Worker deductions are excluded from the employer cost; they are
      withheld from the worker.
    - Contribution bases are capped at ``cap_uf x UF`` from the snapshot.

Failure modes:
    - InvalidSalaryInputError: base salary <= 0, negative extras, unknown
      contract type.
    - UnknownAfpProviderError: provider missing from the snapshot.
    - UnknownHealthSystemError: neither fonasa nor isapre.
    - An isapre plan below the statutory minimum is clamped up to the
      minimum and logged; it is not an error.

Usage:
    from cpq_engines.employer_cost import compute_employer_cost

    result = compute_employer_cost(salary, rules, computed_at=clock.now())
    result.monthly_employer_cost_clp   # Decimal, whole pesos
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from cpq_engines.income_tax import compute_income_tax
from cpq_engines.tracer import traced_engine
from cpq_kernel.domain.payroll_rules import PayrollRuleSnapshot
from cpq_kernel.domain.salary import (
    ContractType,
    EmployerCostBreakdown,
    EmployerCostResult,
    HealthSystem,
    SalaryInput,
    WorkerDeductions,
)
from cpq_kernel.domain.values import (
    MONTHS_PER_YEAR,
    ZERO,
    floor_clp,
    pct_to_rate,
    round_clp,
)
from cpq_kernel.exceptions import (
    InvalidSalaryInputError,
    UnknownAfpProviderError,
    UnknownHealthSystemError,
)
from cpq_kernel.logging_config import get_logger

logger = get_logger("engines.employer_cost")

# Overtime at 50% surcharge: hourly value is base / 30 days / 8 hours.
DAYS_PER_MONTH = Decimal("30")
HOURS_PER_DAY = Decimal("8")
OVERTIME_FACTOR = Decimal("1.5")

_RATIO_PLACES = Decimal("0.0001")

_NON_NEGATIVE_FIELDS = (
    "overtime_hours_50",
    "commissions_clp",
    "taxable_bonuses_clp",
    "transport_allowance_clp",
    "meal_allowance_clp",
)


def _validate(salary: SalaryInput) -> None:
    if salary.base_salary_clp <= ZERO:
        raise InvalidSalaryInputError(
            "base_salary_clp", str(salary.base_salary_clp), "must be greater than 0"
        )
    for name in _NON_NEGATIVE_FIELDS:
        value = getattr(salary, name)
        if value < ZERO:
            raise InvalidSalaryInputError(name, str(value), "cannot be negative")
    if salary.contract_type not in {c.value for c in ContractType}:
        raise InvalidSalaryInputError(
            "contract_type", salary.contract_type, "must be indefinite or fixed_term"
        )
    if salary.health_system not in {h.value for h in HealthSystem}:
        raise UnknownHealthSystemError(salary.health_system)


def compute_gratification(base_salary: Decimal, rules: PayrollRuleSnapshot) -> Decimal:
    """25% of base salary, capped at 4.75 minimum wages a year (monthly share)."""
    monthly = base_salary * rules.gratification.monthly_rate
    monthly_cap = (
        rules.references.imm_clp * rules.gratification.annual_cap_imm_multiple / MONTHS_PER_YEAR
    )
    return min(monthly, monthly_cap)


def compute_family_allowance(
    total_taxable: Decimal,
    num_dependents: int,
    has_maternal: bool,
    rules: PayrollRuleSnapshot,
) -> Decimal:
    """Family allowance for the tranche that contains ``total_taxable``."""
    if not num_dependents or not rules.family_allowance:
        return ZERO
    for tranche in rules.family_allowance:
        if tranche.upper_bound_clp is None or total_taxable <= tranche.upper_bound_clp:
            amount = tranche.amount_per_dependent * num_dependents
            if has_maternal:
                amount += tranche.amount_maternal
            return amount
    return ZERO


def _health_rate(salary: SalaryInput, rules: PayrollRuleSnapshot) -> Decimal:
    if salary.health_system == HealthSystem.FONASA.value:
        return rules.health.fonasa_rate
    plan_rate = pct_to_rate(salary.health_plan_pct)
    if plan_rate < rules.health.isapre_min_rate:
        logger.warning(
            "isapre_plan_rate_clamped",
            extra={
                "requested_rate": str(plan_rate),
                "minimum_rate": str(rules.health.isapre_min_rate),
                "payroll_rule_version_id": rules.version_id,
            },
        )
        return rules.health.isapre_min_rate
    return plan_rate


@traced_engine("employer_cost", "1.0", fingerprint_fields=("salary", "rules"))
def compute_employer_cost(
    salary: SalaryInput,
    rules: PayrollRuleSnapshot,
    computed_at: datetime,
) -> EmployerCostResult:
    """
    Compute the monthly employer cost of one guard.

    Args:
        salary: Compensation inputs for the guard.
        rules: Payroll parameters to apply.
        computed_at: Timestamp stamped on the result (from an injected Clock).

    Returns:
        EmployerCostResult with breakdown and worker deductions.

    Raises:
        InvalidSalaryInputError, UnknownAfpProviderError,
        UnknownHealthSystemError.
    """
    _validate(salary)

    afp_rate = rules.afp.total_rate_for(salary.afp_provider)
    if afp_rate is None:
        logger.error("afp_provider_not_found", extra={
            "afp_provider": salary.afp_provider,
            "payroll_rule_version_id": rules.version_id,
        })
        raise UnknownAfpProviderError(
            salary.afp_provider, rules.version_id, rules.afp.providers
        )

    assumptions = salary.assumptions
    base = salary.base_salary_clp
    uf = rules.references.uf_clp

    # Taxable income
    gratification = (
        compute_gratification(base, rules) if assumptions.include_gratification else ZERO
    )
    overtime = ZERO
    if salary.overtime_hours_50 > ZERO:
        hour_value = base / DAYS_PER_MONTH / HOURS_PER_DAY
        overtime = salary.overtime_hours_50 * hour_value * OVERTIME_FACTOR
    total_taxable = (
        base + gratification + overtime + salary.commissions_clp + salary.taxable_bonuses_clp
    )

    pension_base = min(total_taxable, rules.caps.pension_uf * uf)
    health_base = min(total_taxable, rules.caps.health_uf * uf)
    afc_base = min(total_taxable, rules.caps.afc_uf * uf)

    # Non-taxable allowances, paid by the employer
    family_allowance = compute_family_allowance(
        total_taxable, salary.num_dependents, salary.has_maternal_allowance, rules
    )
    total_non_taxable = (
        salary.transport_allowance_clp + salary.meal_allowance_clp + family_allowance
    )

    # Employer charges
    afc = rules.afc_for(salary.contract_type)
    afc_employer = afc_base * afc.employer_rate
    sis_employer = pension_base * rules.sis_employer_rate
    if assumptions.work_injury_override_rate is not None:
        work_injury_rate = assumptions.work_injury_override_rate
    else:
        work_injury_rate = rules.work_injury.rate_for(salary.work_injury_risk)
    work_injury_employer = pension_base * work_injury_rate

    vacation_rate = (
        pct_to_rate(assumptions.vacation_provision_pct)
        if assumptions.vacation_provision_pct is not None
        else rules.vacation_provision_rate
    )
    severance_rate = (
        pct_to_rate(assumptions.severance_provision_pct)
        if assumptions.severance_provision_pct is not None
        else rules.severance_provision_rate
    )
    vacation_provision = (
        total_taxable * vacation_rate if assumptions.include_vacation_provision else ZERO
    )
    severance_provision = (
        total_taxable * severance_rate if assumptions.include_severance_provision else ZERO
    )

    employer_cost = round_clp(
        total_taxable
        + total_non_taxable
        + afc_employer
        + sis_employer
        + work_injury_employer
        + vacation_provision
        + severance_provision
    )

    # Worker deductions, truncated to whole pesos
    health_rate = _health_rate(salary, rules)
    afp_worker = floor_clp(pension_base * afp_rate)
    health_worker = floor_clp(health_base * health_rate)
    afc_worker = floor_clp(afc_base * afc.worker_rate)
    tax_base = max(ZERO, total_taxable - afp_worker - health_worker - afc_worker)
    income_tax = round_clp(compute_income_tax(tax_base, rules.income_tax_brackets))

    deductions = WorkerDeductions(
        afp=afp_worker,
        health=health_worker,
        afc=afc_worker,
        income_tax=income_tax,
        afp_rate=afp_rate,
        health_rate=health_rate,
    )
    net_salary = round_clp(total_taxable + total_non_taxable) - deductions.total

    breakdown = EmployerCostBreakdown(
        base_salary=round_clp(base),
        gratification=round_clp(gratification),
        overtime=round_clp(overtime),
        commissions=round_clp(salary.commissions_clp),
        taxable_bonuses=round_clp(salary.taxable_bonuses_clp),
        total_taxable_income=round_clp(total_taxable),
        transport_allowance=round_clp(salary.transport_allowance_clp),
        meal_allowance=round_clp(salary.meal_allowance_clp),
        family_allowance=round_clp(family_allowance),
        total_non_taxable_income=round_clp(total_non_taxable),
        sis_employer=round_clp(sis_employer),
        afc_employer=round_clp(afc_employer),
        work_injury_rate=work_injury_rate,
        work_injury_employer=round_clp(work_injury_employer),
        vacation_provision=round_clp(vacation_provision),
        severance_provision=round_clp(severance_provision),
    )

    ratio = ZERO
    if net_salary > ZERO:
        ratio = (employer_cost / net_salary).quantize(_RATIO_PLACES)

    logger.info("employer_cost_computed", extra={
        "payroll_rule_version_id": rules.version_id,
        "base_salary_clp": str(base),
        "contract_type": salary.contract_type,
        "afp_provider": salary.afp_provider,
        "health_system": salary.health_system,
        "monthly_employer_cost_clp": str(employer_cost),
        "worker_net_salary_estimate_clp": str(net_salary),
    })

    return EmployerCostResult(
        monthly_employer_cost_clp=employer_cost,
        worker_net_salary_estimate_clp=net_salary,
        payroll_rule_version_id=rules.version_id,
        computed_at=computed_at,
        breakdown=breakdown,
        worker_deductions=deductions,
        cost_to_net_ratio=ratio,
    )
