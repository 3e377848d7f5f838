"""
Salary inputs and employer cost results.

``SalaryInput`` is what the quote author types on a position: base salary,
contract type, pension and health affiliation, optional extras and the
provisioning assumptions.  ``EmployerCostResult`` is the immutable output
of ``cpq_engines.employer_cost.compute_employer_cost``; it is recomputed,
never patched.

Naming convention: ``*_pct`` fields are percentages (7 means 7%),
``*_rate`` fields are fractions (0.07).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from cpq_kernel.domain.values import ZERO, to_decimal


class ContractType(str, Enum):
    """Labor contract type; drives the AFC split."""

    INDEFINITE = "indefinite"
    FIXED_TERM = "fixed_term"


class HealthSystem(str, Enum):
    FONASA = "fonasa"  # Public, flat statutory rate
    ISAPRE = "isapre"  # Private, plan rate with statutory floor


class WorkInjuryRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    SECURITY_INDUSTRY = "security_industry"


@dataclass(frozen=True)
class SalaryAssumptions:
    """Costing assumptions that are not part of the worker's pay slip."""

    include_gratification: bool = True
    include_vacation_provision: bool = True
    include_severance_provision: bool = True
    vacation_provision_pct: Decimal | None = None  # Overrides rule snapshot
    severance_provision_pct: Decimal | None = None
    work_injury_override_rate: Decimal | None = None

    def __post_init__(self) -> None:
        for name in (
            "vacation_provision_pct",
            "severance_provision_pct",
            "work_injury_override_rate",
        ):
            value = getattr(self, name)
            if value is not None:
                value = to_decimal(value)
                if value < ZERO:
                    raise ValueError(f"{name} cannot be negative")
                object.__setattr__(self, name, value)


@dataclass(frozen=True)
class SalaryInput:
    """
    Per-position compensation inputs for one guard.

    ``contract_type`` and ``health_system`` are kept as the raw strings the
    caller supplied; the calculator validates them against the rule
    snapshot so an unknown value surfaces as a typed error.
    """

    base_salary_clp: Decimal
    contract_type: str = ContractType.INDEFINITE.value
    afp_provider: str = "habitat"
    health_system: str = HealthSystem.FONASA.value
    health_plan_pct: Decimal = Decimal("7")
    work_injury_risk: str = WorkInjuryRisk.MEDIUM.value

    # Taxable extras
    overtime_hours_50: Decimal = ZERO
    commissions_clp: Decimal = ZERO
    taxable_bonuses_clp: Decimal = ZERO

    # Non-taxable allowances
    transport_allowance_clp: Decimal = ZERO
    meal_allowance_clp: Decimal = ZERO
    num_dependents: int = 0
    has_maternal_allowance: bool = False

    assumptions: SalaryAssumptions = field(default_factory=SalaryAssumptions)

    def __post_init__(self) -> None:
        for name in (
            "base_salary_clp",
            "health_plan_pct",
            "overtime_hours_50",
            "commissions_clp",
            "taxable_bonuses_clp",
            "transport_allowance_clp",
            "meal_allowance_clp",
        ):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        for name in ("contract_type", "health_system", "work_injury_risk", "afp_provider"):
            object.__setattr__(self, name, _normalize_code(getattr(self, name)))
        if self.num_dependents < 0:
            raise ValueError("num_dependents cannot be negative")

    def to_dict(self) -> dict:
        """Plain-JSON form used by the record store."""
        a = self.assumptions
        return {
            "base_salary_clp": str(self.base_salary_clp),
            "contract_type": self.contract_type,
            "afp_provider": self.afp_provider,
            "health_system": self.health_system,
            "health_plan_pct": str(self.health_plan_pct),
            "work_injury_risk": self.work_injury_risk,
            "overtime_hours_50": str(self.overtime_hours_50),
            "commissions_clp": str(self.commissions_clp),
            "taxable_bonuses_clp": str(self.taxable_bonuses_clp),
            "transport_allowance_clp": str(self.transport_allowance_clp),
            "meal_allowance_clp": str(self.meal_allowance_clp),
            "num_dependents": self.num_dependents,
            "has_maternal_allowance": self.has_maternal_allowance,
            "assumptions": {
                "include_gratification": a.include_gratification,
                "include_vacation_provision": a.include_vacation_provision,
                "include_severance_provision": a.include_severance_provision,
                "vacation_provision_pct": _opt_str(a.vacation_provision_pct),
                "severance_provision_pct": _opt_str(a.severance_provision_pct),
                "work_injury_override_rate": _opt_str(a.work_injury_override_rate),
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> SalaryInput:
        assumptions = SalaryAssumptions(**(data.get("assumptions") or {}))
        fields = {k: v for k, v in data.items() if k != "assumptions"}
        return cls(assumptions=assumptions, **fields)


def _normalize_code(value) -> str:
    """Enum member or free text -> lower-case code."""
    return str(getattr(value, "value", value)).strip().lower()


def _opt_str(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


@dataclass(frozen=True)
class EmployerCostBreakdown:
    """Employer-side detail, all amounts rounded to whole pesos."""

    base_salary: Decimal
    gratification: Decimal
    overtime: Decimal
    commissions: Decimal
    taxable_bonuses: Decimal
    total_taxable_income: Decimal
    transport_allowance: Decimal
    meal_allowance: Decimal
    family_allowance: Decimal
    total_non_taxable_income: Decimal
    sis_employer: Decimal
    afc_employer: Decimal
    work_injury_rate: Decimal
    work_injury_employer: Decimal
    vacation_provision: Decimal
    severance_provision: Decimal

    @property
    def total_employer_charges(self) -> Decimal:
        return (
            self.sis_employer
            + self.afc_employer
            + self.work_injury_employer
            + self.vacation_provision
            + self.severance_provision
        )


@dataclass(frozen=True)
class WorkerDeductions:
    """Amounts withheld from the worker; not an employer cost."""

    afp: Decimal
    health: Decimal
    afc: Decimal
    income_tax: Decimal
    afp_rate: Decimal
    health_rate: Decimal

    @property
    def total(self) -> Decimal:
        return self.afp + self.health + self.afc + self.income_tax


@dataclass(frozen=True)
class EmployerCostResult:
    """
    Immutable output of the employer cost calculator.

    Guarantees:
        - ``monthly_employer_cost_clp`` and
          ``worker_net_salary_estimate_clp`` are whole pesos.
        - ``payroll_rule_version_id`` names the snapshot that produced it.
    """

    monthly_employer_cost_clp: Decimal
    worker_net_salary_estimate_clp: Decimal
    payroll_rule_version_id: str
    computed_at: datetime
    breakdown: EmployerCostBreakdown
    worker_deductions: WorkerDeductions
    cost_to_net_ratio: Decimal
