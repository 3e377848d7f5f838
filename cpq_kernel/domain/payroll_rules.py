"""
PayrollRuleSnapshot -- Immutable, versioned Chilean payroll parameters.

Responsibility:
    Carries every jurisdiction constant the employer cost calculator needs:
    AFP base rate and provider commissions, health rates, unemployment
    insurance (AFC) splits per contract type, SIS, work-injury rates,
    gratification formula, taxable caps, UF/UTM/minimum-wage references,
    income tax brackets, family allowance tranches and provision rates.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.  Built by ``cpq_config`` from
    a published YAML rule set and passed explicitly into every engine.
    No engine loads rules on its own.

Invariants enforced:
    - Immutability: all fields are frozen; mappings are wrapped in
      ``MappingProxyType``.  A new rule version supersedes, never patches.
    - Rates are fractions in [0, 1].
    - Tax brackets and allowance tranches are strictly ascending and the
      last entry is open-ended (``upper_bound_clp is None``).

Failure modes:
    - ValueError on construction with out-of-range rates or malformed
      bracket tables.

Audit relevance:
    ``version_id`` and ``content_hash`` are stamped on every
    ``EmployerCostResult`` so a historical quote can be reproduced with
    the exact parameters that priced it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType

from cpq_kernel.domain.values import ONE, ZERO


def _check_rate(name: str, rate: Decimal) -> None:
    if rate < ZERO or rate > ONE:
        raise ValueError(f"{name} must be between 0 and 1, got {rate}")


def _freeze(mapping: Mapping[str, Decimal]) -> Mapping[str, Decimal]:
    return MappingProxyType({k.lower(): v for k, v in mapping.items()})


@dataclass(frozen=True)
class AfpRules:
    """Mandatory pension contribution: base rate plus per-provider commission."""

    base_rate: Decimal
    commissions: Mapping[str, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_rate("AFP base rate", self.base_rate)
        for name, rate in self.commissions.items():
            _check_rate(f"AFP commission {name}", rate)
        object.__setattr__(self, "commissions", _freeze(self.commissions))

    def total_rate_for(self, provider: str) -> Decimal | None:
        """Base rate + commission, or None when the provider is unknown.

        Provider lookup is case-insensitive.
        """
        commission = self.commissions.get(provider.strip().lower())
        if commission is None:
            return None
        return self.base_rate + commission

    @property
    def providers(self) -> list[str]:
        return sorted(self.commissions)


@dataclass(frozen=True)
class HealthRules:
    fonasa_rate: Decimal
    isapre_min_rate: Decimal

    def __post_init__(self) -> None:
        _check_rate("Fonasa rate", self.fonasa_rate)
        _check_rate("Isapre minimum rate", self.isapre_min_rate)


@dataclass(frozen=True)
class AfcContractRates:
    """Unemployment insurance split for one contract type."""

    worker_rate: Decimal
    employer_cic_rate: Decimal
    employer_fcs_rate: Decimal

    def __post_init__(self) -> None:
        _check_rate("AFC worker rate", self.worker_rate)
        _check_rate("AFC employer CIC rate", self.employer_cic_rate)
        _check_rate("AFC employer FCS rate", self.employer_fcs_rate)

    @property
    def employer_rate(self) -> Decimal:
        return self.employer_cic_rate + self.employer_fcs_rate


@dataclass(frozen=True)
class AfcRules:
    indefinite: AfcContractRates
    fixed_term: AfcContractRates


@dataclass(frozen=True)
class WorkInjuryRules:
    """Occupational accident insurance (mutual) rates."""

    base_rate: Decimal
    risk_levels: Mapping[str, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_rate("Work injury base rate", self.base_rate)
        for name, rate in self.risk_levels.items():
            _check_rate(f"Work injury rate {name}", rate)
        object.__setattr__(self, "risk_levels", _freeze(self.risk_levels))

    def rate_for(self, risk_level: str | None) -> Decimal:
        """Risk-classified rate, falling back to the base rate."""
        if risk_level is None:
            return self.base_rate
        return self.risk_levels.get(risk_level.strip().lower(), self.base_rate)


@dataclass(frozen=True)
class GratificationRules:
    """Legal gratification, 25% monthly regime capped at 4.75 minimum wages a year."""

    monthly_rate: Decimal = Decimal("0.25")
    annual_cap_imm_multiple: Decimal = Decimal("4.75")

    def __post_init__(self) -> None:
        _check_rate("Gratification monthly rate", self.monthly_rate)
        if self.annual_cap_imm_multiple < ZERO:
            raise ValueError("Gratification cap multiple cannot be negative")


@dataclass(frozen=True)
class ContributionCaps:
    """Taxable caps expressed in UF."""

    pension_uf: Decimal
    health_uf: Decimal
    afc_uf: Decimal

    def __post_init__(self) -> None:
        for name in ("pension_uf", "health_uf", "afc_uf"):
            if getattr(self, name) <= ZERO:
                raise ValueError(f"Cap {name} must be positive")


@dataclass(frozen=True)
class ReferenceValues:
    """UF, UTM and minimum wage (IMM) in CLP, captured with the rule version."""

    uf_clp: Decimal
    utm_clp: Decimal
    imm_clp: Decimal

    def __post_init__(self) -> None:
        for name in ("uf_clp", "utm_clp", "imm_clp"):
            if getattr(self, name) <= ZERO:
                raise ValueError(f"Reference {name} must be positive")


@dataclass(frozen=True)
class TaxBracket:
    """One marginal bracket; ``upper_bound_clp`` None means open-ended."""

    upper_bound_clp: Decimal | None
    marginal_rate: Decimal

    def __post_init__(self) -> None:
        _check_rate("Marginal tax rate", self.marginal_rate)


@dataclass(frozen=True)
class FamilyAllowanceTranche:
    upper_bound_clp: Decimal | None
    amount_per_dependent: Decimal
    amount_maternal: Decimal = ZERO


def _check_ascending(name: str, bounds: list[Decimal | None]) -> None:
    if not bounds:
        raise ValueError(f"{name} cannot be empty")
    if bounds[-1] is not None:
        raise ValueError(f"Last {name} entry must be open-ended")
    closed = bounds[:-1]
    if any(b is None for b in closed):
        raise ValueError(f"Only the last {name} entry may be open-ended")
    for lower, upper in zip(closed, closed[1:]):
        if upper <= lower:
            raise ValueError(f"{name} upper bounds must be strictly ascending")


@dataclass(frozen=True)
class PayrollRuleSnapshot:
    """
    One published version of the payroll parameters.

    Contract:
        Immutable.  Referenced by ``version_id`` from every computed
        position.  Superseded by publishing a new version.

    Guarantees:
        - ``income_tax_brackets`` ascending, last open-ended.
        - ``family_allowance`` ascending, last open-ended (may be empty
          when the allowance is disabled).
        - All rates in [0, 1].
    """

    version_id: str
    name: str
    effective_from: date
    afp: AfpRules
    health: HealthRules
    afc: AfcRules
    sis_employer_rate: Decimal
    work_injury: WorkInjuryRules
    gratification: GratificationRules
    caps: ContributionCaps
    references: ReferenceValues
    income_tax_brackets: tuple[TaxBracket, ...]
    vacation_provision_rate: Decimal
    severance_provision_rate: Decimal
    family_allowance: tuple[FamilyAllowanceTranche, ...] = ()
    effective_until: date | None = None
    content_hash: str = ""

    def __post_init__(self) -> None:
        if not self.version_id:
            raise ValueError("Payroll rule snapshot requires a version_id")
        _check_rate("SIS employer rate", self.sis_employer_rate)
        _check_rate("Vacation provision rate", self.vacation_provision_rate)
        _check_rate("Severance provision rate", self.severance_provision_rate)
        _check_ascending(
            "income tax bracket",
            [b.upper_bound_clp for b in self.income_tax_brackets],
        )
        if self.family_allowance:
            _check_ascending(
                "family allowance tranche",
                [t.upper_bound_clp for t in self.family_allowance],
            )
        if self.effective_until and self.effective_until < self.effective_from:
            raise ValueError("effective_until precedes effective_from")

    @property
    def afp_rates_by_provider(self) -> dict[str, Decimal]:
        """Total worker AFP rate (base + commission) per provider."""
        return {
            name: self.afp.base_rate + commission
            for name, commission in self.afp.commissions.items()
        }

    @property
    def health_base_rate(self) -> Decimal:
        return self.health.fonasa_rate

    def afc_for(self, contract_type: str) -> AfcContractRates:
        return self.afc.indefinite if contract_type == "indefinite" else self.afc.fixed_term

    def is_effective(self, on_date: date) -> bool:
        if on_date < self.effective_from:
            return False
        return self.effective_until is None or on_date <= self.effective_until
