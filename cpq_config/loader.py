"""
Payroll Rule Set Loader (``cpq_config.loader``).

Responsibility
--------------
Loads a rule set YAML file and parses it into a frozen
``PayrollRuleSnapshot``.  This is **internal tooling**: services obtain
rules through ``cpq_config.get_active_rules()`` or
``cpq_config.get_rules_by_version()``.

Architecture position
---------------------
**Config layer**.  Depends on ``cpq_kernel.domain`` for the value objects;
never on engines or services.

Invariants enforced
-------------------
* Missing required keys raise ``KeyError``; malformed values raise
  ``ValueError``.  No silent defaults for rates.
* Numbers are read through ``str`` into ``Decimal`` so YAML floats never
  carry binary error into a rate.
* ``compute_checksum`` produces a deterministic SHA-256 of the parsed
  document, stamped on the snapshot as ``content_hash``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from cpq_config.lifecycle import ConfigStatus
from cpq_kernel.domain.payroll_rules import (
    AfcContractRates,
    AfcRules,
    AfpRules,
    ContributionCaps,
    FamilyAllowanceTranche,
    GratificationRules,
    HealthRules,
    PayrollRuleSnapshot,
    ReferenceValues,
    TaxBracket,
    WorkInjuryRules,
)

RULE_SET_FILENAME = "payroll.yaml"


@dataclass(frozen=True)
class RuleSetEntry:
    """A parsed rule set plus its lifecycle metadata."""

    snapshot: PayrollRuleSnapshot
    status: ConfigStatus
    version: int
    path: Path
    document: dict[str, Any]
    predecessor: str | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a YAML scalar into Decimal via its string form."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: invalid number {value!r}") from exc


def _optional_decimal(value: Any, field_name: str) -> Decimal | None:
    return None if value is None else parse_decimal(value, field_name)


def _rate_map(data: dict[str, Any], field_name: str) -> dict[str, Decimal]:
    return {
        str(name): parse_decimal(rate, f"{field_name}.{name}")
        for name, rate in (data or {}).items()
    }


def _parse_afc_contract(data: dict[str, Any], name: str) -> AfcContractRates:
    return AfcContractRates(
        worker_rate=parse_decimal(data["worker_rate"], f"afc.{name}.worker_rate"),
        employer_cic_rate=parse_decimal(data["employer_cic_rate"], f"afc.{name}.employer_cic_rate"),
        employer_fcs_rate=parse_decimal(data["employer_fcs_rate"], f"afc.{name}.employer_fcs_rate"),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_payroll_rules(data: dict[str, Any]) -> PayrollRuleSnapshot:
    """
    Parse a rule set document into a ``PayrollRuleSnapshot``.

    Raises:
        KeyError: required section or key missing.
        ValueError: malformed number, date, or rule table.
    """
    refs = data["references"]
    afp = data["afp"]
    health = data["health"]
    afc = data["afc"]
    caps = data["caps"]
    injury = data["work_injury"]
    grat = data.get("gratification") or {}
    provisions = data["provisions"]

    return PayrollRuleSnapshot(
        version_id=str(data["version_id"]),
        name=str(data.get("name", data["version_id"])),
        effective_from=parse_date(data["effective_from"]),
        effective_until=(
            parse_date(data["effective_until"]) if data.get("effective_until") else None
        ),
        references=ReferenceValues(
            uf_clp=parse_decimal(refs["uf_clp"], "references.uf_clp"),
            utm_clp=parse_decimal(refs["utm_clp"], "references.utm_clp"),
            imm_clp=parse_decimal(refs["imm_clp"], "references.imm_clp"),
        ),
        afp=AfpRules(
            base_rate=parse_decimal(afp["base_rate"], "afp.base_rate"),
            commissions=_rate_map(afp.get("commissions"), "afp.commissions"),
        ),
        sis_employer_rate=parse_decimal(data["sis"]["employer_rate"], "sis.employer_rate"),
        health=HealthRules(
            fonasa_rate=parse_decimal(health["fonasa_rate"], "health.fonasa_rate"),
            isapre_min_rate=parse_decimal(health["isapre_min_rate"], "health.isapre_min_rate"),
        ),
        afc=AfcRules(
            indefinite=_parse_afc_contract(afc["indefinite"], "indefinite"),
            fixed_term=_parse_afc_contract(afc["fixed_term"], "fixed_term"),
        ),
        caps=ContributionCaps(
            pension_uf=parse_decimal(caps["pension_uf"], "caps.pension_uf"),
            health_uf=parse_decimal(caps["health_uf"], "caps.health_uf"),
            afc_uf=parse_decimal(caps["afc_uf"], "caps.afc_uf"),
        ),
        work_injury=WorkInjuryRules(
            base_rate=parse_decimal(injury["base_rate"], "work_injury.base_rate"),
            risk_levels=_rate_map(injury.get("risk_levels"), "work_injury.risk_levels"),
        ),
        gratification=GratificationRules(
            monthly_rate=parse_decimal(grat.get("monthly_rate", "0.25"), "gratification.monthly_rate"),
            annual_cap_imm_multiple=parse_decimal(
                grat.get("annual_cap_imm_multiple", "4.75"),
                "gratification.annual_cap_imm_multiple",
            ),
        ),
        vacation_provision_rate=parse_decimal(provisions["vacation_rate"], "provisions.vacation_rate"),
        severance_provision_rate=parse_decimal(provisions["severance_rate"], "provisions.severance_rate"),
        income_tax_brackets=tuple(
            TaxBracket(
                upper_bound_clp=_optional_decimal(b.get("upper_bound_clp"), "income_tax_brackets.upper_bound_clp"),
                marginal_rate=parse_decimal(b["marginal_rate"], "income_tax_brackets.marginal_rate"),
            )
            for b in data["income_tax_brackets"]
        ),
        family_allowance=tuple(
            FamilyAllowanceTranche(
                upper_bound_clp=_optional_decimal(t.get("upper_bound_clp"), "family_allowance.upper_bound_clp"),
                amount_per_dependent=parse_decimal(t["amount_per_dependent"], "family_allowance.amount_per_dependent"),
                amount_maternal=parse_decimal(t.get("amount_maternal", "0"), "family_allowance.amount_maternal"),
            )
            for t in data.get("family_allowance") or ()
        ),
        content_hash=compute_checksum(data),
    )


def load_rule_set(directory: Path) -> RuleSetEntry:
    """Load ``<directory>/payroll.yaml`` with its lifecycle metadata."""
    path = directory / RULE_SET_FILENAME
    data = load_yaml_file(path)
    return RuleSetEntry(
        snapshot=parse_payroll_rules(data),
        status=ConfigStatus(data.get("status", ConfigStatus.DRAFT.value)),
        version=int(data.get("version", 1)),
        path=path,
        document=data,
        predecessor=data.get("predecessor"),
    )
