"""
cpq_config -- versioned payroll rule sets and quote defaults.

Responsibility:
    The only way to obtain payroll parameters at runtime.
    ``get_active_rules()`` returns the published ``PayrollRuleSnapshot``
    whose effective range covers a date; ``get_rules_by_version()``
    returns a specific (possibly superseded) version so historical quotes
    can be re-costed.  ``load_quote_defaults()`` returns the defaults for
    new quote parameters and salary inputs.

Architecture position:
    Configuration -- sits above ``cpq_kernel`` and below
    ``cpq_services``.  Engines never import this package: rules are
    passed into them as snapshots.

Invariants enforced:
    - Only PUBLISHED rule sets are considered by ``get_active_rules``.
    - When several published sets cover the date, the highest version
      wins (ties broken by the later ``effective_from``).
    - Every snapshot carries the SHA-256 ``content_hash`` of its source.

Failure modes:
    - RuleVersionNotFoundError -- no published set covers the date, or
      no set has the requested version id.
    - FileNotFoundError -- the sets directory does not exist.
    - ValueError / KeyError -- malformed rule set.

Audit relevance:
    Every successful lookup emits ``CPQ_CONFIG_TRACE`` with the version
    id, version number, status and content hash.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import UUID

from cpq_config.lifecycle import ConfigStatus
from cpq_config.loader import (
    RULE_SET_FILENAME,
    RuleSetEntry,
    load_rule_set,
    load_yaml_file,
    parse_decimal,
)
from cpq_kernel.domain.payroll_rules import PayrollRuleSnapshot
from cpq_kernel.domain.quote import QuoteParameters
from cpq_kernel.exceptions import RuleVersionNotFoundError
from cpq_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_QUOTE_DEFAULTS = Path(__file__).parent / "quote_defaults.yaml"

__all__ = [
    "ConfigStatus",
    "QuoteDefaults",
    "RuleSetEntry",
    "get_active_rules",
    "get_rules_by_version",
    "list_rule_sets",
    "load_quote_defaults",
]


def list_rule_sets(config_dir: Path | None = None) -> list[RuleSetEntry]:
    """
    Load every rule set under ``config_dir`` (default: cpq_config/sets/).

    Raises:
        FileNotFoundError: if ``config_dir`` does not exist.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Rule sets directory not found: {sets_dir}")

    entries: list[RuleSetEntry] = []
    for subdir in sorted(sets_dir.iterdir()):
        if subdir.is_dir() and (subdir / RULE_SET_FILENAME).exists():
            entries.append(load_rule_set(subdir))
    return entries


def _trace(entry: RuleSetEntry, lookup: str) -> None:
    _logger.info(
        "CPQ_CONFIG_TRACE",
        extra={
            "trace_type": "CPQ_CONFIG_TRACE",
            "lookup": lookup,
            "payroll_rule_version_id": entry.snapshot.version_id,
            "rule_set_version": entry.version,
            "status": entry.status.value,
            "content_hash": entry.snapshot.content_hash,
            "effective_from": entry.snapshot.effective_from.isoformat(),
        },
    )


def get_active_rules(
    as_of_date: date,
    config_dir: Path | None = None,
) -> PayrollRuleSnapshot:
    """
    The published payroll rules in force on ``as_of_date``.

    Raises:
        RuleVersionNotFoundError: no published rule set covers the date.
    """
    candidates = [
        entry
        for entry in list_rule_sets(config_dir)
        if entry.status == ConfigStatus.PUBLISHED and entry.snapshot.is_effective(as_of_date)
    ]
    if not candidates:
        raise RuleVersionNotFoundError(f"as_of:{as_of_date.isoformat()}")

    entry = max(candidates, key=lambda e: (e.version, e.snapshot.effective_from))
    _trace(entry, "active")
    return entry.snapshot


def get_rules_by_version(
    version_id: str,
    config_dir: Path | None = None,
) -> PayrollRuleSnapshot:
    """
    A specific rule set by ``version_id``, whatever its status.

    Raises:
        RuleVersionNotFoundError: no rule set has this version id.
    """
    for entry in list_rule_sets(config_dir):
        if entry.snapshot.version_id == version_id:
            _trace(entry, "by_version")
            return entry.snapshot
    raise RuleVersionNotFoundError(version_id)


@dataclass(frozen=True)
class QuoteDefaults:
    """Defaults for new quotes and new positions."""

    quote_parameters: dict[str, Any] = field(default_factory=dict)
    holiday_annual_count: Decimal | None = None
    holiday_commercial_buffer_pct: Decimal = Decimal("10")
    salary: dict[str, Any] = field(default_factory=dict)

    def parameters_for(self, quote_id: UUID, **overrides: Any) -> QuoteParameters:
        """QuoteParameters for a new quote, defaults first then overrides."""
        values: dict[str, Any] = dict(self.quote_parameters)
        values["holiday_annual_count"] = self.holiday_annual_count
        values["holiday_commercial_buffer_pct"] = self.holiday_commercial_buffer_pct
        values.update(overrides)
        return QuoteParameters(quote_id=quote_id, **values)


_BOOLEAN_PARAMETERS = frozenset({"financial_enabled", "policy_enabled"})


def load_quote_defaults(path: Path | None = None) -> QuoteDefaults:
    """
    Read quote defaults (default: cpq_config/quote_defaults.yaml).

    Holiday settings only produce a ``holiday_annual_count`` when
    ``holidays.enabled`` is true.
    """
    data = load_yaml_file(path or _DEFAULT_QUOTE_DEFAULTS)

    parameters: dict[str, Any] = {}
    for name, value in (data.get("quote_parameters") or {}).items():
        if name in _BOOLEAN_PARAMETERS:
            parameters[name] = bool(value)
        else:
            parameters[name] = parse_decimal(value, f"quote_parameters.{name}")

    holidays = data.get("holidays") or {}
    holiday_count = None
    if holidays.get("enabled"):
        holiday_count = parse_decimal(holidays.get("annual_count", "12"), "holidays.annual_count")

    salary = dict(data.get("salary") or {})
    if "health_plan_pct" in salary:
        salary["health_plan_pct"] = parse_decimal(salary["health_plan_pct"], "salary.health_plan_pct")

    return QuoteDefaults(
        quote_parameters=parameters,
        holiday_annual_count=holiday_count,
        holiday_commercial_buffer_pct=parse_decimal(
            holidays.get("commercial_buffer_pct", "10"), "holidays.commercial_buffer_pct"
        ),
        salary=salary,
    )
