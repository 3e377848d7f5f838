"""
Pytest fixtures for the quote costing test suite.

Provides:
- Structured logging configuration and log capture
- The seed payroll rule snapshot and a flat 10% AFP variant
- Deterministic clock
- In-memory SQLite sessions for the SQL record store
"""

import json
import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from cpq_config import get_active_rules
from cpq_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from cpq_kernel.domain.clock import DeterministicClock
from cpq_kernel.domain.payroll_rules import AfpRules
from cpq_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

SEED_RULES_DATE = date(2026, 2, 15)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture cpq_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, rules):
            compute_employer_cost(salary, rules, now)
            logs = captured_logs()
            assert any(r["message"] == "employer_cost_computed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("cpq_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Payroll rules
# =============================================================================


@pytest.fixture(scope="session")
def rules():
    """The published seed rule set (cl-2026-02)."""
    return get_active_rules(SEED_RULES_DATE)


@pytest.fixture(scope="session")
def flat_afp_rules(rules):
    """Seed rules with a single AFP provider ``flat`` at exactly 10%."""
    return replace(
        rules,
        afp=AfpRules(base_rate=Decimal("0.10"), commissions={"flat": Decimal("0")}),
    )


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite database per test."""
    init_engine_from_url("sqlite://")
    create_tables()
    session = get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        drop_tables()
        reset_engine()
