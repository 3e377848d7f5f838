"""Tests for the employer cost simulator script."""

import json
import logging
import sys

import pytest

from cpq_kernel.logging_config import configure_logging, reset_logging
from scripts.simulate_employer_cost import main


def _run(monkeypatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["simulate_employer_cost.py", *args])
    return main()


class TestSimulateEmployerCost:
    @pytest.fixture(autouse=True)
    def _cli_logging(self):
        """Let main() bind its own handler to the captured stderr."""
        reset_logging()
        yield
        reset_logging()
        configure_logging(level=logging.DEBUG)

    def test_json_output(self, monkeypatch, capsys):
        code = _run(
            monkeypatch, "600000", "--risk", "medium", "--rule-version", "cl-2026-02",
            "--margin", "13", "--json",
        )
        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["monthly_employer_cost_clp"] == "880395"
        assert payload["worker_net_salary_estimate_clp"] == "608475"
        assert payload["sale_price_monthly"] == "1011948"
        assert payload["hourly_cost_clp"] == "4891"

    def test_position_multiplier(self, monkeypatch, capsys):
        _run(
            monkeypatch, "600000", "--risk", "medium", "--rule-version", "cl-2026-02",
            "--guards", "2", "--puestos", "3", "--json",
        )
        payload = json.loads(capsys.readouterr().out)
        assert payload["monthly_position_cost_clp"] == "5282370"

    def test_table_output(self, monkeypatch, capsys):
        assert _run(monkeypatch, "600000", "--risk", "medium", "--rule-version", "cl-2026-02") == 0
        out = capsys.readouterr().out
        assert "cl-2026-02" in out
        assert "MONTHLY EMPLOYER COST" in out
        assert "880.395" in out

    @pytest.mark.parametrize(
        "args",
        [
            ("600000", "--afp", "nonexistent", "--rule-version", "cl-2026-02"),
            ("0", "--rule-version", "cl-2026-02"),
            ("abc", "--rule-version", "cl-2026-02"),
            ("600000", "--rule-version", "cl-1999-01"),
        ],
    )
    def test_errors(self, monkeypatch, capsys, args):
        assert _run(monkeypatch, *args) == 1
        err_lines = capsys.readouterr().err.strip().splitlines()
        assert err_lines[-1].startswith("error:")
