"""Tests for SalaryInput coercion and its JSON storage form."""

from decimal import Decimal

import pytest

from cpq_kernel.domain.salary import (
    ContractType,
    HealthSystem,
    SalaryAssumptions,
    SalaryInput,
)


class TestSalaryInput:
    def test_strings_coerced_to_decimal(self):
        salary = SalaryInput(base_salary_clp="600000", health_plan_pct="8.5")
        assert salary.base_salary_clp == Decimal("600000")
        assert salary.health_plan_pct == Decimal("8.5")

    def test_codes_normalized(self):
        salary = SalaryInput(
            base_salary_clp=600000,
            contract_type=ContractType.FIXED_TERM,
            health_system=" ISAPRE ",
            afp_provider="Habitat",
        )
        assert salary.contract_type == "fixed_term"
        assert salary.health_system == HealthSystem.ISAPRE.value
        assert salary.afp_provider == "habitat"

    def test_float_salary_rejected(self):
        with pytest.raises(TypeError):
            SalaryInput(base_salary_clp=600000.0)

    def test_negative_dependents_rejected(self):
        with pytest.raises(ValueError, match="num_dependents"):
            SalaryInput(base_salary_clp=600000, num_dependents=-1)

    def test_negative_provision_override_rejected(self):
        with pytest.raises(ValueError, match="vacation_provision_pct"):
            SalaryAssumptions(vacation_provision_pct="-1")

    def test_dict_form_restores_equal_input(self):
        salary = SalaryInput(
            base_salary_clp="750000",
            afp_provider="modelo",
            overtime_hours_50="10",
            transport_allowance_clp="30000",
            num_dependents=2,
            has_maternal_allowance=True,
            assumptions=SalaryAssumptions(
                include_severance_provision=False,
                vacation_provision_pct="8.33",
            ),
        )
        data = salary.to_dict()
        assert data["base_salary_clp"] == "750000"
        assert data["assumptions"]["vacation_provision_pct"] == "8.33"
        assert SalaryInput.from_dict(data) == salary
