"""Tests for component resolution."""

from datetime import date
from decimal import Decimal

from salary_engine.calculators.component_resolver import (
    ComponentResolver,
    completed_years,
    salaire_categoriel,
    seniority_rate,
)
from salary_engine.calculators.types import (
    AutoCalculatedComponent,
    CalculationMethod,
    ComponentCategory,
    ComponentInput,
    ContractType,
)


def _by_code(components):
    return {c.code: c for c in components}


class TestSeniority:
    """Test the seniority bonus rate."""

    def test_completed_years_counts_anniversaries(self):
        assert completed_years(date(2019, 6, 15), date(2024, 6, 14)) == 4
        assert completed_years(date(2019, 6, 15), date(2024, 6, 15)) == 5
        assert completed_years(date(2025, 1, 1), date(2024, 1, 1)) == 0

    def test_rate_progression(self):
        as_of = date(2024, 1, 31)
        assert seniority_rate(date(2023, 1, 1), as_of) == Decimal("0")
        assert seniority_rate(date(2022, 1, 1), as_of) == Decimal("0.02")
        assert seniority_rate(date(2019, 1, 1), as_of) == Decimal("0.05")

    def test_rate_capped(self):
        assert seniority_rate(date(1980, 1, 1), date(2024, 1, 31)) == Decimal("0.25")


class TestComponentResolver:
    """Test resolution against the CI catalog."""

    def test_base_components_form_salaire_categoriel(self, ci_catalog, make_input):
        employee = make_input(components=(ComponentInput(code="12", amount=Decimal("50000")),))
        resolved = ComponentResolver(ci_catalog).resolve(employee)

        assert salaire_categoriel(resolved) == Decimal("350000")
        assert _by_code(resolved)["12"].is_base is True

    def test_flat_component_passes_through(self, ci_catalog, make_input):
        employee = make_input(components=(ComponentInput(code="23", amount=Decimal("40000")),))
        housing = _by_code(ComponentResolver(ci_catalog).resolve(employee))["23"]

        assert housing.amount == Decimal("40000")
        assert housing.category == ComponentCategory.ALLOWANCE
        assert housing.method == CalculationMethod.FLAT

    def test_percentage_applies_rate_to_base(self, ci_catalog, make_input):
        employee = make_input(components=(ComponentInput(code="31", amount=Decimal("0.10")),))
        bonus = _by_code(ComponentResolver(ci_catalog).resolve(employee))["31"]

        assert bonus.method == CalculationMethod.PERCENTAGE
        assert bonus.rate == Decimal("0.10")
        assert bonus.amount == Decimal("30000")

    def test_seniority_is_recomputed_from_hire_date(self, ci_catalog, make_input):
        """A supplied seniority amount is ignored outside hiring preview."""
        employee = make_input(
            hire_date=date(2019, 1, 1),
            components=(ComponentInput(code="21", amount=Decimal("99999")),),
        )
        seniority = _by_code(ComponentResolver(ci_catalog).resolve(employee))["21"]

        assert isinstance(seniority, AutoCalculatedComponent)
        assert seniority.rate == Decimal("0.05")
        assert seniority.amount == Decimal("15000")

    def test_seniority_injected_when_absent(self, ci_catalog, make_input):
        employee = make_input(hire_date=date(2019, 1, 1))
        resolved = _by_code(ComponentResolver(ci_catalog).resolve(employee))

        assert resolved["21"].amount == Decimal("15000")

    def test_no_injection_without_seniority(self, ci_catalog, make_input):
        resolved = _by_code(ComponentResolver(ci_catalog).resolve(make_input()))
        assert "21" not in resolved

    def test_cddti_is_not_eligible_for_seniority(self, ci_catalog, make_input):
        employee = make_input(
            hire_date=date(2015, 1, 1),
            contract_type=ContractType.CDDTI,
            components=(ComponentInput(code="21", amount=Decimal("10000")),),
        )
        resolved = _by_code(ComponentResolver(ci_catalog).resolve(employee))
        assert "21" not in resolved

    def test_hiring_preview_trusts_supplied_amounts(self, ci_catalog, make_input):
        employee = make_input(
            hire_date=date(2024, 3, 1),
            hiring_preview=True,
            components=(ComponentInput(code="21", amount=Decimal("12345")),),
        )
        seniority = _by_code(ComponentResolver(ci_catalog).resolve(employee))["21"]

        assert seniority.amount == Decimal("12345")
        assert seniority.rate is None

    def test_unknown_code_becomes_custom(self, ci_catalog, make_input):
        employee = make_input(
            components=(ComponentInput(code="99", amount=Decimal("7000"), name="Panier"),)
        )
        custom = _by_code(ComponentResolver(ci_catalog).resolve(employee))["99"]

        assert custom.category == ComponentCategory.CUSTOM
        assert custom.method == CalculationMethod.CUSTOM
        assert custom.amount == Decimal("7000")
        assert custom.name == "Panier"

    def test_explicit_base_wins_over_duplicate_code(self, ci_catalog, make_input):
        employee = make_input(components=(ComponentInput(code="11", amount=Decimal("500000")),))
        resolved = ComponentResolver(ci_catalog).resolve(employee)

        base_lines = [c for c in resolved if c.code == "11"]
        assert len(base_lines) == 1
        assert base_lines[0].amount == Decimal("300000")

    def test_transport_carries_city_exemption_cap(self, ci_catalog, make_input):
        employee = make_input(components=(ComponentInput(code="22", amount=Decimal("30000")),))
        transport = _by_code(ComponentResolver(ci_catalog).resolve(employee))["22"]

        assert transport.exemption_cap is not None
        assert transport.exemption_cap.kind == "city_based"
