"""Income tax and social contribution calculation from country configs."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from salary_engine.calculators.types import (
    ContributionLine,
    EmployeeClassification,
    MaritalStatus,
    OtherTaxLine,
    TaxResult,
)
from salary_engine.rules.types import (
    ContributionBase,
    ContributionType,
    CountryConfig,
    TaxBracket,
    TaxSystem,
)

MAX_COUNTED_CHILDREN = 4
PARTS_PER_CHILD = Decimal("0.5")
MONTHS_PER_YEAR = Decimal("12")


class UnsupportedCountryError(Exception):
    """Raised when a country has no usable tax system configured."""

    def __init__(self, country_code: str, reason: str = "no tax system configured"):
        self.country_code = country_code
        self.reason = reason
        super().__init__(f"Country '{country_code}' is not supported: {reason}")


def round_amount(value: Decimal) -> int:
    """Round to the integer currency unit."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_fiscal_parts(marital_status: MaritalStatus | str, children: int) -> Decimal:
    """Family quotient: 1 part, +1 if ever married, +0.5 per child (at most 4)."""
    parts = Decimal("1")
    if MaritalStatus(marital_status) != MaritalStatus.SINGLE:
        parts += Decimal("1")
    parts += PARTS_PER_CHILD * min(max(children, 0), MAX_COUNTED_CHILDREN)
    return parts


def progressive_tax(amount: Decimal, brackets: tuple[TaxBracket, ...]) -> Decimal:
    """Cumulative marginal tax over sorted brackets (unrounded)."""
    if amount <= 0:
        return Decimal("0")

    total = Decimal("0")
    for bracket in brackets:
        if amount <= bracket.min_amount:
            break
        upper = amount if bracket.max_amount is None else min(amount, bracket.max_amount)
        total += (upper - bracket.min_amount) * bracket.rate
    return total


class TaxStrategy(Protocol):
    """Bracket evaluator for one family-taxation method."""

    def compute(self, taxable: Decimal, fiscal_parts: Decimal, tax_system: TaxSystem) -> Decimal:
        ...


class NoFamilyStrategy:
    def compute(self, taxable: Decimal, fiscal_parts: Decimal, tax_system: TaxSystem) -> Decimal:
        return progressive_tax(taxable, tax_system.brackets)


class QuotientStrategy:
    """Divide by fiscal parts, apply brackets, multiply back."""

    def compute(self, taxable: Decimal, fiscal_parts: Decimal, tax_system: TaxSystem) -> Decimal:
        per_part = taxable / fiscal_parts
        return progressive_tax(per_part, tax_system.brackets) * fiscal_parts


class DeductionTableStrategy:
    """Tax on the whole base, minus the flat amount granted for the fiscal parts."""

    def compute(self, taxable: Decimal, fiscal_parts: Decimal, tax_system: TaxSystem) -> Decimal:
        gross_tax = progressive_tax(taxable, tax_system.brackets)
        return max(gross_tax - tax_system.family_deduction_for(fiscal_parts), Decimal("0"))


TAX_STRATEGIES: dict[str, TaxStrategy] = {
    "none": NoFamilyStrategy(),
    "quotient": QuotientStrategy(),
    "deduction_table": DeductionTableStrategy(),
}


def register_tax_strategy(family_method: str, strategy: TaxStrategy) -> None:
    """Register a bracket evaluator for a country whose method is not built in."""
    TAX_STRATEGIES[family_method] = strategy


@dataclass(frozen=True)
class TaxInput:
    """Salary bases and family situation for one employee and period."""

    gross_salary: int
    social_base: int
    salaire_categoriel: int
    marital_status: MaritalStatus = MaritalStatus.SINGLE
    verified_children: int = 0
    sector_code: str | None = None
    classification: EmployeeClassification = EmployeeClassification.LOCAL
    # Fraction of a month the pay period stands for (1 for monthly pay)
    period_share: Decimal = Decimal("1")


class TaxCalculator:
    """Computes contributions, taxable gross, income tax and employer levies.

    Order:
    1) Fiscal parts from marital status and verified children
    2) Social contributions, rounded per line
    3) Taxable gross = social base - deductible employee contributions
    4) Progressive income tax through the country's strategy
    5) Employer-only levies

    Rule tables are monthly. A shorter period is taxed on its monthly
    equivalent (amount / period_share) and the tax scaled back; ceilings
    and fixed amounts are scaled by the same share.
    """

    def __init__(self, config: CountryConfig):
        self.config = config

    def calculate(self, tax_input: TaxInput) -> TaxResult:
        tax_system = self.config.tax_system
        if tax_system is None:
            raise UnsupportedCountryError(self.config.country_code)

        children = tax_input.verified_children
        fiscal_parts = calculate_fiscal_parts(tax_input.marital_status, children)
        has_family = MaritalStatus(tax_input.marital_status) != MaritalStatus.SINGLE or children > 0

        contributions = tuple(
            self._contribution_line(c, tax_input, has_family) for c in self.config.contributions
        )
        deductible = sum(c.employee_amount for c in contributions if c.is_tax_deductible)
        taxable_gross = max(tax_input.social_base - deductible, 0)

        income_tax = self.calculate_income_tax(
            Decimal(taxable_gross), fiscal_parts, tax_system, tax_input.period_share
        )
        other_taxes = self._other_taxes(tax_input, taxable_gross)

        return TaxResult(
            gross_salary=tax_input.gross_salary,
            social_base=tax_input.social_base,
            taxable_gross=taxable_gross,
            fiscal_parts=fiscal_parts,
            income_tax=income_tax,
            contributions=contributions,
            other_taxes=other_taxes,
        )

    def calculate_income_tax(
        self,
        taxable: Decimal,
        fiscal_parts: Decimal,
        tax_system: TaxSystem,
        period_share: Decimal = Decimal("1"),
    ) -> int:
        strategy = TAX_STRATEGIES.get(tax_system.family_method)
        if strategy is None:
            raise UnsupportedCountryError(
                self.config.country_code,
                f"no tax strategy for family method '{tax_system.family_method}'",
            )

        if period_share <= 0:
            return 0
        monthly = taxable / period_share
        amount = monthly * MONTHS_PER_YEAR if tax_system.is_annual else monthly
        if tax_system.standard_deduction_rate:
            deduction = amount * tax_system.standard_deduction_rate
            if tax_system.standard_deduction_cap is not None:
                deduction = min(deduction, tax_system.standard_deduction_cap)
            amount -= deduction

        tax = strategy.compute(amount, fiscal_parts, tax_system)
        if tax_system.is_annual:
            tax = tax / MONTHS_PER_YEAR
        return max(round_amount(tax * period_share), 0)

    def _base_amount(self, base: str, tax_input: TaxInput, taxable_gross: int | None = None) -> int:
        if base == ContributionBase.GROSS:
            return tax_input.gross_salary
        if base == ContributionBase.SALAIRE_CATEGORIEL:
            return tax_input.salaire_categoriel
        if base == ContributionBase.TAXABLE_GROSS and taxable_gross is not None:
            return taxable_gross
        return tax_input.social_base

    def _contribution_line(
        self, contribution: ContributionType, tax_input: TaxInput, has_family: bool
    ) -> ContributionLine:
        share = tax_input.period_share
        if contribution.is_fixed:
            employee_fixed = contribution.fixed_employee_amount or Decimal("0")
            employer_fixed = contribution.fixed_employer_amount or Decimal("0")
            if has_family and contribution.fixed_employer_amount_family is not None:
                employer_fixed = contribution.fixed_employer_amount_family
            return ContributionLine(
                code=contribution.code,
                name=contribution.name,
                category=contribution.category,
                base=0,
                employee_rate=Decimal("0"),
                employer_rate=Decimal("0"),
                employee_amount=round_amount(employee_fixed * share),
                employer_amount=round_amount(employer_fixed * share),
                is_tax_deductible=contribution.is_tax_deductible,
            )

        base = max(self._base_amount(contribution.base, tax_input), 0)
        if contribution.ceiling is not None:
            base = min(base, round_amount(contribution.ceiling * share))

        employer_rate = contribution.employer_rate
        if contribution.category == "work_injury":
            sector = self.config.sector_rate(tax_input.sector_code)
            if sector is not None:
                employer_rate = sector.work_injury_rate

        return ContributionLine(
            code=contribution.code,
            name=contribution.name,
            category=contribution.category,
            base=base,
            employee_rate=contribution.employee_rate,
            employer_rate=employer_rate,
            employee_amount=round_amount(base * contribution.employee_rate),
            employer_amount=round_amount(base * employer_rate),
            is_tax_deductible=contribution.is_tax_deductible,
        )

    def _other_taxes(self, tax_input: TaxInput, taxable_gross: int) -> tuple[OtherTaxLine, ...]:
        group = EmployeeClassification(tax_input.classification).levy_group
        lines: list[OtherTaxLine] = []
        for levy in self.config.other_taxes:
            if levy.applies_to is not None and levy.applies_to != group:
                continue
            base = max(self._base_amount(levy.base, tax_input, taxable_gross), 0)
            lines.append(
                OtherTaxLine(
                    code=levy.code,
                    name=levy.name,
                    base=base,
                    rate=levy.rate,
                    amount=round_amount(base * levy.rate),
                )
            )
        return tuple(lines)
