"""Immutable country configuration types.

A ``CountryConfig`` is a pure function of (country, effective date). Nothing
in the calculation path may mutate one; every type here is frozen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping


class ContributionBase:
    """Names of the salary bases a contribution or levy can apply to.

    - gross: every payable component plus overtime
    - social_base: gross minus tax-exempt allowance portions
    - salaire_categoriel: prorated sum of base components
    - taxable_gross: social_base minus tax-deductible employee contributions
    """

    GROSS = "gross"
    SOCIAL_BASE = "social_base"
    SALAIRE_CATEGORIEL = "salaire_categoriel"
    TAXABLE_GROSS = "taxable_gross"

    ALL = frozenset({GROSS, SOCIAL_BASE, SALAIRE_CATEGORIEL, TAXABLE_GROSS})


@dataclass(frozen=True)
class TaxBracket:
    """Tax bracket for progressive taxation."""

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.16 for 16%


@dataclass(frozen=True)
class FamilyDeduction:
    """Flat deduction granted for a fiscal-parts value."""

    fiscal_parts: Decimal
    amount: Decimal


@dataclass(frozen=True)
class TaxSystem:
    """Income tax system of a country.

    ``family_method`` selects the bracket evaluator:
    - ``deduction_table``: tax on the full base, minus the table amount for the parts
    - ``quotient``: divide by parts, apply brackets, multiply back
    - ``none``: family status has no tax effect
    """

    code: str
    name: str
    calculation_method: str  # progressive_monthly | progressive_annual
    supports_family_deductions: bool
    family_method: str
    brackets: tuple[TaxBracket, ...]
    family_deductions: tuple[FamilyDeduction, ...] = ()
    standard_deduction_rate: Decimal = Decimal("0")
    standard_deduction_cap: Decimal | None = None

    @property
    def is_annual(self) -> bool:
        return self.calculation_method == "progressive_annual"

    def family_deduction_for(self, fiscal_parts: Decimal) -> Decimal:
        """Deduction for the highest table entry not above ``fiscal_parts``."""
        best: FamilyDeduction | None = None
        for entry in self.family_deductions:
            if entry.fiscal_parts <= fiscal_parts and (
                best is None or entry.fiscal_parts > best.fiscal_parts
            ):
                best = entry
        return best.amount if best else Decimal("0")


@dataclass(frozen=True)
class ContributionType:
    """One line of the social scheme."""

    code: str
    name: str
    category: str  # pension | work_injury | family | health | other
    employee_rate: Decimal = Decimal("0")
    employer_rate: Decimal = Decimal("0")
    base: str = ContributionBase.SOCIAL_BASE
    ceiling: Decimal | None = None
    fixed_employee_amount: Decimal | None = None
    fixed_employer_amount: Decimal | None = None
    fixed_employer_amount_family: Decimal | None = None
    is_tax_deductible: bool = False

    @property
    def is_fixed(self) -> bool:
        return self.fixed_employee_amount is not None or self.fixed_employer_amount is not None


@dataclass(frozen=True)
class OtherTax:
    """Employer-paid levy (training funds, employer share of income tax, ...)."""

    code: str
    name: str
    rate: Decimal
    base: str = ContributionBase.GROSS
    applies_to: str | None = None  # None = all, "local" or "expat"


@dataclass(frozen=True)
class SectorRate:
    """Work-injury employer rate for a sector."""

    code: str
    name: str
    work_injury_rate: Decimal


@dataclass(frozen=True)
class CountryConfig:
    """Effective-dated rule bundle for one country."""

    country_code: str
    country_name: str
    currency: str
    effective_from: date
    effective_to: date | None
    minimum_wage: Decimal | None
    tax_system: TaxSystem | None
    contributions: tuple[ContributionType, ...]
    other_taxes: tuple[OtherTax, ...] = ()
    sectors: tuple[SectorRate, ...] = ()
    default_sector_code: str | None = None
    overtime_multipliers: Mapping[str, Decimal] = field(
        default_factory=lambda: MappingProxyType({})
    )
    version_id: str | None = None

    def sector_rate(self, sector_code: str | None) -> SectorRate | None:
        """Look up a sector, falling back to the country default sector."""
        by_code = {s.code: s for s in self.sectors}
        if sector_code and sector_code in by_code:
            return by_code[sector_code]
        if self.default_sector_code:
            return by_code.get(self.default_sector_code)
        return None

    def is_effective_on(self, on: date) -> bool:
        return self.effective_from <= on and (self.effective_to is None or on <= self.effective_to)


@dataclass(frozen=True)
class CityTransportRule:
    """Legal minimum transport allowance for a city."""

    country_code: str
    city: str
    monthly_minimum: Decimal
    daily_rate: Decimal
    tax_exemption_cap: Decimal | None = None
