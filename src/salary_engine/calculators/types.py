"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class RateType(str, Enum):
    """Denomination of an employee's stored pay."""

    MONTHLY = "MONTHLY"
    DAILY = "DAILY"
    HOURLY = "HOURLY"


class ContractType(str, Enum):
    """Employment contract types."""

    CDI = "CDI"
    CDD = "CDD"
    CDDTI = "CDDTI"
    INTERIM = "INTERIM"
    STAGE = "STAGE"


class PaymentFrequency(str, Enum):
    """How often a run pays an employee."""

    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    DAILY = "DAILY"


class MaritalStatus(str, Enum):
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"


class EmployeeClassification(str, Enum):
    """Affects employer levies that differ for local and expatriate staff."""

    LOCAL = "local"
    EXPATRIATE = "expatriate"
    SECONDED = "seconded"
    TRAINEE = "trainee"

    @property
    def levy_group(self) -> str:
        if self in (EmployeeClassification.EXPATRIATE, EmployeeClassification.SECONDED):
            return "expat"
        return "local"


class ComponentCategory(str, Enum):
    BASE = "base"
    ALLOWANCE = "allowance"
    BONUS = "bonus"
    DEDUCTION = "deduction"
    BENEFIT = "benefit"
    CUSTOM = "custom"


class CalculationMethod(str, Enum):
    FLAT = "flat"
    PERCENTAGE = "percentage"
    AUTO = "auto"
    CUSTOM = "custom"


class OvertimeType(str, Enum):
    """Pre-classified overtime bands."""

    HOURS_41_TO_46 = "hours_41_to_46"
    HOURS_ABOVE_46 = "hours_above_46"
    NIGHT_WORK = "night_work"
    SUNDAY = "sunday"
    PUBLIC_HOLIDAY = "public_holiday"
    NIGHT_SUNDAY_HOLIDAY = "night_sunday_holiday"


# ===== Inputs =====


@dataclass(frozen=True)
class ComponentInput:
    """A ``{code, amount}`` pair with a monthly-equivalent amount."""

    code: str
    amount: Decimal
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComponentInput:
        return cls(
            code=str(data["code"]),
            amount=Decimal(str(data.get("amount", 0))),
            name=data.get("name"),
        )


@dataclass(frozen=True)
class OvertimeBand:
    """``count`` hours of overtime of one type."""

    count: Decimal
    type: OvertimeType


@dataclass(frozen=True)
class TimeAggregate:
    """Approved time-entry totals for one employee over a period."""

    hours_worked: Decimal = Decimal("0")
    days_worked: Decimal = Decimal("0")
    overtime: tuple[OvertimeBand, ...] = ()
    entry_count: int = 0


@dataclass(frozen=True)
class EmployeePayrollInput:
    """Everything needed to calculate one employee for one period."""

    employee_id: UUID
    employee_name: str
    country_code: str
    period_start: date
    period_end: date
    hire_date: date
    rate_type: RateType = RateType.MONTHLY
    contract_type: ContractType = ContractType.CDI
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    weekly_hours_regime: str = "40h"
    marital_status: MaritalStatus = MaritalStatus.SINGLE
    verified_children: int = 0
    classification: EmployeeClassification = EmployeeClassification.LOCAL
    sector_code: str | None = None
    city: str | None = None
    termination_date: date | None = None
    base_components: tuple[ComponentInput, ...] = ()
    components: tuple[ComponentInput, ...] = ()
    time: TimeAggregate | None = None
    hiring_preview: bool = False


# ===== Resolved components =====


@dataclass(frozen=True)
class ExemptionCap:
    """Tax-exempt portion of a component: fixed, percentage or city-based."""

    kind: str
    value: Decimal = Decimal("0")


@dataclass(frozen=True, kw_only=True)
class ResolvedComponent:
    """A component with its final monthly-equivalent amount."""

    code: str
    name: str
    category: ComponentCategory
    amount: Decimal
    is_base: bool = False
    is_taxable: bool = True
    exemption_cap: ExemptionCap | None = None

    method = CalculationMethod.FLAT


@dataclass(frozen=True, kw_only=True)
class FlatComponent(ResolvedComponent):
    method = CalculationMethod.FLAT


@dataclass(frozen=True, kw_only=True)
class PercentageOfBaseComponent(ResolvedComponent):
    rate: Decimal

    method = CalculationMethod.PERCENTAGE


@dataclass(frozen=True, kw_only=True)
class AutoCalculatedComponent(ResolvedComponent):
    rate: Decimal | None
    rule: str | None = None

    method = CalculationMethod.AUTO


@dataclass(frozen=True, kw_only=True)
class CustomComponent(ResolvedComponent):
    method = CalculationMethod.CUSTOM


# ===== Proration output =====


@dataclass(frozen=True)
class PayableComponent:
    """A component amount actually owed for the period."""

    code: str
    name: str
    category: ComponentCategory
    method: CalculationMethod
    amount: int
    is_base: bool = False
    is_taxable: bool = True
    exemption_cap: ExemptionCap | None = None
    quantity: Decimal | None = None
    rate: Decimal | None = None


@dataclass(frozen=True)
class OvertimeLine:
    type: OvertimeType
    count: Decimal
    hourly_rate: Decimal
    multiplier: Decimal
    amount: int


@dataclass(frozen=True)
class ProratedPay:
    """Output of the proration engine."""

    rate_type: RateType
    components: tuple[PayableComponent, ...]
    overtime: tuple[OvertimeLine, ...]
    hourly_rate: Decimal
    hours_worked: Decimal
    days_worked: Decimal
    proration_factor: Decimal
    # Fraction of a month the period stands for; scales brackets, ceilings and fixed amounts
    period_share: Decimal = Decimal("1")

    @property
    def base_salary(self) -> int:
        return sum(c.amount for c in self.components if c.is_base)

    @property
    def overtime_pay(self) -> int:
        return sum(o.amount for o in self.overtime)

    @property
    def gross_salary(self) -> int:
        return (
            sum(c.amount for c in self.components if c.category != ComponentCategory.DEDUCTION)
            + self.overtime_pay
        )

    @property
    def component_deductions(self) -> int:
        """Deduction components withheld from net pay, as a positive amount."""
        return -sum(c.amount for c in self.components if c.category == ComponentCategory.DEDUCTION)


# ===== Tax output =====


@dataclass(frozen=True)
class ContributionLine:
    code: str
    name: str
    category: str
    base: int
    employee_rate: Decimal
    employer_rate: Decimal
    employee_amount: int
    employer_amount: int
    is_tax_deductible: bool = False


@dataclass(frozen=True)
class OtherTaxLine:
    code: str
    name: str
    base: int
    rate: Decimal
    amount: int


@dataclass(frozen=True)
class TaxResult:
    """Output of the tax and contribution calculator."""

    gross_salary: int
    social_base: int
    taxable_gross: int
    fiscal_parts: Decimal
    income_tax: int
    contributions: tuple[ContributionLine, ...]
    other_taxes: tuple[OtherTaxLine, ...]

    @property
    def employee_contributions(self) -> int:
        return sum(c.employee_amount for c in self.contributions)

    @property
    def employer_contributions(self) -> int:
        return sum(c.employer_amount for c in self.contributions)

    @property
    def other_taxes_total(self) -> int:
        return sum(t.amount for t in self.other_taxes)

    @property
    def net_salary(self) -> int:
        """Gross minus income tax and employee contributions, before deduction components."""
        return self.gross_salary - self.income_tax - self.employee_contributions

    @property
    def employer_cost(self) -> int:
        return self.gross_salary + self.employer_contributions + self.other_taxes_total


# ===== Line calculator output =====


@dataclass(frozen=True)
class CalculationWarning:
    code: str
    message: str


@dataclass(frozen=True)
class PayrollCalculationResult:
    """Immutable gross-to-net result for one employee and period.

    Deduction components (advances, loans) stay out of gross and the tax
    bases: net = gross - income tax - employee contributions - deductions.
    """

    employee_id: UUID
    employee_name: str
    country_code: str
    period_start: date
    period_end: date
    contract_type: ContractType
    pay: ProratedPay
    tax: TaxResult
    inputs_fingerprint: str
    rules_version: str | None = None
    warnings: tuple[CalculationWarning, ...] = field(default_factory=tuple)

    @property
    def gross_salary(self) -> int:
        return self.tax.gross_salary

    @property
    def net_salary(self) -> int:
        return self.tax.net_salary - self.pay.component_deductions

    @property
    def employer_cost(self) -> int:
        return self.tax.employer_cost

    @property
    def total_deductions(self) -> int:
        return self.tax.income_tax + self.tax.employee_contributions + self.pay.component_deductions
