"""Converts monthly-equivalent amounts into the amounts owed for a period."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Iterable, Mapping

from salary_engine.calculators.types import (
    ComponentCategory,
    ContractType,
    EmployeePayrollInput,
    OvertimeBand,
    OvertimeLine,
    OvertimeType,
    PayableComponent,
    PaymentFrequency,
    ProratedPay,
    RateType,
    ResolvedComponent,
)
from salary_engine.calculators.validation import PayrollValidationError, parse_weekly_hours

WEEKS_PER_YEAR = Decimal("52")
MONTHS_PER_YEAR = Decimal("12")
WORKDAYS_PER_WEEK = Decimal("5")

DEFAULT_OVERTIME_MULTIPLIERS: Mapping[str, Decimal] = MappingProxyType(
    {
        OvertimeType.HOURS_41_TO_46.value: Decimal("1.15"),
        OvertimeType.HOURS_ABOVE_46.value: Decimal("1.50"),
        OvertimeType.NIGHT_WORK.value: Decimal("1.75"),
        OvertimeType.SUNDAY.value: Decimal("1.75"),
        OvertimeType.PUBLIC_HOLIDAY.value: Decimal("1.75"),
        OvertimeType.NIGHT_SUNDAY_HOLIDAY.value: Decimal("2.00"),
    }
)

RATE_PRECISION = Decimal("0.0001")
SHARE_PRECISION = Decimal("0.000001")


@dataclass(frozen=True)
class PeriodBasis:
    """Scheduled hours and days in one pay period."""

    hours: Decimal
    days: Decimal


def monthly_hours(weekly_hours: Decimal) -> Decimal:
    return weekly_hours * WEEKS_PER_YEAR / MONTHS_PER_YEAR


def period_basis(frequency: PaymentFrequency, weekly_hours: Decimal) -> PeriodBasis:
    """Hours and days of a period for a payment frequency."""
    if frequency == PaymentFrequency.MONTHLY:
        return PeriodBasis(hours=monthly_hours(weekly_hours), days=Decimal("22"))
    if frequency == PaymentFrequency.WEEKLY:
        return PeriodBasis(hours=weekly_hours, days=WORKDAYS_PER_WEEK)
    if frequency == PaymentFrequency.BIWEEKLY:
        return PeriodBasis(hours=weekly_hours * 2, days=WORKDAYS_PER_WEEK * 2)
    if frequency == PaymentFrequency.DAILY:
        return PeriodBasis(hours=weekly_hours / WORKDAYS_PER_WEEK, days=Decimal("1"))
    raise PayrollValidationError(f"Unsupported payment frequency '{frequency}'")


def resolve_rate_type(rate_type: RateType | str, contract_type: ContractType | str) -> RateType:
    """CDDTI contracts are always paid by the hour."""
    if ContractType(contract_type) == ContractType.CDDTI:
        return RateType.HOURLY
    return RateType(rate_type)


def employment_factor(
    period_start: date,
    period_end: date,
    hire_date: date,
    termination_date: date | None,
) -> Decimal:
    """Share of the period's calendar days the employee was employed."""
    start = max(period_start, hire_date)
    end = min(period_end, termination_date) if termination_date else period_end
    if end < start:
        return Decimal("0")
    period_days = (period_end - period_start).days + 1
    employed_days = (end - start).days + 1
    if employed_days >= period_days:
        return Decimal("1")
    return Decimal(employed_days) / Decimal(period_days)


def to_integer(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ProrationEngine:
    """Determines what is payable for the actual period.

    Only MONTHLY-rate amounts are scaled by the frequency basis; HOURLY and
    DAILY rates pay the monthly-equivalent rate per hour or day actually
    worked as reported by approved time entries.
    """

    def __init__(self, overtime_multipliers: Mapping[str, Decimal] | None = None):
        merged = dict(DEFAULT_OVERTIME_MULTIPLIERS)
        if overtime_multipliers:
            merged.update(overtime_multipliers)
        self.overtime_multipliers: Mapping[str, Decimal] = MappingProxyType(merged)

    def prorate(
        self,
        employee: EmployeePayrollInput,
        components: Iterable[ResolvedComponent],
    ) -> ProratedPay:
        components = list(components)
        weekly_hours = parse_weekly_hours(employee.weekly_hours_regime)
        rate_type = resolve_rate_type(employee.rate_type, employee.contract_type)
        frequency = PaymentFrequency(employee.payment_frequency)
        basis = period_basis(frequency, weekly_hours)
        month_hours = monthly_hours(weekly_hours)
        hours_per_day = weekly_hours / WORKDAYS_PER_WEEK

        base_monthly = sum((c.amount for c in components if c.is_base), Decimal("0"))
        hourly_rate = (base_monthly / month_hours).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)

        time = employee.time
        has_time = time is not None and time.entry_count > 0

        if rate_type == RateType.MONTHLY:
            # A hiring preview simulates a full period whatever the start date
            hire_date = employee.period_start if employee.hiring_preview else employee.hire_date
            factor = employment_factor(
                employee.period_start,
                employee.period_end,
                hire_date,
                employee.termination_date,
            )
            hours_worked = basis.hours * factor
            days_worked = basis.days * factor
            share = basis.hours / month_hours
            scale = share * factor
        elif rate_type == RateType.HOURLY:
            if has_time:
                hours_worked, days_worked = time.hours_worked, time.days_worked
            elif ContractType(employee.contract_type) == ContractType.CDDTI:
                raise PayrollValidationError(
                    "No approved time entries for an hourly CDDTI contract", field="time"
                )
            else:
                hours_worked, days_worked = basis.hours, basis.days
            factor = Decimal("1")
            scale = share = hours_worked / month_hours
        else:
            days_worked = time.days_worked if has_time else basis.days
            hours_worked = time.hours_worked if has_time else days_worked * hours_per_day
            factor = Decimal("1")
            scale = share = days_worked * hours_per_day / month_hours

        payable = tuple(
            self._payable(c, scale, rate_type, month_hours, hours_per_day, hours_worked, days_worked)
            for c in components
        )
        overtime = tuple(
            self._overtime_line(band, hourly_rate) for band in (time.overtime if time else ())
        )

        return ProratedPay(
            rate_type=rate_type,
            components=payable,
            overtime=overtime,
            hourly_rate=hourly_rate,
            hours_worked=hours_worked.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            days_worked=days_worked.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            proration_factor=factor,
            period_share=share.quantize(SHARE_PRECISION, rounding=ROUND_HALF_UP),
        )

    def _payable(
        self,
        component: ResolvedComponent,
        scale: Decimal,
        rate_type: RateType,
        month_hours: Decimal,
        hours_per_day: Decimal,
        hours_worked: Decimal,
        days_worked: Decimal,
    ) -> PayableComponent:
        amount = to_integer(component.amount * scale)
        if component.category == ComponentCategory.DEDUCTION:
            amount = -amount

        quantity: Decimal | None = None
        unit_rate: Decimal | None = None
        if rate_type == RateType.HOURLY:
            quantity = hours_worked
            unit_rate = (component.amount / month_hours).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
        elif rate_type == RateType.DAILY:
            quantity = days_worked
            unit_rate = (component.amount / month_hours * hours_per_day).quantize(
                RATE_PRECISION, rounding=ROUND_HALF_UP
            )

        return PayableComponent(
            code=component.code,
            name=component.name,
            category=component.category,
            method=component.method,
            amount=amount,
            is_base=component.is_base,
            is_taxable=component.is_taxable,
            exemption_cap=component.exemption_cap,
            quantity=quantity,
            rate=unit_rate,
        )

    def _overtime_line(self, band: OvertimeBand, hourly_rate: Decimal) -> OvertimeLine:
        overtime_type = OvertimeType(band.type)
        multiplier = self.overtime_multipliers.get(overtime_type.value)
        if multiplier is None:
            raise PayrollValidationError(f"No multiplier configured for overtime '{overtime_type.value}'")
        if band.count < 0:
            raise PayrollValidationError("Overtime hours cannot be negative", field="overtime")
        return OvertimeLine(
            type=overtime_type,
            count=band.count,
            hourly_rate=hourly_rate,
            multiplier=multiplier,
            amount=to_integer(band.count * hourly_rate * multiplier),
        )
