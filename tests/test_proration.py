"""Tests for the proration engine."""

from datetime import date
from decimal import Decimal

import pytest

from salary_engine.calculators.proration import (
    ProrationEngine,
    employment_factor,
    monthly_hours,
    resolve_rate_type,
    to_integer,
)
from salary_engine.calculators.types import (
    ComponentCategory,
    ContractType,
    FlatComponent,
    OvertimeBand,
    OvertimeType,
    PaymentFrequency,
    RateType,
    TimeAggregate,
)
from salary_engine.calculators.validation import PayrollValidationError, parse_weekly_hours

MONTH_HOURS = monthly_hours(Decimal("40"))


def _base(amount: int = 300000) -> FlatComponent:
    return FlatComponent(
        code="11",
        name="Salaire catégoriel",
        category=ComponentCategory.BASE,
        amount=Decimal(amount),
        is_base=True,
    )


def _allowance(amount: int, category: ComponentCategory = ComponentCategory.ALLOWANCE) -> FlatComponent:
    return FlatComponent(code="23", name="Logement", category=category, amount=Decimal(amount))


class TestHelpers:
    """Test proration helpers."""

    def test_monthly_hours_from_weekly_regime(self):
        assert monthly_hours(Decimal("40")) == Decimal("40") * 52 / 12

    @pytest.mark.parametrize(
        "regime, expected",
        [("40h", Decimal("40")), ("44", Decimal("44")), ("37,5h", Decimal("37.5")), (None, Decimal("40"))],
    )
    def test_parse_weekly_hours(self, regime, expected):
        assert parse_weekly_hours(regime) == expected

    @pytest.mark.parametrize("regime", ["forty", "0h", "100h"])
    def test_bad_regime_rejected(self, regime):
        with pytest.raises(PayrollValidationError):
            parse_weekly_hours(regime)

    def test_cddti_always_hourly(self):
        assert resolve_rate_type(RateType.MONTHLY, ContractType.CDDTI) == RateType.HOURLY
        assert resolve_rate_type("DAILY", "CDI") == RateType.DAILY

    def test_employment_factor(self):
        start, end = date(2024, 1, 1), date(2024, 1, 31)
        assert employment_factor(start, end, date(2023, 1, 1), None) == Decimal("1")
        assert employment_factor(start, end, date(2024, 1, 16), None) == Decimal(16) / Decimal(31)
        assert employment_factor(start, end, date(2023, 1, 1), date(2024, 1, 10)) == Decimal(10) / Decimal(31)
        assert employment_factor(start, end, date(2024, 2, 1), None) == Decimal("0")


class TestProrationEngine:
    """Test payable amounts per rate type and frequency."""

    def test_full_month_unchanged(self, make_input):
        pay = ProrationEngine().prorate(make_input(), [_base(), _allowance(40000)])

        assert pay.rate_type == RateType.MONTHLY
        assert pay.proration_factor == Decimal("1")
        assert pay.base_salary == 300000
        assert pay.gross_salary == 340000
        assert pay.period_share == Decimal("1")

    def test_mid_period_hire(self, make_input):
        employee = make_input(hire_date=date(2024, 1, 16))
        pay = ProrationEngine().prorate(employee, [_base()])

        factor = Decimal(16) / Decimal(31)
        assert pay.proration_factor == factor
        assert pay.base_salary == to_integer(Decimal(300000) * factor)
        assert pay.period_share == Decimal("1")

    def test_hiring_preview_simulates_full_period(self, make_input):
        employee = make_input(hire_date=date(2024, 3, 1), hiring_preview=True)
        pay = ProrationEngine().prorate(employee, [_base()])

        assert pay.proration_factor == Decimal("1")
        assert pay.base_salary == 300000

    def test_weekly_frequency_scales_monthly_rate(self, make_input):
        employee = make_input(
            period_start=date(2024, 1, 1),
            period_end=date(2024, 1, 7),
            payment_frequency=PaymentFrequency.WEEKLY,
        )
        pay = ProrationEngine().prorate(employee, [_base()])

        assert pay.base_salary == to_integer(Decimal(300000) * (Decimal("40") / MONTH_HOURS))
        assert pay.hours_worked == Decimal("40.00")
        assert pay.days_worked == Decimal("5.00")
        assert pay.period_share == (Decimal("40") / MONTH_HOURS).quantize(Decimal("0.000001"))

    def test_hourly_rate_pays_hours_worked(self, make_input):
        employee = make_input(
            rate_type=RateType.HOURLY,
            time=TimeAggregate(hours_worked=Decimal("80"), days_worked=Decimal("10"), entry_count=10),
        )
        pay = ProrationEngine().prorate(employee, [_base()])

        assert pay.rate_type == RateType.HOURLY
        assert pay.base_salary == to_integer(Decimal(300000) * (Decimal("80") / MONTH_HOURS))
        component = pay.components[0]
        assert component.quantity == Decimal("80")
        assert component.rate == pay.hourly_rate
        assert pay.period_share == (Decimal("80") / MONTH_HOURS).quantize(Decimal("0.000001"))

    def test_hourly_without_time_uses_scheduled_hours(self, make_input):
        pay = ProrationEngine().prorate(make_input(rate_type=RateType.HOURLY), [_base()])
        assert pay.base_salary == 300000

    def test_daily_rate_pays_days_worked(self, make_input):
        employee = make_input(
            rate_type=RateType.DAILY,
            time=TimeAggregate(hours_worked=Decimal("80"), days_worked=Decimal("10"), entry_count=10),
        )
        pay = ProrationEngine().prorate(employee, [_base()])

        expected_scale = Decimal("10") * Decimal("8") / MONTH_HOURS
        assert pay.base_salary == to_integer(Decimal(300000) * expected_scale)
        assert pay.components[0].quantity == Decimal("10")

    def test_cddti_paid_hourly(self, make_input):
        employee = make_input(
            contract_type=ContractType.CDDTI,
            time=TimeAggregate(hours_worked=Decimal("96"), days_worked=Decimal("12"), entry_count=12),
        )
        pay = ProrationEngine().prorate(employee, [_base()])

        assert pay.rate_type == RateType.HOURLY
        assert pay.days_worked == Decimal("12.00")

    def test_cddti_without_time_entries_rejected(self, make_input):
        with pytest.raises(PayrollValidationError) as exc_info:
            ProrationEngine().prorate(make_input(contract_type=ContractType.CDDTI), [_base()])
        assert exc_info.value.field == "time"

    def test_deduction_components_stay_out_of_gross(self, make_input):
        pay = ProrationEngine().prorate(
            make_input(), [_base(), _allowance(5000, ComponentCategory.DEDUCTION)]
        )

        deduction = next(c for c in pay.components if c.category == ComponentCategory.DEDUCTION)
        assert deduction.amount == -5000
        assert pay.gross_salary == 300000
        assert pay.component_deductions == 5000

    def test_overtime_uses_hourly_rate_and_multiplier(self, make_input):
        employee = make_input(
            time=TimeAggregate(
                overtime=(OvertimeBand(count=Decimal("6"), type=OvertimeType.HOURS_41_TO_46),),
                entry_count=1,
            )
        )
        pay = ProrationEngine({"hours_41_to_46": Decimal("1.20")}).prorate(employee, [_base()])

        line = pay.overtime[0]
        assert line.multiplier == Decimal("1.20")
        assert line.amount == to_integer(Decimal("6") * pay.hourly_rate * Decimal("1.20"))
        assert pay.gross_salary == 300000 + line.amount

    def test_default_multipliers_fill_gaps(self):
        engine = ProrationEngine({"sunday": Decimal("2.10")})
        assert engine.overtime_multipliers["sunday"] == Decimal("2.10")
        assert engine.overtime_multipliers["night_work"] == Decimal("1.75")

    def test_negative_overtime_rejected(self, make_input):
        employee = make_input(
            time=TimeAggregate(
                overtime=(OvertimeBand(count=Decimal("-1"), type=OvertimeType.SUNDAY),),
                entry_count=1,
            )
        )
        with pytest.raises(PayrollValidationError):
            ProrationEngine().prorate(employee, [_base()])
