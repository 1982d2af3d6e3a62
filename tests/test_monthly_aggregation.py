"""Tests for monthly declaration aggregation."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from salary_engine.models import TimeEntry
from salary_engine.services.monthly_aggregation import (
    MonthlyAggregationService,
    MonthlyEmployeeAggregate,
    declaration_type,
)

FIRST_HALF = (date(2024, 3, 1), date(2024, 3, 14))
SECOND_HALF = (date(2024, 3, 15), date(2024, 3, 28))


async def _add_time(session, employee, start: date, days: int) -> None:
    for offset in range(days):
        session.add(
            TimeEntry(
                employee_id=employee.employee_id,
                tenant_id=employee.tenant_id,
                work_date=start + timedelta(days=offset),
                hours=Decimal("8"),
                status="approved",
            )
        )
    await session.commit()


async def _calculated_run(service, tenant, period, approve=True):
    period_start, period_end = period
    payroll_run = await service.create_payroll_run(
        tenant.tenant_id, "CI", period_start, period_end, period_end, payment_frequency="BIWEEKLY"
    )
    await service.session.commit()
    await service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)
    if approve:
        await service.approve_payroll_run(payroll_run.payroll_run_id, tenant.tenant_id, uuid4())
        await service.session.commit()
    return payroll_run


@pytest.fixture
async def cddti_worker(session, employee_factory):
    """CDDTI worker paid fortnightly: 12 days in the first half of March, 10 in the second."""
    employee = await employee_factory(
        "Adama",
        contract_type="CDDTI",
        rate_type="HOURLY",
        payment_frequency="BIWEEKLY",
        worked_days=12,
        work_start=FIRST_HALF[0],
    )
    await _add_time(session, employee, SECOND_HALF[0], 10)
    return employee


class TestDeclarationType:
    """Test the daily/hourly declaration threshold."""

    def test_non_cddti_declared_monthly(self):
        assert declaration_type("CDI", Decimal("30"), 21) == "M"
        assert declaration_type("CDD", Decimal("5"), 21) == "M"

    def test_threshold_is_inclusive(self):
        assert declaration_type("CDDTI", Decimal("21"), 21) == "J"
        assert declaration_type("CDDTI", Decimal("20.5"), 21) == "H"

    def test_duration_follows_type(self):
        aggregate = MonthlyEmployeeAggregate(
            employee_id=uuid4(),
            employee_name="Adama Test",
            contract_type="CDDTI",
            days_worked=Decimal("10"),
            hours_worked=Decimal("80"),
            declaration_type="H",
        )
        assert aggregate.duration == Decimal("80")
        aggregate.declaration_type = "M"
        assert aggregate.duration is None


class TestMonthlyAggregation:
    """Test aggregation across runs of a month."""

    async def test_runs_of_month_summed_before_threshold(
        self, payroll_service, session, settings, seeded_rules, tenant, cddti_worker
    ):
        first = await _calculated_run(payroll_service, tenant, FIRST_HALF)
        second = await _calculated_run(payroll_service, tenant, SECOND_HALF)

        aggregates = await MonthlyAggregationService(session, settings).aggregate_month(
            tenant.tenant_id, 2024, 3
        )

        assert len(aggregates) == 1
        aggregate = aggregates[0]
        assert aggregate.employee_id == cddti_worker.employee_id
        assert aggregate.days_worked == Decimal("22")
        assert aggregate.hours_worked == Decimal("176")
        assert aggregate.declaration_type == "J"
        assert aggregate.duration == Decimal("22")
        assert aggregate.run_count == 2
        assert set(aggregate.run_ids) == {first.payroll_run_id, second.payroll_run_id}
        assert aggregate.gross_salary == first.total_gross + second.total_gross

    async def test_single_run_below_threshold_is_hourly(
        self, payroll_service, session, settings, seeded_rules, tenant, cddti_worker
    ):
        await _calculated_run(payroll_service, tenant, FIRST_HALF)

        aggregates = await MonthlyAggregationService(session, settings).aggregate_month(
            tenant.tenant_id, 2024, 3
        )

        assert aggregates[0].days_worked == Decimal("12")
        assert aggregates[0].declaration_type == "H"
        assert aggregates[0].duration == Decimal("96")

    async def test_unapproved_runs_not_declared(
        self, payroll_service, session, settings, seeded_rules, tenant, cddti_worker
    ):
        await _calculated_run(payroll_service, tenant, FIRST_HALF)
        await _calculated_run(payroll_service, tenant, SECOND_HALF, approve=False)

        aggregates = await MonthlyAggregationService(session, settings).aggregate_month(
            tenant.tenant_id, 2024, 3
        )

        assert aggregates[0].run_count == 1
        assert aggregates[0].declaration_type == "H"

    async def test_other_months_and_tenants_excluded(
        self, payroll_service, session, settings, seeded_rules, tenant, cddti_worker
    ):
        await _calculated_run(payroll_service, tenant, FIRST_HALF)

        service = MonthlyAggregationService(session, settings)
        assert await service.aggregate_month(tenant.tenant_id, 2024, 4) == []
        assert await service.aggregate_month(uuid4(), 2024, 3) == []
