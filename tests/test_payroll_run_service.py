"""Tests for the payroll run lifecycle service."""

from dataclasses import replace
from datetime import date, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from salary_engine.calculators.validation import PayrollValidationError
from salary_engine.models import (
    EmployeeSalary,
    PayrollLineItem,
    PayrollRun,
    PayrollRunProgress,
    Tenant,
)
from salary_engine.models.base import utcnow
from salary_engine.rules.repository import ConfigNotFoundError
from salary_engine.services.payroll_run_service import (
    EmployeeNotFoundError,
    OverlapError,
    PayrollRunNotFoundError,
    PayrollRunService,
    generate_run_number,
)
from salary_engine.services.state_machine import StateTransitionError

JANUARY_START = date(2024, 1, 1)
JANUARY_END = date(2024, 1, 31)


async def _create_january(service, tenant, **overrides):
    values = {
        "country_code": "CI",
        "period_start": JANUARY_START,
        "period_end": JANUARY_END,
        "payment_date": JANUARY_END,
    }
    values.update(overrides)
    payroll_run = await service.create_payroll_run(tenant.tenant_id, **values)
    await service.session.commit()
    return payroll_run


class TestRunNumbers:
    """Test run number generation."""

    @pytest.mark.parametrize(
        "period_start, frequency, expected",
        [
            (date(2024, 1, 1), "MONTHLY", "PAY-2024-01"),
            (date(2024, 1, 8), "WEEKLY", "PAY-2024-01-W2"),
            (date(2024, 3, 15), "BIWEEKLY", "PAY-2024-03-Q2"),
            (date(2024, 12, 5), "DAILY", "PAY-2024-12-05"),
        ],
    )
    def test_generate_run_number(self, period_start, frequency, expected):
        assert generate_run_number(period_start, frequency) == expected


class TestCreatePayrollRun:
    """Test run creation."""

    async def test_creates_draft(self, payroll_service, seeded_rules, tenant, employee_factory):
        await employee_factory("Awa")
        await employee_factory("Kofi", payment_frequency="WEEKLY")

        payroll_run = await _create_january(payroll_service, tenant)

        assert payroll_run.status == "draft"
        assert payroll_run.run_number == "PAY-2024-01"
        assert payroll_run.payment_frequency == "MONTHLY"
        assert payroll_run.employee_count == 1

    async def test_overlap_rejected(self, payroll_service, seeded_rules, tenant):
        existing = await _create_january(payroll_service, tenant)

        with pytest.raises(OverlapError) as exc_info:
            await payroll_service.create_payroll_run(
                tenant.tenant_id, "CI", date(2024, 1, 15), date(2024, 2, 14), date(2024, 2, 14)
            )
        assert exc_info.value.existing_run_id == existing.payroll_run_id

    async def test_other_frequency_may_overlap(self, payroll_service, seeded_rules, tenant):
        await _create_january(payroll_service, tenant)

        weekly = await payroll_service.create_payroll_run(
            tenant.tenant_id,
            "CI",
            date(2024, 1, 8),
            date(2024, 1, 14),
            date(2024, 1, 15),
            payment_frequency="WEEKLY",
        )
        assert weekly.run_number == "PAY-2024-01-W2"

    async def test_other_tenant_does_not_overlap(self, payroll_service, session, seeded_rules, tenant):
        other = Tenant(tenant_id=uuid4(), name="Other", country_code="CI")
        session.add(other)
        await session.commit()

        await _create_january(payroll_service, tenant)
        assert await _create_january(payroll_service, other) is not None

    async def test_missing_configuration(self, payroll_service, seeded_rules, tenant):
        with pytest.raises(ConfigNotFoundError):
            await _create_january(payroll_service, tenant, country_code="GH")

    async def test_invalid_period(self, payroll_service, seeded_rules, tenant):
        with pytest.raises(PayrollValidationError):
            await _create_january(payroll_service, tenant, period_end=date(2023, 12, 31))
        with pytest.raises(PayrollValidationError):
            await _create_january(payroll_service, tenant, payment_date=date(2023, 12, 31))

    async def test_list_filters_by_status(self, payroll_service, session, seeded_rules, tenant):
        january = await _create_january(payroll_service, tenant)
        await _create_january(
            payroll_service,
            tenant,
            period_start=date(2024, 2, 1),
            period_end=date(2024, 2, 29),
            payment_date=date(2024, 2, 29),
        )
        january.status = "calculated"
        await session.commit()

        runs, total = await payroll_service.list_payroll_runs(tenant.tenant_id)
        assert total == 2
        assert runs[0].run_number == "PAY-2024-02"

        runs, total = await payroll_service.list_payroll_runs(tenant.tenant_id, status="calculated")
        assert total == 1
        assert runs[0].payroll_run_id == january.payroll_run_id


class TestLifecycle:
    """Test approval, payment and deletion."""

    async def test_approve_requires_calculated(self, payroll_service, seeded_rules, tenant):
        payroll_run = await _create_january(payroll_service, tenant)

        with pytest.raises(StateTransitionError):
            await payroll_service.approve_payroll_run(payroll_run.payroll_run_id, tenant.tenant_id, uuid4())

    async def test_full_lifecycle(self, payroll_service, seeded_rules, tenant, employee_factory):
        await employee_factory("Awa")
        payroll_run = await _create_january(payroll_service, tenant)
        approver = uuid4()

        progress = await payroll_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)
        assert progress.status == "completed"
        assert payroll_run.status == "calculated"
        assert payroll_run.calculated_at is not None

        approved = await payroll_service.approve_payroll_run(
            payroll_run.payroll_run_id, tenant.tenant_id, approver
        )
        assert approved.status == "approved"
        assert approved.approved_by == approver
        assert approved.approved_at is not None

        paid = await payroll_service.mark_paid(payroll_run.payroll_run_id, tenant.tenant_id)
        assert paid.status == "paid"
        assert paid.paid_at is not None

    async def test_approved_run_cannot_be_recalculated(
        self, payroll_service, session, seeded_rules, tenant, employee_factory
    ):
        await employee_factory("Awa")
        payroll_run = await _create_january(payroll_service, tenant)
        await payroll_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)
        await payroll_service.approve_payroll_run(payroll_run.payroll_run_id, tenant.tenant_id, uuid4())
        await session.commit()

        with pytest.raises(StateTransitionError):
            await payroll_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)

    async def test_mark_paid_requires_approval(self, payroll_service, seeded_rules, tenant):
        payroll_run = await _create_january(payroll_service, tenant)
        with pytest.raises(StateTransitionError):
            await payroll_service.mark_paid(payroll_run.payroll_run_id, tenant.tenant_id)

    async def test_delete_draft_removes_everything(
        self, payroll_service, session, seeded_rules, tenant, employee_factory
    ):
        await employee_factory("Awa")
        payroll_run = await _create_january(payroll_service, tenant)
        run_id = payroll_run.payroll_run_id
        await payroll_service.trigger_calculation(run_id, tenant.tenant_id)

        # Back to draft so the run is deletable with line items present
        payroll_run.status = "draft"
        await session.commit()

        await payroll_service.delete_payroll_run(run_id, tenant.tenant_id)
        await session.commit()

        assert await session.get(PayrollRun, run_id) is None
        remaining = await session.scalar(
            select(func.count()).select_from(PayrollLineItem).where(
                PayrollLineItem.payroll_run_id == run_id
            )
        )
        assert remaining == 0
        progress_rows = await session.scalar(
            select(func.count()).select_from(PayrollRunProgress).where(
                PayrollRunProgress.payroll_run_id == run_id
            )
        )
        assert progress_rows == 0

    async def test_delete_non_draft_rejected(
        self, payroll_service, seeded_rules, tenant, employee_factory
    ):
        await employee_factory("Awa")
        payroll_run = await _create_january(payroll_service, tenant)
        await payroll_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)

        with pytest.raises(StateTransitionError) as exc_info:
            await payroll_service.delete_payroll_run(payroll_run.payroll_run_id, tenant.tenant_id)
        assert exc_info.value.to_status == "deleted"

    async def test_unknown_run(self, payroll_service, tenant):
        with pytest.raises(PayrollRunNotFoundError):
            await payroll_service.require_payroll_run(uuid4(), tenant.tenant_id)

    async def test_run_scoped_to_tenant(self, payroll_service, seeded_rules, tenant):
        payroll_run = await _create_january(payroll_service, tenant)
        assert await payroll_service.get_payroll_run(payroll_run.payroll_run_id, uuid4()) is None


class TestTriggerCalculation:
    """Test retrigger guards."""

    @pytest.fixture
    def recording_service(self, session, settings, locks, recording_runner):
        return PayrollRunService(session, runner=recording_runner, settings=settings, locks=locks)

    async def test_trigger_resets_progress_and_submits(
        self, recording_service, recording_runner, seeded_rules, tenant, employee_factory
    ):
        for name in ("Awa", "Kofi", "Moussa"):
            await employee_factory(name)
        payroll_run = await _create_january(recording_service, tenant)

        progress = await recording_service.trigger_calculation(
            payroll_run.payroll_run_id, tenant.tenant_id
        )

        assert payroll_run.status == "calculating"
        assert progress.status == "pending"
        assert progress.total_employees == 3
        assert progress.total_chunks == 2
        assert progress.processed_count == 0
        assert len(recording_runner.jobs) == 1
        assert recording_runner.jobs[0].employee_count == 3

    async def test_fresh_heartbeat_blocks_retrigger(
        self, recording_service, seeded_rules, tenant, employee_factory
    ):
        await employee_factory("Awa")
        payroll_run = await _create_january(recording_service, tenant)
        await recording_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)

        with pytest.raises(StateTransitionError):
            await recording_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)

    async def test_stale_heartbeat_allows_retrigger(
        self, recording_service, recording_runner, session, seeded_rules, tenant, employee_factory
    ):
        await employee_factory("Awa")
        payroll_run = await _create_january(recording_service, tenant)
        progress = await recording_service.trigger_calculation(
            payroll_run.payroll_run_id, tenant.tenant_id
        )

        progress.status = "processing"
        progress.updated_at = utcnow() - timedelta(hours=2)
        await session.commit()

        await recording_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)
        assert len(recording_runner.jobs) == 2

    async def test_locked_run_rejected(
        self, recording_service, locks, session, seeded_rules, tenant, employee_factory
    ):
        await employee_factory("Awa")
        payroll_run = await _create_january(recording_service, tenant)

        async with locks.hold(payroll_run.payroll_run_id):
            with pytest.raises(StateTransitionError):
                await recording_service.trigger_calculation(
                    payroll_run.payroll_run_id, tenant.tenant_id
                )

    async def test_requires_runner(self, session, settings, locks, seeded_rules, tenant):
        service = PayrollRunService(session, settings=settings, locks=locks)
        payroll_run = await _create_january(service, tenant)

        with pytest.raises(RuntimeError):
            await service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)

    async def test_chunk_size_below_one_treated_as_one(
        self, session, settings, locks, recording_runner, seeded_rules, tenant, employee_factory
    ):
        for name in ("Awa", "Kofi"):
            await employee_factory(name)
        service = PayrollRunService(
            session, runner=recording_runner, settings=replace(settings, chunk_size=0), locks=locks
        )
        payroll_run = await _create_january(service, tenant)

        progress = await service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)

        assert progress.total_chunks == 2
        assert len(recording_runner.jobs) == 1


class TestRecalculateEmployee:
    """Test single-employee recalculation."""

    async def test_recalculate_after_salary_change(
        self, payroll_service, session, seeded_rules, tenant, employee_factory
    ):
        employee = await employee_factory("Awa")
        await employee_factory("Kofi")
        payroll_run = await _create_january(payroll_service, tenant)
        await payroll_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)
        total_before = payroll_run.total_gross

        salary = await session.scalar(
            select(EmployeeSalary).where(EmployeeSalary.employee_id == employee.employee_id)
        )
        salary.base_components_json = [{"code": "11", "amount": 400000}]
        await session.commit()

        result = await payroll_service.recalculate_employee(
            payroll_run.payroll_run_id, tenant.tenant_id, employee.employee_id
        )
        await session.commit()

        assert result.line_item.gross_salary == 400000
        assert result.new_net > result.previous_net
        assert result.difference == result.new_net - result.previous_net
        assert payroll_run.total_gross == total_before + 100000

    async def test_recalculate_requires_calculated_run(
        self, payroll_service, seeded_rules, tenant, employee_factory
    ):
        employee = await employee_factory("Awa")
        payroll_run = await _create_january(payroll_service, tenant)

        with pytest.raises(StateTransitionError):
            await payroll_service.recalculate_employee(
                payroll_run.payroll_run_id, tenant.tenant_id, employee.employee_id
            )

    async def test_recalculate_unknown_employee(
        self, payroll_service, seeded_rules, tenant, employee_factory
    ):
        await employee_factory("Awa")
        payroll_run = await _create_january(payroll_service, tenant)
        await payroll_service.trigger_calculation(payroll_run.payroll_run_id, tenant.tenant_id)

        with pytest.raises(EmployeeNotFoundError):
            await payroll_service.recalculate_employee(
                payroll_run.payroll_run_id, tenant.tenant_id, uuid4()
            )
