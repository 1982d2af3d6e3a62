"""Payroll run service - lifecycle operations of a payroll run."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.engine import PayrollLineCalculator
from salary_engine.calculators.types import PaymentFrequency
from salary_engine.calculators.validation import PayrollValidationError
from salary_engine.config import Settings, get_settings
from salary_engine.models import (
    PayrollLineItem,
    PayrollRun,
    PayrollRunProgress,
    Tenant,
)
from salary_engine.models.base import as_utc, utcnow
from salary_engine.rules.repository import CountryRuleRepository, SqlCountryRuleRepository
from salary_engine.services.batch_runner import BatchJob, BatchRunner
from salary_engine.services.component_service import load_component_catalog
from salary_engine.services.employee_data import EmployeeDataLoader, build_employee_input
from salary_engine.services.locking_service import RunLockRegistry, get_run_locks
from salary_engine.services.state_machine import (
    PayrollRunStateMachine,
    PayrollRunStatus,
    ProgressStatus,
    StateTransitionError,
)

logger = logging.getLogger(__name__)


class PayrollRunNotFoundError(Exception):
    """Raised when a run does not exist for the tenant."""

    def __init__(self, payroll_run_id: UUID):
        self.payroll_run_id = payroll_run_id
        super().__init__(f"Payroll run {payroll_run_id} not found")


class EmployeeNotFoundError(Exception):
    """Raised when an employee does not exist for the tenant."""

    def __init__(self, employee_id: UUID):
        self.employee_id = employee_id
        super().__init__(f"Employee {employee_id} not found")


class OverlapError(Exception):
    """Raised when a new run overlaps an existing run of the same frequency."""

    def __init__(self, payment_frequency: str, existing_run_id: UUID, existing_run_number: str):
        self.payment_frequency = payment_frequency
        self.existing_run_id = existing_run_id
        self.existing_run_number = existing_run_number
        super().__init__(
            f"Period overlaps {payment_frequency} run {existing_run_number} ({existing_run_id})"
        )


@dataclass(frozen=True)
class RecalculationResult:
    """Outcome of recalculating a single employee."""

    line_item: PayrollLineItem
    previous_net: int | None
    new_net: int

    @property
    def difference(self) -> int:
        return self.new_net - (self.previous_net or 0)


def generate_run_number(period_start: date, frequency: PaymentFrequency | str) -> str:
    """``PAY-YYYY-MM`` with a week, fortnight or day suffix for shorter periods."""
    frequency = PaymentFrequency(frequency)
    prefix = f"PAY-{period_start.year}-{period_start.month:02d}"
    if frequency == PaymentFrequency.WEEKLY:
        return f"{prefix}-W{(period_start.day - 1) // 7 + 1}"
    if frequency == PaymentFrequency.BIWEEKLY:
        return f"{prefix}-Q{(period_start.day - 1) // 14 + 1}"
    if frequency == PaymentFrequency.DAILY:
        return f"{prefix}-{period_start.day:02d}"
    return prefix


async def refresh_run_totals(session: AsyncSession, payroll_run: PayrollRun) -> PayrollRun:
    """Recompute run totals from its line items."""
    row = (
        await session.execute(
            select(
                func.count(PayrollLineItem.payroll_line_item_id),
                func.coalesce(func.sum(PayrollLineItem.gross_salary), 0),
                func.coalesce(func.sum(PayrollLineItem.net_salary), 0),
                func.coalesce(func.sum(PayrollLineItem.income_tax), 0),
                func.coalesce(func.sum(PayrollLineItem.employee_contributions), 0),
                func.coalesce(func.sum(PayrollLineItem.employer_contributions), 0),
                func.coalesce(func.sum(PayrollLineItem.employer_cost), 0),
            ).where(PayrollLineItem.payroll_run_id == payroll_run.payroll_run_id)
        )
    ).one()
    (
        _count,
        payroll_run.total_gross,
        payroll_run.total_net,
        payroll_run.total_tax,
        payroll_run.total_employee_contributions,
        payroll_run.total_employer_contributions,
        payroll_run.total_employer_cost,
    ) = (int(v) for v in row)
    await session.flush()
    return payroll_run


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_payroll_run: new draft run, rejected on overlap
    - trigger_calculation: reset progress and dispatch the batch step
    - approve_payroll_run: lock line items and stamp the approver
    - mark_paid: record payment of an approved run
    - delete_payroll_run: remove a draft run with its line items
    - recalculate_employee: refresh one employee's line item
    """

    def __init__(
        self,
        session: AsyncSession,
        runner: BatchRunner | None = None,
        rules: CountryRuleRepository | None = None,
        settings: Settings | None = None,
        locks: RunLockRegistry | None = None,
    ):
        self.session = session
        self.runner = runner
        self.rules = rules or SqlCountryRuleRepository(session)
        self.settings = settings or get_settings()
        self.locks = locks or get_run_locks()
        self.loader = EmployeeDataLoader(session)

    async def get_payroll_run(self, payroll_run_id: UUID, tenant_id: UUID) -> PayrollRun | None:
        return await self.session.scalar(
            select(PayrollRun).where(
                PayrollRun.payroll_run_id == payroll_run_id,
                PayrollRun.tenant_id == tenant_id,
            )
        )

    async def require_payroll_run(self, payroll_run_id: UUID, tenant_id: UUID) -> PayrollRun:
        payroll_run = await self.get_payroll_run(payroll_run_id, tenant_id)
        if payroll_run is None:
            raise PayrollRunNotFoundError(payroll_run_id)
        return payroll_run

    async def list_payroll_runs(
        self,
        tenant_id: UUID,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[PayrollRun], int]:
        query = select(PayrollRun).where(PayrollRun.tenant_id == tenant_id)
        if status:
            query = query.where(PayrollRun.status == status)

        total = await self.session.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.session.scalars(
            query.order_by(PayrollRun.period_start.desc(), PayrollRun.run_number)
            .offset(offset)
            .limit(limit)
        )
        return list(result.all()), total

    async def create_payroll_run(
        self,
        tenant_id: UUID,
        country_code: str,
        period_start: date,
        period_end: date,
        payment_date: date,
        payment_frequency: PaymentFrequency | str = PaymentFrequency.MONTHLY,
    ) -> PayrollRun:
        """Create a draft run for a period not yet covered at this frequency."""
        frequency = PaymentFrequency(payment_frequency)
        if period_end < period_start:
            raise PayrollValidationError("Period end precedes period start", field="period_end")
        if payment_date < period_start:
            raise PayrollValidationError("Payment date precedes the period", field="payment_date")

        # Fails with ConfigNotFoundError before anything is written
        await self.rules.get_country_config(country_code, period_end)

        existing = await self.session.scalar(
            select(PayrollRun)
            .where(
                PayrollRun.tenant_id == tenant_id,
                PayrollRun.payment_frequency == frequency.value,
                PayrollRun.period_start <= period_end,
                PayrollRun.period_end >= period_start,
            )
            .limit(1)
        )
        if existing is not None:
            raise OverlapError(frequency.value, existing.payroll_run_id, existing.run_number)

        payroll_run = PayrollRun(
            tenant_id=tenant_id,
            run_number=generate_run_number(period_start, frequency),
            country_code=country_code,
            period_start=period_start,
            period_end=period_end,
            payment_date=payment_date,
            payment_frequency=frequency.value,
            status=PayrollRunStatus.DRAFT.value,
            employee_count=await self.loader.count_eligible(tenant_id, frequency),
        )
        self.session.add(payroll_run)
        await self.session.flush()

        logger.info(
            "Created payroll run %s (%s) for tenant %s",
            payroll_run.run_number,
            payroll_run.payroll_run_id,
            tenant_id,
        )
        return payroll_run

    async def get_progress(self, payroll_run_id: UUID, tenant_id: UUID) -> PayrollRunProgress | None:
        return await self.session.scalar(
            select(PayrollRunProgress).where(
                PayrollRunProgress.payroll_run_id == payroll_run_id,
                PayrollRunProgress.tenant_id == tenant_id,
            )
        )

    async def list_line_items(self, payroll_run_id: UUID, tenant_id: UUID) -> list[PayrollLineItem]:
        result = await self.session.scalars(
            select(PayrollLineItem)
            .where(
                PayrollLineItem.payroll_run_id == payroll_run_id,
                PayrollLineItem.tenant_id == tenant_id,
            )
            .order_by(PayrollLineItem.employee_name, PayrollLineItem.employee_id)
        )
        return list(result.all())

    def _is_in_flight(self, payroll_run: PayrollRun, progress: PayrollRunProgress | None) -> bool:
        if self.locks.is_locked(payroll_run.payroll_run_id):
            return True
        if payroll_run.status != PayrollRunStatus.CALCULATING or progress is None:
            return False
        if progress.status not in (ProgressStatus.PENDING, ProgressStatus.PROCESSING):
            return False
        heartbeat = as_utc(progress.updated_at)
        return heartbeat is not None and utcnow() - heartbeat < timedelta(
            seconds=self.settings.stale_after_seconds
        )

    async def trigger_calculation(self, payroll_run_id: UUID, tenant_id: UUID) -> PayrollRunProgress:
        """Reset progress and dispatch the batch step.

        Commits before dispatching so a background worker sees the reset.
        A run still being processed (fresh heartbeat) cannot be retriggered;
        an interrupted one can.
        """
        if self.runner is None:
            raise RuntimeError("No batch runner configured")

        payroll_run = await self.require_payroll_run(payroll_run_id, tenant_id)
        to_status = PayrollRunStatus.CALCULATING.value
        if not PayrollRunStateMachine.can_calculate(payroll_run.status):
            raise StateTransitionError(
                payroll_run.status, to_status, "Run can no longer be recalculated"
            )

        progress = await self.get_progress(payroll_run_id, tenant_id)
        if self._is_in_flight(payroll_run, progress):
            raise StateTransitionError(
                payroll_run.status, to_status, "Calculation is already in progress"
            )
        PayrollRunStateMachine.validate_transition(payroll_run.status, to_status)

        employee_count = await self.loader.count_eligible(tenant_id, payroll_run.payment_frequency)
        now = utcnow()
        if progress is None:
            progress = PayrollRunProgress(payroll_run_id=payroll_run_id, tenant_id=tenant_id)
            self.session.add(progress)
        progress.status = ProgressStatus.PENDING.value
        progress.total_employees = employee_count
        progress.processed_count = 0
        progress.success_count = 0
        progress.error_count = 0
        progress.current_chunk = 0
        progress.total_chunks = math.ceil(employee_count / max(self.settings.chunk_size, 1))
        progress.errors_json = []
        progress.last_error = None
        progress.started_at = None
        progress.completed_at = None
        progress.updated_at = now

        payroll_run.status = to_status
        payroll_run.employee_count = employee_count
        await self.session.commit()

        logger.info(
            "Triggered calculation of payroll run %s for %d employee(s)",
            payroll_run.run_number,
            employee_count,
        )
        await self.runner.submit(
            BatchJob(
                payroll_run_id=payroll_run_id,
                tenant_id=tenant_id,
                period_start=payroll_run.period_start,
                period_end=payroll_run.period_end,
                employee_count=employee_count,
            )
        )

        await self.session.refresh(payroll_run)
        await self.session.refresh(progress)
        return progress

    async def approve_payroll_run(
        self, payroll_run_id: UUID, tenant_id: UUID, approved_by: UUID
    ) -> PayrollRun:
        """Approve a calculated run, locking its line items."""
        payroll_run = await self.require_payroll_run(payroll_run_id, tenant_id)
        to_status = PayrollRunStatus.APPROVED.value
        if payroll_run.status != PayrollRunStatus.CALCULATED:
            raise StateTransitionError(
                payroll_run.status, to_status, "Only a calculated run can be approved"
            )

        approved_at = utcnow()
        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == payroll_run_id,
                PayrollRun.tenant_id == tenant_id,
                PayrollRun.status == PayrollRunStatus.CALCULATED.value,
            )
            .values(status=to_status, approved_at=approved_at, approved_by=approved_by)
        )
        if result.rowcount != 1:
            raise StateTransitionError(
                payroll_run.status, to_status, "Run status changed concurrently"
            )

        await self.session.refresh(payroll_run)
        logger.info("Payroll run %s approved by %s", payroll_run.run_number, approved_by)
        return payroll_run

    async def mark_paid(self, payroll_run_id: UUID, tenant_id: UUID) -> PayrollRun:
        payroll_run = await self.require_payroll_run(payroll_run_id, tenant_id)
        PayrollRunStateMachine.validate_transition(payroll_run.status, PayrollRunStatus.PAID.value)
        payroll_run.status = PayrollRunStatus.PAID.value
        payroll_run.paid_at = utcnow()
        await self.session.flush()
        logger.info("Payroll run %s marked paid", payroll_run.run_number)
        return payroll_run

    async def delete_payroll_run(self, payroll_run_id: UUID, tenant_id: UUID) -> None:
        """Delete a draft run together with any line items and progress."""
        payroll_run = await self.require_payroll_run(payroll_run_id, tenant_id)
        if not PayrollRunStateMachine.can_delete(payroll_run.status):
            raise StateTransitionError(
                payroll_run.status, "deleted", "Only draft runs can be deleted"
            )

        await self.session.execute(
            delete(PayrollLineItem).where(PayrollLineItem.payroll_run_id == payroll_run_id)
        )
        await self.session.execute(
            delete(PayrollRunProgress).where(PayrollRunProgress.payroll_run_id == payroll_run_id)
        )
        await self.session.execute(
            delete(PayrollRun).where(
                PayrollRun.payroll_run_id == payroll_run_id,
                PayrollRun.tenant_id == tenant_id,
            )
        )
        await self.session.flush()
        logger.info("Deleted payroll run %s", payroll_run.run_number)

    async def recalculate_employee(
        self, payroll_run_id: UUID, tenant_id: UUID, employee_id: UUID
    ) -> RecalculationResult:
        """Recalculate one employee of a calculated (or failed) run."""
        payroll_run = await self.require_payroll_run(payroll_run_id, tenant_id)
        if payroll_run.status not in (PayrollRunStatus.CALCULATED, PayrollRunStatus.FAILED):
            raise StateTransitionError(
                payroll_run.status,
                payroll_run.status,
                "Single-employee recalculation needs a calculated run",
            )
        if self.locks.is_locked(payroll_run_id):
            raise StateTransitionError(
                payroll_run.status, payroll_run.status, "Calculation is already in progress"
            )

        records = await self.loader.load_records(
            tenant_id, [employee_id], payroll_run.period_start, payroll_run.period_end
        )
        if not records:
            raise EmployeeNotFoundError(employee_id)

        tenant = await self.session.get(Tenant, tenant_id)
        employee_input = build_employee_input(
            records[0],
            payroll_run.country_code,
            payroll_run.period_start,
            payroll_run.period_end,
            default_sector_code=tenant.default_sector_code if tenant else None,
        )

        previous_net = await self.session.scalar(
            select(PayrollLineItem.net_salary).where(
                PayrollLineItem.payroll_run_id == payroll_run_id,
                PayrollLineItem.employee_id == employee_id,
            )
        )

        catalog = await load_component_catalog(self.session, payroll_run.country_code, tenant_id)
        calculator = PayrollLineCalculator(self.rules, catalog)
        result = await calculator.calculate(employee_input)
        line_item = await calculator.commit(self.session, payroll_run, result)
        await refresh_run_totals(self.session, payroll_run)

        logger.info(
            "Recalculated employee %s in run %s: net %s -> %s",
            employee_id,
            payroll_run.run_number,
            previous_net,
            result.net_salary,
        )
        return RecalculationResult(
            line_item=line_item,
            previous_net=previous_net,
            new_net=result.net_salary,
        )
