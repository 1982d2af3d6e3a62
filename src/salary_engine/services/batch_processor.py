"""Batch step of a payroll run: chunked, bounded-concurrency calculation."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from salary_engine.calculators.engine import PayrollLineCalculator
from salary_engine.calculators.tax_calculator import UnsupportedCountryError
from salary_engine.calculators.types import PayrollCalculationResult
from salary_engine.calculators.validation import PayrollValidationError
from salary_engine.config import Settings, get_settings
from salary_engine.models import PayrollLineItem, PayrollRun, PayrollRunProgress, Tenant
from salary_engine.models.base import utcnow
from salary_engine.rules.repository import (
    CachedCountryRuleRepository,
    ConfigNotFoundError,
    SqlCountryRuleRepository,
)
from salary_engine.services.batch_runner import BatchJob
from salary_engine.services.component_service import load_component_catalog
from salary_engine.services.employee_data import (
    EmployeeDataLoader,
    EmployeeRecord,
    build_employee_input,
)
from salary_engine.services.locking_service import RunLockRegistry, get_run_locks
from salary_engine.services.payroll_run_service import PayrollRunNotFoundError, refresh_run_totals
from salary_engine.services.state_machine import (
    PayrollRunStateMachine,
    PayrollRunStatus,
    ProgressStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmployeeError:
    """Per-employee failure recorded in the run progress."""

    employee_id: UUID
    employee_name: str
    message: str
    error_type: str

    def to_dict(self) -> dict[str, str]:
        return {
            "employee_id": str(self.employee_id),
            "employee_name": self.employee_name,
            "error": self.message,
            "error_type": self.error_type,
        }


@dataclass(frozen=True)
class BatchOutcome:
    """Counters of a finished batch step."""

    payroll_run_id: UUID
    total_employees: int
    success_count: int
    error_count: int


class BatchProcessor:
    """Calculates every eligible employee of a run in chunks.

    Each job runs in its own session. Employees of a chunk are calculated
    concurrently (bounded by ``worker_concurrency``); their line items are
    then written sequentially and the chunk is committed together with the
    progress counters. An employee failure is folded into the progress and
    never aborts the run; a run-level failure marks the run ``failed``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        locks: RunLockRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.locks = locks or get_run_locks()

    async def process(self, job: BatchJob) -> BatchOutcome:
        async with self.locks.hold(job.payroll_run_id):
            async with self.session_factory() as session:
                try:
                    return await self._process(session, job)
                except Exception as e:
                    await session.rollback()
                    logger.exception("Payroll run %s failed", job.payroll_run_id)
                    await self._mark_failed(job, e)
                    raise

    async def _process(self, session: AsyncSession, job: BatchJob) -> BatchOutcome:
        payroll_run = await session.scalar(
            select(PayrollRun).where(
                PayrollRun.payroll_run_id == job.payroll_run_id,
                PayrollRun.tenant_id == job.tenant_id,
            )
        )
        if payroll_run is None:
            raise PayrollRunNotFoundError(job.payroll_run_id)
        if payroll_run.status != PayrollRunStatus.CALCULATING:
            # Redelivered job for a run that is no longer being calculated
            logger.info(
                "Ignoring batch job for payroll run %s in status %s",
                payroll_run.run_number,
                payroll_run.status,
            )
            return BatchOutcome(
                payroll_run_id=payroll_run.payroll_run_id,
                total_employees=payroll_run.employee_count,
                success_count=0,
                error_count=0,
            )

        progress = await session.scalar(
            select(PayrollRunProgress).where(
                PayrollRunProgress.payroll_run_id == job.payroll_run_id
            )
        )
        if progress is None:
            progress = PayrollRunProgress(
                payroll_run_id=job.payroll_run_id, tenant_id=job.tenant_id
            )
            session.add(progress)

        loader = EmployeeDataLoader(session)
        employee_ids = await loader.eligible_employee_ids(
            job.tenant_id, payroll_run.payment_frequency
        )
        chunk_size = max(self.settings.chunk_size, 1)

        now = utcnow()
        progress.status = ProgressStatus.PROCESSING.value
        progress.total_employees = len(employee_ids)
        progress.total_chunks = math.ceil(len(employee_ids) / chunk_size)
        progress.processed_count = 0
        progress.success_count = 0
        progress.error_count = 0
        progress.current_chunk = 0
        progress.errors_json = []
        progress.last_error = None
        progress.started_at = now
        progress.completed_at = None
        progress.updated_at = now
        payroll_run.employee_count = len(employee_ids)

        # Line items of employees no longer eligible would skew the totals
        await session.execute(
            delete(PayrollLineItem).where(
                PayrollLineItem.payroll_run_id == payroll_run.payroll_run_id,
                PayrollLineItem.employee_id.not_in(employee_ids),
            )
        )
        await session.commit()

        logger.info(
            "Processing payroll run %s: %d employee(s) in %d chunk(s)",
            payroll_run.run_number,
            len(employee_ids),
            progress.total_chunks,
        )

        tenant = await session.get(Tenant, job.tenant_id)
        default_sector = tenant.default_sector_code if tenant else None
        rules = CachedCountryRuleRepository(SqlCountryRuleRepository(session))
        catalog = await load_component_catalog(session, payroll_run.country_code, job.tenant_id)
        calculator = PayrollLineCalculator(rules, catalog)
        semaphore = asyncio.Semaphore(max(self.settings.worker_concurrency, 1))

        for index in range(0, len(employee_ids), chunk_size):
            chunk = employee_ids[index : index + chunk_size]
            records = await loader.load_records(
                job.tenant_id, chunk, payroll_run.period_start, payroll_run.period_end
            )

            outcomes = await asyncio.gather(
                *(
                    self._calculate_one(calculator, semaphore, payroll_run, record, default_sector)
                    for record in records
                )
            )

            errors: list[EmployeeError] = []
            for outcome in outcomes:
                if isinstance(outcome, EmployeeError):
                    errors.append(outcome)
                else:
                    await calculator.commit(session, payroll_run, outcome)

            if errors:
                # A stale line item from an earlier attempt must not count in the totals
                await session.execute(
                    delete(PayrollLineItem).where(
                        PayrollLineItem.payroll_run_id == payroll_run.payroll_run_id,
                        PayrollLineItem.employee_id.in_([e.employee_id for e in errors]),
                    )
                )

            processed = len(outcomes)
            progress.processed_count += processed
            progress.error_count += len(errors)
            progress.success_count += processed - len(errors)
            progress.current_chunk += 1
            progress.errors_json = [*progress.errors_json, *(e.to_dict() for e in errors)]
            if errors:
                progress.last_error = errors[-1].message
            progress.updated_at = utcnow()
            await session.commit()

            log = logger.warning if errors else logger.info
            log(
                "Payroll run %s chunk %d/%d: %d processed, %d error(s)",
                payroll_run.run_number,
                progress.current_chunk,
                progress.total_chunks,
                processed,
                len(errors),
            )

        await refresh_run_totals(session, payroll_run)
        PayrollRunStateMachine.validate_transition(
            payroll_run.status, PayrollRunStatus.CALCULATED.value
        )
        finished = utcnow()
        payroll_run.status = PayrollRunStatus.CALCULATED.value
        payroll_run.calculated_at = finished
        progress.status = ProgressStatus.COMPLETED.value
        progress.completed_at = finished
        progress.updated_at = finished
        await session.commit()

        logger.info(
            "Payroll run %s calculated: %d succeeded, %d failed",
            payroll_run.run_number,
            progress.success_count,
            progress.error_count,
        )
        return BatchOutcome(
            payroll_run_id=payroll_run.payroll_run_id,
            total_employees=progress.total_employees,
            success_count=progress.success_count,
            error_count=progress.error_count,
        )

    async def _calculate_one(
        self,
        calculator: PayrollLineCalculator,
        semaphore: asyncio.Semaphore,
        payroll_run: PayrollRun,
        record: EmployeeRecord,
        default_sector: str | None,
    ) -> PayrollCalculationResult | EmployeeError:
        employee = record.employee
        async with semaphore:
            try:
                employee_input = build_employee_input(
                    record,
                    payroll_run.country_code,
                    payroll_run.period_start,
                    payroll_run.period_end,
                    default_sector_code=default_sector,
                )
                return await calculator.calculate(employee_input)
            except PayrollValidationError as e:
                logger.warning("Employee %s skipped: %s", employee.employee_id, e)
                return EmployeeError(employee.employee_id, employee.full_name, str(e), "validation")
            except (ConfigNotFoundError, UnsupportedCountryError) as e:
                logger.warning("Employee %s skipped: %s", employee.employee_id, e)
                return EmployeeError(employee.employee_id, employee.full_name, str(e), "configuration")
            except Exception as e:
                logger.exception("Calculation failed for employee %s", employee.employee_id)
                return EmployeeError(
                    employee.employee_id, employee.full_name, str(e), type(e).__name__
                )

    async def _mark_failed(self, job: BatchJob, error: Exception) -> None:
        async with self.session_factory() as session:
            payroll_run = await session.get(PayrollRun, job.payroll_run_id)
            if payroll_run is not None and PayrollRunStateMachine.can_transition(
                payroll_run.status, PayrollRunStatus.FAILED.value
            ):
                payroll_run.status = PayrollRunStatus.FAILED.value

            progress = await session.scalar(
                select(PayrollRunProgress).where(
                    PayrollRunProgress.payroll_run_id == job.payroll_run_id
                )
            )
            if progress is not None:
                progress.status = ProgressStatus.FAILED.value
                progress.last_error = str(error)
                progress.updated_at = utcnow()
            await session.commit()
