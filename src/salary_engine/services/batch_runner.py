"""Dispatch of payroll batch jobs: direct, queued and hybrid runners."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

if TYPE_CHECKING:
    from salary_engine.config import Settings
    from salary_engine.services.batch_processor import BatchProcessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchJob:
    """One trigger of a payroll run calculation."""

    payroll_run_id: UUID
    tenant_id: UUID
    period_start: date
    period_end: date
    employee_count: int


class BatchRunner(Protocol):
    """Eventually runs the batch step once per submitted job."""

    async def submit(self, job: BatchJob) -> None:
        ...


class DirectBatchRunner:
    """Runs the job inline; the caller blocks until the run is processed.

    As with the queued runner, run-level failures are recorded on the run by
    the processor and logged, not raised to the submitter.
    """

    def __init__(self, processor: BatchProcessor):
        self.processor = processor

    async def submit(self, job: BatchJob) -> None:
        try:
            await self.processor.process(job)
        except Exception:
            logger.exception("Payroll run %s failed", job.payroll_run_id)


class QueuedBatchRunner:
    """Runs jobs on background worker tasks fed by an ``asyncio.Queue``.

    Failures are recorded on the run by the processor and logged here; they
    never propagate to the submitter.
    """

    def __init__(self, processor: BatchProcessor, workers: int = 1):
        self.processor = processor
        self.workers = workers
        self._queue: asyncio.Queue[BatchJob] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"payroll-batch-{i}")
            for i in range(self.workers)
        ]
        logger.info("Started %d payroll batch worker(s)", self.workers)

    async def submit(self, job: BatchJob) -> None:
        if not self._tasks:
            await self.start()
        await self._queue.put(job)
        logger.info(
            "Queued payroll run %s (%d employees)", job.payroll_run_id, job.employee_count
        )

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.processor.process(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Payroll batch worker %d failed on run %s", index, job.payroll_run_id
                )
            finally:
                self._queue.task_done()


class HybridBatchRunner:
    """Direct execution for small runs, queued execution above a threshold."""

    def __init__(self, direct: DirectBatchRunner, queued: QueuedBatchRunner, direct_max_employees: int):
        self.direct = direct
        self.queued = queued
        self.direct_max_employees = direct_max_employees

    async def submit(self, job: BatchJob) -> None:
        if job.employee_count <= self.direct_max_employees:
            await self.direct.submit(job)
        else:
            await self.queued.submit(job)

    async def stop(self) -> None:
        await self.queued.stop()


def build_batch_runner(settings: Settings, processor: BatchProcessor) -> BatchRunner:
    """Runner selected by ``PAYROLL_BATCH_MODE``."""
    if settings.batch_mode == "direct":
        return DirectBatchRunner(processor)
    if settings.batch_mode == "queued":
        return QueuedBatchRunner(processor)
    if settings.batch_mode == "hybrid":
        return HybridBatchRunner(
            DirectBatchRunner(processor),
            QueuedBatchRunner(processor),
            settings.direct_max_employees,
        )
    raise ValueError(f"Unknown batch mode '{settings.batch_mode}'")
