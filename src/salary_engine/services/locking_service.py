"""Per-run locks serializing writes to a run's line items and progress."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import UUID


class RunLockedError(Exception):
    """Raised when a run is already being processed by this process."""

    def __init__(self, payroll_run_id: UUID):
        self.payroll_run_id = payroll_run_id
        super().__init__(f"Payroll run {payroll_run_id} is already being processed")


class RunLockRegistry:
    """In-process registry of one ``asyncio.Lock`` per payroll run.

    A run held by a worker cannot be entered by a second worker; the second
    attempt fails fast instead of waiting.
    """

    def __init__(self) -> None:
        self._locks: dict[UUID, asyncio.Lock] = {}

    def is_locked(self, payroll_run_id: UUID) -> bool:
        lock = self._locks.get(payroll_run_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, payroll_run_id: UUID) -> AsyncGenerator[None, None]:
        lock = self._locks.setdefault(payroll_run_id, asyncio.Lock())
        if lock.locked():
            raise RunLockedError(payroll_run_id)
        try:
            async with lock:
                yield
        finally:
            if not lock.locked() and self._locks.get(payroll_run_id) is lock:
                del self._locks[payroll_run_id]


_default_registry = RunLockRegistry()


def get_run_locks() -> RunLockRegistry:
    """Process-wide lock registry."""
    return _default_registry
