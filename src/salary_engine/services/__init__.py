"""Payroll run orchestration services."""

from salary_engine.services.state_machine import (
    PayrollRunStateMachine,
    PayrollRunStatus,
    ProgressStatus,
    StateTransitionError,
)

__all__ = [
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "ProgressStatus",
    "StateTransitionError",
]
