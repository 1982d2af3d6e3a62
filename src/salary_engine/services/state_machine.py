"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    CALCULATING = "calculating"
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"
    FAILED = "failed"


class ProgressStatus(str, Enum):
    """Batch progress status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → calculating
    - calculating → calculated
    - calculating → failed
    - calculating → calculating (retrigger of an interrupted run)
    - calculated → calculating (recalculate)
    - calculated → approved
    - failed → calculating
    - approved → paid
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.CALCULATING],
        PayrollRunStatus.CALCULATING: [
            PayrollRunStatus.CALCULATED,
            PayrollRunStatus.FAILED,
            PayrollRunStatus.CALCULATING,
        ],
        PayrollRunStatus.CALCULATED: [PayrollRunStatus.CALCULATING, PayrollRunStatus.APPROVED],
        PayrollRunStatus.FAILED: [PayrollRunStatus.CALCULATING],
        PayrollRunStatus.APPROVED: [PayrollRunStatus.PAID],
        PayrollRunStatus.PAID: [],  # Terminal state
    }

    # Statuses from which a calculation may be (re)triggered
    CALCULATION_ALLOWED = {
        PayrollRunStatus.DRAFT,
        PayrollRunStatus.CALCULATING,
        PayrollRunStatus.CALCULATED,
        PayrollRunStatus.FAILED,
    }

    # Statuses where line items can no longer be overwritten
    RESULTS_LOCKED = {
        PayrollRunStatus.APPROVED,
        PayrollRunStatus.PAID,
    }

    DELETABLE = {PayrollRunStatus.DRAFT}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising StateTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise StateTransitionError(from_status, to_status)

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def are_results_locked(cls, status: str) -> bool:
        return status in cls.RESULTS_LOCKED

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status in cls.DELETABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
