"""Tests for payroll run state machine."""

import pytest

from salary_engine.services.state_machine import (
    PayrollRunStateMachine,
    PayrollRunStatus,
    StateTransitionError,
)


class TestPayrollRunStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        assert PayrollRunStateMachine.can_transition("draft", "calculating") is True
        assert PayrollRunStateMachine.can_transition("calculating", "calculated") is True
        assert PayrollRunStateMachine.can_transition("calculating", "failed") is True
        assert PayrollRunStateMachine.can_transition("calculated", "approved") is True
        assert PayrollRunStateMachine.can_transition("approved", "paid") is True

        # Retrigger paths
        assert PayrollRunStateMachine.can_transition("calculated", "calculating") is True
        assert PayrollRunStateMachine.can_transition("failed", "calculating") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        assert PayrollRunStateMachine.can_transition("draft", "approved") is False
        assert PayrollRunStateMachine.can_transition("approved", "draft") is False
        assert PayrollRunStateMachine.can_transition("approved", "calculating") is False
        assert PayrollRunStateMachine.can_transition("calculated", "paid") is False
        assert PayrollRunStateMachine.can_transition("draft", "failed") is False

        # Paid is terminal
        assert PayrollRunStateMachine.get_next_statuses("paid") == []

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(StateTransitionError) as exc_info:
            PayrollRunStateMachine.validate_transition("draft", "approved")

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "approved"

    def test_unknown_status_has_no_transitions(self):
        assert PayrollRunStateMachine.can_transition("archived", "draft") is False

    def test_can_calculate(self):
        """Test calculation allowed statuses."""
        assert PayrollRunStateMachine.can_calculate("draft") is True
        assert PayrollRunStateMachine.can_calculate("calculated") is True
        assert PayrollRunStateMachine.can_calculate("failed") is True
        assert PayrollRunStateMachine.can_calculate("approved") is False
        assert PayrollRunStateMachine.can_calculate("paid") is False

    def test_results_locked_once_approved(self):
        assert PayrollRunStateMachine.are_results_locked("approved") is True
        assert PayrollRunStateMachine.are_results_locked("paid") is True
        assert PayrollRunStateMachine.are_results_locked("calculated") is False

    def test_only_draft_is_deletable(self):
        assert PayrollRunStateMachine.can_delete(PayrollRunStatus.DRAFT) is True
        for status in ("calculating", "calculated", "approved", "paid", "failed"):
            assert PayrollRunStateMachine.can_delete(status) is False
