"""Input validation for a single employee's calculation."""

from __future__ import annotations

import re
from decimal import Decimal

from salary_engine.calculators.types import EmployeePayrollInput

_WEEKLY_HOURS_RE = re.compile(r"^\s*(\d+(?:[.,]\d+)?)\s*h?\s*$", re.IGNORECASE)


class PayrollValidationError(Exception):
    """Raised for malformed calculation input; aborts one employee only."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


def parse_weekly_hours(regime: str | None) -> Decimal:
    """Parse a weekly-hours regime such as ``"40h"`` or ``"44"``."""
    if not regime:
        return Decimal("40")
    match = _WEEKLY_HOURS_RE.match(regime)
    if match is None:
        raise PayrollValidationError(
            f"Unrecognized weekly hours regime '{regime}'", field="weekly_hours_regime"
        )
    hours = Decimal(match.group(1).replace(",", "."))
    if hours <= 0 or hours > 84:
        raise PayrollValidationError(
            f"Weekly hours out of range: {hours}", field="weekly_hours_regime"
        )
    return hours


def validate_employee_input(employee: EmployeePayrollInput) -> None:
    """Reject inputs no calculation could make sense of."""
    if employee.period_end < employee.period_start:
        raise PayrollValidationError("Period end precedes period start", field="period_end")

    if employee.verified_children < 0:
        raise PayrollValidationError("Dependent count cannot be negative", field="verified_children")

    for component in (*employee.base_components, *employee.components):
        if component.amount < 0:
            raise PayrollValidationError(
                f"Component {component.code} has a negative amount ({component.amount})",
                field="components",
            )

    if not employee.base_components:
        raise PayrollValidationError("No base salary component", field="base_components")

    if sum(c.amount for c in employee.base_components) <= 0:
        raise PayrollValidationError("Base salary must be positive", field="base_components")

    if employee.termination_date and employee.termination_date < employee.period_start:
        raise PayrollValidationError(
            "Employee was terminated before the period started", field="termination_date"
        )

    if employee.hire_date > employee.period_end and not employee.hiring_preview:
        raise PayrollValidationError("Employee is hired after the period ends", field="hire_date")

    parse_weekly_hours(employee.weekly_hours_regime)


