"""ORM models."""

from salary_engine.models.base import Base, TimestampMixin
from salary_engine.models.company import Tenant
from salary_engine.models.components import (
    SalaryComponentDefinition,
    SalaryComponentTemplate,
    TenantComponentActivation,
)
from salary_engine.models.employee import (
    Employee,
    EmployeeDependent,
    EmployeeSalary,
    TimeEntry,
)
from salary_engine.models.payroll import PayrollLineItem, PayrollRun, PayrollRunProgress
from salary_engine.models.rules import CityTransportMinimum, CountryRuleVersion

__all__ = [
    "Base",
    "TimestampMixin",
    "Tenant",
    "Employee",
    "EmployeeDependent",
    "EmployeeSalary",
    "TimeEntry",
    "SalaryComponentDefinition",
    "SalaryComponentTemplate",
    "TenantComponentActivation",
    "CountryRuleVersion",
    "CityTransportMinimum",
    "PayrollRun",
    "PayrollLineItem",
    "PayrollRunProgress",
]
