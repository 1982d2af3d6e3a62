"""Loads the per-employee inputs of a payroll calculation."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.types import (
    ComponentInput,
    ContractType,
    EmployeeClassification,
    EmployeePayrollInput,
    MaritalStatus,
    OvertimeBand,
    OvertimeType,
    PaymentFrequency,
    RateType,
    TimeAggregate,
)
from salary_engine.calculators.validation import PayrollValidationError
from salary_engine.models import Employee, EmployeeDependent, EmployeeSalary, TimeEntry


def eligibility_filter(tenant_id: UUID, frequency: PaymentFrequency | str) -> list[ColumnElement[bool]]:
    """Active employees of the tenant paid at ``frequency``.

    Employees without a payment frequency are paid monthly.
    """
    frequency = PaymentFrequency(frequency)
    conditions: list[ColumnElement[bool]] = [
        Employee.tenant_id == tenant_id,
        Employee.status == "active",
    ]
    if frequency == PaymentFrequency.MONTHLY:
        conditions.append(
            or_(Employee.payment_frequency.is_(None), Employee.payment_frequency == frequency.value)
        )
    else:
        conditions.append(Employee.payment_frequency == frequency.value)
    return conditions


@dataclass
class EmployeeRecord:
    """Rows needed to build one employee's calculation input."""

    employee: Employee
    salary: EmployeeSalary | None
    verified_children: int
    time: TimeAggregate | None


class TimeAttendanceReader:
    """Aggregates approved time entries per employee."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def aggregates(
        self,
        tenant_id: UUID,
        employee_ids: Iterable[UUID],
        period_start: date,
        period_end: date,
    ) -> dict[UUID, TimeAggregate]:
        ids = list(employee_ids)
        if not ids:
            return {}

        entries = (
            await self.session.scalars(
                select(TimeEntry)
                .where(
                    TimeEntry.tenant_id == tenant_id,
                    TimeEntry.employee_id.in_(ids),
                    TimeEntry.status == "approved",
                    TimeEntry.work_date >= period_start,
                    TimeEntry.work_date <= period_end,
                )
                .order_by(TimeEntry.employee_id, TimeEntry.work_date)
            )
        ).all()

        hours: dict[UUID, Decimal] = defaultdict(Decimal)
        days: dict[UUID, set[date]] = defaultdict(set)
        counts: dict[UUID, int] = defaultdict(int)
        overtime: dict[UUID, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))

        for entry in entries:
            hours[entry.employee_id] += Decimal(str(entry.hours))
            counts[entry.employee_id] += 1
            if entry.hours and entry.hours > 0:
                days[entry.employee_id].add(entry.work_date)
            for band in entry.overtime_json or []:
                overtime[entry.employee_id][band["type"]] += Decimal(str(band.get("count", 0)))

        return {
            employee_id: TimeAggregate(
                hours_worked=hours[employee_id],
                days_worked=Decimal(len(days[employee_id])),
                overtime=tuple(
                    OvertimeBand(count=count, type=OvertimeType(band_type))
                    for band_type, count in sorted(overtime[employee_id].items())
                    if count > 0
                ),
                entry_count=counts[employee_id],
            )
            for employee_id in counts
        }


class EmployeeDataLoader:
    """Prefetches employees, salaries, dependents and time for a chunk."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.time_reader = TimeAttendanceReader(session)

    async def count_eligible(self, tenant_id: UUID, frequency: PaymentFrequency | str) -> int:
        return await self.session.scalar(
            select(func.count()).select_from(Employee).where(*eligibility_filter(tenant_id, frequency))
        ) or 0

    async def eligible_employee_ids(
        self, tenant_id: UUID, frequency: PaymentFrequency | str
    ) -> list[UUID]:
        result = await self.session.scalars(
            select(Employee.employee_id)
            .where(*eligibility_filter(tenant_id, frequency))
            .order_by(Employee.last_name, Employee.first_name, Employee.employee_id)
        )
        return list(result.all())

    async def load_records(
        self,
        tenant_id: UUID,
        employee_ids: list[UUID],
        period_start: date,
        period_end: date,
    ) -> list[EmployeeRecord]:
        if not employee_ids:
            return []

        employees = {
            e.employee_id: e
            for e in (
                await self.session.scalars(
                    select(Employee).where(
                        Employee.tenant_id == tenant_id,
                        Employee.employee_id.in_(employee_ids),
                    )
                )
            ).all()
        }

        salaries: dict[UUID, EmployeeSalary] = {}
        for salary in (
            await self.session.scalars(
                select(EmployeeSalary)
                .where(
                    EmployeeSalary.tenant_id == tenant_id,
                    EmployeeSalary.employee_id.in_(employee_ids),
                    EmployeeSalary.effective_from <= period_end,
                    or_(
                        EmployeeSalary.effective_to.is_(None),
                        EmployeeSalary.effective_to >= period_start,
                    ),
                )
                .order_by(EmployeeSalary.effective_from)
            )
        ).all():
            # Latest effective package wins
            salaries[salary.employee_id] = salary

        children_rows = await self.session.execute(
            select(EmployeeDependent.employee_id, func.count())
            .where(
                EmployeeDependent.tenant_id == tenant_id,
                EmployeeDependent.employee_id.in_(employee_ids),
                EmployeeDependent.relationship_type == "child",
                EmployeeDependent.is_verified.is_(True),
            )
            .group_by(EmployeeDependent.employee_id)
        )
        children = {employee_id: count for employee_id, count in children_rows.all()}

        time = await self.time_reader.aggregates(tenant_id, employee_ids, period_start, period_end)

        return [
            EmployeeRecord(
                employee=employees[employee_id],
                salary=salaries.get(employee_id),
                verified_children=children.get(employee_id, 0),
                time=time.get(employee_id),
            )
            for employee_id in employee_ids
            if employee_id in employees
        ]


def build_employee_input(
    record: EmployeeRecord,
    country_code: str,
    period_start: date,
    period_end: date,
    default_sector_code: str | None = None,
) -> EmployeePayrollInput:
    """Turn stored rows into a calculation input; raises on unusable data."""
    employee = record.employee
    if record.salary is None:
        raise PayrollValidationError(
            f"No salary effective between {period_start} and {period_end}", field="salary"
        )

    try:
        return EmployeePayrollInput(
            employee_id=employee.employee_id,
            employee_name=employee.full_name,
            country_code=country_code,
            period_start=period_start,
            period_end=period_end,
            hire_date=employee.hire_date,
            termination_date=employee.termination_date,
            rate_type=RateType(employee.rate_type),
            contract_type=ContractType(employee.contract_type),
            payment_frequency=PaymentFrequency(employee.payment_frequency or "MONTHLY"),
            weekly_hours_regime=employee.weekly_hours_regime,
            marital_status=MaritalStatus(employee.marital_status),
            verified_children=record.verified_children,
            classification=EmployeeClassification(employee.classification),
            sector_code=employee.sector_code or default_sector_code,
            city=employee.city,
            base_components=tuple(
                ComponentInput.from_dict(c) for c in record.salary.base_components_json or []
            ),
            components=tuple(ComponentInput.from_dict(c) for c in record.salary.components_json or []),
            time=record.time,
        )
    except (KeyError, ValueError, ArithmeticError) as e:
        raise PayrollValidationError(f"Malformed employee data: {e}") from e
