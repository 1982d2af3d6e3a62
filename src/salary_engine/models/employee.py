"""Employee, dependents, salary history and time entry models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salary_engine.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee record (calculation-relevant subset)."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_number: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    rate_type: Mapped[str] = mapped_column(String, nullable=False, default="MONTHLY")
    contract_type: Mapped[str] = mapped_column(String, nullable=False, default="CDI")
    payment_frequency: Mapped[str | None] = mapped_column(String, nullable=True)
    weekly_hours_regime: Mapped[str] = mapped_column(String, nullable=False, default="40h")
    marital_status: Mapped[str] = mapped_column(String, nullable=False, default="single")
    classification: Mapped[str] = mapped_column(String, nullable=False, default="local")
    sector_code: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'on_leave', 'terminated')",
            name="employee_status_check",
        ),
        CheckConstraint(
            "rate_type IN ('MONTHLY', 'DAILY', 'HOURLY')",
            name="employee_rate_type_check",
        ),
        CheckConstraint(
            "contract_type IN ('CDI', 'CDD', 'CDDTI', 'INTERIM', 'STAGE')",
            name="employee_contract_type_check",
        ),
        Index("employee_tenant_status_idx", "tenant_id", "status"),
    )

    # Relationships
    dependents: Mapped[list[EmployeeDependent]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
    )
    salaries: Mapped[list[EmployeeSalary]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class EmployeeDependent(Base, TimestampMixin):
    """Declared dependent; only verified children count toward fiscal parts."""

    __tablename__ = "employee_dependent"

    employee_dependent_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    relationship_type: Mapped[str] = mapped_column(String, nullable=False, default="child")
    is_verified: Mapped[bool] = mapped_column(nullable=False, default=False)

    employee: Mapped[Employee] = relationship(back_populates="dependents")


class EmployeeSalary(Base, TimestampMixin):
    """Effective-dated salary package.

    ``base_components_json`` holds the explicit base salary components and
    ``components_json`` the other components, both as
    ``[{"code": "11", "amount": 150000}, ...]`` with monthly-equivalent amounts.
    """

    __tablename__ = "employee_salary"

    employee_salary_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    base_components_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)
    components_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)

    __table_args__ = (
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="employee_salary_dates_check",
        ),
    )

    employee: Mapped[Employee] = relationship(back_populates="salaries")


class TimeEntry(Base, TimestampMixin):
    """Worked time for one employee on one day.

    ``overtime_json`` carries pre-classified overtime bands as
    ``[{"type": "hours_41_to_46", "count": 2}, ...]``.
    """

    __tablename__ = "time_entry"

    time_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    overtime_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)

    __table_args__ = (
        CheckConstraint("hours >= 0", name="time_entry_hours_check"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="time_entry_status_check",
        ),
        Index("time_entry_employee_date_idx", "employee_id", "work_date"),
    )
