"""Payroll run, line item and progress models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salary_engine.models.base import Base, TimestampMixin, utcnow


class PayrollRun(Base, TimestampMixin):
    """Payroll run for one tenant, period and payment frequency."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    run_number: Mapped[str] = mapped_column(String, nullable=False)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_frequency: Mapped[str] = mapped_column(String, nullable=False, default="MONTHLY")
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_gross: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_net: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_tax: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_employee_contributions: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_employer_contributions: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_employer_cost: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    calculated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'calculating', 'calculated', 'approved', 'paid', 'failed')",
            name="payroll_run_status_check",
        ),
        CheckConstraint(
            "payment_frequency IN ('MONTHLY', 'WEEKLY', 'BIWEEKLY', 'DAILY')",
            name="payroll_run_frequency_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_run_dates_check"),
        Index("payroll_run_tenant_period_idx", "tenant_id", "period_start", "period_end"),
    )

    # Relationships
    line_items: Mapped[list[PayrollLineItem]] = relationship(
        back_populates="payroll_run",
        cascade="all, delete-orphan",
    )
    progress: Mapped[PayrollRunProgress | None] = relationship(
        back_populates="payroll_run",
        cascade="all, delete-orphan",
        uselist=False,
    )


class PayrollLineItem(Base, TimestampMixin):
    """Calculated gross-to-net result for one employee in one run.

    The ``*_json`` breakdowns are the stable read shape used for payslip and
    declaration rendering.
    """

    __tablename__ = "payroll_line_item"

    payroll_line_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_name: Mapped[str] = mapped_column(String, nullable=False)
    contract_type: Mapped[str] = mapped_column(String, nullable=False)
    rate_type: Mapped[str] = mapped_column(String, nullable=False)

    base_salary: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_allowances: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    overtime_pay: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    gross_salary: Mapped[int] = mapped_column(BigInteger, nullable=False)
    taxable_gross: Mapped[int] = mapped_column(BigInteger, nullable=False)
    income_tax: Mapped[int] = mapped_column(BigInteger, nullable=False)
    employee_contributions: Mapped[int] = mapped_column(BigInteger, nullable=False)
    employer_contributions: Mapped[int] = mapped_column(BigInteger, nullable=False)
    other_taxes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_deductions: Mapped[int] = mapped_column(BigInteger, nullable=False)
    net_salary: Mapped[int] = mapped_column(BigInteger, nullable=False)
    employer_cost: Mapped[int] = mapped_column(BigInteger, nullable=False)

    fiscal_parts: Mapped[Decimal] = mapped_column(Numeric(4, 1), nullable=False)
    days_worked: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)

    earnings_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)
    deductions_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)
    contributions_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)
    other_taxes_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)
    warnings_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)

    inputs_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payroll_line_item_run_employee_unique"),
        Index("payroll_line_item_tenant_employee_idx", "tenant_id", "employee_id"),
    )

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="line_items")


class PayrollRunProgress(Base, TimestampMixin):
    """Batch progress for a payroll run (one row per run)."""

    __tablename__ = "payroll_run_progress"

    payroll_run_progress_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_chunk: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_chunks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors_json: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=list)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'paused')",
            name="payroll_run_progress_status_check",
        ),
    )

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="progress")

    @property
    def percent_complete(self) -> float:
        if not self.total_employees:
            return 100.0 if self.status == "completed" else 0.0
        return round(self.processed_count / self.total_employees * 100, 2)
