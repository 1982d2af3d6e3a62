"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

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


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str


# ============================================================================
# Payroll Run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for creating a new payroll run."""

    country_code: str = Field(min_length=2, max_length=2)
    period_start: date
    period_end: date
    payment_date: date
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    tenant_id: UUID
    run_number: str
    country_code: str
    period_start: date
    period_end: date
    payment_date: date
    payment_frequency: str
    status: str
    employee_count: int
    total_gross: int
    total_net: int
    total_tax: int
    total_employee_contributions: int
    total_employer_contributions: int
    total_employer_cost: int
    calculated_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: UUID | None = None
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunResponse]
    total: int
    page: int
    page_size: int


class ApprovalRequest(BaseModel):
    """Schema for approving a payroll run."""

    approver_id: UUID


# ============================================================================
# Progress schemas
# ============================================================================


class EmployeeErrorResponse(BaseModel):
    employee_id: UUID
    employee_name: str
    error: str
    error_type: str | None = None


class ProgressResponse(BaseModel):
    """Batch progress of a payroll run."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    status: str
    total_employees: int
    processed_count: int
    success_count: int
    error_count: int
    current_chunk: int
    total_chunks: int
    percent_complete: float
    errors: list[EmployeeErrorResponse] = Field(
        default_factory=list, validation_alias="errors_json"
    )
    last_error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime


# ============================================================================
# Line item schemas
# ============================================================================


class LineItemResponse(BaseModel):
    """Stable read shape of a calculated line item (payslip source)."""

    model_config = ConfigDict(from_attributes=True)

    payroll_line_item_id: UUID
    payroll_run_id: UUID
    employee_id: UUID
    employee_name: str
    contract_type: str
    rate_type: str
    base_salary: int
    total_allowances: int
    overtime_pay: int
    gross_salary: int
    taxable_gross: int
    income_tax: int
    employee_contributions: int
    employer_contributions: int
    other_taxes: int
    total_deductions: int
    net_salary: int
    employer_cost: int
    fiscal_parts: Decimal
    days_worked: Decimal
    hours_worked: Decimal
    earnings: list[dict[str, Any]] = Field(validation_alias="earnings_json")
    deductions: list[dict[str, Any]] = Field(validation_alias="deductions_json")
    contributions: list[dict[str, Any]] = Field(validation_alias="contributions_json")
    other_tax_lines: list[dict[str, Any]] = Field(validation_alias="other_taxes_json")
    warnings: list[dict[str, Any]] = Field(validation_alias="warnings_json")
    inputs_fingerprint: str
    calculated_at: datetime


class LineItemListResponse(BaseModel):
    items: list[LineItemResponse]
    total: int


class RecalculationResponse(BaseModel):
    """Result of recalculating one employee."""

    line_item: LineItemResponse
    previous_net: int | None
    new_net: int
    difference: int


# ============================================================================
# Preview schemas
# ============================================================================


class ComponentPayload(BaseModel):
    code: str
    amount: Decimal = Decimal("0")
    name: str | None = None


class OvertimePayload(BaseModel):
    type: OvertimeType
    count: Decimal = Field(ge=0)


class PreviewRequest(BaseModel):
    """Single-employee calculation without persistence."""

    employee_id: UUID = Field(default_factory=uuid4)
    employee_name: str = "Preview"
    country_code: str = Field(min_length=2, max_length=2)
    period_start: date
    period_end: date
    hire_date: date
    rate_type: RateType = RateType.MONTHLY
    contract_type: ContractType = ContractType.CDI
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    weekly_hours_regime: str = "40h"
    marital_status: MaritalStatus = MaritalStatus.SINGLE
    verified_children: int = Field(default=0, ge=0)
    classification: EmployeeClassification = EmployeeClassification.LOCAL
    sector_code: str | None = None
    city: str | None = None
    base_components: list[ComponentPayload]
    components: list[ComponentPayload] = Field(default_factory=list)
    hours_worked: Decimal | None = None
    days_worked: Decimal | None = None
    overtime: list[OvertimePayload] = Field(default_factory=list)
    hiring_preview: bool = True

    def to_input(self) -> EmployeePayrollInput:
        time = None
        if self.hours_worked is not None or self.days_worked is not None or self.overtime:
            time = TimeAggregate(
                hours_worked=self.hours_worked or Decimal("0"),
                days_worked=self.days_worked or Decimal("0"),
                overtime=tuple(OvertimeBand(count=o.count, type=o.type) for o in self.overtime),
                entry_count=1 if self.hours_worked else 0,
            )
        return EmployeePayrollInput(
            employee_id=self.employee_id,
            employee_name=self.employee_name,
            country_code=self.country_code,
            period_start=self.period_start,
            period_end=self.period_end,
            hire_date=self.hire_date,
            rate_type=self.rate_type,
            contract_type=self.contract_type,
            payment_frequency=self.payment_frequency,
            weekly_hours_regime=self.weekly_hours_regime,
            marital_status=self.marital_status,
            verified_children=self.verified_children,
            classification=self.classification,
            sector_code=self.sector_code,
            city=self.city,
            base_components=tuple(
                ComponentInput(code=c.code, amount=c.amount, name=c.name)
                for c in self.base_components
            ),
            components=tuple(
                ComponentInput(code=c.code, amount=c.amount, name=c.name) for c in self.components
            ),
            time=time,
            hiring_preview=self.hiring_preview,
        )


class PreviewResponse(BaseModel):
    """Calculated figures for a preview."""

    employee_id: UUID
    employee_name: str
    rate_type: str
    gross_salary: int
    taxable_gross: int
    fiscal_parts: Decimal
    income_tax: int
    employee_contributions: int
    employer_contributions: int
    other_taxes: int
    total_deductions: int
    net_salary: int
    employer_cost: int
    earnings: list[dict[str, Any]]
    deductions: list[dict[str, Any]]
    contributions: list[dict[str, Any]]
    other_tax_lines: list[dict[str, Any]]
    warnings: list[dict[str, Any]]
    inputs_fingerprint: str
    rules_version: str | None = None


# ============================================================================
# Declaration schemas
# ============================================================================


class DeclarationLineResponse(BaseModel):
    """One employee's monthly declaration figures."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    employee_name: str
    contract_type: str
    declaration_type: str
    duration: Decimal | None
    days_worked: Decimal
    hours_worked: Decimal
    gross_salary: int
    employee_contributions: int
    employer_contributions: int
    run_count: int


class DeclarationResponse(BaseModel):
    year: int
    month: int
    items: list[DeclarationLineResponse]
    total_gross: int
