"""Salary component definition, template and tenant activation models."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salary_engine.models.base import Base, TimestampMixin


class SalaryComponentDefinition(Base, TimestampMixin):
    """Country-level definition of a salary component code.

    ``metadata_json`` may carry ``rate`` (fraction), ``rule`` (e.g. "seniority"),
    ``exemption_cap`` (``{"type": "fixed"|"percentage"|"city_based", "value": ...}``)
    and ``ineligible_contract_types``.
    """

    __tablename__ = "salary_component_definition"

    salary_component_definition_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    calculation_method: Mapped[str] = mapped_column(String, nullable=False, default="flat")
    is_base_component: Mapped[bool] = mapped_column(nullable=False, default=False)
    is_taxable: Mapped[bool] = mapped_column(nullable=False, default=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("country_code", "code", name="component_definition_country_code_unique"),
        CheckConstraint(
            "category IN ('base', 'allowance', 'bonus', 'deduction', 'benefit')",
            name="component_definition_category_check",
        ),
        CheckConstraint(
            "calculation_method IN ('flat', 'percentage', 'auto')",
            name="component_definition_method_check",
        ),
    )


class SalaryComponentTemplate(Base, TimestampMixin):
    """Curated component a tenant may activate within a compliance range."""

    __tablename__ = "salary_component_template"

    salary_component_template_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    calculation_method: Mapped[str] = mapped_column(String, nullable=False, default="flat")
    is_taxable: Mapped[bool] = mapped_column(nullable=False, default=True)
    default_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    min_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    customizable_fields: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("country_code", "code", name="component_template_country_code_unique"),
    )


class TenantComponentActivation(Base, TimestampMixin):
    """Tenant-level activation of a template with bounded customizations."""

    __tablename__ = "tenant_component_activation"

    tenant_component_activation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    salary_component_template_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_component_template.salary_component_template_id", ondelete="CASCADE"),
        nullable=False,
    )
    custom_name: Mapped[str | None] = mapped_column(String, nullable=True)
    custom_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "salary_component_template_id",
            name="tenant_component_activation_unique",
        ),
    )

    template: Mapped[SalaryComponentTemplate] = relationship()
