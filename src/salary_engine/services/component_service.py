"""Component catalog loading and tenant template activation."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salary_engine.calculators.component_resolver import ComponentCatalog, ComponentDefinitionSpec
from salary_engine.calculators.types import CalculationMethod, ComponentCategory
from salary_engine.models import (
    SalaryComponentDefinition,
    SalaryComponentTemplate,
    TenantComponentActivation,
)

logger = logging.getLogger(__name__)


class ComplianceRangeError(Exception):
    """Raised when a tenant customization falls outside a template's range."""

    def __init__(self, code: str, field: str, reason: str):
        self.code = code
        self.field = field
        self.reason = reason
        super().__init__(f"Component {code}: {field} {reason}")


def definition_to_spec(definition: SalaryComponentDefinition) -> ComponentDefinitionSpec:
    return ComponentDefinitionSpec(
        code=definition.code,
        name=definition.name,
        category=ComponentCategory(definition.category),
        method=CalculationMethod(definition.calculation_method),
        is_base=definition.is_base_component,
        is_taxable=definition.is_taxable,
        metadata=dict(definition.metadata_json or {}),
    )


def activation_to_spec(activation: TenantComponentActivation) -> ComponentDefinitionSpec:
    template = activation.template
    metadata = {**(template.metadata_json or {}), **(activation.metadata_json or {})}
    amount = activation.custom_amount if activation.custom_amount is not None else template.default_amount
    return ComponentDefinitionSpec(
        code=template.code,
        name=activation.custom_name or template.name,
        category=ComponentCategory(template.category),
        method=CalculationMethod(template.calculation_method),
        is_taxable=template.is_taxable,
        default_amount=amount,
        metadata=metadata,
    )


async def load_component_catalog(
    session: AsyncSession, country_code: str, tenant_id: UUID
) -> ComponentCatalog:
    """Country definitions overridden by the tenant's active templates."""
    definitions = (
        await session.scalars(
            select(SalaryComponentDefinition).where(
                SalaryComponentDefinition.country_code == country_code
            )
        )
    ).all()
    activations = (
        await session.scalars(
            select(TenantComponentActivation)
            .join(TenantComponentActivation.template)
            .where(
                TenantComponentActivation.tenant_id == tenant_id,
                TenantComponentActivation.is_active.is_(True),
                SalaryComponentTemplate.country_code == country_code,
            )
            .options(selectinload(TenantComponentActivation.template))
        )
    ).all()

    catalog = ComponentCatalog(definition_to_spec(d) for d in definitions)
    return catalog.with_overrides(activation_to_spec(a) for a in activations)


class ComponentActivationService:
    """Activates templates for a tenant within their compliance range."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def activate(
        self,
        tenant_id: UUID,
        template_id: UUID,
        custom_name: str | None = None,
        custom_amount: Decimal | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TenantComponentActivation:
        template = await self.session.get(SalaryComponentTemplate, template_id)
        if template is None:
            raise LookupError(f"Component template {template_id} not found")

        self.validate_customization(template, custom_name, custom_amount, metadata)

        activation = await self.session.scalar(
            select(TenantComponentActivation).where(
                TenantComponentActivation.tenant_id == tenant_id,
                TenantComponentActivation.salary_component_template_id == template_id,
            )
        )
        if activation is None:
            activation = TenantComponentActivation(
                tenant_id=tenant_id,
                salary_component_template_id=template_id,
            )
            self.session.add(activation)

        activation.custom_name = custom_name
        activation.custom_amount = custom_amount
        activation.metadata_json = dict(metadata or {})
        activation.is_active = True
        await self.session.flush()

        logger.info("Tenant %s activated component %s", tenant_id, template.code)
        return activation

    @staticmethod
    def validate_customization(
        template: SalaryComponentTemplate,
        custom_name: str | None,
        custom_amount: Decimal | None,
        metadata: dict[str, Any] | None,
    ) -> None:
        allowed = set(template.customizable_fields or [])

        if custom_name is not None and "name" not in allowed:
            raise ComplianceRangeError(template.code, "name", "is not customizable")

        if custom_amount is not None:
            if "amount" not in allowed:
                raise ComplianceRangeError(template.code, "amount", "is not customizable")
            if template.min_amount is not None and custom_amount < template.min_amount:
                raise ComplianceRangeError(
                    template.code, "amount", f"is below the minimum {template.min_amount}"
                )
            if template.max_amount is not None and custom_amount > template.max_amount:
                raise ComplianceRangeError(
                    template.code, "amount", f"exceeds the maximum {template.max_amount}"
                )

        if metadata and "metadata" not in allowed:
            raise ComplianceRangeError(template.code, "metadata", "is not customizable")
