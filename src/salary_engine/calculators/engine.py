"""Payroll line calculator - composes resolution, proration and taxation."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.component_resolver import ComponentCatalog, ComponentResolver
from salary_engine.calculators.line_builder import LineItemBuilder
from salary_engine.calculators.proration import ProrationEngine, to_integer
from salary_engine.calculators.tax_calculator import TaxCalculator, TaxInput, UnsupportedCountryError
from salary_engine.calculators.types import (
    CalculationWarning,
    ContractType,
    EmployeePayrollInput,
    PayableComponent,
    PayrollCalculationResult,
    ProratedPay,
    RateType,
)
from salary_engine.calculators.validation import PayrollValidationError, validate_employee_input
from salary_engine.models import PayrollLineItem, PayrollRun
from salary_engine.models.base import utcnow
from salary_engine.rules.repository import CountryRuleRepository
from salary_engine.rules.types import CityTransportRule, CountryConfig
from salary_engine.services.state_machine import PayrollRunStateMachine, StateTransitionError

logger = logging.getLogger(__name__)

TRANSPORT_COMPONENT_CODE = "22"


def exempt_portion(component: PayableComponent, city_rule: CityTransportRule | None) -> int:
    """Tax-exempt part of a payable component."""
    if component.amount <= 0:
        return 0
    if not component.is_taxable:
        return component.amount

    cap = component.exemption_cap
    if cap is None:
        return 0
    if cap.kind == "percentage":
        exempt = to_integer(Decimal(component.amount) * cap.value)
    elif cap.kind == "city_based" and city_rule is not None and city_rule.tax_exemption_cap is not None:
        exempt = to_integer(city_rule.tax_exemption_cap)
    else:
        exempt = to_integer(cap.value)
    return max(min(exempt, component.amount), 0)


class PayrollLineCalculator:
    """Gross-to-net calculator for one employee and period.

    Calculation pipeline (stable order per employee):
    1) Validate input
    2) Load the country configuration effective at period end
    3) Resolve components (flat, percentage-of-base, auto, custom)
    4) Prorate for rate type, frequency, contract and time worked
    5) Compute exempt portions and the social base
    6) Contributions, taxable gross, income tax, employer levies
    7) Fingerprint inputs for idempotent persistence

    The calculation itself never touches the database; ``commit`` persists a
    result as the single line item of its (run, employee) key.
    """

    def __init__(self, rules: CountryRuleRepository, catalog: ComponentCatalog | None = None):
        self.rules = rules
        self.catalog = catalog or ComponentCatalog()

    async def calculate(self, employee: EmployeePayrollInput) -> PayrollCalculationResult:
        validate_employee_input(employee)

        config = await self.rules.get_country_config(employee.country_code, employee.period_end)
        if config.tax_system is None:
            raise UnsupportedCountryError(employee.country_code)

        components = ComponentResolver(self.catalog).resolve(employee)
        pay = ProrationEngine(config.overtime_multipliers).prorate(employee, components)

        city_rule = None
        if employee.city:
            city_rule = await self.rules.get_city_transport_minimum(
                employee.country_code, employee.city, employee.period_end
            )

        gross = pay.gross_salary
        if pay.component_deductions > gross:
            raise PayrollValidationError(
                f"Deductions {pay.component_deductions} exceed gross salary {gross}",
                field="components",
            )
        exempt = sum(exempt_portion(c, city_rule) for c in pay.components)

        tax = TaxCalculator(config).calculate(
            TaxInput(
                gross_salary=gross,
                social_base=gross - exempt,
                salaire_categoriel=pay.base_salary,
                marital_status=employee.marital_status,
                verified_children=employee.verified_children,
                sector_code=employee.sector_code,
                classification=employee.classification,
                period_share=pay.period_share,
            )
        )

        return PayrollCalculationResult(
            employee_id=employee.employee_id,
            employee_name=employee.employee_name,
            country_code=employee.country_code,
            period_start=employee.period_start,
            period_end=employee.period_end,
            contract_type=ContractType(employee.contract_type),
            pay=pay,
            tax=tax,
            inputs_fingerprint=LineItemBuilder.compute_inputs_fingerprint(employee, config),
            rules_version=config.version_id,
            warnings=self._warnings(employee, config, pay, city_rule),
        )

    async def preview(self, employee: EmployeePayrollInput) -> PayrollCalculationResult:
        """Calculate without persisting (hiring and what-if simulations)."""
        return await self.calculate(employee)

    async def commit(
        self,
        session: AsyncSession,
        payroll_run: PayrollRun,
        result: PayrollCalculationResult,
    ) -> PayrollLineItem:
        """Persist a result, overwriting any prior line item for the employee."""
        if PayrollRunStateMachine.are_results_locked(payroll_run.status):
            raise StateTransitionError(
                payroll_run.status,
                payroll_run.status,
                "Line items are locked once the run is approved",
            )

        values = LineItemBuilder.line_item_values(result)
        existing = await session.scalar(
            select(PayrollLineItem).where(
                PayrollLineItem.payroll_run_id == payroll_run.payroll_run_id,
                PayrollLineItem.employee_id == result.employee_id,
            )
        )
        if existing is None:
            item = PayrollLineItem(
                payroll_run_id=payroll_run.payroll_run_id,
                tenant_id=payroll_run.tenant_id,
                employee_id=result.employee_id,
                calculated_at=utcnow(),
                **values,
            )
            session.add(item)
        else:
            item = existing
            for key, value in values.items():
                setattr(item, key, value)
            item.calculated_at = utcnow()

        await session.flush()
        logger.debug(
            "Stored line item for employee %s in run %s (net %s)",
            result.employee_id,
            payroll_run.payroll_run_id,
            result.net_salary,
        )
        return item

    def _warnings(
        self,
        employee: EmployeePayrollInput,
        config: CountryConfig,
        pay: ProratedPay,
        city_rule: CityTransportRule | None,
    ) -> tuple[CalculationWarning, ...]:
        warnings: list[CalculationWarning] = []

        monthly_base = sum((c.amount for c in employee.base_components), Decimal("0"))
        if (
            config.minimum_wage is not None
            and pay.rate_type == RateType.MONTHLY
            and monthly_base < config.minimum_wage
        ):
            warnings.append(
                CalculationWarning(
                    code="BELOW_MINIMUM_WAGE",
                    message=(
                        f"Base salary {monthly_base} is below the legal minimum "
                        f"{config.minimum_wage} for {config.country_code}"
                    ),
                )
            )

        if city_rule is not None:
            transport = next(
                (c for c in employee.components if c.code == TRANSPORT_COMPONENT_CODE), None
            )
            if transport is not None and transport.amount < city_rule.monthly_minimum:
                warnings.append(
                    CalculationWarning(
                        code="TRANSPORT_BELOW_CITY_MINIMUM",
                        message=(
                            f"Transport allowance {transport.amount} is below the "
                            f"{city_rule.city} minimum {city_rule.monthly_minimum}"
                        ),
                    )
                )

        return tuple(warnings)
