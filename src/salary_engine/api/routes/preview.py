"""Single-employee preview endpoint (hiring and what-if simulations)."""

from fastapi import APIRouter

from salary_engine.api.dependencies import DbSession, TenantId
from salary_engine.api.schemas import ErrorResponse, PreviewRequest, PreviewResponse
from salary_engine.calculators.engine import PayrollLineCalculator
from salary_engine.calculators.line_builder import LineItemBuilder
from salary_engine.rules.repository import SqlCountryRuleRepository
from salary_engine.services.component_service import load_component_catalog

router = APIRouter(prefix="/preview", tags=["preview"])


@router.post(
    "",
    response_model=PreviewResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def preview_employee(
    db: DbSession,
    tenant_id: TenantId,
    payload: PreviewRequest,
) -> PreviewResponse:
    """Calculate gross-to-net for one employee without persisting anything."""
    employee = payload.to_input()
    catalog = await load_component_catalog(db, employee.country_code, tenant_id)
    calculator = PayrollLineCalculator(SqlCountryRuleRepository(db), catalog)
    result = await calculator.preview(employee)

    values = LineItemBuilder.line_item_values(result)
    return PreviewResponse(
        employee_id=result.employee_id,
        employee_name=result.employee_name,
        rate_type=values["rate_type"],
        gross_salary=values["gross_salary"],
        taxable_gross=values["taxable_gross"],
        fiscal_parts=values["fiscal_parts"],
        income_tax=values["income_tax"],
        employee_contributions=values["employee_contributions"],
        employer_contributions=values["employer_contributions"],
        other_taxes=values["other_taxes"],
        total_deductions=values["total_deductions"],
        net_salary=values["net_salary"],
        employer_cost=values["employer_cost"],
        earnings=values["earnings_json"],
        deductions=values["deductions_json"],
        contributions=values["contributions_json"],
        other_tax_lines=values["other_taxes_json"],
        warnings=values["warnings_json"],
        inputs_fingerprint=result.inputs_fingerprint,
        rules_version=result.rules_version,
    )
