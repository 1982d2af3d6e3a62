"""Monthly declaration aggregation endpoint."""

from typing import Annotated

from fastapi import APIRouter, Path

from salary_engine.api.dependencies import DbSession, TenantId
from salary_engine.api.schemas import DeclarationLineResponse, DeclarationResponse
from salary_engine.services.monthly_aggregation import MonthlyAggregationService

router = APIRouter(prefix="/declarations", tags=["declarations"])


@router.get("/{year}/{month}", response_model=DeclarationResponse)
async def get_monthly_declaration(
    db: DbSession,
    tenant_id: TenantId,
    year: Annotated[int, Path(ge=2000, le=2100)],
    month: Annotated[int, Path(ge=1, le=12)],
) -> DeclarationResponse:
    """Per-employee totals over the approved and paid runs of a month."""
    aggregates = await MonthlyAggregationService(db).aggregate_month(tenant_id, year, month)
    return DeclarationResponse(
        year=year,
        month=month,
        items=[DeclarationLineResponse.model_validate(a) for a in aggregates],
        total_gross=sum(a.gross_salary for a in aggregates),
    )
