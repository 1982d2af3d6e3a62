"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, Response, status

from salary_engine.api.dependencies import DbSession, Runner, TenantId
from salary_engine.api.schemas import (
    ApprovalRequest,
    ErrorResponse,
    LineItemListResponse,
    LineItemResponse,
    PayrollRunCreate,
    PayrollRunListResponse,
    PayrollRunResponse,
    ProgressResponse,
    RecalculationResponse,
)
from salary_engine.services.payroll_run_service import PayrollRunService

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])


# ============================================================================
# Payroll Run CRUD
# ============================================================================


@router.post(
    "",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_payroll_run(
    db: DbSession,
    tenant_id: TenantId,
    payload: PayrollRunCreate,
) -> PayrollRunResponse:
    """Create a new payroll run in draft status."""
    service = PayrollRunService(db)
    payroll_run = await service.create_payroll_run(
        tenant_id=tenant_id,
        country_code=payload.country_code.upper(),
        period_start=payload.period_start,
        period_end=payload.period_end,
        payment_date=payload.payment_date,
        payment_frequency=payload.payment_frequency,
    )
    await db.commit()
    await db.refresh(payroll_run)
    return PayrollRunResponse.model_validate(payroll_run)


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    db: DbSession,
    tenant_id: TenantId,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayrollRunListResponse:
    """List payroll runs for a tenant, most recent period first."""
    service = PayrollRunService(db)
    payroll_runs, total = await service.list_payroll_runs(
        tenant_id,
        status=status_filter,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(r) for r in payroll_runs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{payroll_run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    db: DbSession,
    tenant_id: TenantId,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a specific payroll run by ID."""
    payroll_run = await PayrollRunService(db).require_payroll_run(payroll_run_id, tenant_id)
    return PayrollRunResponse.model_validate(payroll_run)


@router.delete(
    "/{payroll_run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_payroll_run(
    db: DbSession,
    tenant_id: TenantId,
    payroll_run_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a draft payroll run."""
    await PayrollRunService(db).delete_payroll_run(payroll_run_id, tenant_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Payroll Run State Transitions
# ============================================================================


@router.post(
    "/{payroll_run_id}/calculate",
    response_model=ProgressResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def calculate_payroll_run(
    db: DbSession,
    tenant_id: TenantId,
    runner: Runner,
    payroll_run_id: Annotated[UUID, Path()],
) -> ProgressResponse:
    """Trigger (or retrigger) calculation of a payroll run."""
    service = PayrollRunService(db, runner=runner)
    progress = await service.trigger_calculation(payroll_run_id, tenant_id)
    return ProgressResponse.model_validate(progress)


@router.get(
    "/{payroll_run_id}/progress",
    response_model=ProgressResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run_progress(
    db: DbSession,
    tenant_id: TenantId,
    payroll_run_id: Annotated[UUID, Path()],
) -> ProgressResponse:
    """Get batch progress and per-employee errors of a run."""
    service = PayrollRunService(db)
    await service.require_payroll_run(payroll_run_id, tenant_id)
    progress = await service.get_progress(payroll_run_id, tenant_id)
    if progress is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payroll run has not been calculated yet",
        )
    return ProgressResponse.model_validate(progress)


@router.post(
    "/{payroll_run_id}/approve",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_payroll_run(
    db: DbSession,
    tenant_id: TenantId,
    payroll_run_id: Annotated[UUID, Path()],
    payload: ApprovalRequest,
) -> PayrollRunResponse:
    """Approve a calculated payroll run and lock its line items."""
    payroll_run = await PayrollRunService(db).approve_payroll_run(
        payroll_run_id, tenant_id, payload.approver_id
    )
    await db.commit()
    return PayrollRunResponse.model_validate(payroll_run)


@router.post(
    "/{payroll_run_id}/mark-paid",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_payroll_run_paid(
    db: DbSession,
    tenant_id: TenantId,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Record payment of an approved payroll run."""
    payroll_run = await PayrollRunService(db).mark_paid(payroll_run_id, tenant_id)
    await db.commit()
    await db.refresh(payroll_run)
    return PayrollRunResponse.model_validate(payroll_run)


# ============================================================================
# Line Items
# ============================================================================


@router.get(
    "/{payroll_run_id}/line-items",
    response_model=LineItemListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_line_items(
    db: DbSession,
    tenant_id: TenantId,
    payroll_run_id: Annotated[UUID, Path()],
) -> LineItemListResponse:
    """List calculated line items of a payroll run."""
    service = PayrollRunService(db)
    await service.require_payroll_run(payroll_run_id, tenant_id)
    items = await service.list_line_items(payroll_run_id, tenant_id)
    return LineItemListResponse(
        items=[LineItemResponse.model_validate(i) for i in items],
        total=len(items),
    )


@router.post(
    "/{payroll_run_id}/employees/{employee_id}/recalculate",
    response_model=RecalculationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def recalculate_employee(
    db: DbSession,
    tenant_id: TenantId,
    payroll_run_id: Annotated[UUID, Path()],
    employee_id: Annotated[UUID, Path()],
) -> RecalculationResponse:
    """Recalculate a single employee of a calculated run."""
    result = await PayrollRunService(db).recalculate_employee(
        payroll_run_id, tenant_id, employee_id
    )
    await db.commit()
    return RecalculationResponse(
        line_item=LineItemResponse.model_validate(result.line_item),
        previous_net=result.previous_net,
        new_net=result.new_net,
        difference=result.difference,
    )
