"""Health, readiness and liveness endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from salary_engine import __version__
from salary_engine.api.dependencies import DbSession
from salary_engine.config import get_settings
from salary_engine.models import CountryRuleVersion

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: str
    version: str
    engine_version: str


class ReadinessResponse(BaseModel):
    status: str
    countries: list[str]


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report API and database health."""
    database = "unhealthy"
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        version=__version__,
        engine_version=get_settings().engine_version,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
async def readiness_check(db: DbSession, response: Response) -> ReadinessResponse:
    """Ready once at least one country has active rules to calculate with."""
    countries = (
        await db.scalars(
            select(CountryRuleVersion.country_code)
            .where(CountryRuleVersion.status == "active")
            .distinct()
            .order_by(CountryRuleVersion.country_code)
        )
    ).all()
    if not countries:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="not_ready", countries=[])
    return ReadinessResponse(status="ready", countries=list(countries))


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
