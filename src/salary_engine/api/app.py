"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salary_engine import __version__
from salary_engine.api.routes import (
    declarations_router,
    health_router,
    payroll_runs_router,
    preview_router,
)
from salary_engine.calculators.tax_calculator import UnsupportedCountryError
from salary_engine.calculators.validation import PayrollValidationError
from salary_engine.config import get_settings
from salary_engine.database import dispose_db, init_db
from salary_engine.rules.repository import ConfigNotFoundError
from salary_engine.services.batch_processor import BatchProcessor
from salary_engine.services.batch_runner import build_batch_runner
from salary_engine.services.component_service import ComplianceRangeError
from salary_engine.services.locking_service import RunLockedError
from salary_engine.services.payroll_run_service import (
    EmployeeNotFoundError,
    OverlapError,
    PayrollRunNotFoundError,
)
from salary_engine.services.state_machine import StateTransitionError

logger = logging.getLogger(__name__)

# Domain exception -> (HTTP status, error code)
ERROR_RESPONSES: dict[type[Exception], tuple[int, str]] = {
    PayrollRunNotFoundError: (status.HTTP_404_NOT_FOUND, "PAYROLL_RUN_NOT_FOUND"),
    ConfigNotFoundError: (status.HTTP_404_NOT_FOUND, "CONFIG_NOT_FOUND"),
    EmployeeNotFoundError: (status.HTTP_404_NOT_FOUND, "EMPLOYEE_NOT_FOUND"),
    StateTransitionError: (status.HTTP_409_CONFLICT, "INVALID_STATE_TRANSITION"),
    OverlapError: (status.HTTP_409_CONFLICT, "PERIOD_OVERLAP"),
    RunLockedError: (status.HTTP_409_CONFLICT, "RUN_LOCKED"),
    PayrollValidationError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR"),
    UnsupportedCountryError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "UNSUPPORTED_COUNTRY"),
    ComplianceRangeError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "COMPLIANCE_RANGE"),
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    if getattr(app.state, "session_factory", None) is None:
        _, app.state.session_factory = init_db()
    if getattr(app.state, "batch_runner", None) is None:
        processor = BatchProcessor(app.state.session_factory, settings)
        app.state.batch_runner = build_batch_runner(settings, processor)
    logger.info("Salary engine started (batch mode %s)", settings.batch_mode)
    yield
    # Shutdown
    stop = getattr(app.state.batch_runner, "stop", None)
    if stop is not None:
        await stop()
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Salary Engine API",
        description="Gross-to-net payroll calculation and payroll run orchestration",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    def _register(exc_type: type[Exception], status_code: int, code: str) -> None:
        async def handler(request: Request, exc: Exception) -> JSONResponse:
            return JSONResponse(
                status_code=status_code,
                content={"detail": str(exc), "code": code},
            )

        app.add_exception_handler(exc_type, handler)

    for exc_type, (status_code, code) in ERROR_RESPONSES.items():
        _register(exc_type, status_code, code)

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_runs_router, prefix="/api/v1")
    app.include_router(preview_router, prefix="/api/v1")
    app.include_router(declarations_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
