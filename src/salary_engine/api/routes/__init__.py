"""API routes."""

from salary_engine.api.routes.declarations import router as declarations_router
from salary_engine.api.routes.health import router as health_router
from salary_engine.api.routes.payroll_runs import router as payroll_runs_router
from salary_engine.api.routes.preview import router as preview_router

__all__ = ["declarations_router", "health_router", "payroll_runs_router", "preview_router"]
