"""Pytest fixtures for salary engine tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from salary_engine.calculators.component_resolver import ComponentCatalog
from salary_engine.calculators.types import ComponentInput, EmployeePayrollInput
from salary_engine.config import Settings
from salary_engine.database import make_session_factory
from salary_engine.models import (
    Base,
    CityTransportMinimum,
    CountryRuleVersion,
    Employee,
    EmployeeDependent,
    EmployeeSalary,
    SalaryComponentDefinition,
    Tenant,
    TimeEntry,
)
from salary_engine.rules.parser import parse_country_config
from salary_engine.rules.repository import InMemoryCountryRuleRepository
from salary_engine.rules.seeds import (
    CI_CITY_TRANSPORT_MINIMUMS,
    CI_COMPONENT_DEFINITIONS,
    CI_EFFECTIVE_FROM,
    CI_RULES,
    SN_EFFECTIVE_FROM,
    SN_RULES,
)
from salary_engine.rules.types import CityTransportRule, CountryConfig
from salary_engine.services.batch_processor import BatchProcessor
from salary_engine.services.batch_runner import BatchJob, DirectBatchRunner
from salary_engine.services.component_service import definition_to_spec
from salary_engine.services.locking_service import RunLockRegistry
from salary_engine.services.payroll_run_service import PayrollRunService

# In-memory SQLite shared across sessions through a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

JANUARY_START = date(2024, 1, 1)
JANUARY_END = date(2024, 1, 31)


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    """Small chunks so multi-chunk paths run with a handful of employees."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        chunk_size=2,
        worker_concurrency=4,
        batch_mode="direct",
        direct_max_employees=50,
        stale_after_seconds=900,
        cddti_daily_threshold_days=21,
    )


@pytest.fixture
def locks() -> RunLockRegistry:
    return RunLockRegistry()


# ============================================================================
# Rule fixtures (no database)
# ============================================================================


@pytest.fixture
def ci_config() -> CountryConfig:
    return parse_country_config("CI", CI_EFFECTIVE_FROM, None, CI_RULES, version_id="ci-2024")


@pytest.fixture
def sn_config() -> CountryConfig:
    return parse_country_config("SN", SN_EFFECTIVE_FROM, None, SN_RULES, version_id="sn-2024")


@pytest.fixture
def ci_city_rules() -> list[CityTransportRule]:
    return [
        CityTransportRule(
            country_code="CI",
            city=row["city"],
            monthly_minimum=Decimal(str(row["monthly_minimum"])),
            daily_rate=Decimal(str(row["daily_rate"])),
            tax_exemption_cap=Decimal(str(row["tax_exemption_cap"])),
        )
        for row in CI_CITY_TRANSPORT_MINIMUMS
    ]


@pytest.fixture
def rules(ci_config, sn_config, ci_city_rules) -> InMemoryCountryRuleRepository:
    return InMemoryCountryRuleRepository([ci_config, sn_config], ci_city_rules)


@pytest.fixture
def ci_catalog() -> ComponentCatalog:
    return ComponentCatalog(
        definition_to_spec(
            SalaryComponentDefinition(
                country_code="CI",
                code=row["code"],
                name=row["name"],
                category=row["category"],
                calculation_method=row["calculation_method"],
                is_base_component=row.get("is_base_component", False),
                is_taxable=row.get("is_taxable", True),
                metadata_json=row.get("metadata", {}),
            )
        )
        for row in CI_COMPONENT_DEFINITIONS
    )


@pytest.fixture
def make_input() -> Callable[..., EmployeePayrollInput]:
    """Build a CI monthly employee input; keyword arguments override fields."""

    def _make(base: int | Decimal = 300000, **overrides: Any) -> EmployeePayrollInput:
        values: dict[str, Any] = {
            "employee_id": uuid4(),
            "employee_name": "Awa Kone",
            "country_code": "CI",
            "period_start": JANUARY_START,
            "period_end": JANUARY_END,
            "hire_date": date(2023, 6, 1),
            "sector_code": "services",
            "base_components": (ComponentInput(code="11", amount=Decimal(str(base))),),
        }
        values.update(overrides)
        return EmployeePayrollInput(**values)

    return _make


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
async def seeded_rules(session: AsyncSession) -> None:
    """Persist the CI and SN rule versions, city minimums and CI components."""
    session.add_all(
        [
            CountryRuleVersion(
                country_code="CI", effective_start=CI_EFFECTIVE_FROM, payload_json=CI_RULES
            ),
            CountryRuleVersion(
                country_code="SN", effective_start=SN_EFFECTIVE_FROM, payload_json=SN_RULES
            ),
        ]
    )
    for row in CI_CITY_TRANSPORT_MINIMUMS:
        session.add(
            CityTransportMinimum(
                country_code="CI",
                city=row["city"],
                monthly_minimum=Decimal(str(row["monthly_minimum"])),
                daily_rate=Decimal(str(row["daily_rate"])),
                tax_exemption_cap=Decimal(str(row["tax_exemption_cap"])),
                effective_start=CI_EFFECTIVE_FROM,
            )
        )
    for row in CI_COMPONENT_DEFINITIONS:
        session.add(
            SalaryComponentDefinition(
                country_code="CI",
                code=row["code"],
                name=row["name"],
                category=row["category"],
                calculation_method=row["calculation_method"],
                is_base_component=row.get("is_base_component", False),
                metadata_json=row.get("metadata", {}),
            )
        )
    await session.commit()


@pytest.fixture
async def tenant(session: AsyncSession) -> Tenant:
    """Create a test tenant."""
    tenant = Tenant(
        tenant_id=uuid4(),
        name="Test Company",
        country_code="CI",
        default_sector_code="services",
        status="active",
    )
    session.add(tenant)
    await session.commit()
    return tenant


EmployeeFactory = Callable[..., Awaitable[Employee]]


@pytest.fixture
def employee_factory(session: AsyncSession, tenant: Tenant) -> EmployeeFactory:
    """Create a committed employee with a salary package.

    ``base=None`` creates the employee without any salary row;
    ``worked_days`` adds approved 8-hour time entries on consecutive days.
    """

    async def _create(
        first_name: str,
        last_name: str = "Test",
        base: int | None = 300000,
        components: list[dict[str, Any]] | None = None,
        children: int = 0,
        worked_days: int = 0,
        work_start: date = JANUARY_START,
        **fields: Any,
    ) -> Employee:
        fields.setdefault("hire_date", date(2023, 6, 1))
        employee = Employee(
            employee_id=uuid4(),
            tenant_id=tenant.tenant_id,
            first_name=first_name,
            last_name=last_name,
            **fields,
        )
        session.add(employee)
        await session.flush()

        if base is not None:
            session.add(
                EmployeeSalary(
                    employee_id=employee.employee_id,
                    tenant_id=tenant.tenant_id,
                    effective_from=fields["hire_date"],
                    base_components_json=[{"code": "11", "amount": base}],
                    components_json=components or [],
                )
            )
        for i in range(children):
            session.add(
                EmployeeDependent(
                    employee_id=employee.employee_id,
                    tenant_id=tenant.tenant_id,
                    full_name=f"Child {i + 1}",
                    relationship_type="child",
                    is_verified=True,
                )
            )
        for offset in range(worked_days):
            session.add(
                TimeEntry(
                    employee_id=employee.employee_id,
                    tenant_id=tenant.tenant_id,
                    work_date=work_start + timedelta(days=offset),
                    hours=Decimal("8"),
                    status="approved",
                )
            )

        await session.commit()
        return employee

    return _create


# ============================================================================
# Service fixtures
# ============================================================================


class RecordingRunner:
    """Batch runner that only records submitted jobs."""

    def __init__(self) -> None:
        self.jobs: list[BatchJob] = []

    async def submit(self, job: BatchJob) -> None:
        self.jobs.append(job)


@pytest.fixture
def batch_processor(session_factory, settings, locks) -> BatchProcessor:
    return BatchProcessor(session_factory, settings=settings, locks=locks)


@pytest.fixture
def payroll_service(session, batch_processor, settings, locks) -> PayrollRunService:
    """Service whose calculations run inline against the test database."""
    return PayrollRunService(
        session,
        runner=DirectBatchRunner(batch_processor),
        settings=settings,
        locks=locks,
    )


@pytest.fixture
def recording_runner() -> RecordingRunner:
    return RecordingRunner()
