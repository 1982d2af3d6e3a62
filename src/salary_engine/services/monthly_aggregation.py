"""Monthly aggregation of line items for social-security declarations.

Employees on CDDTI contracts may be paid by several runs within one month.
Declaration thresholds apply to the month, so days, hours and contribution
totals are summed over every approved or paid run of the month before the
daily/hourly threshold is evaluated.
"""

from __future__ import annotations

import logging
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.types import ContractType
from salary_engine.config import Settings, get_settings
from salary_engine.models import PayrollLineItem, PayrollRun
from salary_engine.services.state_machine import PayrollRunStatus

logger = logging.getLogger(__name__)

DECLARED_STATUSES = (PayrollRunStatus.APPROVED.value, PayrollRunStatus.PAID.value)


@dataclass
class MonthlyEmployeeAggregate:
    """One employee's declaration line for a month."""

    employee_id: UUID
    employee_name: str
    contract_type: str
    days_worked: Decimal = Decimal("0")
    hours_worked: Decimal = Decimal("0")
    gross_salary: int = 0
    employee_contributions: int = 0
    employer_contributions: int = 0
    run_ids: list[UUID] = field(default_factory=list)
    declaration_type: str = "M"

    @property
    def run_count(self) -> int:
        return len(self.run_ids)

    @property
    def duration(self) -> Decimal | None:
        """Declared duration: days for ``J``, hours for ``H``, none for ``M``."""
        if self.declaration_type == "J":
            return self.days_worked
        if self.declaration_type == "H":
            return self.hours_worked
        return None


def declaration_type(contract_type: str, days_worked: Decimal, threshold_days: int) -> str:
    """``J`` (daily) at or above the threshold, ``H`` below it; ``M`` for other contracts."""
    if contract_type != ContractType.CDDTI:
        return "M"
    return "J" if days_worked >= threshold_days else "H"


class MonthlyAggregationService:
    """Sums an employee's line items over the declared runs of a month."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    async def aggregate_month(
        self, tenant_id: UUID, year: int, month: int
    ) -> list[MonthlyEmployeeAggregate]:
        month_start = date(year, month, 1)
        month_end = date(year, month, monthrange(year, month)[1])

        rows = await self.session.execute(
            select(PayrollLineItem, PayrollRun.period_start)
            .join(PayrollRun, PayrollRun.payroll_run_id == PayrollLineItem.payroll_run_id)
            .where(
                PayrollRun.tenant_id == tenant_id,
                PayrollLineItem.tenant_id == tenant_id,
                PayrollRun.status.in_(DECLARED_STATUSES),
                PayrollRun.period_start >= month_start,
                PayrollRun.period_start <= month_end,
            )
            .order_by(PayrollRun.period_start, PayrollLineItem.employee_name)
        )

        aggregates: dict[UUID, MonthlyEmployeeAggregate] = {}
        for item, _period_start in rows.all():
            aggregate = aggregates.get(item.employee_id)
            if aggregate is None:
                aggregate = aggregates[item.employee_id] = MonthlyEmployeeAggregate(
                    employee_id=item.employee_id,
                    employee_name=item.employee_name,
                    contract_type=item.contract_type,
                )
            # Latest run of the month carries the current contract
            aggregate.contract_type = item.contract_type
            aggregate.days_worked += Decimal(str(item.days_worked))
            aggregate.hours_worked += Decimal(str(item.hours_worked))
            aggregate.gross_salary += item.gross_salary
            aggregate.employee_contributions += item.employee_contributions
            aggregate.employer_contributions += item.employer_contributions
            aggregate.run_ids.append(item.payroll_run_id)

        threshold = self.settings.cddti_daily_threshold_days
        for aggregate in aggregates.values():
            aggregate.declaration_type = declaration_type(
                aggregate.contract_type, aggregate.days_worked, threshold
            )

        logger.info(
            "Aggregated %d employee(s) for %04d-%02d declarations", len(aggregates), year, month
        )
        return sorted(aggregates.values(), key=lambda a: (a.employee_name, str(a.employee_id)))
