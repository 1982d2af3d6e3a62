"""Effective-dated country rule models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from salary_engine.models.base import Base, TimestampMixin


class CountryRuleVersion(Base, TimestampMixin):
    """Versioned country configuration.

    ``payload_json`` is parsed by ``salary_engine.rules.parser``.
    """

    __tablename__ = "country_rule_version"

    country_rule_version_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    effective_start: Mapped[date] = mapped_column(Date, nullable=False)
    effective_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    payload_json: Mapped[dict[str, Any]] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "country_code", "effective_start", name="country_rule_version_start_unique"
        ),
        CheckConstraint(
            "effective_end IS NULL OR effective_end >= effective_start",
            name="country_rule_version_dates_check",
        ),
        CheckConstraint(
            "status IN ('active', 'draft', 'retired')",
            name="country_rule_version_status_check",
        ),
    )


class CityTransportMinimum(Base, TimestampMixin):
    """Legal minimum transport allowance for a city."""

    __tablename__ = "city_transport_minimum"

    city_transport_minimum_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    city: Mapped[str] = mapped_column(String, nullable=False)
    monthly_minimum: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    tax_exemption_cap: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    effective_start: Mapped[date] = mapped_column(Date, nullable=False)
    effective_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        Index("city_transport_country_city_idx", "country_code", "city"),
    )
