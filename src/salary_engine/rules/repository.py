"""Read-only, effective-dated lookup of country rules."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.models import CityTransportMinimum, CountryRuleVersion
from salary_engine.rules.parser import parse_country_config
from salary_engine.rules.types import CityTransportRule, CountryConfig

logger = logging.getLogger(__name__)


class ConfigNotFoundError(Exception):
    """Raised when no active configuration exists for a country on a date."""

    def __init__(self, country_code: str, effective_date: date):
        self.country_code = country_code
        self.effective_date = effective_date
        super().__init__(
            f"No active payroll configuration for country '{country_code}' on {effective_date}"
        )


class CountryRuleRepository(Protocol):
    """Lookup contract used by every calculator."""

    async def get_country_config(self, country_code: str, effective_date: date) -> CountryConfig:
        ...

    async def get_city_transport_minimum(
        self, country_code: str, city: str, effective_date: date
    ) -> CityTransportRule | None:
        ...


class SqlCountryRuleRepository:
    """Repository backed by ``country_rule_version`` rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_country_config(self, country_code: str, effective_date: date) -> CountryConfig:
        result = await self.session.execute(
            select(CountryRuleVersion)
            .where(
                CountryRuleVersion.country_code == country_code,
                CountryRuleVersion.status == "active",
                CountryRuleVersion.effective_start <= effective_date,
                (
                    CountryRuleVersion.effective_end.is_(None)
                    | (CountryRuleVersion.effective_end >= effective_date)
                ),
            )
            .order_by(CountryRuleVersion.effective_start.desc())
            .limit(1)
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise ConfigNotFoundError(country_code, effective_date)

        return parse_country_config(
            country_code,
            version.effective_start,
            version.effective_end,
            version.payload_json,
            version_id=str(version.country_rule_version_id),
        )

    async def get_city_transport_minimum(
        self, country_code: str, city: str, effective_date: date
    ) -> CityTransportRule | None:
        result = await self.session.execute(
            select(CityTransportMinimum)
            .where(
                CityTransportMinimum.country_code == country_code,
                CityTransportMinimum.city == city.upper(),
                CityTransportMinimum.effective_start <= effective_date,
                (
                    CityTransportMinimum.effective_end.is_(None)
                    | (CityTransportMinimum.effective_end >= effective_date)
                ),
            )
            .order_by(CityTransportMinimum.effective_start.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return CityTransportRule(
            country_code=row.country_code,
            city=row.city,
            monthly_minimum=row.monthly_minimum,
            daily_rate=row.daily_rate,
            tax_exemption_cap=row.tax_exemption_cap,
        )


class InMemoryCountryRuleRepository:
    """Repository over preloaded configs, used for previews and tests."""

    def __init__(
        self,
        configs: list[CountryConfig],
        city_rules: list[CityTransportRule] | None = None,
    ):
        self._configs = list(configs)
        self._city_rules = list(city_rules or [])

    async def get_country_config(self, country_code: str, effective_date: date) -> CountryConfig:
        candidates = [
            c
            for c in self._configs
            if c.country_code == country_code and c.is_effective_on(effective_date)
        ]
        if not candidates:
            raise ConfigNotFoundError(country_code, effective_date)
        return max(candidates, key=lambda c: c.effective_from)

    async def get_city_transport_minimum(
        self, country_code: str, city: str, effective_date: date
    ) -> CityTransportRule | None:
        for rule in self._city_rules:
            if rule.country_code == country_code and rule.city == city.upper():
                return rule
        return None


class CachedCountryRuleRepository:
    """Shares lookups across concurrent workers of one run.

    Loads are serialized so the wrapped repository's session is never used
    by two tasks at once. Misses are cached too, so every employee of a run
    with no configuration fails the same way without re-querying.
    """

    def __init__(self, inner: CountryRuleRepository):
        self.inner = inner
        self._lock = asyncio.Lock()
        self._configs: dict[tuple[str, date], CountryConfig | ConfigNotFoundError] = {}
        self._cities: dict[tuple[str, str, date], CityTransportRule | None] = {}

    async def get_country_config(self, country_code: str, effective_date: date) -> CountryConfig:
        key = (country_code, effective_date)
        if key not in self._configs:
            async with self._lock:
                if key not in self._configs:
                    try:
                        self._configs[key] = await self.inner.get_country_config(
                            country_code, effective_date
                        )
                    except ConfigNotFoundError as e:
                        logger.warning("%s", e)
                        self._configs[key] = e
        cached = self._configs[key]
        if isinstance(cached, ConfigNotFoundError):
            raise ConfigNotFoundError(country_code, effective_date)
        return cached

    async def get_city_transport_minimum(
        self, country_code: str, city: str, effective_date: date
    ) -> CityTransportRule | None:
        key = (country_code, city.upper(), effective_date)
        if key not in self._cities:
            async with self._lock:
                if key not in self._cities:
                    self._cities[key] = await self.inner.get_city_transport_minimum(
                        country_code, city, effective_date
                    )
        return self._cities[key]
