"""Seed script for country rule versions and component definitions.

Run with:
    python scripts/seed_country_rules.py

Creates the tables if needed, then loads the Côte d'Ivoire and Senegal rule
versions, the CI city transport minimums and the CI salary components.
Existing rows are left untouched.
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.database import get_session, init_db
from salary_engine.models import (
    Base,
    CityTransportMinimum,
    CountryRuleVersion,
    SalaryComponentDefinition,
)
from salary_engine.rules.parser import parse_country_config
from salary_engine.rules.seeds import (
    CI_CITY_TRANSPORT_MINIMUMS,
    CI_COMPONENT_DEFINITIONS,
    CI_EFFECTIVE_FROM,
    CI_RULES,
    SN_EFFECTIVE_FROM,
    SN_RULES,
)


async def seed_rule_version(
    session: AsyncSession, country_code: str, effective_start: date, payload: dict[str, Any]
) -> None:
    """Create one active rule version, validating the payload first."""
    result = await session.execute(
        select(CountryRuleVersion).where(
            CountryRuleVersion.country_code == country_code,
            CountryRuleVersion.effective_start == effective_start,
        )
    )
    if result.scalar_one_or_none():
        print(f"{country_code} rules effective {effective_start} already exist, skipping...")
        return

    # Raises InvalidRulePayloadError on a malformed payload
    parse_country_config(country_code, effective_start, None, payload)

    session.add(
        CountryRuleVersion(
            country_code=country_code,
            effective_start=effective_start,
            status="active",
            payload_json=payload,
        )
    )
    print(f"Created {country_code} rules effective {effective_start}")


async def seed_city_transport_minimums(session: AsyncSession) -> None:
    """Create CI city transport minimums."""
    for row in CI_CITY_TRANSPORT_MINIMUMS:
        result = await session.execute(
            select(CityTransportMinimum).where(
                CityTransportMinimum.country_code == "CI",
                CityTransportMinimum.city == row["city"],
                CityTransportMinimum.effective_start == CI_EFFECTIVE_FROM,
            )
        )
        if result.scalar_one_or_none():
            continue

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
        print(f"Created transport minimum for {row['city']}")


async def seed_component_definitions(session: AsyncSession) -> None:
    """Create CI salary component definitions."""
    existing = set(
        (
            await session.scalars(
                select(SalaryComponentDefinition.code).where(
                    SalaryComponentDefinition.country_code == "CI"
                )
            )
        ).all()
    )

    for row in CI_COMPONENT_DEFINITIONS:
        if row["code"] in existing:
            continue
        session.add(
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
        print(f"Created component {row['code']} ({row['name']})")


async def create_tables() -> None:
    engine, _ = init_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
    """Run all seed functions."""
    print("Seeding country rules...")

    await create_tables()
    async with get_session() as session:
        await seed_rule_version(session, "CI", CI_EFFECTIVE_FROM, CI_RULES)
        await seed_rule_version(session, "SN", SN_EFFECTIVE_FROM, SN_RULES)
        await seed_city_transport_minimums(session)
        await seed_component_definitions(session)

    print("Seeding complete!")


if __name__ == "__main__":
    asyncio.run(main())
