"""Country rule repository."""

from salary_engine.rules.parser import InvalidRulePayloadError, parse_country_config
from salary_engine.rules.repository import (
    CachedCountryRuleRepository,
    ConfigNotFoundError,
    CountryRuleRepository,
    InMemoryCountryRuleRepository,
    SqlCountryRuleRepository,
)
from salary_engine.rules.types import (
    CityTransportRule,
    ContributionBase,
    ContributionType,
    CountryConfig,
    FamilyDeduction,
    OtherTax,
    SectorRate,
    TaxBracket,
    TaxSystem,
)

__all__ = [
    "CachedCountryRuleRepository",
    "CityTransportRule",
    "ConfigNotFoundError",
    "ContributionBase",
    "ContributionType",
    "CountryConfig",
    "CountryRuleRepository",
    "FamilyDeduction",
    "InMemoryCountryRuleRepository",
    "InvalidRulePayloadError",
    "OtherTax",
    "SectorRate",
    "SqlCountryRuleRepository",
    "TaxBracket",
    "TaxSystem",
    "parse_country_config",
]
