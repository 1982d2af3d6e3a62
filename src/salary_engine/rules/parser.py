"""Parse stored rule payloads into ``CountryConfig`` objects."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from salary_engine.rules.types import (
    ContributionBase,
    ContributionType,
    CountryConfig,
    FamilyDeduction,
    OtherTax,
    SectorRate,
    TaxBracket,
    TaxSystem,
)

CALCULATION_METHODS = {"progressive_monthly", "progressive_annual"}


class InvalidRulePayloadError(ValueError):
    """Raised when a stored rule payload cannot be parsed."""

    def __init__(self, country_code: str, reason: str):
        self.country_code = country_code
        self.reason = reason
        super().__init__(f"Invalid rule payload for {country_code}: {reason}")


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def _opt_dec(value: Any) -> Decimal | None:
    return None if value is None else Decimal(str(value))


def parse_tax_system(country_code: str, data: dict[str, Any] | None) -> TaxSystem | None:
    if not data:
        return None

    supports_family = bool(data.get("supports_family_deductions", False))
    family_method = data.get("family_method") or ("deduction_table" if supports_family else "none")
    if not supports_family:
        family_method = "none"
    if not isinstance(family_method, str) or not family_method:
        raise InvalidRulePayloadError(country_code, "family_method must be a non-empty string")

    calculation_method = data.get("calculation_method", "progressive_monthly")
    if calculation_method not in CALCULATION_METHODS:
        raise InvalidRulePayloadError(
            country_code, f"unknown calculation_method '{calculation_method}'"
        )

    brackets = tuple(
        sorted(
            (
                TaxBracket(
                    min_amount=_dec(b["min"]),
                    max_amount=_opt_dec(b.get("max")),
                    rate=_dec(b["rate"]),
                )
                for b in data.get("brackets", [])
            ),
            key=lambda b: b.min_amount,
        )
    )
    if not brackets:
        raise InvalidRulePayloadError(country_code, "tax system has no brackets")

    family_deductions = tuple(
        FamilyDeduction(fiscal_parts=_dec(d["fiscal_parts"]), amount=_dec(d["amount"]))
        for d in data.get("family_deductions", [])
    )

    return TaxSystem(
        code=data.get("code", "IT"),
        name=data.get("name", "Income tax"),
        calculation_method=calculation_method,
        supports_family_deductions=supports_family,
        family_method=family_method,
        brackets=brackets,
        family_deductions=family_deductions,
        standard_deduction_rate=_dec(data.get("standard_deduction_rate", 0)),
        standard_deduction_cap=_opt_dec(data.get("standard_deduction_cap")),
    )


def parse_contribution(country_code: str, data: dict[str, Any]) -> ContributionType:
    base = data.get("base", ContributionBase.SOCIAL_BASE)
    # taxable_gross is derived from the contributions themselves
    if base not in ContributionBase.ALL or base == ContributionBase.TAXABLE_GROSS:
        raise InvalidRulePayloadError(country_code, f"invalid contribution base '{base}'")
    return ContributionType(
        code=data["code"],
        name=data.get("name", data["code"]),
        category=data.get("category", "other"),
        employee_rate=_dec(data.get("employee_rate", 0)),
        employer_rate=_dec(data.get("employer_rate", 0)),
        base=base,
        ceiling=_opt_dec(data.get("ceiling")),
        fixed_employee_amount=_opt_dec(data.get("fixed_employee_amount")),
        fixed_employer_amount=_opt_dec(data.get("fixed_employer_amount")),
        fixed_employer_amount_family=_opt_dec(data.get("fixed_employer_amount_family")),
        is_tax_deductible=bool(data.get("is_tax_deductible", False)),
    )


def parse_country_config(
    country_code: str,
    effective_from: date,
    effective_to: date | None,
    payload: dict[str, Any],
    version_id: str | None = None,
) -> CountryConfig:
    """Build a ``CountryConfig`` from a ``country_rule_version.payload_json``."""
    contributions = tuple(parse_contribution(country_code, c) for c in payload.get("contributions", []))
    other_taxes = tuple(
        OtherTax(
            code=t["code"],
            name=t.get("name", t["code"]),
            rate=_dec(t["rate"]),
            base=t.get("base", ContributionBase.GROSS),
            applies_to=t.get("applies_to"),
        )
        for t in payload.get("other_taxes", [])
    )
    sectors = tuple(
        SectorRate(
            code=s["code"],
            name=s.get("name", s["code"]),
            work_injury_rate=_dec(s["work_injury_rate"]),
        )
        for s in payload.get("sectors", [])
    )
    multipliers = {k: _dec(v) for k, v in payload.get("overtime_multipliers", {}).items()}

    return CountryConfig(
        country_code=country_code,
        country_name=payload.get("country_name", country_code),
        currency=payload.get("currency", "XOF"),
        effective_from=effective_from,
        effective_to=effective_to,
        minimum_wage=_opt_dec(payload.get("minimum_wage")),
        tax_system=parse_tax_system(country_code, payload.get("tax_system")),
        contributions=contributions,
        other_taxes=other_taxes,
        sectors=sectors,
        default_sector_code=payload.get("default_sector_code"),
        overtime_multipliers=MappingProxyType(multipliers),
        version_id=version_id,
    )
