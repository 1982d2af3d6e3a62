"""Reference rule payloads for the supported countries.

Loaded into the database by ``scripts/seed_country_rules.py`` and used as
fixture configurations in tests.
"""

from __future__ import annotations

from datetime import date
from typing import Any

CI_EFFECTIVE_FROM = date(2024, 1, 1)
SN_EFFECTIVE_FROM = date(2024, 1, 1)

CI_RULES: dict[str, Any] = {
    "country_name": "Côte d'Ivoire",
    "currency": "XOF",
    "minimum_wage": 75000,
    "default_sector_code": "services",
    "tax_system": {
        "code": "ITS",
        "name": "Impôt sur les traitements et salaires",
        "calculation_method": "progressive_monthly",
        "supports_family_deductions": True,
        "family_method": "deduction_table",
        "brackets": [
            {"min": 0, "max": 75000, "rate": "0"},
            {"min": 75000, "max": 240000, "rate": "0.16"},
            {"min": 240000, "max": 800000, "rate": "0.21"},
            {"min": 800000, "max": 2400000, "rate": "0.24"},
            {"min": 2400000, "max": 8000000, "rate": "0.28"},
            {"min": 8000000, "max": None, "rate": "0.32"},
        ],
        "family_deductions": [
            {"fiscal_parts": "1.0", "amount": 0},
            {"fiscal_parts": "1.5", "amount": 5500},
            {"fiscal_parts": "2.0", "amount": 11000},
            {"fiscal_parts": "2.5", "amount": 16500},
            {"fiscal_parts": "3.0", "amount": 22000},
            {"fiscal_parts": "3.5", "amount": 27500},
            {"fiscal_parts": "4.0", "amount": 33000},
            {"fiscal_parts": "4.5", "amount": 38500},
            {"fiscal_parts": "5.0", "amount": 44000},
        ],
    },
    "contributions": [
        {
            "code": "CNPS_PENSION",
            "name": "CNPS Retraite",
            "category": "pension",
            "employee_rate": "0.063",
            "employer_rate": "0.077",
            "base": "social_base",
            "ceiling": 3375000,
            "is_tax_deductible": True,
        },
        {
            "code": "CNPS_WORK_INJURY",
            "name": "CNPS Accident du travail",
            "category": "work_injury",
            "employer_rate": "0.02",
            "base": "salaire_categoriel",
            "ceiling": 70000,
        },
        {
            "code": "CNPS_FAMILY",
            "name": "CNPS Prestations familiales",
            "category": "family",
            "employer_rate": "0.0575",
            "base": "salaire_categoriel",
            "ceiling": 70000,
        },
        {
            "code": "CMU",
            "name": "Couverture maladie universelle",
            "category": "health",
            "fixed_employee_amount": 500,
            "fixed_employer_amount": 500,
            "fixed_employer_amount_family": 4500,
            "is_tax_deductible": True,
        },
    ],
    "other_taxes": [
        {"code": "FDFP_TAP", "name": "Taxe d'apprentissage", "rate": "0.004", "base": "gross"},
        {
            "code": "FDFP_TFPC",
            "name": "Taxe formation professionnelle continue",
            "rate": "0.006",
            "base": "gross",
        },
        {
            "code": "ITS_EMPLOYER_LOCAL",
            "name": "ITS part patronale (locaux)",
            "rate": "0.012",
            "base": "social_base",
            "applies_to": "local",
        },
        {
            "code": "ITS_EMPLOYER_EXPAT",
            "name": "ITS part patronale (expatriés)",
            "rate": "0.104",
            "base": "social_base",
            "applies_to": "expat",
        },
    ],
    "sectors": [
        {"code": "services", "name": "Services / commerce", "work_injury_rate": "0.02"},
        {"code": "transport", "name": "Transport", "work_injury_rate": "0.03"},
        {"code": "industry", "name": "Industrie", "work_injury_rate": "0.04"},
        {"code": "construction", "name": "BTP", "work_injury_rate": "0.05"},
    ],
    "overtime_multipliers": {
        "hours_41_to_46": "1.15",
        "hours_above_46": "1.50",
        "night_work": "1.75",
        "sunday": "1.75",
        "public_holiday": "1.75",
        "night_sunday_holiday": "2.00",
    },
}

SN_RULES: dict[str, Any] = {
    "country_name": "Sénégal",
    "currency": "XOF",
    "minimum_wage": 64223,
    "default_sector_code": "services",
    "tax_system": {
        "code": "IR",
        "name": "Impôt sur le revenu",
        "calculation_method": "progressive_annual",
        "supports_family_deductions": False,
        "standard_deduction_rate": "0.30",
        "standard_deduction_cap": 900000,
        "brackets": [
            {"min": 0, "max": 630000, "rate": "0"},
            {"min": 630000, "max": 1500000, "rate": "0.20"},
            {"min": 1500000, "max": 4000000, "rate": "0.30"},
            {"min": 4000000, "max": None, "rate": "0.40"},
        ],
    },
    "contributions": [
        {
            "code": "IPRES_GENERAL",
            "name": "IPRES Régime général",
            "category": "pension",
            "employee_rate": "0.056",
            "employer_rate": "0.084",
            "base": "social_base",
            "ceiling": 432000,
            "is_tax_deductible": True,
        },
        {
            "code": "CSS_WORK_INJURY",
            "name": "CSS Accident du travail",
            "category": "work_injury",
            "employer_rate": "0.01",
            "base": "social_base",
            "ceiling": 63000,
        },
        {
            "code": "CSS_FAMILY",
            "name": "CSS Prestations familiales",
            "category": "family",
            "employer_rate": "0.07",
            "base": "social_base",
            "ceiling": 63000,
        },
    ],
    "other_taxes": [
        {"code": "CFCE", "name": "Contribution forfaitaire à la charge de l'employeur", "rate": "0.03", "base": "gross"},
    ],
    "sectors": [
        {"code": "services", "name": "Services / commerce", "work_injury_rate": "0.01"},
        {"code": "industry", "name": "Industrie", "work_injury_rate": "0.03"},
        {"code": "construction", "name": "BTP", "work_injury_rate": "0.05"},
    ],
    "overtime_multipliers": {
        "hours_41_to_46": "1.15",
        "hours_above_46": "1.40",
        "night_work": "1.60",
        "sunday": "1.60",
        "public_holiday": "1.60",
        "night_sunday_holiday": "2.00",
    },
}

CI_COMPONENT_DEFINITIONS: list[dict[str, Any]] = [
    {
        "code": "11",
        "name": "Salaire catégoriel",
        "category": "base",
        "calculation_method": "flat",
        "is_base_component": True,
    },
    {
        "code": "12",
        "name": "Sursalaire",
        "category": "base",
        "calculation_method": "flat",
        "is_base_component": True,
    },
    {
        "code": "21",
        "name": "Prime d'ancienneté",
        "category": "bonus",
        "calculation_method": "auto",
        "metadata": {
            "rule": "seniority",
            "ineligible_contract_types": ["CDDTI", "INTERIM", "STAGE"],
        },
    },
    {
        "code": "22",
        "name": "Prime de transport",
        "category": "allowance",
        "calculation_method": "flat",
        "metadata": {"exemption_cap": {"type": "city_based", "value": 30000}},
    },
    {
        "code": "23",
        "name": "Indemnité de logement",
        "category": "allowance",
        "calculation_method": "flat",
    },
    {
        "code": "31",
        "name": "Prime de rendement",
        "category": "bonus",
        "calculation_method": "percentage",
    },
]

CI_CITY_TRANSPORT_MINIMUMS: list[dict[str, Any]] = [
    {"city": "ABIDJAN", "monthly_minimum": 30000, "daily_rate": 1364, "tax_exemption_cap": 30000},
    {"city": "BOUAKE", "monthly_minimum": 24000, "daily_rate": 1091, "tax_exemption_cap": 24000},
    {"city": "YAMOUSSOUKRO", "monthly_minimum": 20000, "daily_rate": 909, "tax_exemption_cap": 20000},
    {"city": "SAN-PEDRO", "monthly_minimum": 20000, "daily_rate": 909, "tax_exemption_cap": 20000},
]
