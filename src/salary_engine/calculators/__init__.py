"""Calculation pipeline."""

from salary_engine.calculators.component_resolver import (
    ComponentCatalog,
    ComponentDefinitionSpec,
    ComponentResolver,
)
from salary_engine.calculators.engine import PayrollLineCalculator
from salary_engine.calculators.proration import ProrationEngine
from salary_engine.calculators.tax_calculator import (
    TaxCalculator,
    TaxInput,
    UnsupportedCountryError,
    calculate_fiscal_parts,
    register_tax_strategy,
)
from salary_engine.calculators.validation import PayrollValidationError

__all__ = [
    "ComponentCatalog",
    "ComponentDefinitionSpec",
    "ComponentResolver",
    "PayrollLineCalculator",
    "PayrollValidationError",
    "ProrationEngine",
    "TaxCalculator",
    "TaxInput",
    "UnsupportedCountryError",
    "calculate_fiscal_parts",
    "register_tax_strategy",
]
