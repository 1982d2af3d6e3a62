"""Builds persisted line item values and deterministic fingerprints."""

from __future__ import annotations

import dataclasses
import hashlib
import json
from decimal import Decimal
from enum import Enum
from typing import Any

from salary_engine.calculators.types import (
    ComponentCategory,
    EmployeePayrollInput,
    PayrollCalculationResult,
)
from salary_engine.rules.types import CountryConfig


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(int(value)) if value == value.to_integral_value() else str(value.normalize())
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class LineItemBuilder:
    """Builds line item rows with deterministic hashing for idempotency.

    Sign conventions in breakdowns:
    - earnings: positive (overtime included)
    - deductions: positive amounts withheld from the employee
    - contributions: employee and employer shares, both positive
    - other taxes: positive employer liability
    """

    @staticmethod
    def compute_inputs_fingerprint(employee: EmployeePayrollInput, config: CountryConfig) -> str:
        """Hash of everything a result depends on.

        Identical inputs under the same rule version produce identical hashes.
        """
        canonical = {
            "employee": _jsonable(dataclasses.asdict(employee)),
            "rules": {
                "country": config.country_code,
                "effective_from": config.effective_from.isoformat(),
                "version": config.version_id,
            },
        }
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()

    @staticmethod
    def build_earnings(result: PayrollCalculationResult) -> list[dict[str, Any]]:
        earnings = [
            {
                "code": c.code,
                "name": c.name,
                "category": c.category.value,
                "method": c.method.value,
                "amount": c.amount,
                "quantity": _jsonable(c.quantity),
                "rate": _jsonable(c.rate),
                "is_taxable": c.is_taxable,
            }
            for c in result.pay.components
            if c.category != ComponentCategory.DEDUCTION
        ]
        earnings.extend(
            {
                "code": f"OT_{o.type.value.upper()}",
                "name": f"Overtime {o.type.value}",
                "category": "overtime",
                "method": "overtime",
                "amount": o.amount,
                "quantity": _jsonable(o.count),
                "rate": _jsonable(o.hourly_rate * o.multiplier),
                "is_taxable": True,
            }
            for o in result.pay.overtime
        )
        return earnings

    @staticmethod
    def build_deductions(result: PayrollCalculationResult) -> list[dict[str, Any]]:
        deductions: list[dict[str, Any]] = [
            {"code": c.code, "name": c.name, "type": "component", "amount": -c.amount}
            for c in result.pay.components
            if c.category == ComponentCategory.DEDUCTION
        ]
        deductions.append(
            {
                "code": "INCOME_TAX",
                "name": "Income tax",
                "type": "tax",
                "amount": result.tax.income_tax,
                "base": result.tax.taxable_gross,
                "fiscal_parts": _jsonable(result.tax.fiscal_parts),
            }
        )
        deductions.extend(
            {
                "code": c.code,
                "name": c.name,
                "type": "contribution",
                "amount": c.employee_amount,
                "base": c.base,
                "rate": _jsonable(c.employee_rate),
            }
            for c in result.tax.contributions
            if c.employee_amount
        )
        return deductions

    @staticmethod
    def build_contributions(result: PayrollCalculationResult) -> list[dict[str, Any]]:
        return [
            {
                "code": c.code,
                "name": c.name,
                "category": c.category,
                "base": c.base,
                "employee_rate": _jsonable(c.employee_rate),
                "employer_rate": _jsonable(c.employer_rate),
                "employee_amount": c.employee_amount,
                "employer_amount": c.employer_amount,
                "is_tax_deductible": c.is_tax_deductible,
            }
            for c in result.tax.contributions
        ]

    @staticmethod
    def build_other_taxes(result: PayrollCalculationResult) -> list[dict[str, Any]]:
        return [
            {
                "code": t.code,
                "name": t.name,
                "base": t.base,
                "rate": _jsonable(t.rate),
                "amount": t.amount,
            }
            for t in result.tax.other_taxes
        ]

    @staticmethod
    def line_item_values(result: PayrollCalculationResult) -> dict[str, Any]:
        """Column values of a ``PayrollLineItem`` for a result."""
        pay = result.pay
        tax = result.tax
        allowances = sum(
            c.amount
            for c in pay.components
            if not c.is_base and c.category != ComponentCategory.DEDUCTION
        )
        return {
            "employee_name": result.employee_name,
            "contract_type": result.contract_type.value,
            "rate_type": pay.rate_type.value,
            "base_salary": pay.base_salary,
            "total_allowances": allowances,
            "overtime_pay": pay.overtime_pay,
            "gross_salary": tax.gross_salary,
            "taxable_gross": tax.taxable_gross,
            "income_tax": tax.income_tax,
            "employee_contributions": tax.employee_contributions,
            "employer_contributions": tax.employer_contributions,
            "other_taxes": tax.other_taxes_total,
            "total_deductions": result.total_deductions,
            "net_salary": result.net_salary,
            "employer_cost": tax.employer_cost,
            "fiscal_parts": tax.fiscal_parts,
            "days_worked": pay.days_worked,
            "hours_worked": pay.hours_worked,
            "earnings_json": LineItemBuilder.build_earnings(result),
            "deductions_json": LineItemBuilder.build_deductions(result),
            "contributions_json": LineItemBuilder.build_contributions(result),
            "other_taxes_json": LineItemBuilder.build_other_taxes(result),
            "warnings_json": [{"code": w.code, "message": w.message} for w in result.warnings],
            "inputs_fingerprint": result.inputs_fingerprint,
        }
