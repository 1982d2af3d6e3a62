"""Expands component codes into typed, categorized monetary components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from salary_engine.calculators.types import (
    AutoCalculatedComponent,
    CalculationMethod,
    ComponentCategory,
    ComponentInput,
    ContractType,
    CustomComponent,
    EmployeePayrollInput,
    ExemptionCap,
    FlatComponent,
    PercentageOfBaseComponent,
    ResolvedComponent,
)

SENIORITY_RULE = "seniority"
SENIORITY_MIN_YEARS = 2
SENIORITY_START_RATE = Decimal("0.02")
SENIORITY_STEP = Decimal("0.01")
SENIORITY_MAX_RATE = Decimal("0.25")


@dataclass(frozen=True)
class ComponentDefinitionSpec:
    """Catalog entry for a component code (definition or activated template)."""

    code: str
    name: str
    category: ComponentCategory
    method: CalculationMethod
    is_base: bool = False
    is_taxable: bool = True
    default_amount: Decimal | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def stored_rate(self) -> Decimal | None:
        rate = self.metadata.get("rate")
        return None if rate is None else Decimal(str(rate))

    @property
    def rule(self) -> str | None:
        return self.metadata.get("rule")

    @property
    def exemption_cap(self) -> ExemptionCap | None:
        cap = self.metadata.get("exemption_cap")
        if not cap:
            return None
        return ExemptionCap(kind=cap.get("type", "fixed"), value=Decimal(str(cap.get("value", 0))))

    @property
    def ineligible_contract_types(self) -> frozenset[str]:
        return frozenset(self.metadata.get("ineligible_contract_types", ()))


class ComponentCatalog:
    """Component definitions known for one country and tenant."""

    def __init__(self, entries: Iterable[ComponentDefinitionSpec] = ()):
        self._entries: dict[str, ComponentDefinitionSpec] = {}
        for entry in entries:
            self._entries[entry.code] = entry

    def get(self, code: str) -> ComponentDefinitionSpec | None:
        return self._entries.get(code)

    def with_overrides(self, overrides: Iterable[ComponentDefinitionSpec]) -> ComponentCatalog:
        """Return a catalog where ``overrides`` replace entries of the same code."""
        merged = dict(self._entries)
        for entry in overrides:
            merged[entry.code] = entry
        return ComponentCatalog(merged.values())

    def auto_rules(self) -> list[ComponentDefinitionSpec]:
        return [e for e in self._entries.values() if e.method == CalculationMethod.AUTO and e.rule]

    def __len__(self) -> int:
        return len(self._entries)


def completed_years(start: date, on: date) -> int:
    years = on.year - start.year
    if (on.month, on.day) < (start.month, start.day):
        years -= 1
    return max(years, 0)


def seniority_rate(hire_date: date, as_of: date) -> Decimal:
    """2% after two full years, +1% per additional year, capped at 25%."""
    years = completed_years(hire_date, as_of)
    if years < SENIORITY_MIN_YEARS:
        return Decimal("0")
    rate = SENIORITY_START_RATE + SENIORITY_STEP * (years - SENIORITY_MIN_YEARS)
    return min(rate, SENIORITY_MAX_RATE)


def round_amount(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


class ComponentResolver:
    """Resolves ``{code, amount}`` inputs against a component catalog.

    Rules:
    - flat components pass through unchanged
    - percentage components read their amount as a rate (0.10 = 10%) applied
      to the salaire catégoriel (sum of base components)
    - auto-calculated components use their stored rate or rule against the
      same base, except in hiring preview where the supplied amount is trusted
    - explicit base components win over other inputs with the same code
    - unknown codes become custom components with the amount unchanged
    """

    def __init__(self, catalog: ComponentCatalog):
        self.catalog = catalog

    def resolve(self, employee: EmployeePayrollInput) -> list[ResolvedComponent]:
        base_codes = {c.code for c in employee.base_components}
        others = [c for c in employee.components if c.code not in base_codes]

        resolved: list[ResolvedComponent] = [
            self._resolve_explicit_base(c) for c in employee.base_components
        ]
        # Base components supplied through the template list still count toward the base
        deferred: list[ComponentInput] = []
        for component in others:
            spec = self.catalog.get(component.code)
            if spec is not None and spec.is_base and spec.method == CalculationMethod.FLAT:
                resolved.append(self._flat(component, spec))
            else:
                deferred.append(component)

        base = salaire_categoriel(resolved)
        as_of = employee.period_end

        for component in deferred:
            spec = self.catalog.get(component.code)
            if spec is None:
                resolved.append(
                    CustomComponent(
                        code=component.code,
                        name=component.name or f"Component {component.code}",
                        category=ComponentCategory.CUSTOM,
                        amount=component.amount,
                    )
                )
            elif spec.method == CalculationMethod.PERCENTAGE:
                resolved.append(self._percentage(component, spec, base))
            elif spec.method == CalculationMethod.AUTO:
                auto = self._auto(component, spec, base, employee, as_of)
                if auto is not None:
                    resolved.append(auto)
            else:
                resolved.append(self._flat(component, spec))

        if not employee.hiring_preview:
            present = {c.code for c in resolved}
            for spec in self.catalog.auto_rules():
                if spec.code in present:
                    continue
                injected = self._auto(
                    ComponentInput(code=spec.code, amount=Decimal("0")), spec, base, employee, as_of
                )
                if injected is not None and injected.amount > 0:
                    resolved.append(injected)

        return resolved

    def _resolve_explicit_base(self, component: ComponentInput) -> ResolvedComponent:
        spec = self.catalog.get(component.code)
        return FlatComponent(
            code=component.code,
            name=component.name or (spec.name if spec else f"Component {component.code}"),
            category=ComponentCategory.BASE,
            amount=component.amount,
            is_base=True,
            is_taxable=True,
        )

    def _flat(self, component: ComponentInput, spec: ComponentDefinitionSpec) -> FlatComponent:
        amount = component.amount
        if amount == 0 and spec.default_amount is not None:
            amount = spec.default_amount
        return FlatComponent(
            code=component.code,
            name=component.name or spec.name,
            category=spec.category,
            amount=amount,
            is_base=spec.is_base,
            is_taxable=spec.is_taxable,
            exemption_cap=spec.exemption_cap,
        )

    def _percentage(
        self, component: ComponentInput, spec: ComponentDefinitionSpec, base: Decimal
    ) -> PercentageOfBaseComponent:
        rate = component.amount
        if rate == 0:
            rate = spec.stored_rate or spec.default_amount or Decimal("0")
        return PercentageOfBaseComponent(
            code=component.code,
            name=component.name or spec.name,
            category=spec.category,
            amount=round_amount(base * rate),
            rate=rate,
            is_taxable=spec.is_taxable,
            exemption_cap=spec.exemption_cap,
        )

    def _auto(
        self,
        component: ComponentInput,
        spec: ComponentDefinitionSpec,
        base: Decimal,
        employee: EmployeePayrollInput,
        as_of: date,
    ) -> AutoCalculatedComponent | None:
        if employee.hiring_preview:
            return AutoCalculatedComponent(
                code=component.code,
                name=component.name or spec.name,
                category=spec.category,
                amount=component.amount,
                rate=None,
                rule=spec.rule,
                is_taxable=spec.is_taxable,
                exemption_cap=spec.exemption_cap,
            )

        if ContractType(employee.contract_type).value in spec.ineligible_contract_types:
            return None

        if spec.rule == SENIORITY_RULE:
            rate = seniority_rate(employee.hire_date, as_of)
        else:
            rate = spec.stored_rate or Decimal("0")

        return AutoCalculatedComponent(
            code=component.code,
            name=component.name or spec.name,
            category=spec.category,
            amount=round_amount(base * rate),
            rate=rate,
            rule=spec.rule,
            is_taxable=spec.is_taxable,
            exemption_cap=spec.exemption_cap,
        )


def salaire_categoriel(components: Iterable[ResolvedComponent]) -> Decimal:
    """Sum of the components flagged as base components."""
    return sum((c.amount for c in components if c.is_base), Decimal("0"))
