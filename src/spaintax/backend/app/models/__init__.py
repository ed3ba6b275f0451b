"""Typed request/response models shared across the calculation services.

Requests are validated by the Pydantic models in :mod:`.api`; the engines
exchange lightweight dataclasses for derived results so each calculator stays
a plain function over numbers. Keeping both families here means routes, the
calculation service and tests all agree on a single schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict

from spaintax.backend.config.year_config import RegionRegime, TaxTopology

from .api import (
    AlcoholExciseLine,
    CalculationOptions,
    CalculationRequest,
    CalculationResponse,
    DirectTaxLine,
    ElectricityExciseLine,
    ExemptLine,
    ExpenseCategory,
    ExpenseLine,
    FuelExciseLine,
    GasExciseLine,
    InsurancePremiumLine,
    StandardLine,
    TaxpayerProfile,
    TobaccoExciseLine,
    ViewMode,
    format_validation_error,
)

__all__ = [
    "AlcoholExciseLine",
    "BracketSlice",
    "CalculationInput",
    "CalculationOptions",
    "CalculationRequest",
    "CalculationResponse",
    "DirectTaxLine",
    "DisplayFactors",
    "ElectricityExciseLine",
    "ExemptLine",
    "ExpenseCategory",
    "ExpenseLine",
    "FiscalSummary",
    "FuelExciseLine",
    "GasExciseLine",
    "IRPFResult",
    "IndirectTaxResult",
    "InsurancePremiumLine",
    "LineTaxDetail",
    "SSResult",
    "StandardLine",
    "TaxpayerProfile",
    "TobaccoExciseLine",
    "ViewMode",
    "format_validation_error",
]


class CalculationInput(BaseModel):
    """Validated and normalised user input for a single calculation pass."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    year: int
    locale: str
    profile: TaxpayerProfile
    region_id: str
    categories: tuple[ExpenseCategory, ...] = ()
    view_mode: ViewMode = "annual"
    options: CalculationOptions = CalculationOptions()

    @property
    def gross_income(self) -> float:
        return self.profile.gross_income

    @property
    def payments_per_year(self) -> int:
        return self.profile.payments_per_year

    @property
    def has_expenses(self) -> bool:
        return any(category.lines or category.total > 0 for category in self.categories)


@dataclass(slots=True, frozen=True)
class BracketSlice:
    """Portion of a taxable base falling inside one bracket."""

    lower: float
    upper: float | None
    rate: float
    taxable: float
    tax: float

    @property
    def active(self) -> bool:
        return self.taxable > 0

    @property
    def fill_ratio(self) -> float:
        """Share of the bracket width consumed by the base (1.0 for open brackets in use)."""

        if self.upper is None:
            return 1.0 if self.taxable > 0 else 0.0
        width = self.upper - self.lower
        return self.taxable / width if width > 0 else 0.0


@dataclass(slots=True)
class IRPFResult:
    """Income tax outcome for one taxpayer and region."""

    regime: RegionRegime
    gross_income: float
    exempt_minimum: float
    taxable_income: float
    national_tax: float
    regional_tax: float
    deductible_expenses: float = 0.0
    work_income_reduction: float = 0.0
    national_brackets: tuple[BracketSlice, ...] = ()
    regional_brackets: tuple[BracketSlice, ...] = ()

    @property
    def annual_amount(self) -> float:
        return self.national_tax + self.regional_tax

    @property
    def effective_rate(self) -> float:
        if self.gross_income <= 0:
            return 0.0
        return self.annual_amount / self.gross_income


@dataclass(slots=True)
class SSResult:
    """Itemised Social Security contributions for one side of the payroll."""

    per_item: dict[str, float]
    base: float

    @property
    def total(self) -> float:
        return sum(self.per_item.values())


@dataclass(slots=True)
class LineTaxDetail:
    """Taxes recovered from a single tax-inclusive expense line."""

    category: str
    id: str | None
    name: str
    amount: float
    vat: float
    special: float
    topology: TaxTopology
    vat_rate: int = 0

    @property
    def total(self) -> float:
        return self.vat + self.special


@dataclass(slots=True)
class IndirectTaxResult:
    """Monthly indirect taxes bucketed by tax category."""

    vat4: float = 0.0
    vat10: float = 0.0
    vat21: float = 0.0
    fuel_excise: float = 0.0
    insurance_premium_tax: float = 0.0
    electricity_excise: float = 0.0
    other_excise: float = 0.0
    other_direct_taxes: float = 0.0
    lines: list[LineTaxDetail] = field(default_factory=list)

    def add_vat(self, rate: int, amount: float) -> None:
        if rate == 4:
            self.vat4 += amount
        elif rate == 10:
            self.vat10 += amount
        elif rate == 21:
            self.vat21 += amount
        elif amount:
            raise ValueError(f"Unsupported VAT rate {rate}")

    @property
    def vat_total(self) -> float:
        return self.vat4 + self.vat10 + self.vat21

    @property
    def total(self) -> float:
        return (
            self.vat_total
            + self.fuel_excise
            + self.insurance_premium_tax
            + self.electricity_excise
            + self.other_excise
            + self.other_direct_taxes
        )


@dataclass(slots=True)
class FiscalSummary:
    """Annual aggregates combining every engine's output."""

    gross: float
    employer_contributions: float
    employee_contributions: float
    irpf: float
    indirect_taxes_monthly: float

    @property
    def employer_cost(self) -> float:
        return self.gross + self.employer_contributions

    @property
    def net_income(self) -> float:
        return self.gross - self.irpf - self.employee_contributions

    @property
    def indirect_taxes(self) -> float:
        return self.indirect_taxes_monthly * 12

    @property
    def state_share(self) -> float:
        return (
            self.employer_contributions
            + self.employee_contributions
            + self.irpf
            + self.indirect_taxes
        )

    @property
    def user_share(self) -> float:
        return self.net_income - self.indirect_taxes

    @property
    def state_share_rate(self) -> float:
        cost = self.employer_cost
        return self.state_share / cost if cost > 0 else 0.0

    @property
    def user_share_rate(self) -> float:
        cost = self.employer_cost
        return self.user_share / cost if cost > 0 else 0.0


@dataclass(slots=True, frozen=True)
class DisplayFactors:
    """Multipliers turning annual salary and monthly expense figures into a view."""

    view_mode: Literal["annual", "monthly", "per_payment"]
    payments_per_year: int
    salary: float
    expenses: float
