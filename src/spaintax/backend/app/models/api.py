"""Pydantic models describing the public API surface."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from spaintax.backend.config.year_config import TaxTopology

__all__ = [
    "AlcoholExciseLine",
    "BracketSlicePayload",
    "CalculationOptions",
    "CalculationRequest",
    "CalculationResponse",
    "ContributionsPayload",
    "DirectTaxLine",
    "DisplayPayload",
    "ElectricityExciseLine",
    "ExemptLine",
    "ExpenseCategory",
    "ExpenseLine",
    "FuelExciseLine",
    "GasExciseLine",
    "IRPFPayload",
    "IndirectTaxesPayload",
    "InsurancePremiumLine",
    "LineDetailPayload",
    "ResponseMeta",
    "SocialSecurityPayload",
    "StandardLine",
    "Summary",
    "SummaryLabels",
    "TaxpayerProfile",
    "TobaccoExciseLine",
    "ViewMode",
    "WarningPayload",
    "format_validation_error",
]


ViewMode = Literal["annual", "monthly", "per_payment"]
MaritalStatus = Literal["single", "married_working", "married_not_working"]
DisabilityLevel = Literal["none", "33", "65", "reduced_mobility"]


class TaxpayerProfile(BaseModel):
    """Salary and household details supplied by the user."""

    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    gross_income: float = Field(default=0.0, ge=0)
    payments_per_year: Literal[12, 14] = 12
    children: int = Field(default=0, ge=0, le=15)
    children_under_3: int = Field(default=0, ge=0, le=15)
    region: str | None = None
    marital_status: MaritalStatus = "single"
    disability: DisabilityLevel = "none"

    @field_validator("region", mode="before")
    @classmethod
    def _normalise_region(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip().lower().replace("-", "_")
        return text or None

    @field_validator("disability", mode="before")
    @classmethod
    def _normalise_disability(cls, value: Any) -> Any:
        if value is None:
            return "none"
        if isinstance(value, int):
            return str(value)
        return value

    @model_validator(mode="after")
    def _validate_children(self) -> "TaxpayerProfile":
        if self.children_under_3 > self.children:
            raise ValueError("children_under_3 cannot exceed the number of children")
        return self


class _ExpenseLineBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    id: str | None = None
    name: str = ""
    amount: float = 0.0

    @property
    def kind(self) -> TaxTopology:
        return TaxTopology(self.topology)  # type: ignore[attr-defined]


class StandardLine(_ExpenseLineBase):
    """Line carrying only VAT at its declared rate."""

    topology: Literal["standard"] = "standard"
    vat_rate: Literal[0, 4, 10, 21] = 21


class FuelExciseLine(_ExpenseLineBase):
    """Fuel purchase taxed per litre on top of VAT."""

    topology: Literal["fuel_excise"]
    vat_rate: Literal[21] = 21
    price_per_unit: float | None = Field(default=None, gt=0)


class ElectricityExciseLine(_ExpenseLineBase):
    """Electricity bill whose excise compounds with VAT."""

    topology: Literal["electricity_excise"]
    vat_rate: Literal[21] = 21
    special_rate: float | None = Field(default=None, ge=0, le=1)


class GasExciseLine(_ExpenseLineBase):
    topology: Literal["gas_excise"]
    vat_rate: Literal[21] = 21
    special_rate: float | None = Field(default=None, ge=0, le=1)


class AlcoholExciseLine(_ExpenseLineBase):
    topology: Literal["alcohol_excise"]
    vat_rate: Literal[21] = 21
    special_rate: float | None = Field(default=None, ge=0, le=1)


class TobaccoExciseLine(_ExpenseLineBase):
    topology: Literal["tobacco_excise"]
    vat_rate: Literal[21] = 21
    special_rate: float | None = Field(default=None, ge=0, le=1)


class InsurancePremiumLine(_ExpenseLineBase):
    """Insurance premium: no VAT, only the premium levy."""

    topology: Literal["insurance_premium"]
    vat_rate: Literal[0] = 0
    special_rate: float | None = Field(default=None, ge=0, le=1)


class ExemptLine(_ExpenseLineBase):
    topology: Literal["exempt"]
    vat_rate: Literal[0] = 0


class DirectTaxLine(_ExpenseLineBase):
    """Payment that is itself a levy, such as municipal rates."""

    topology: Literal["direct_tax"]
    vat_rate: Literal[0] = 0


ExpenseLine = Annotated[
    Union[
        StandardLine,
        FuelExciseLine,
        ElectricityExciseLine,
        GasExciseLine,
        AlcoholExciseLine,
        TobaccoExciseLine,
        InsurancePremiumLine,
        ExemptLine,
        DirectTaxLine,
    ],
    Field(discriminator="topology"),
]


def _normalise_line_payload(entry: Any) -> Any:
    if not isinstance(entry, Mapping):
        return entry
    copied = dict(entry)
    copied["topology"] = TaxTopology.parse(copied.get("topology")).value
    return copied


class ExpenseCategory(BaseModel):
    """Group of monthly expense lines, or a flat total split by VAT rate."""

    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    id: str
    name: str = ""
    lines: tuple[ExpenseLine, ...] = ()
    total: float = Field(default=0.0, ge=0)
    vat4: float = Field(default=0.0, ge=0, le=100)
    vat10: float = Field(default=0.0, ge=0, le=100)
    vat21: float = Field(default=0.0, ge=0, le=100)

    @field_validator("lines", mode="before")
    @classmethod
    def _normalise_lines(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(_normalise_line_payload(entry) for entry in value)
        raise ValueError("Expense lines must be provided as a list")

    @model_validator(mode="after")
    def _validate_split(self) -> "ExpenseCategory":
        if self.vat4 + self.vat10 + self.vat21 > 100:
            raise ValueError(f"VAT split for category '{self.id}' exceeds 100%")
        return self


class CalculationOptions(BaseModel):
    """Opt-in refinements beyond the simplified model."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    apply_work_income_deductions: bool = False
    apply_contribution_cap: bool = False

    @field_validator("apply_work_income_deductions", "apply_contribution_cap", mode="before")
    @classmethod
    def _coerce_flags(cls, value: Any) -> bool:
        if value is None:
            return False
        return bool(value)


class CalculationRequest(BaseModel):
    """Complete payload accepted by the calculation endpoint."""

    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    year: int | None = Field(default=None, ge=0)
    locale: str = Field(default="es")
    profile: TaxpayerProfile
    expenses: list[ExpenseCategory] = Field(default_factory=list)
    expense_amounts: dict[str, float] = Field(default_factory=dict)
    view_mode: ViewMode = "annual"
    options: CalculationOptions = Field(default_factory=CalculationOptions)

    @field_validator("locale", mode="before")
    @classmethod
    def _normalise_locale(cls, value: Any) -> str:
        if value is None:
            return "es"
        text = str(value).strip()
        return text or "es"

    @field_validator("view_mode", mode="before")
    @classmethod
    def _normalise_view_mode(cls, value: Any) -> Any:
        if value is None:
            return "annual"
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @field_validator("expense_amounts", mode="before")
    @classmethod
    def _normalise_expense_amounts(cls, value: Any) -> Mapping[str, Any]:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return value
        raise ValueError("Expense amounts must be an object mapping line ids to amounts")

    @field_validator("expense_amounts", mode="after")
    @classmethod
    def _validate_expense_amounts(cls, value: Mapping[str, Any]) -> dict[str, float]:
        amounts: dict[str, float] = {}
        for key, raw in value.items():
            try:
                amount = float(raw)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Expense amount for '{key}' must be numeric") from exc
            if not math.isfinite(amount):
                raise ValueError(f"Expense amount for '{key}' must be a finite number")
            if amount < 0:
                raise ValueError(f"Expense amount for '{key}' cannot be negative")
            amounts[str(key)] = amount
        return amounts


class SummaryLabels(BaseModel):
    """Localized labels for summary fields."""

    model_config = ConfigDict(extra="forbid")

    gross: str
    employer_cost: str
    employer_contributions: str
    employee_contributions: str
    irpf: str
    net_income: str
    indirect_taxes: str
    state_share: str
    user_share: str


class Summary(BaseModel):
    """Annual aggregates of the calculation."""

    model_config = ConfigDict(extra="forbid")

    gross: float
    employer_cost: float
    employer_contributions: float
    employee_contributions: float
    irpf: float
    net_income: float
    indirect_taxes: float
    state_share: float
    user_share: float
    state_share_rate: float
    user_share_rate: float
    labels: SummaryLabels


class BracketSlicePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lower: float
    upper: float | None
    rate: float
    rate_label: str
    taxable: float
    tax: float
    fill_ratio: float
    active: bool


class IRPFPayload(BaseModel):
    """Income tax section of the response."""

    model_config = ConfigDict(extra="forbid")

    label: str
    region: str
    region_name: str
    regime: Literal["common", "foral"]
    gross_income: float
    deductible_expenses: float
    work_income_reduction: float
    exempt_minimum: float
    taxable_income: float
    national_tax: float
    regional_tax: float
    annual_amount: float
    effective_rate: float
    brackets: dict[str, list[BracketSlicePayload]]


class ContributionsPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    label: str
    base: float
    rate: float
    items: dict[str, float]
    item_labels: dict[str, str]
    total: float


class SocialSecurityPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    employer: ContributionsPayload
    employee: ContributionsPayload
    capped: bool


class LineDetailPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str
    id: str | None = None
    name: str
    amount: float
    vat_rate: int
    vat: float
    special: float
    topology: str
    label: str | None = None


class IndirectTaxesPayload(BaseModel):
    """Monthly indirect taxes by bucket plus the per-line drill-down."""

    model_config = ConfigDict(extra="forbid")

    label: str
    vat4: float
    vat10: float
    vat21: float
    fuel_excise: float
    insurance_premium_tax: float
    electricity_excise: float
    other_excise: float
    other_direct_taxes: float
    total: float
    annual_total: float
    expenses_total: float
    lines: list[LineDetailPayload]


class DisplayPayload(BaseModel):
    """Figures converted to the requested view."""

    model_config = ConfigDict(extra="forbid")

    view_mode: ViewMode
    payments_per_year: int
    salary_factor: float
    expense_factor: float
    gross: float
    employer_cost: float
    employer_contributions: float
    employee_contributions: float
    irpf: float
    net_income: float
    expenses: float
    indirect_taxes: float
    available_salary: float
    formatted: dict[str, str]


class WarningPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    severity: str
    message: str


class ResponseMeta(BaseModel):
    """Metadata returned alongside the calculation output."""

    model_config = ConfigDict(extra="forbid")

    year: int
    locale: str
    region: str
    view_mode: ViewMode
    options: dict[str, bool]
    warnings: list[WarningPayload] = Field(default_factory=list)


class CalculationResponse(BaseModel):
    """Full response payload produced by the calculation service."""

    model_config = ConfigDict(extra="forbid")

    summary: Summary
    irpf: IRPFPayload
    social_security: SocialSecurityPayload
    indirect_taxes: IndirectTaxesPayload
    display: DisplayPayload
    meta: ResponseMeta


def format_validation_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if "greater than or equal to 0" in message.lower():
            message = "value cannot be negative"
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid calculation payload: {details}"
