"""Pydantic models describing the tax year configuration schema."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class RegionRegime(str, Enum):
    """Whether a region adds its scale to the national one or replaces it."""

    COMMON = "common"
    FORAL = "foral"


class TaxTopology(str, Enum):
    """How the taxes of an expense line are embedded in its price."""

    STANDARD = "standard"
    FUEL_EXCISE = "fuel_excise"
    ELECTRICITY_EXCISE = "electricity_excise"
    GAS_EXCISE = "gas_excise"
    INSURANCE_PREMIUM = "insurance_premium"
    ALCOHOL_EXCISE = "alcohol_excise"
    TOBACCO_EXCISE = "tobacco_excise"
    EXEMPT = "exempt"
    DIRECT_TAX = "direct_tax"

    @classmethod
    def parse(cls, value: Any) -> TaxTopology:
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.STANDARD
        return cls(str(value).strip().lower().replace("-", "_"))


class TaxBracket(ImmutableModel):
    """Represents a single progressive tax bracket."""

    upper_bound: float | None = Field(default=None, alias="upper")
    rate: float

    @model_validator(mode="after")
    def _validate_values(self) -> TaxBracket:
        if self.rate < 0:
            raise ConfigurationError("Tax rates must be non-negative")
        if self.upper_bound is not None and self.upper_bound <= 0:
            raise ConfigurationError("Upper bounds must be positive values")
        return self


def validate_bracket_sequence(brackets: Sequence[TaxBracket], scope: str) -> None:
    """Ensure ``brackets`` ascend strictly and end with an open bracket."""

    if not brackets:
        raise ConfigurationError(f"{scope}: at least one tax bracket must be defined")
    last_upper: float | None = None
    for bracket in brackets[:-1]:
        upper = bracket.upper_bound
        if upper is None:
            raise ConfigurationError(f"{scope}: only the final bracket may be open")
        if last_upper is not None and upper <= last_upper:
            raise ConfigurationError(f"{scope}: tax brackets must be in ascending order")
        last_upper = upper
    final_upper = brackets[-1].upper_bound
    if final_upper is not None:
        raise ConfigurationError(f"{scope}: final tax bracket must have an open upper bound")


class Region(ImmutableModel):
    """Autonomous community with its own income tax scale."""

    id: str
    name: str
    regime: RegionRegime = RegionRegime.COMMON
    brackets: Sequence[TaxBracket]

    @model_validator(mode="after")
    def _validate_brackets(self) -> Region:
        validate_bracket_sequence(self.brackets, f"irpf.regions.{self.id}")
        return self

    @property
    def is_foral(self) -> bool:
        return self.regime is RegionRegime.FORAL


class PersonalMinimumConfig(ImmutableModel):
    """Tax-exempt personal and family minimum amounts."""

    base: float
    per_child: Sequence[float] = Field(default_factory=tuple)
    per_child_under_3: float = 0.0

    @field_validator("per_child", mode="before")
    @classmethod
    def _coerce_per_child(cls, value: Any) -> Sequence[float]:
        if value is None:
            return ()
        if isinstance(value, (int, float)):
            return (float(value),)
        if isinstance(value, Iterable):
            return tuple(float(entry) for entry in value)
        raise ConfigurationError("'per_child' must be a number or a list of numbers")

    @model_validator(mode="after")
    def _validate_amounts(self) -> PersonalMinimumConfig:
        if self.base < 0:
            raise ConfigurationError("Personal minimum 'base' must be non-negative")
        if any(amount < 0 for amount in self.per_child):
            raise ConfigurationError("Child allowances must be non-negative")
        if self.per_child_under_3 < 0:
            raise ConfigurationError("'per_child_under_3' must be non-negative")
        return self

    def child_allowance(self, position: int) -> float:
        """Return the allowance for the child at zero-based ``position``."""

        if not self.per_child:
            return 0.0
        index = min(position, len(self.per_child) - 1)
        return self.per_child[index]


class WorkIncomeReduction(ImmutableModel):
    """Thresholds for the reduction on net work income (art. 20 LIRPF)."""

    max_net_income: float
    max_other_income: float = 6_500.0
    threshold_1: float
    threshold_2: float
    full_reduction: float
    reduction_at_threshold_2: float
    factor_1: float
    factor_2: float

    @model_validator(mode="after")
    def _validate_thresholds(self) -> WorkIncomeReduction:
        if not 0 < self.threshold_1 < self.threshold_2 < self.max_net_income:
            raise ConfigurationError(
                "Work income thresholds must satisfy 0 < threshold_1 < threshold_2 < max_net_income"
            )
        return self


class WorkIncomeConfig(ImmutableModel):
    """Deductible expenses and reductions applied to salaried income."""

    general_expense: float = 0.0
    reduction: WorkIncomeReduction

    @model_validator(mode="after")
    def _validate_expense(self) -> WorkIncomeConfig:
        if self.general_expense < 0:
            raise ConfigurationError("'general_expense' must be non-negative")
        return self


class IRPFConfig(ImmutableModel):
    """National scale, regional scales and allowances for income tax."""

    national_brackets: Sequence[TaxBracket]
    regions: Sequence[Region]
    personal_minimum: PersonalMinimumConfig
    work_income: WorkIncomeConfig
    default_region: str | None = None

    @model_validator(mode="after")
    def _validate_irpf(self) -> IRPFConfig:
        validate_bracket_sequence(self.national_brackets, "irpf.national_brackets")
        if not self.regions:
            raise ConfigurationError("At least one region must be configured")
        seen: set[str] = set()
        for region in self.regions:
            if region.id in seen:
                raise ConfigurationError(f"Duplicate region identifier '{region.id}'")
            seen.add(region.id)
        if self.default_region is not None and self.default_region not in seen:
            raise ConfigurationError(
                f"Default region '{self.default_region}' is not a configured region"
            )
        return self

    def get_region(self, region_id: str) -> Region:
        for region in self.regions:
            if region.id == region_id:
                return region
        raise KeyError(region_id)

    @computed_field
    @property
    def region_ids(self) -> tuple[str, ...]:
        return tuple(region.id for region in self.regions)


class ContributionSchedule(ImmutableModel):
    """Flat contribution rates keyed by contribution name."""

    items: Mapping[str, float]

    @field_validator("items", mode="before")
    @classmethod
    def _coerce_items(cls, value: Any) -> Mapping[str, float]:
        if isinstance(value, Mapping):
            return {str(key): float(rate) for key, rate in value.items()}
        raise ConfigurationError("Contribution schedules must be a mapping of rates")

    @model_validator(mode="after")
    def _validate_rates(self) -> ContributionSchedule:
        if not self.items:
            raise ConfigurationError("Contribution schedules require at least one item")
        for name, rate in self.items.items():
            if rate < 0:
                raise ConfigurationError(f"Contribution rate '{name}' must be non-negative")
        return self

    @computed_field
    @property
    def total_rate(self) -> float:
        return sum(self.items.values())


class SocialSecurityConfig(ImmutableModel):
    """Employer and employee contribution schedules."""

    employer: ContributionSchedule
    employee: ContributionSchedule
    annual_base_cap: float | None = None

    @model_validator(mode="after")
    def _validate_cap(self) -> SocialSecurityConfig:
        if self.annual_base_cap is not None and self.annual_base_cap <= 0:
            raise ConfigurationError("'annual_base_cap' must be positive when provided")
        return self


class IndirectTaxConfig(ImmutableModel):
    """VAT rates and excise constants used to decompose consumer prices."""

    vat_rates: Sequence[int] = (4, 10, 21)
    fuel_excise_per_liter: float
    default_fuel_price_per_liter: float
    electricity_rate: float
    gas_rate: float
    insurance_premium_rate: float
    alcohol_rate: float
    tobacco_rate: float
    estimates: Sequence[str] = Field(default_factory=tuple)

    @field_validator("vat_rates", "estimates", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: Any) -> Sequence[Any]:
        if value is None:
            return ()
        if isinstance(value, Iterable) and not isinstance(value, str):
            return tuple(value)
        raise ConfigurationError("Expected a list of values")

    @model_validator(mode="after")
    def _validate_rates(self) -> IndirectTaxConfig:
        if sorted(self.vat_rates) != [4, 10, 21]:
            raise ConfigurationError("VAT rates must be exactly 4, 10 and 21")
        if self.default_fuel_price_per_liter <= 0:
            raise ConfigurationError("'default_fuel_price_per_liter' must be positive")
        for field_name in (
            "fuel_excise_per_liter",
            "electricity_rate",
            "gas_rate",
            "insurance_premium_rate",
            "alcohol_rate",
            "tobacco_rate",
        ):
            if getattr(self, field_name) < 0:
                raise ConfigurationError(f"'{field_name}' must be non-negative")
        return self


class ExpenseLineConfig(ImmutableModel):
    """Catalogue entry describing how an expense line embeds its taxes."""

    id: str
    name: str
    topology: TaxTopology = TaxTopology.STANDARD
    vat_rate: int = 21
    price_per_unit: float | None = None
    special_rate: float | None = None
    note: str | None = None

    @field_validator("topology", mode="before")
    @classmethod
    def _normalise_topology(cls, value: Any) -> TaxTopology:
        try:
            return TaxTopology.parse(value)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown tax topology '{value}'") from exc

    @model_validator(mode="after")
    def _validate_line(self) -> ExpenseLineConfig:
        if self.vat_rate not in {0, 4, 10, 21}:
            raise ConfigurationError(f"Expense line '{self.id}' has an invalid VAT rate")
        if self.price_per_unit is not None and self.price_per_unit <= 0:
            raise ConfigurationError(f"Expense line '{self.id}' needs a positive unit price")
        if self.special_rate is not None and self.special_rate < 0:
            raise ConfigurationError(f"Expense line '{self.id}' has a negative special rate")
        return self


class ExpenseCategoryConfig(ImmutableModel):
    """Catalogue category grouping expense lines."""

    id: str
    name: str
    icon: str | None = None
    lines: Sequence[ExpenseLineConfig] = Field(default_factory=tuple)


class YearWarning(ImmutableModel):
    """Structured warning surfaced for a configured tax year."""

    id: str
    message_key: str
    severity: str = "info"
    applies_to: Sequence[str] = Field(default_factory=tuple)

    @field_validator("applies_to", mode="before")
    @classmethod
    def _coerce_applies_to(cls, value: Any) -> Sequence[str]:
        if value is None:
            return ()
        if isinstance(value, Iterable):
            return tuple(str(entry) for entry in value)
        raise ConfigurationError("Warning 'applies_to' must be an iterable when provided")

    @model_validator(mode="after")
    def _validate_severity(self) -> Self:
        if self.severity not in {"info", "warning", "error"}:
            raise ConfigurationError("Warning 'severity' must be one of: info, warning, error")
        return self


class YearConfiguration(ImmutableModel):
    """Structured representation of a tax year configuration."""

    year: int
    meta: Mapping[str, Any] = Field(default_factory=dict)
    irpf: IRPFConfig
    social_security: SocialSecurityConfig
    indirect_taxes: IndirectTaxConfig
    expenses: Sequence[ExpenseCategoryConfig] = Field(default_factory=tuple)
    warnings: Sequence[YearWarning] = Field(default_factory=tuple)

    @model_validator(mode="before")
    @classmethod
    def _prepare_sections(cls, data: Any) -> Mapping[str, Any]:
        if not isinstance(data, Mapping):
            raise ConfigurationError("Configuration file must define a mapping at the top level")

        prepared = dict(data)
        meta = prepared.get("meta")
        if meta is None:
            prepared["meta"] = {}
        elif not isinstance(meta, Mapping):
            raise ConfigurationError("'meta' section must be a mapping if provided")

        for section in ("irpf", "social_security", "indirect_taxes"):
            if not isinstance(prepared.get(section), Mapping):
                raise ConfigurationError(f"Configuration requires an '{section}' section")

        if prepared.get("expenses") is None:
            prepared["expenses"] = []
        if prepared.get("warnings") is None:
            prepared["warnings"] = []

        return prepared

    @model_validator(mode="after")
    def _validate_expense_ids(self) -> YearConfiguration:
        seen: set[str] = set()
        for category in self.expenses:
            for line in category.lines:
                if line.id in seen:
                    raise ConfigurationError(f"Duplicate expense line identifier '{line.id}'")
                seen.add(line.id)
        return self

    def find_expense_line(self, line_id: str) -> tuple[ExpenseCategoryConfig, ExpenseLineConfig]:
        for category in self.expenses:
            for line in category.lines:
                if line.id == line_id:
                    return category, line
        raise KeyError(line_id)


class TaxYearManifestEntry(ImmutableModel):
    """Entry describing a supported tax year in the manifest."""

    year: int
    filename: str | None = None
    status: str = "active"
    notes_url: str | None = None

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.year}.yaml"


class TaxYearManifest(ImmutableModel):
    """Manifest describing the available tax year configuration files."""

    years: Sequence[TaxYearManifestEntry]

    @model_validator(mode="after")
    def _validate_years(self) -> TaxYearManifest:
        seen: set[int] = set()
        for entry in self.years:
            if entry.year in seen:
                raise ConfigurationError(
                    f"Duplicate year {entry.year} declared in the configuration manifest"
                )
            seen.add(entry.year)
        return self

    def get_entry(self, year: int) -> TaxYearManifestEntry:
        for entry in self.years:
            if entry.year == year:
                return entry
        raise KeyError(year)

    @computed_field
    @property
    def supported_years(self) -> tuple[int, ...]:
        return tuple(sorted(entry.year for entry in self.years))


__all__ = [
    "ConfigurationError",
    "ContributionSchedule",
    "ExpenseCategoryConfig",
    "ExpenseLineConfig",
    "IRPFConfig",
    "ImmutableModel",
    "IndirectTaxConfig",
    "PersonalMinimumConfig",
    "Region",
    "RegionRegime",
    "SocialSecurityConfig",
    "TaxBracket",
    "TaxTopology",
    "TaxYearManifest",
    "TaxYearManifestEntry",
    "ValidationError",
    "WorkIncomeConfig",
    "WorkIncomeReduction",
    "YearConfiguration",
    "YearWarning",
    "validate_bracket_sequence",
]
