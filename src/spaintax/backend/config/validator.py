"""Utilities for validating year configuration data and surfacing issues."""

from __future__ import annotations

import argparse
import logging
from typing import Iterable, Sequence

from .year_config import (
    ConfigurationError,
    ContributionSchedule,
    ExpenseCategoryConfig,
    IndirectTaxConfig,
    IRPFConfig,
    SocialSecurityConfig,
    TaxBracket,
    TaxTopology,
    YearConfiguration,
    YearWarning,
    available_years,
    load_year_configuration,
)

_LOGGER = logging.getLogger(__name__)

# Topologies that never carry VAT; catalogue lines using them must declare
# ``vat_rate: 0`` and every other topology needs a non-zero rate.
_ZERO_VAT_TOPOLOGIES = {
    TaxTopology.EXEMPT,
    TaxTopology.DIRECT_TAX,
    TaxTopology.INSURANCE_PREMIUM,
}


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_brackets(scope: str, brackets: Sequence[TaxBracket]) -> list[str]:
    errors: list[str] = []

    for index, bracket in enumerate(brackets):
        if bracket.rate < 0 or bracket.rate > 1:
            errors.append(
                _format_scope(
                    scope,
                    f"bracket {index} rate {bracket.rate} must be between 0 and 1",
                )
            )

    rates = [bracket.rate for bracket in brackets]
    if rates != sorted(rates):
        errors.append(_format_scope(scope, "bracket rates should not decrease"))

    return errors


def _validate_irpf(irpf: IRPFConfig) -> list[str]:
    errors: list[str] = []

    errors.extend(_validate_brackets("irpf.national_brackets", irpf.national_brackets))
    for region in irpf.regions:
        errors.extend(_validate_brackets(f"irpf.regions.{region.id}", region.brackets))
        if not region.name.strip():
            errors.append(_format_scope(f"irpf.regions.{region.id}", "name must not be empty"))

    if irpf.default_region is None:
        errors.append(_format_scope("irpf", "a default region should be declared"))

    minimum = irpf.personal_minimum
    if not minimum.per_child:
        errors.append(
            _format_scope("irpf.personal_minimum", "per_child should list at least one amount")
        )

    reduction = irpf.work_income.reduction
    if reduction.reduction_at_threshold_2 > reduction.full_reduction:
        errors.append(
            _format_scope(
                "irpf.work_income.reduction",
                "reduction at threshold 2 cannot exceed the full reduction",
            )
        )

    return errors


def _validate_schedule(scope: str, schedule: ContributionSchedule) -> list[str]:
    errors: list[str] = []

    for name, rate in schedule.items.items():
        if rate < 0 or rate > 1:
            errors.append(
                _format_scope(scope, f"contribution rate '{name}' must be between 0 and 1")
            )

    if schedule.total_rate >= 1:
        errors.append(_format_scope(scope, "combined contribution rate must stay below 1"))

    return errors


def _validate_social_security(config: SocialSecurityConfig) -> list[str]:
    errors: list[str] = []
    errors.extend(_validate_schedule("social_security.employer", config.employer))
    errors.extend(_validate_schedule("social_security.employee", config.employee))
    return errors


def _validate_indirect_taxes(config: IndirectTaxConfig) -> list[str]:
    errors: list[str] = []

    for field_name in (
        "electricity_rate",
        "gas_rate",
        "insurance_premium_rate",
        "alcohol_rate",
        "tobacco_rate",
    ):
        value = getattr(config, field_name)
        if value > 1:
            errors.append(
                _format_scope("indirect_taxes", f"'{field_name}' must be between 0 and 1")
            )

    if config.fuel_excise_per_liter >= config.default_fuel_price_per_liter:
        errors.append(
            _format_scope(
                "indirect_taxes",
                "fuel excise per litre must be lower than the default fuel price",
            )
        )

    known_fields = set(IndirectTaxConfig.model_fields)
    for entry in config.estimates:
        if entry not in known_fields:
            errors.append(
                _format_scope("indirect_taxes.estimates", f"unknown rate '{entry}' flagged")
            )

    return errors


def _validate_expenses(categories: Sequence[ExpenseCategoryConfig]) -> list[str]:
    errors: list[str] = []
    seen_ids: set[str] = set()

    if not categories:
        errors.append(_format_scope("expenses", "no expense categories defined"))

    for category in categories:
        scope = f"expenses.{category.id}"
        if category.id in seen_ids:
            errors.append(
                _format_scope("expenses", f"duplicate category identifier '{category.id}' detected")
            )
        else:
            seen_ids.add(category.id)

        if not category.lines:
            errors.append(_format_scope(scope, "category defines no expense lines"))

        for line in category.lines:
            if line.topology in _ZERO_VAT_TOPOLOGIES and line.vat_rate != 0:
                errors.append(
                    _format_scope(
                        f"{scope}.{line.id}",
                        f"'{line.topology.value}' lines must not declare VAT",
                    )
                )
            if line.topology not in _ZERO_VAT_TOPOLOGIES and line.vat_rate == 0:
                errors.append(
                    _format_scope(
                        f"{scope}.{line.id}",
                        f"'{line.topology.value}' lines require a VAT rate",
                    )
                )
            if line.special_rate is not None and line.special_rate > 1:
                errors.append(
                    _format_scope(
                        f"{scope}.{line.id}",
                        "special rate must be between 0 and 1",
                    )
                )

    return errors


def _validate_warnings(warnings: Iterable[YearWarning]) -> list[str]:
    errors: list[str] = []
    seen_ids: set[str] = set()

    for warning in warnings:
        if warning.id in seen_ids:
            errors.append(
                _format_scope(
                    "warnings",
                    f"duplicate warning identifier '{warning.id}' detected",
                )
            )
        else:
            seen_ids.add(warning.id)

        for target in warning.applies_to:
            if not target.strip():
                errors.append(
                    _format_scope(
                        f"warnings.{warning.id}",
                        "applies_to entries must be non-empty strings",
                    )
                )

    return errors


def validate_year_configuration(config: YearConfiguration) -> list[str]:
    """Return a list of validation issues for the provided configuration."""

    errors: list[str] = []

    errors.extend(_validate_irpf(config.irpf))
    errors.extend(_validate_social_security(config.social_security))
    errors.extend(_validate_indirect_taxes(config.indirect_taxes))
    errors.extend(_validate_expenses(config.expenses))
    errors.extend(_validate_warnings(config.warnings))

    return errors


def validate_all_years(years: Sequence[int] | None = None) -> dict[int, list[str]]:
    """Validate all configured years and return issues keyed by year."""

    targets = years or available_years()
    results: dict[int, list[str]] = {}

    for year in targets:
        config = load_year_configuration(year)
        results[int(year)] = validate_year_configuration(config)
        _LOGGER.debug("Validated %s with %d issue(s)", year, len(results[int(year)]))

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Validate configured tax years and report issues helpful to contributors."
        )
    )
    parser.add_argument(
        "years",
        nargs="*",
        type=int,
        help="Specific years to validate (defaults to all configured years)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    years = args.years or available_years()

    if not years:
        parser.print_help()
        return 1

    exit_code = 0

    for year in years:
        try:
            config = load_year_configuration(year)
        except (FileNotFoundError, ConfigurationError) as error:
            print(f"[{year}] failed to load configuration: {error}")
            exit_code = 1
            continue

        issues = validate_year_configuration(config)
        if issues:
            exit_code = 1
            print(f"[{year}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{year}] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
