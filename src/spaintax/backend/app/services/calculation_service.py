"""Orchestrate request validation, normalisation, and tax calculations.

The calculation service ties together the request models, the translation
layer and the year configuration so that each engine (income tax, Social
Security, indirect taxes) stays a pure function over numbers. Profiling hooks
and input resolution live here to give the rest of the application a simple
``calculate_tax`` entry point.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from contextlib import contextmanager
from time import perf_counter
from typing import Any

from pydantic import ValidationError

from spaintax.backend.app.localization import Translator, get_translator, topology_label
from spaintax.backend.app.models import (
    BracketSlice,
    CalculationInput,
    CalculationRequest,
    CalculationResponse,
    DisplayFactors,
    ExpenseCategory,
    FiscalSummary,
    IndirectTaxResult,
    IRPFResult,
    SSResult,
    format_validation_error,
)
from spaintax.backend.config.year_config import (
    ContributionSchedule,
    Region,
    TaxTopology,
    YearConfiguration,
    default_year,
    load_year_configuration,
)

from .calculators import (
    VIEW_MODES,
    available_salary,
    build_fiscal_summary,
    calculate_indirect_taxes,
    calculate_irpf,
    calculate_social_security,
    expenses_total,
    format_currency,
    format_percentage,
    resolve_display_factors,
    round_currency,
    round_rate,
)

_LOGGER = logging.getLogger(__name__)

_SUMMARY_FIELDS = (
    "gross",
    "employer_cost",
    "employer_contributions",
    "employee_contributions",
    "irpf",
    "net_income",
    "indirect_taxes",
    "state_share",
    "user_share",
)

_ESTIMATED_TOPOLOGIES = {TaxTopology.GAS_EXCISE, TaxTopology.ALCOHOL_EXCISE}


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("SPAINTAX_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def _load_configuration(year: int) -> YearConfiguration:
    try:
        return load_year_configuration(year)
    except FileNotFoundError as exc:
        raise ValueError(f"Unsupported tax year {year}") from exc


def _resolve_region(region_id: str | None, config: YearConfiguration) -> Region:
    resolved = region_id or config.irpf.default_region
    if not resolved:
        raise ValueError("A region must be selected")
    try:
        return config.irpf.get_region(resolved)
    except KeyError:
        _LOGGER.warning("Unknown region '%s' requested for %s", resolved, config.year)
        raise ValueError(f"Unknown region '{resolved}'") from None


def _catalogue_line_payload(
    line_id: str, amount: float, config: YearConfiguration
) -> tuple[str, dict[str, Any]]:
    try:
        category, line = config.find_expense_line(line_id)
    except KeyError:
        raise ValueError(f"Unknown expense line '{line_id}'") from None

    payload: dict[str, Any] = {
        "id": line.id,
        "name": line.name,
        "amount": amount,
        "topology": line.topology.value,
        "vat_rate": line.vat_rate,
    }
    if line.price_per_unit is not None:
        payload["price_per_unit"] = line.price_per_unit
    if line.special_rate is not None:
        payload["special_rate"] = line.special_rate
    return category.id, payload


def _resolve_expenses(
    request: CalculationRequest, config: YearConfiguration
) -> tuple[ExpenseCategory, ...]:
    categories: list[ExpenseCategory] = list(request.expenses)
    if not request.expense_amounts:
        return tuple(categories)

    grouped: dict[str, list[dict[str, Any]]] = {}
    for line_id, amount in request.expense_amounts.items():
        category_id, payload = _catalogue_line_payload(line_id, amount, config)
        grouped.setdefault(category_id, []).append(payload)

    for category in config.expenses:
        lines = grouped.get(category.id)
        if not lines:
            continue
        categories.append(
            ExpenseCategory.model_validate(
                {"id": category.id, "name": category.name, "lines": lines}
            )
        )

    return tuple(categories)


def _normalise_payload(
    request: CalculationRequest, config: YearConfiguration
) -> CalculationInput:
    region = _resolve_region(request.profile.region, config)

    try:
        categories = _resolve_expenses(request, config)
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc)) from exc

    return CalculationInput(
        year=config.year,
        locale=request.locale or "es",
        profile=request.profile,
        region_id=region.id,
        categories=categories,
        view_mode=request.view_mode,
        options=request.options,
    )


def _slice_payload(slice_: BracketSlice) -> dict[str, Any]:
    return {
        "lower": round_currency(slice_.lower),
        "upper": None if slice_.upper is None else round_currency(slice_.upper),
        "rate": round_rate(slice_.rate),
        "rate_label": format_percentage(slice_.rate),
        "taxable": round_currency(slice_.taxable),
        "tax": round_currency(slice_.tax),
        "fill_ratio": round_rate(slice_.fill_ratio),
        "active": slice_.active,
    }


def _summary_payload(summary: FiscalSummary, translator: Translator) -> dict[str, Any]:
    payload: dict[str, Any] = {
        name: round_currency(getattr(summary, name)) for name in _SUMMARY_FIELDS
    }
    payload["state_share_rate"] = round_rate(summary.state_share_rate)
    payload["user_share_rate"] = round_rate(summary.user_share_rate)
    payload["labels"] = {name: translator(f"summary.{name}") for name in _SUMMARY_FIELDS}
    return payload


def _irpf_payload(
    irpf: IRPFResult, region: Region, translator: Translator
) -> dict[str, Any]:
    return {
        "label": translator("irpf.label"),
        "region": region.id,
        "region_name": region.name,
        "regime": irpf.regime.value,
        "gross_income": round_currency(irpf.gross_income),
        "deductible_expenses": round_currency(irpf.deductible_expenses),
        "work_income_reduction": round_currency(irpf.work_income_reduction),
        "exempt_minimum": round_currency(irpf.exempt_minimum),
        "taxable_income": round_currency(irpf.taxable_income),
        "national_tax": round_currency(irpf.national_tax),
        "regional_tax": round_currency(irpf.regional_tax),
        "annual_amount": round_currency(irpf.annual_amount),
        "effective_rate": round_rate(irpf.effective_rate),
        "brackets": {
            "national": [_slice_payload(entry) for entry in irpf.national_brackets],
            "regional": [_slice_payload(entry) for entry in irpf.regional_brackets],
        },
    }


def _contributions_payload(
    side: str,
    result: SSResult,
    schedule: ContributionSchedule,
    translator: Translator,
) -> dict[str, Any]:
    return {
        "label": translator(f"social_security.{side}"),
        "base": round_currency(result.base),
        "rate": round_rate(schedule.total_rate),
        "items": {name: round_currency(amount) for name, amount in result.per_item.items()},
        "item_labels": {
            name: translator(f"social_security.items.{name}") for name in result.per_item
        },
        "total": round_currency(result.total),
    }


def _indirect_payload(
    result: IndirectTaxResult, monthly_expenses: float, translator: Translator
) -> dict[str, Any]:
    return {
        "label": translator("indirect.label"),
        "vat4": round_currency(result.vat4),
        "vat10": round_currency(result.vat10),
        "vat21": round_currency(result.vat21),
        "fuel_excise": round_currency(result.fuel_excise),
        "insurance_premium_tax": round_currency(result.insurance_premium_tax),
        "electricity_excise": round_currency(result.electricity_excise),
        "other_excise": round_currency(result.other_excise),
        "other_direct_taxes": round_currency(result.other_direct_taxes),
        "total": round_currency(result.total),
        "annual_total": round_currency(result.total * 12),
        "expenses_total": round_currency(monthly_expenses),
        "lines": [
            {
                "category": line.category,
                "id": line.id,
                "name": line.name,
                "amount": round_currency(line.amount),
                "vat_rate": line.vat_rate,
                "vat": round_currency(line.vat),
                "special": round_currency(line.special),
                "topology": line.topology.value,
                "label": topology_label(line.topology, translator),
            }
            for line in result.lines
        ],
    }


def _display_payload(
    summary: FiscalSummary,
    indirect: IndirectTaxResult,
    monthly_expenses: float,
    factors: DisplayFactors,
) -> dict[str, Any]:
    salary = factors.salary
    values = {
        "gross": summary.gross * salary,
        "employer_cost": summary.employer_cost * salary,
        "employer_contributions": summary.employer_contributions * salary,
        "employee_contributions": summary.employee_contributions * salary,
        "irpf": summary.irpf * salary,
        "net_income": summary.net_income * salary,
        "expenses": monthly_expenses * factors.expenses,
        "indirect_taxes": indirect.total * factors.expenses,
        "available_salary": available_salary(summary, monthly_expenses, factors),
    }

    payload: dict[str, Any] = {
        "view_mode": factors.view_mode,
        "payments_per_year": factors.payments_per_year,
        "salary_factor": round_rate(factors.salary),
        "expense_factor": round_rate(factors.expenses),
    }
    payload.update({name: round_currency(value) for name, value in values.items()})
    payload["formatted"] = {name: format_currency(value) for name, value in values.items()}
    return payload


def _collect_warnings(
    normalised: CalculationInput,
    config: YearConfiguration,
    indirect: IndirectTaxResult,
    translator: Translator,
) -> list[dict[str, str]]:
    profile = normalised.profile
    active: set[str] = set()

    if profile.marital_status != "single" or profile.disability != "none":
        active.add("irpf")
    if any(line.topology in _ESTIMATED_TOPOLOGIES for line in indirect.lines):
        active.add("indirect_taxes")
    cap = config.social_security.annual_base_cap
    if (
        cap is not None
        and not normalised.options.apply_contribution_cap
        and normalised.gross_income > cap
    ):
        active.add("social_security")

    warnings: list[dict[str, str]] = []
    for warning in config.warnings:
        if not active.intersection(warning.applies_to):
            continue
        warnings.append(
            {
                "id": warning.id,
                "severity": warning.severity,
                "message": translator(warning.message_key),
            }
        )
    return warnings


def _validate_request(payload: Mapping[str, Any] | CalculationRequest) -> CalculationRequest:
    if isinstance(payload, CalculationRequest):
        source: Any = payload.model_dump(mode="python")
    elif isinstance(payload, Mapping):
        source = payload
    else:
        raise ValueError("Payload must be a mapping")

    try:
        return CalculationRequest.model_validate(source)
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc)) from exc


def calculate_tax(
    payload: Mapping[str, Any] | CalculationRequest,
) -> dict[str, Any]:
    """Compute the fiscal breakdown for the provided payload."""

    request_model = _validate_request(payload)

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    year = request_model.year if request_model.year is not None else default_year()
    config = _load_configuration(year)

    with _profile_section("normalise_payload", timings):
        normalised = _normalise_payload(request_model, config)

    translator = get_translator(normalised.locale)
    region = config.irpf.get_region(normalised.region_id)
    options = normalised.options
    gross = normalised.gross_income
    social_security = config.social_security
    base_cap = social_security.annual_base_cap if options.apply_contribution_cap else None

    with _profile_section("social_security", timings):
        employer = calculate_social_security(gross, social_security.employer, base_cap=base_cap)
        employee = calculate_social_security(gross, social_security.employee, base_cap=base_cap)

    with _profile_section("irpf", timings):
        irpf = calculate_irpf(
            gross,
            normalised.profile,
            region,
            config.irpf,
            employee_contributions=employee.total,
            apply_work_income_deductions=options.apply_work_income_deductions,
        )

    with _profile_section("indirect_taxes", timings):
        indirect = calculate_indirect_taxes(normalised.categories, config.indirect_taxes)
        monthly_expenses = expenses_total(normalised.categories)

    with _profile_section("aggregation", timings):
        summary = build_fiscal_summary(gross, irpf, employer, employee, indirect)
        factors = resolve_display_factors(normalised.view_mode, normalised.payments_per_year)

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_tax timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    meta_payload: dict[str, Any] = {
        "year": normalised.year,
        "locale": translator.locale,
        "region": region.id,
        "view_mode": normalised.view_mode,
        "options": options.model_dump(),
        "warnings": _collect_warnings(normalised, config, indirect, translator),
    }

    response_model = CalculationResponse.model_validate(
        {
            "summary": _summary_payload(summary, translator),
            "irpf": _irpf_payload(irpf, region, translator),
            "social_security": {
                "employer": _contributions_payload(
                    "employer", employer, social_security.employer, translator
                ),
                "employee": _contributions_payload(
                    "employee", employee, social_security.employee, translator
                ),
                "capped": base_cap is not None and gross > base_cap,
            },
            "indirect_taxes": _indirect_payload(indirect, monthly_expenses, translator),
            "display": _display_payload(summary, indirect, monthly_expenses, factors),
            "meta": meta_payload,
        }
    )

    return response_model.model_dump(mode="json")


def supported_view_modes() -> Sequence[str]:
    """Return the view modes accepted by :func:`calculate_tax`."""

    return VIEW_MODES


__all__ = ["calculate_tax", "supported_view_modes"]
