"""Expose configuration metadata consumed by API clients.

These endpoints bridge the YAML-backed year configuration and client forms so
that region pickers, expense catalogues and rate tables can be populated
without duplicating the tables on the client.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from flask import Blueprint, jsonify, request

from spaintax.backend.app.http import ProblemResponse, problem_response
from spaintax.backend.app.localization import (
    Translator,
    get_translator,
    normalise_locale,
    topology_label,
)
from spaintax.backend.app.services.calculators import format_percentage
from spaintax.backend.config.year_config import (
    ContributionSchedule,
    ConfigurationError,
    TaxBracket,
    TaxTopology,
    YearConfiguration,
    available_years,
    load_manifest,
    load_year_configuration,
)
from spaintax.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")


@dataclass(frozen=True)
class YearRouteContext:
    """Common context shared by year-scoped configuration endpoints."""

    year: int
    locale: str
    translator: Translator
    configuration: YearConfiguration


def _build_year_context(year: int, locale_hint: str | None) -> YearRouteContext | ProblemResponse:
    """Resolve configuration and localisation helpers for a given year."""

    try:
        configuration = load_year_configuration(year)
    except FileNotFoundError as exc:
        return problem_response("not_found", status=404, message=str(exc))
    except ConfigurationError as exc:  # pragma: no cover - caught by the validator first
        return problem_response("configuration_error", status=500, message=str(exc))

    locale = normalise_locale(locale_hint)
    translator = get_translator(locale)
    return YearRouteContext(
        year=year,
        locale=translator.locale,
        translator=translator,
        configuration=configuration,
    )


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the configuration manifest."""

    manifest = load_manifest()
    supported_years = list(manifest.supported_years)
    default_year = supported_years[-1] if supported_years else None
    return {
        "version": get_project_version(),
        "supported_years": supported_years,
        "default_year": default_year,
    }


def _serialise_brackets(brackets: Sequence[TaxBracket]) -> list[dict[str, Any]]:
    return [
        {
            "upper": bracket.upper_bound,
            "rate": bracket.rate,
            "rate_label": format_percentage(bracket.rate),
        }
        for bracket in brackets
    ]


def _serialise_schedule(
    schedule: ContributionSchedule, translator: Translator
) -> dict[str, Any]:
    return {
        "items": [
            {
                "id": name,
                "label": translator(f"social_security.items.{name}"),
                "rate": rate,
            }
            for name, rate in schedule.items.items()
        ],
        "total_rate": round(schedule.total_rate, 6),
    }


def _serialise_year(year: int) -> dict[str, Any]:
    config = load_year_configuration(year)
    irpf = config.irpf
    return {
        "year": year,
        "meta": dict(config.meta),
        "default_region": irpf.default_region,
        "regions": list(irpf.region_ids),
        "expense_categories": [category.id for category in config.expenses],
        "warnings": [
            {
                "id": warning.id,
                "message_key": warning.message_key,
                "severity": warning.severity,
                "applies_to": list(warning.applies_to),
            }
            for warning in config.warnings
        ],
    }


@blueprint.get("/meta")
def get_application_metadata() -> tuple[Any, int]:
    """Expose lightweight application metadata such as the version identifier."""

    payload = get_configuration_metadata()
    return jsonify(payload), 200


@blueprint.get("/years")
def list_years() -> tuple[Any, int]:
    """Return all configured years with lightweight metadata."""

    years = [_serialise_year(year) for year in available_years()]
    metadata = get_configuration_metadata()
    payload = {
        "years": years,
        "default_year": metadata["default_year"],
        "supported_years": metadata["supported_years"],
    }
    return jsonify(payload), 200


@blueprint.get("/<int:year>/regions")
def get_regions(year: int) -> tuple[Any, int]:
    """Expose the regional income tax scales alongside the national one."""

    context = _build_year_context(year, request.args.get("locale"))
    if isinstance(context, ProblemResponse):
        return context.to_response()

    irpf = context.configuration.irpf
    minimum = irpf.personal_minimum
    payload = {
        "year": context.year,
        "locale": context.locale,
        "default_region": irpf.default_region,
        "national_brackets": _serialise_brackets(irpf.national_brackets),
        "personal_minimum": {
            "base": minimum.base,
            "per_child": list(minimum.per_child),
            "per_child_under_3": minimum.per_child_under_3,
        },
        "regions": [
            {
                "id": region.id,
                "name": region.name,
                "regime": region.regime.value,
                "regime_label": context.translator(f"irpf.regime.{region.regime.value}"),
                "brackets": _serialise_brackets(region.brackets),
            }
            for region in irpf.regions
        ],
    }
    return jsonify(payload), 200


@blueprint.get("/<int:year>/expenses")
def get_expense_catalogue(year: int) -> tuple[Any, int]:
    """Expose the expense catalogue with each line's tax topology."""

    context = _build_year_context(year, request.args.get("locale"))
    if isinstance(context, ProblemResponse):
        return context.to_response()

    defaults = context.configuration.indirect_taxes
    categories: list[dict[str, Any]] = []
    for category in context.configuration.expenses:
        lines: list[dict[str, Any]] = []
        for line in category.lines:
            entry: dict[str, Any] = {
                "id": line.id,
                "name": line.name,
                "topology": line.topology.value,
                "label": topology_label(line.topology, context.translator),
                "vat_rate": line.vat_rate,
            }
            if line.topology is TaxTopology.FUEL_EXCISE:
                entry["price_per_unit"] = (
                    line.price_per_unit or defaults.default_fuel_price_per_liter
                )
            if line.special_rate is not None:
                entry["special_rate"] = line.special_rate
            if line.note:
                entry["note"] = line.note
            lines.append(entry)

        categories.append(
            {
                "id": category.id,
                "name": category.name,
                "icon": category.icon,
                "lines": lines,
            }
        )

    payload = {"year": context.year, "locale": context.locale, "categories": categories}
    return jsonify(payload), 200


@blueprint.get("/<int:year>/social-security")
def get_social_security(year: int) -> tuple[Any, int]:
    """Expose employer and employee contribution schedules."""

    context = _build_year_context(year, request.args.get("locale"))
    if isinstance(context, ProblemResponse):
        return context.to_response()

    config = context.configuration.social_security
    payload = {
        "year": context.year,
        "locale": context.locale,
        "employer": _serialise_schedule(config.employer, context.translator),
        "employee": _serialise_schedule(config.employee, context.translator),
        "annual_base_cap": config.annual_base_cap,
    }
    return jsonify(payload), 200


@blueprint.get("/<int:year>/indirect-taxes")
def get_indirect_taxes(year: int) -> tuple[Any, int]:
    """Expose VAT rates and excise constants, flagging approximate values."""

    context = _build_year_context(year, request.args.get("locale"))
    if isinstance(context, ProblemResponse):
        return context.to_response()

    config = context.configuration.indirect_taxes
    rates: Mapping[str, Any] = config.model_dump(exclude={"vat_rates", "estimates"})
    estimates = set(config.estimates)
    payload = {
        "year": context.year,
        "locale": context.locale,
        "vat_rates": list(config.vat_rates),
        "rates": [
            {"id": name, "value": value, "estimate": name in estimates}
            for name, value in rates.items()
        ],
        "topologies": [
            {
                "id": topology.value,
                "label": topology_label(topology, context.translator),
            }
            for topology in TaxTopology
        ],
    }
    return jsonify(payload), 200
