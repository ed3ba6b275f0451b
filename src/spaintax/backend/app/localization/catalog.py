"""Translation catalogue helpers backed by shared JSON resources."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import cache
from importlib import resources
from typing import Any, Mapping

from spaintax.backend.config.year_config import TaxTopology

_LOGGER = logging.getLogger(__name__)

_BASE_LOCALE = "en"
_TRANSLATIONS_PACKAGE = "spaintax.translations"


@dataclass(frozen=True)
class Translator:
    """Callable helper for retrieving localized strings."""

    locale: str
    _messages: Mapping[str, str]
    _fallback: Mapping[str, str]

    def __call__(self, key: str) -> str:
        return self._messages.get(key) or self._fallback.get(key, key)


@dataclass(frozen=True)
class Catalogue:
    """Representation of a locale catalogue backed by the shared resources."""

    locale: str
    messages: Mapping[str, str]
    regions: Mapping[str, str]


def _flatten(prefix: str, value: Any, target: dict[str, str]) -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}.{key}" if prefix else str(key), item, target)
    else:
        target[prefix] = str(value)


@cache
def _available_locales() -> tuple[str, ...]:
    """Return the set of locales with published translation payloads."""

    root = resources.files(_TRANSLATIONS_PACKAGE)
    locales = sorted(
        entry.name.removesuffix(".json")
        for entry in root.iterdir()
        if entry.name.endswith(".json")
    )
    return tuple(locales) or (_BASE_LOCALE,)


@cache
def _read_catalogue_payload(locale: str) -> dict[str, Any]:
    """Load the raw translation payload for the requested locale."""

    resource = resources.files(_TRANSLATIONS_PACKAGE).joinpath(f"{locale}.json")
    if not resource.is_file():
        _LOGGER.warning("Translation catalogue for '%s' is missing", locale)
        return {"messages": {}, "regions": {}}

    with resource.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    messages = payload.get("messages") or {}
    regions = payload.get("regions") or {}
    if not isinstance(messages, dict) or not isinstance(regions, dict):
        raise ValueError(f"Translation catalogue '{locale}' must contain objects")

    return {"messages": messages, "regions": regions}


@cache
def _load_catalogue(locale: str) -> Catalogue:
    """Return a cached catalogue representation for the locale."""

    payload = _read_catalogue_payload(locale)
    messages: dict[str, str] = {}
    _flatten("", payload["messages"], messages)
    regions = {str(key): str(value) for key, value in payload["regions"].items()}
    return Catalogue(locale=locale, messages=messages, regions=regions)


def normalise_locale(locale: str | None) -> str:
    """Normalise requested locale to a supported catalogue key."""

    if not locale:
        return _BASE_LOCALE

    normalized = locale.strip().lower().replace("_", "-").split("-")[0]
    return normalized if normalized in _available_locales() else _BASE_LOCALE


def get_translator(locale: str | None = None) -> Translator:
    """Return a translator instance for the requested locale."""

    normalized = normalise_locale(locale)
    catalogue = _load_catalogue(normalized)
    fallback = _load_catalogue(_BASE_LOCALE)
    fallback_messages = fallback.messages if normalized != _BASE_LOCALE else catalogue.messages

    return Translator(
        locale=catalogue.locale,
        _messages=catalogue.messages,
        _fallback=fallback_messages,
    )


def load_translations(locale: str | None = None) -> dict[str, Any]:
    """Expose the flattened messages and region names for API consumers."""

    normalized = normalise_locale(locale)
    catalogue = _load_catalogue(normalized)
    fallback = _load_catalogue(_BASE_LOCALE)

    return {
        "locale": normalized,
        "available_locales": list(_available_locales()),
        "messages": dict(catalogue.messages),
        "regions": dict(catalogue.regions),
        "fallback": {
            "locale": _BASE_LOCALE,
            "messages": dict(fallback.messages),
        },
    }


def topology_label(topology: TaxTopology, translator: Translator) -> str | None:
    """Return the localized tax name for ``topology``; plain VAT lines have none."""

    if topology is TaxTopology.STANDARD:
        return None
    return translator(f"indirect.topology.{topology.value}")


__all__ = [
    "Translator",
    "Catalogue",
    "get_translator",
    "load_translations",
    "normalise_locale",
    "topology_label",
]
