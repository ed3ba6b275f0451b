"""Shared translation helpers bridging backend services and static catalogues."""

from .catalog import (
    Translator,
    get_translator,
    load_translations,
    normalise_locale,
    topology_label,
)

__all__ = [
    "Translator",
    "get_translator",
    "load_translations",
    "normalise_locale",
    "topology_label",
]
