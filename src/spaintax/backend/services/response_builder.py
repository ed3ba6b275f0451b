"""Utilities for serialising calculation responses."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Tuple

from flask import jsonify

ResponseTuple = Tuple[Any, int]


def build_calculation_response(payload: Mapping[str, Any]) -> ResponseTuple:
    """Return a Flask JSON response for the calculation ``payload``.

    The tax year is echoed in a header so caches and clients can tell results
    computed against different tables apart.
    """

    response = jsonify(payload)
    meta = payload.get("meta")
    if isinstance(meta, Mapping) and "year" in meta:
        response.headers["X-Tax-Year"] = str(meta["year"])
    return response, 200
