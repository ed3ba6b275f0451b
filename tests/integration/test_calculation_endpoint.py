"""Integration tests for the tax calculation REST endpoint."""

from __future__ import annotations

import json
from http import HTTPStatus
from pathlib import Path
from typing import Dict, Iterable

import pytest
from flask.testing import FlaskClient

DATA_PATH = Path(__file__).resolve().parents[1] / "data" / "regression_scenarios.json"
SECTIONS = ("summary", "irpf", "indirect_taxes", "display")


def _load_scenarios() -> Iterable[Dict[str, object]]:
    with DATA_PATH.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@pytest.mark.parametrize("scenario", _load_scenarios(), ids=lambda item: item["name"])
def test_calculation_endpoint_matches_regression_scenarios(
    client: FlaskClient, scenario: Dict[str, object]
) -> None:
    """Each regression scenario should remain stable over time."""

    response = client.post("/api/v1/calculations", json=scenario["payload"])
    assert response.status_code == HTTPStatus.OK
    assert response.headers["X-Tax-Year"] == "2025"

    result = response.get_json()
    expected = scenario["expectations"]

    for section in SECTIONS:
        for key, value in expected.get(section, {}).items():
            assert result[section][key] == pytest.approx(value), f"{section}.{key}"


def test_calculation_endpoint_uses_accept_language_header(client: FlaskClient) -> None:
    """Accept-Language header should influence locale if body omits it."""

    response = client.post(
        "/api/v1/calculations",
        json={"profile": {"gross_income": 30_000, "region": "madrid"}},
        headers={"Accept-Language": "en-US,en;q=0.9"},
    )

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload["meta"]["locale"] == "en"
    assert payload["summary"]["labels"]["net_income"] == "Net salary"


def test_calculation_endpoint_view_query_parameter(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations?view=monthly",
        json={"profile": {"gross_income": 30_000, "region": "madrid"}},
    )

    assert response.status_code == HTTPStatus.OK
    display = response.get_json()["display"]
    assert display["view_mode"] == "monthly"
    assert display["net_income"] == pytest.approx(1_905.77)


def test_calculation_endpoint_preserves_response_key_order(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations",
        json={"profile": {"gross_income": 30_000}},
    )

    summary = response.get_json()["summary"]
    assert list(summary)[:3] == ["gross", "employer_cost", "employer_contributions"]


def test_calculation_endpoint_returns_bad_request_for_non_json(client: FlaskClient) -> None:
    """Malformed bodies should return a structured 400 response."""

    response = client.post(
        "/api/v1/calculations",
        data="not-json",
        content_type="text/plain",
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    payload = response.get_json()
    assert payload["error"] == "bad_request"
    assert payload["status"] == 400
    assert "JSON" in payload["message"].upper()


def test_calculation_endpoint_requires_profile(client: FlaskClient) -> None:
    response = client.post("/api/v1/calculations", json={"year": 2025})

    assert response.status_code == HTTPStatus.BAD_REQUEST
    payload = response.get_json()
    assert payload["error"] == "bad_request"
    assert "profile" in payload["message"]


def test_calculation_endpoint_handles_validation_errors(client: FlaskClient) -> None:
    """Domain validation errors should surface as 400 responses."""

    response = client.post(
        "/api/v1/calculations",
        json={"year": 2025, "profile": {"gross_income": -1, "children": -2}},
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    payload = response.get_json()
    assert payload["error"] == "validation_error"
    assert "cannot be negative" in payload["message"].lower()
    assert "profile.gross_income: value cannot be negative" in payload["details"]
    assert len(payload["details"]) == 2


@pytest.mark.parametrize(
    ("raw_body", "field"),
    [
        ('{"profile": {"gross_income": 1e400}}', "profile.gross_income"),
        (
            '{"profile": {"gross_income": 30000},'
            ' "expenses": [{"id": "a", "lines": [{"amount": NaN}]}]}',
            "amount",
        ),
    ],
)
def test_calculation_endpoint_rejects_non_finite_amounts(
    client: FlaskClient, raw_body: str, field: str
) -> None:
    response = client.post(
        "/api/v1/calculations", data=raw_body, content_type="application/json"
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    payload = response.get_json()
    assert payload["error"] == "validation_error"
    assert payload["message"].startswith("Invalid calculation payload: ")
    assert "finite number" in payload["message"]
    assert any(field in detail for detail in payload["details"])


@pytest.mark.parametrize(
    ("body", "fragment"),
    [
        ({"profile": {"gross_income": 1, "region": "atlantis"}}, "Unknown region"),
        ({"year": 1999, "profile": {"gross_income": 1}}, "Unsupported tax year"),
        (
            {"profile": {"gross_income": 1}, "expense_amounts": {"yacht": 10}},
            "Unknown expense line",
        ),
    ],
)
def test_calculation_endpoint_rejects_unknown_references(
    client: FlaskClient, body: Dict[str, object], fragment: str
) -> None:
    response = client.post("/api/v1/calculations", json=body)

    assert response.status_code == HTTPStatus.BAD_REQUEST
    payload = response.get_json()
    assert payload["error"] == "validation_error"
    assert fragment in payload["message"]
    assert "details" not in payload


def test_calculation_endpoint_reports_warnings(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/calculations",
        json={
            "locale": "es",
            "profile": {"gross_income": 80_000, "marital_status": "married_working"},
            "expense_amounts": {"gas": 40},
        },
    )

    assert response.status_code == HTTPStatus.OK
    warnings = response.get_json()["meta"]["warnings"]
    assert {warning["id"] for warning in warnings} == {
        "irpf.family_status_not_modelled",
        "indirect.approximate_excise_rates",
        "social_security.no_contribution_cap",
    }
    assert all(warning["message"] for warning in warnings)
