"""Integration coverage for configuration metadata endpoints."""

from http import HTTPStatus

import pytest
from flask.testing import FlaskClient

from spaintax.backend.config import year_config
from spaintax.backend.version import get_project_version


def test_meta_endpoint(client: FlaskClient) -> None:
    response = client.get("/api/v1/config/meta")

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload == {
        "version": get_project_version(),
        "supported_years": [2025],
        "default_year": 2025,
    }


def test_list_years_endpoint(client: FlaskClient) -> None:
    response = client.get("/api/v1/config/years")

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload["default_year"] == 2025
    assert payload["supported_years"] == list(year_config.available_years())

    current_year = next(entry for entry in payload["years"] if entry["year"] == 2025)
    assert current_year["default_region"] == "madrid"
    assert len(current_year["regions"]) == 19
    assert "local_taxes" in current_year["expense_categories"]
    assert current_year["meta"]["currency"] == "EUR"
    assert current_year["meta"]["defaults"]["view_mode"] == "annual"

    warning_ids = {entry["id"] for entry in current_year["warnings"]}
    assert "social_security.no_contribution_cap" in warning_ids


def test_regions_endpoint(client: FlaskClient) -> None:
    response = client.get("/api/v1/config/2025/regions?locale=en")

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload["locale"] == "en"
    assert payload["national_brackets"][0] == {
        "upper": 12_450,
        "rate": pytest.approx(0.095),
        "rate_label": "9.50%",
    }
    assert payload["national_brackets"][-1]["upper"] is None
    assert payload["personal_minimum"]["base"] == 5_550

    regions = {entry["id"]: entry for entry in payload["regions"]}
    assert regions["navarra"]["regime"] == "foral"
    assert regions["navarra"]["regime_label"] == "Foral regime (own scale)"
    assert regions["madrid"]["regime"] == "common"
    assert regions["madrid"]["brackets"][-1]["upper"] is None


def test_expenses_endpoint(client: FlaskClient) -> None:
    response = client.get("/api/v1/config/2025/expenses?locale=es")

    assert response.status_code == HTTPStatus.OK
    categories = {entry["id"]: entry for entry in response.get_json()["categories"]}
    assert len(categories) == 8

    transport = {line["id"]: line for line in categories["transport"]["lines"]}
    assert transport["fuel"]["topology"] == "fuel_excise"
    assert transport["fuel"]["price_per_unit"] == pytest.approx(1.60)
    assert transport["insurance_car"]["special_rate"] == pytest.approx(0.06)
    assert transport["taxi"]["label"] is None

    home = {line["id"]: line for line in categories["home"]["lines"]}
    assert home["rent"]["topology"] == "exempt"
    assert "note" in home["rent"]


def test_social_security_endpoint(client: FlaskClient) -> None:
    response = client.get("/api/v1/config/2025/social-security?locale=en")

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload["employer"]["total_rate"] == pytest.approx(0.3207)
    assert payload["employee"]["total_rate"] == pytest.approx(0.0648)
    assert payload["annual_base_cap"] == pytest.approx(58_914)
    labels = {item["id"]: item["label"] for item in payload["employee"]["items"]}
    assert labels["unemployment"] == "Unemployment"


def test_indirect_taxes_endpoint(client: FlaskClient) -> None:
    response = client.get("/api/v1/config/2025/indirect-taxes")

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload["vat_rates"] == [4, 10, 21]

    rates = {entry["id"]: entry for entry in payload["rates"]}
    assert rates["tobacco_rate"]["estimate"] is True
    assert rates["electricity_rate"]["estimate"] is False
    assert rates["fuel_excise_per_liter"]["value"] == pytest.approx(0.4007)

    topologies = {entry["id"] for entry in payload["topologies"]}
    assert topologies == {topology.value for topology in year_config.TaxTopology}


@pytest.mark.parametrize(
    "path", ["regions", "expenses", "social-security", "indirect-taxes"]
)
def test_unknown_year_returns_not_found(client: FlaskClient, path: str) -> None:
    response = client.get(f"/api/v1/config/1999/{path}")

    assert response.status_code == HTTPStatus.NOT_FOUND
    payload = response.get_json()
    assert payload["error"] == "not_found"
    assert "1999" in payload["message"]
