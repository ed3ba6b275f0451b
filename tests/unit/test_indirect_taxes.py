"""Unit tests for recovering embedded VAT and excise duties."""

from __future__ import annotations

from typing import Any

import pytest

from spaintax.backend.app.models import ExpenseCategory
from spaintax.backend.app.services.calculators import (
    calculate_indirect_taxes,
    calculate_line_taxes,
    expenses_total,
)
from spaintax.backend.app.services.calculators.indirect_taxes import SPECIAL_BUCKETS
from spaintax.backend.config.year_config import (
    IndirectTaxConfig,
    TaxTopology,
    YearConfiguration,
)

BUCKETS = (
    "vat4",
    "vat10",
    "vat21",
    "fuel_excise",
    "insurance_premium_tax",
    "electricity_excise",
    "other_excise",
    "other_direct_taxes",
)


@pytest.fixture()
def indirect_config(config_2025: YearConfiguration) -> IndirectTaxConfig:
    return config_2025.indirect_taxes


def _category(*lines: dict[str, Any], **extra: Any) -> ExpenseCategory:
    payload = {"id": "test", "name": "Test", "lines": list(lines), **extra}
    return ExpenseCategory.model_validate(payload)


def test_every_topology_has_a_bucket_route() -> None:
    assert set(SPECIAL_BUCKETS) == set(TaxTopology)


def test_standard_lines_accumulate_by_declared_rate(indirect_config: IndirectTaxConfig) -> None:
    category = _category(
        {"name": "Bread", "amount": 104, "vat_rate": 4},
        {"name": "Restaurant", "amount": 110, "vat_rate": 10},
        {"name": "Clothes", "amount": 121, "vat_rate": 21},
        {"name": "Clothes again", "amount": 242},
    )

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.vat4 == pytest.approx(4)
    assert result.vat10 == pytest.approx(10)
    assert result.vat21 == pytest.approx(63)
    assert result.total == pytest.approx(77)
    assert [line.special for line in result.lines] == [0.0] * 4


def test_fuel_excise_is_charged_per_litre(indirect_config: IndirectTaxConfig) -> None:
    category = _category(
        {"name": "Fuel", "topology": "fuel_excise", "amount": 60, "price_per_unit": 1.5}
    )

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.fuel_excise == pytest.approx(40 * indirect_config.fuel_excise_per_liter)
    assert result.vat21 == pytest.approx(60 - 60 / 1.21)
    assert result.fuel_excise > 0 and result.vat21 > 0


def test_fuel_price_falls_back_to_configured_default(indirect_config: IndirectTaxConfig) -> None:
    category = _category({"name": "Fuel", "topology": "fuel-excise", "amount": 80})

    result = calculate_indirect_taxes([category], indirect_config)

    liters = 80 / indirect_config.default_fuel_price_per_liter
    assert result.fuel_excise == pytest.approx(liters * indirect_config.fuel_excise_per_liter)
    assert result.lines[0].topology is TaxTopology.FUEL_EXCISE


def test_electricity_excise_compounds_with_vat(indirect_config: IndirectTaxConfig) -> None:
    category = _category({"name": "Power", "topology": "electricity_excise", "amount": 50})

    result = calculate_indirect_taxes([category], indirect_config)

    base = 50 / ((1 + 0.0511) * 1.21)
    assert result.electricity_excise == pytest.approx(base * 0.0511)
    assert result.electricity_excise == pytest.approx(2.008915, abs=1e-5)
    assert result.vat21 == pytest.approx(50 - 50 / 1.21)


def test_line_special_rate_overrides_default(indirect_config: IndirectTaxConfig) -> None:
    category = _category(
        {"name": "Power", "topology": "electricity_excise", "amount": 121, "special_rate": 0.1}
    )

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.electricity_excise == pytest.approx(121 / (1.1 * 1.21) * 0.1)


def test_gas_excise_goes_to_hydrocarbons(indirect_config: IndirectTaxConfig) -> None:
    category = _category({"name": "Gas", "topology": "gas_excise", "amount": 121})

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.fuel_excise == pytest.approx(121 * 0.025)
    assert result.vat21 == pytest.approx(21)
    assert result.other_excise == 0.0


def test_alcohol_and_tobacco_use_different_bases(indirect_config: IndirectTaxConfig) -> None:
    alcohol = _category({"name": "Wine", "topology": "alcohol_excise", "amount": 121})
    tobacco = _category({"name": "Cigarettes", "topology": "tobacco_excise", "amount": 121})

    alcohol_result = calculate_indirect_taxes([alcohol], indirect_config)
    tobacco_result = calculate_indirect_taxes([tobacco], indirect_config)

    assert alcohol_result.other_excise == pytest.approx(121 * 0.05)
    assert tobacco_result.other_excise == pytest.approx(100 * 0.57)
    assert alcohol_result.vat21 == pytest.approx(21)
    assert tobacco_result.vat21 == pytest.approx(21)


def test_insurance_premium_carries_no_vat(indirect_config: IndirectTaxConfig) -> None:
    category = _category({"name": "Car insurance", "topology": "insurance_premium", "amount": 106})

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.insurance_premium_tax == pytest.approx(6)
    assert result.vat_total == 0.0


@pytest.mark.parametrize("amount", [1, 500, 10_000])
def test_exempt_lines_contribute_zero(indirect_config: IndirectTaxConfig, amount: float) -> None:
    category = _category({"name": "Rent", "topology": "exempt", "amount": amount})

    result = calculate_indirect_taxes([category], indirect_config)

    assert all(getattr(result, bucket) == 0.0 for bucket in BUCKETS)
    assert result.total == 0.0
    assert len(result.lines) == 1
    assert result.lines[0].vat == 0.0 and result.lines[0].special == 0.0


def test_direct_tax_is_levy_in_full(indirect_config: IndirectTaxConfig) -> None:
    category = _category({"name": "Property tax", "topology": "direct_tax", "amount": 50})

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.other_direct_taxes == pytest.approx(50)
    assert result.total == pytest.approx(50)


def test_non_positive_lines_are_skipped(indirect_config: IndirectTaxConfig) -> None:
    category = _category(
        {"name": "Nothing", "amount": 0},
        {"name": "Refund", "amount": -30, "vat_rate": 10},
        {"name": "Fuel", "topology": "fuel_excise", "amount": 0},
    )

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.lines == []
    assert result.total == 0.0
    assert calculate_line_taxes(category.lines[1], indirect_config) == (0.0, 0.0)


def test_category_without_lines_splits_total(indirect_config: IndirectTaxConfig) -> None:
    category = ExpenseCategory.model_validate(
        {"id": "misc", "name": "Misc", "total": 1_000, "vat4": 20, "vat10": 30, "vat21": 50}
    )

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.vat4 == pytest.approx(200 - 200 / 1.04)
    assert result.vat10 == pytest.approx(300 - 300 / 1.10)
    assert result.vat21 == pytest.approx(500 - 500 / 1.21)
    assert [line.vat_rate for line in result.lines] == [4, 10, 21]
    assert all(line.category == "misc" for line in result.lines)


def test_category_split_skips_empty_shares(indirect_config: IndirectTaxConfig) -> None:
    category = ExpenseCategory.model_validate(
        {"id": "misc", "total": 500, "vat10": 100}
    )

    result = calculate_indirect_taxes([category], indirect_config)

    assert [line.vat_rate for line in result.lines] == [10]
    assert result.vat10 == pytest.approx(500 - 500 / 1.10)


def test_mixed_sample_totals(indirect_config: IndirectTaxConfig) -> None:
    category = _category(
        {"name": "Fuel", "topology": "fuel_excise", "amount": 60, "price_per_unit": 1.5},
        {"name": "Power", "topology": "electricity_excise", "amount": 50},
        {"name": "Basics", "amount": 100, "vat_rate": 4},
    )

    result = calculate_indirect_taxes([category], indirect_config)

    assert result.total == pytest.approx(40.973978, abs=1e-5)
    assert result.vat21 == pytest.approx(19.090909, abs=1e-6)
    assert expenses_total([category]) == pytest.approx(210)


def test_breakdown_lines_match_per_line_taxes(indirect_config: IndirectTaxConfig) -> None:
    category = _category(
        {"name": "Fuel", "topology": "fuel_excise", "amount": 60, "price_per_unit": 1.5},
        {"name": "Refund", "amount": -12},
        {"name": "Gas", "topology": "gas_excise", "amount": 40},
        {"name": "Policy", "topology": "insurance_premium", "vat_rate": 0, "amount": 30},
        {"name": "Cigarettes", "topology": "tobacco_excise", "amount": 20},
    )

    result = calculate_indirect_taxes([category], indirect_config)

    taxable = [line for line in category.lines if line.amount > 0]
    assert len(result.lines) == len(taxable)
    for detail, line in zip(result.lines, taxable):
        vat, special = calculate_line_taxes(line, indirect_config)
        assert detail.vat == pytest.approx(vat)
        assert detail.special == pytest.approx(special)


def test_expenses_total_includes_flat_categories() -> None:
    flat = ExpenseCategory.model_validate({"id": "flat", "total": 300, "vat21": 100})
    itemised = _category({"name": "A", "amount": 20}, {"name": "B", "amount": -5})

    assert expenses_total([flat, itemised]) == pytest.approx(320)
