"""Unit tests for the fiscal aggregation and view-mode helpers."""

from __future__ import annotations

import pytest

from spaintax.backend.app.models import (
    FiscalSummary,
    IndirectTaxResult,
    SSResult,
    TaxpayerProfile,
)
from spaintax.backend.app.services.calculators import (
    VIEW_MODES,
    available_salary,
    build_fiscal_summary,
    calculate_irpf,
    calculate_social_security,
    resolve_display_factors,
)
from spaintax.backend.config.year_config import YearConfiguration

MONTHLY_INDIRECT = 40.973978


def _madrid_summary(config: YearConfiguration, indirect_monthly: float = 0.0) -> FiscalSummary:
    profile = TaxpayerProfile(gross_income=30_000, region="madrid")
    irpf = calculate_irpf(30_000, profile, config.irpf.get_region("madrid"), config.irpf)
    employer = calculate_social_security(30_000, config.social_security.employer)
    employee = calculate_social_security(30_000, config.social_security.employee)
    indirect = IndirectTaxResult(vat21=indirect_monthly)
    return build_fiscal_summary(30_000, irpf, employer, employee, indirect)


def test_summary_aggregates_annual_figures(config_2025: YearConfiguration) -> None:
    summary = _madrid_summary(config_2025)

    assert summary.employer_cost == pytest.approx(39_621)
    assert summary.net_income == pytest.approx(22_869.21607)
    assert summary.indirect_taxes == 0.0


def test_state_and_user_shares_cover_employer_cost(config_2025: YearConfiguration) -> None:
    summary = _madrid_summary(config_2025, MONTHLY_INDIRECT)

    assert summary.indirect_taxes == pytest.approx(MONTHLY_INDIRECT * 12)
    assert summary.state_share == pytest.approx(17_243.47, abs=0.01)
    assert summary.user_share == pytest.approx(22_377.53, abs=0.01)
    assert summary.state_share + summary.user_share == pytest.approx(summary.employer_cost)
    assert summary.state_share_rate + summary.user_share_rate == pytest.approx(1.0)


def test_shares_are_zero_without_income() -> None:
    summary = FiscalSummary(
        gross=0,
        employer_contributions=0,
        employee_contributions=0,
        irpf=0,
        indirect_taxes_monthly=0,
    )

    assert summary.state_share_rate == 0.0
    assert summary.user_share_rate == 0.0


def test_contribution_results_total_their_items() -> None:
    result = SSResult(per_item={"a": 10.0, "b": 2.5}, base=100.0)

    assert result.total == pytest.approx(12.5)


@pytest.mark.parametrize(
    ("view_mode", "payments", "salary", "expenses"),
    [
        ("annual", 12, 1.0, 12.0),
        ("annual", 14, 1.0, 12.0),
        ("monthly", 12, 1 / 12, 1.0),
        ("monthly", 14, 1 / 12, 1.0),
        ("per_payment", 12, 1 / 12, 1.0),
        ("per_payment", 14, 1 / 14, 12 / 14),
    ],
)
def test_display_factors(view_mode: str, payments: int, salary: float, expenses: float) -> None:
    factors = resolve_display_factors(view_mode, payments)

    assert factors.view_mode == view_mode
    assert factors.payments_per_year == payments
    assert factors.salary == pytest.approx(salary)
    assert factors.expenses == pytest.approx(expenses)


def test_every_view_mode_resolves() -> None:
    assert set(VIEW_MODES) == {"annual", "monthly", "per_payment"}
    for mode in VIEW_MODES:
        resolve_display_factors(mode, 12)


def test_unknown_view_mode_is_rejected() -> None:
    with pytest.raises(ValueError, match="weekly"):
        resolve_display_factors("weekly", 12)


def test_payments_must_be_positive() -> None:
    with pytest.raises(ValueError):
        resolve_display_factors("per_payment", 0)


def test_available_salary_in_monthly_view(config_2025: YearConfiguration) -> None:
    summary = _madrid_summary(config_2025, MONTHLY_INDIRECT)

    monthly = available_salary(summary, 210, resolve_display_factors("monthly", 12))
    annual = available_salary(summary, 210, resolve_display_factors("annual", 12))

    assert monthly == pytest.approx(1_905.768 - 210, abs=0.01)
    assert annual == pytest.approx(20_349.22, abs=0.01)
    assert annual == pytest.approx(monthly * 12)


def test_payment_count_does_not_change_annual_figures(config_2025: YearConfiguration) -> None:
    summary = _madrid_summary(config_2025)

    twelve = available_salary(summary, 0, resolve_display_factors("annual", 12))
    fourteen = available_salary(summary, 0, resolve_display_factors("annual", 14))
    per_payment = available_salary(summary, 0, resolve_display_factors("per_payment", 14))

    assert twelve == pytest.approx(fourteen)
    assert per_payment * 14 == pytest.approx(summary.net_income)


@pytest.mark.parametrize("gross", [0, 5_000, 21_000, 64_500, 250_000])
def test_net_and_cost_identities_hold_for_every_region(
    config_2025: YearConfiguration, gross: float
) -> None:
    irpf_config = config_2025.irpf
    employer = calculate_social_security(gross, config_2025.social_security.employer)
    employee = calculate_social_security(gross, config_2025.social_security.employee)

    for region in irpf_config.regions:
        profile = TaxpayerProfile(gross_income=gross, region=region.id)
        irpf = calculate_irpf(gross, profile, region, irpf_config)
        summary = build_fiscal_summary(gross, irpf, employer, employee, IndirectTaxResult())

        assert summary.net_income + summary.irpf + summary.employee_contributions == (
            pytest.approx(gross)
        )
        assert summary.employer_cost - summary.employer_contributions == pytest.approx(gross)
