"""Combine engine outputs into annual aggregates and display figures."""

from __future__ import annotations

from spaintax.backend.app.models import (
    DisplayFactors,
    FiscalSummary,
    IndirectTaxResult,
    IRPFResult,
    SSResult,
)

VIEW_MODES = ("annual", "monthly", "per_payment")


def build_fiscal_summary(
    gross: float,
    irpf: IRPFResult,
    employer: SSResult,
    employee: SSResult,
    indirect_monthly: IndirectTaxResult,
) -> FiscalSummary:
    """Return the annual employer cost, net salary and state/user split."""

    return FiscalSummary(
        gross=gross,
        employer_contributions=employer.total,
        employee_contributions=employee.total,
        irpf=irpf.annual_amount,
        indirect_taxes_monthly=indirect_monthly.total,
    )


def resolve_display_factors(view_mode: str, payments_per_year: int) -> DisplayFactors:
    """Return the salary and expense multipliers for ``view_mode``.

    Salary figures are annual and expenses monthly, hence two factors. The
    payment count only changes the per-payment view, never the taxes.
    """

    if payments_per_year <= 0:
        raise ValueError("payments_per_year must be positive")

    if view_mode == "annual":
        salary, expenses = 1.0, 12.0
    elif view_mode == "monthly":
        salary, expenses = 1 / 12, 1.0
    elif view_mode == "per_payment":
        salary, expenses = 1 / payments_per_year, 12 / payments_per_year
    else:
        raise ValueError(f"Unsupported view mode '{view_mode}'")

    return DisplayFactors(
        view_mode=view_mode,  # type: ignore[arg-type]
        payments_per_year=payments_per_year,
        salary=salary,
        expenses=expenses,
    )


def available_salary(
    summary: FiscalSummary, monthly_expenses: float, factors: DisplayFactors
) -> float:
    """Net salary left after declared expenses, in the display basis."""

    return summary.net_income * factors.salary - monthly_expenses * factors.expenses


__all__ = [
    "VIEW_MODES",
    "available_salary",
    "build_fiscal_summary",
    "resolve_display_factors",
]
