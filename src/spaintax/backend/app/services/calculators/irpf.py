"""Personal income tax (IRPF) on salaried income."""

from __future__ import annotations

import logging

from spaintax.backend.app.models import IRPFResult, TaxpayerProfile
from spaintax.backend.config.year_config import (
    IRPFConfig,
    PersonalMinimumConfig,
    Region,
    WorkIncomeReduction,
)

from .utils import calculate_progressive_tax, progressive_tax_breakdown

_LOGGER = logging.getLogger(__name__)


def calculate_exempt_minimum(
    children: int, children_under_3: int, config: PersonalMinimumConfig
) -> float:
    """Return the personal and family minimum for the household."""

    minimum = config.base
    for position in range(max(children, 0)):
        minimum += config.child_allowance(position)
    minimum += config.per_child_under_3 * max(children_under_3, 0)
    return minimum


def calculate_work_income_reduction(
    net_work_income: float, reduction: WorkIncomeReduction
) -> float:
    """Return the reduction for low net work income.

    The reduction is flat up to ``threshold_1``, then tapers linearly with two
    different slopes and disappears above ``max_net_income``.
    """

    if net_work_income > reduction.max_net_income:
        return 0.0
    if net_work_income <= reduction.threshold_1:
        return reduction.full_reduction
    if net_work_income <= reduction.threshold_2:
        return reduction.full_reduction - reduction.factor_1 * (
            net_work_income - reduction.threshold_1
        )
    tapered = reduction.reduction_at_threshold_2 - reduction.factor_2 * (
        net_work_income - reduction.threshold_2
    )
    return max(tapered, 0.0)


def calculate_irpf(
    gross: float,
    profile: TaxpayerProfile,
    region: Region,
    config: IRPFConfig,
    *,
    employee_contributions: float | None = None,
    apply_work_income_deductions: bool = False,
) -> IRPFResult:
    """Compute income tax for ``gross`` in ``region``.

    Foral regions tax the whole base with their own scale. Every other region
    adds its scale to the national one, both applied to the same base.
    Marital status and disability are not taken into account.
    """

    gross = max(gross, 0.0)
    exempt_minimum = calculate_exempt_minimum(
        profile.children, profile.children_under_3, config.personal_minimum
    )

    income = gross
    deductible_expenses = 0.0
    reduction = 0.0
    if apply_work_income_deductions:
        deductible_expenses = (employee_contributions or 0.0) + config.work_income.general_expense
        net_work_income = max(gross - deductible_expenses, 0.0)
        reduction = min(
            calculate_work_income_reduction(net_work_income, config.work_income.reduction),
            net_work_income,
        )
        income = net_work_income - reduction

    taxable = max(income - exempt_minimum, 0.0)

    if region.is_foral:
        national_tax = 0.0
        national_slices = ()
    else:
        national_tax = calculate_progressive_tax(taxable, config.national_brackets)
        national_slices = progressive_tax_breakdown(taxable, config.national_brackets)

    regional_tax = calculate_progressive_tax(taxable, region.brackets)

    _LOGGER.debug(
        "IRPF for %s (%s): taxable=%.2f national=%.2f regional=%.2f",
        region.id,
        region.regime.value,
        taxable,
        national_tax,
        regional_tax,
    )

    return IRPFResult(
        regime=region.regime,
        gross_income=gross,
        exempt_minimum=exempt_minimum,
        taxable_income=taxable,
        national_tax=national_tax,
        regional_tax=regional_tax,
        deductible_expenses=deductible_expenses,
        work_income_reduction=reduction,
        national_brackets=national_slices,
        regional_brackets=progressive_tax_breakdown(taxable, region.brackets),
    )


__all__ = [
    "calculate_exempt_minimum",
    "calculate_irpf",
    "calculate_work_income_reduction",
]
