"""Domain-specific calculation helpers."""

from .aggregation import (
    VIEW_MODES,
    available_salary,
    build_fiscal_summary,
    resolve_display_factors,
)
from .indirect_taxes import calculate_indirect_taxes, calculate_line_taxes, expenses_total
from .irpf import calculate_exempt_minimum, calculate_irpf, calculate_work_income_reduction
from .social_security import calculate_social_security
from .utils import (
    calculate_progressive_tax,
    format_currency,
    format_percentage,
    progressive_tax_breakdown,
    reverse_embedded_tax,
    round_currency,
    round_rate,
)

__all__ = [
    "VIEW_MODES",
    "available_salary",
    "build_fiscal_summary",
    "calculate_exempt_minimum",
    "calculate_indirect_taxes",
    "calculate_irpf",
    "calculate_line_taxes",
    "calculate_progressive_tax",
    "calculate_social_security",
    "calculate_work_income_reduction",
    "expenses_total",
    "format_currency",
    "format_percentage",
    "progressive_tax_breakdown",
    "resolve_display_factors",
    "reverse_embedded_tax",
    "round_currency",
    "round_rate",
]
