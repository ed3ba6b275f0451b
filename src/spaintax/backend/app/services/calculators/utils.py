"""Utility helpers for calculator modules."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from spaintax.backend.app.models import BracketSlice
from spaintax.backend.config.year_config import TaxBracket


def format_percentage(value: float) -> str:
    """Return a human-readable percentage label for ``value``."""

    percentage = round(value * 100, 6)
    if float(int(percentage)) == percentage:
        return f"{int(percentage)}%"
    return f"{percentage:.2f}%"


def format_currency(value: float) -> str:
    """Render ``value`` as a Spanish-style euro amount (``1.234,56 €``)."""

    rounded = round_currency(value)
    sign = "-" if rounded < 0 else ""
    integral, decimals = f"{abs(rounded):,.2f}".split(".")
    return f"{sign}{integral.replace(',', '.')},{decimals} €"


def _iter_slices(amount: float, brackets: Sequence[TaxBracket]) -> Iterator[BracketSlice]:
    # Upper bounds are exclusive: income exactly on a boundary stays in the lower bracket.
    remaining = max(amount, 0.0)
    lower = 0.0
    for bracket in brackets:
        upper = bracket.upper_bound
        width = remaining if upper is None else max(upper - lower, 0.0)
        taxable = min(remaining, width)
        yield BracketSlice(
            lower=lower,
            upper=upper,
            rate=bracket.rate,
            taxable=taxable,
            tax=taxable * bracket.rate,
        )
        remaining -= taxable
        if upper is None:
            break
        lower = upper


def calculate_progressive_tax(amount: float, brackets: Sequence[TaxBracket]) -> float:
    """Calculate progressive tax for ``amount`` using ``brackets``."""

    if amount <= 0:
        return 0.0

    total = 0.0
    for slice_ in _iter_slices(amount, brackets):
        if slice_.taxable <= 0:
            break
        total += slice_.tax
    return total


def progressive_tax_breakdown(
    amount: float, brackets: Sequence[TaxBracket]
) -> tuple[BracketSlice, ...]:
    """Return one slice per bracket, including the unused ones, for display."""

    return tuple(_iter_slices(amount, brackets))


def reverse_embedded_tax(amount: float, rate_percent: float) -> float:
    """Return the tax embedded in a tax-inclusive ``amount`` at ``rate_percent``."""

    if rate_percent <= 0:
        return 0.0
    return amount - amount / (1 + rate_percent / 100)


def round_currency(value: float) -> float:
    """Round monetary amounts to two decimals."""

    return round(value, 2)


def round_rate(value: float) -> float:
    """Round rate values to four decimals."""

    return round(value, 4)
