"""Recover VAT and excise duties embedded in tax-inclusive expense amounts.

Each expense line declares a :class:`TaxTopology` describing how its taxes
sit inside the price. One handler per topology returns the ``(vat, special)``
pair for a line and a second table routes the special portion to its bucket.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from spaintax.backend.app.models import (
    ExpenseCategory,
    ExpenseLine,
    IndirectTaxResult,
    LineTaxDetail,
)
from spaintax.backend.config.year_config import IndirectTaxConfig, TaxTopology

from .utils import reverse_embedded_tax

LineHandler = Callable[[ExpenseLine, IndirectTaxConfig], tuple[float, float]]


def _line_rate(line: ExpenseLine, default: float) -> float:
    rate = getattr(line, "special_rate", None)
    return default if rate is None else rate


def _standard(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    return reverse_embedded_tax(line.amount, line.vat_rate), 0.0


def _fuel_excise(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    # The excise sits inside the VAT base, so VAT is taken on the full amount.
    price = getattr(line, "price_per_unit", None) or config.default_fuel_price_per_liter
    liters = line.amount / price
    excise = liters * config.fuel_excise_per_liter
    return reverse_embedded_tax(line.amount, line.vat_rate), excise


def _electricity_excise(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    rate = _line_rate(line, config.electricity_rate)
    vat_factor = 1 + line.vat_rate / 100
    base = line.amount / ((1 + rate) * vat_factor)
    return reverse_embedded_tax(line.amount, line.vat_rate), base * rate


def _gas_excise(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    rate = _line_rate(line, config.gas_rate)
    return reverse_embedded_tax(line.amount, line.vat_rate), line.amount * rate


def _alcohol_excise(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    rate = _line_rate(line, config.alcohol_rate)
    return reverse_embedded_tax(line.amount, line.vat_rate), line.amount * rate


def _tobacco_excise(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    # Levied on the pre-VAT price, unlike alcohol.
    rate = _line_rate(line, config.tobacco_rate)
    vat = reverse_embedded_tax(line.amount, line.vat_rate)
    return vat, (line.amount - vat) * rate


def _insurance_premium(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    rate = _line_rate(line, config.insurance_premium_rate)
    return 0.0, reverse_embedded_tax(line.amount, rate * 100)


def _exempt(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    return 0.0, 0.0


def _direct_tax(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    return 0.0, line.amount


_HANDLERS: dict[TaxTopology, LineHandler] = {
    TaxTopology.STANDARD: _standard,
    TaxTopology.FUEL_EXCISE: _fuel_excise,
    TaxTopology.ELECTRICITY_EXCISE: _electricity_excise,
    TaxTopology.GAS_EXCISE: _gas_excise,
    TaxTopology.ALCOHOL_EXCISE: _alcohol_excise,
    TaxTopology.TOBACCO_EXCISE: _tobacco_excise,
    TaxTopology.INSURANCE_PREMIUM: _insurance_premium,
    TaxTopology.EXEMPT: _exempt,
    TaxTopology.DIRECT_TAX: _direct_tax,
}

# Result bucket receiving the special portion of each topology.
SPECIAL_BUCKETS: dict[TaxTopology, str | None] = {
    TaxTopology.STANDARD: None,
    TaxTopology.FUEL_EXCISE: "fuel_excise",
    TaxTopology.ELECTRICITY_EXCISE: "electricity_excise",
    TaxTopology.GAS_EXCISE: "fuel_excise",
    TaxTopology.ALCOHOL_EXCISE: "other_excise",
    TaxTopology.TOBACCO_EXCISE: "other_excise",
    TaxTopology.INSURANCE_PREMIUM: "insurance_premium_tax",
    TaxTopology.EXEMPT: None,
    TaxTopology.DIRECT_TAX: "other_direct_taxes",
}

_missing = set(TaxTopology).difference(_HANDLERS).union(
    set(TaxTopology).difference(SPECIAL_BUCKETS)
)
if _missing:  # pragma: no cover - guards against adding a topology without a handler
    raise RuntimeError(
        "Tax topologies without an indirect tax handler: "
        + ", ".join(sorted(topology.value for topology in _missing))
    )


def _is_taxable(line: ExpenseLine) -> bool:
    return line.amount > 0


def calculate_line_taxes(line: ExpenseLine, config: IndirectTaxConfig) -> tuple[float, float]:
    """Return the ``(vat, special)`` amounts embedded in ``line``."""

    if not _is_taxable(line):
        return 0.0, 0.0
    return _HANDLERS[line.kind](line, config)


def _apply_category_split(
    category: ExpenseCategory, result: IndirectTaxResult
) -> None:
    for rate, share in ((4, category.vat4), (10, category.vat10), (21, category.vat21)):
        portion = category.total * share / 100
        vat = reverse_embedded_tax(portion, rate)
        if vat <= 0:
            continue
        result.add_vat(rate, vat)
        result.lines.append(
            LineTaxDetail(
                category=category.id,
                id=None,
                name=category.name or category.id,
                amount=portion,
                vat=vat,
                special=0.0,
                topology=TaxTopology.STANDARD,
                vat_rate=rate,
            )
        )


def calculate_indirect_taxes(
    categories: Iterable[ExpenseCategory], config: IndirectTaxConfig
) -> IndirectTaxResult:
    """Break monthly expenses down into indirect taxes by bucket."""

    result = IndirectTaxResult()

    for category in categories:
        if not category.lines:
            if category.total > 0:
                _apply_category_split(category, result)
            continue

        for line in category.lines:
            if not _is_taxable(line):
                continue

            topology = line.kind
            vat, special = calculate_line_taxes(line, config)
            result.add_vat(line.vat_rate, vat)

            bucket = SPECIAL_BUCKETS[topology]
            if bucket is not None:
                setattr(result, bucket, getattr(result, bucket) + special)

            result.lines.append(
                LineTaxDetail(
                    category=category.id,
                    id=line.id,
                    name=line.name or line.id or category.id,
                    amount=line.amount,
                    vat=vat,
                    special=special,
                    topology=topology,
                    vat_rate=line.vat_rate,
                )
            )

    return result


def expenses_total(categories: Iterable[ExpenseCategory]) -> float:
    """Return the declared monthly spend across ``categories``."""

    total = 0.0
    for category in categories:
        if category.lines:
            total += sum(line.amount for line in category.lines if _is_taxable(line))
        else:
            total += category.total
    return total


__all__ = [
    "SPECIAL_BUCKETS",
    "calculate_indirect_taxes",
    "calculate_line_taxes",
    "expenses_total",
]
