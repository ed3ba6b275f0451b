"""Flat-rate Social Security contributions."""

from __future__ import annotations

from spaintax.backend.app.models import SSResult
from spaintax.backend.config.year_config import ContributionSchedule


def calculate_social_security(
    gross: float,
    schedule: ContributionSchedule,
    *,
    base_cap: float | None = None,
) -> SSResult:
    """Apply every rate in ``schedule`` to the contribution base.

    The base is the gross salary, optionally limited to ``base_cap``.
    """

    base = max(gross, 0.0)
    if base_cap is not None:
        base = min(base, base_cap)

    per_item = {name: base * rate for name, rate in schedule.items.items()}
    return SSResult(per_item=per_item, base=base)


__all__ = ["calculate_social_security"]
