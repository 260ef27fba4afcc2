from __future__ import annotations

from datetime import date
from typing import List, Sequence

from .models import Reading


def elapsed_days(earlier: date, later: date) -> int:
    """Whole days between two readings, never less than one."""

    return max(1, (later - earlier).days)


def daily_rates(readings: Sequence[Reading]) -> List[float]:
    """Per-day consumption rate for each pair of consecutive readings.

    Reading intervals are irregular, so the delta of each pair is divided
    by its elapsed days. Fewer than two readings give an empty list.
    """

    rates: List[float] = []
    for previous, current in zip(readings, readings[1:]):
        days = elapsed_days(previous.date, current.date)
        rates.append((current.value - previous.value) / days)
    return rates


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
