"""Consumption of a meter within a billing period.

Readings are sparse, so the boundary readings are searched in a data
window wider than the period itself. The start reading is the one closest
to the period start, the end reading is the latest one on or before the
period end.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .costs import PRICE_DEFAULTS, UNIT_LABELS, estimate_cost, round_half_up, unit_label_for
from .models import ConsumptionResult, Meter, Reading
from .readings import readings_between, shift_months

WARNING_NO_START = "Kein Anfangsstand"
WARNING_NO_END = "Kein Endstand"
WARNING_SINGLE_READING = "Nur eine Ablesung"

Period = Tuple[date, date]


def year_period(year: int) -> Period:
    return date(year, 1, 1), date(year, 12, 31)


def buffered_window(period_start: date, period_end: date, buffer_months: int = 3) -> Period:
    """Data window around a period; 2024 with the default buffer is 2023-10-01..2025-03-31."""

    window_start = shift_months(period_start, -buffer_months)
    window_end = shift_months(period_end, buffer_months)
    if period_end.day == _month_end(period_end):
        window_end = window_end.replace(day=_month_end(window_end))
    return window_start, window_end


def closest_reading(readings: Sequence[Reading], target: date) -> Reading | None:
    """Reading with the smallest absolute day distance to *target*; ties keep the earlier one."""

    closest: Reading | None = None
    for reading in readings:
        if closest is None or abs((reading.date - target).days) < abs((closest.date - target).days):
            closest = reading
    return closest


def extract_period_consumption(
    meter: Meter,
    period_start: date,
    period_end: date,
    *,
    window: Period | None = None,
    prices: Mapping[str, float] = PRICE_DEFAULTS,
    unit_labels: Mapping[str, str] = UNIT_LABELS,
) -> ConsumptionResult:
    """Consumption of *meter* between the readings bounding the period.

    ``share_percent`` is left at zero; it needs the totals of all meters
    and is filled in by :func:`assign_shares`.
    """

    readings: Sequence[Reading] = meter.readings
    if window is not None:
        readings = readings_between(readings, window[0], window[1])
    before_end = readings_between(readings, end=period_end)

    start_reading = closest_reading(before_end, period_start)
    end_reading = before_end[-1] if before_end else None

    has_data = (
        start_reading is not None
        and end_reading is not None
        and start_reading.date != end_reading.date
    )
    consumption: float | None = None
    possible_rollover = False
    if has_data:
        delta = end_reading.value - start_reading.value
        possible_rollover = delta < 0
        consumption = max(0.0, delta)

    return ConsumptionResult(
        meter_id=meter.id,
        meter_type=meter.type,
        meter_number=meter.meter_number,
        unit_id=meter.unit_id,
        unit_label=unit_label_for(meter.type, unit_labels),
        start_date=start_reading.date if start_reading else None,
        start_value=start_reading.value if start_reading else None,
        end_date=end_reading.date if end_reading else None,
        end_value=end_reading.value if end_reading else None,
        consumption=consumption,
        has_data=has_data,
        warning=_warning(start_reading, end_reading),
        estimated_cost=estimate_cost(consumption, meter.type, prices),
        possible_rollover=possible_rollover,
    )


def assign_shares(results: Iterable[ConsumptionResult]) -> List[ConsumptionResult]:
    """Fill in each meter's percentage of the consumption of its meter type.

    Shares are rounded to two decimals. When rounding pushes a type over
    100 %, the largest share of that type absorbs the excess.
    """

    results_list = list(results)
    totals: Dict[str, float] = defaultdict(float)
    for item in results_list:
        if item.consumption is not None:
            totals[item.meter_type] += item.consumption

    shares: Dict[int, float] = {}
    by_type: Dict[str, List[int]] = defaultdict(list)
    for index, item in enumerate(results_list):
        total = totals.get(item.meter_type, 0.0)
        if total > 0 and item.consumption:
            shares[index] = round_half_up(item.consumption / total * 10000) / 100
            by_type[item.meter_type].append(index)

    for indices in by_type.values():
        if round_half_up(sum(shares[index] for index in indices), 2) <= 100:
            continue
        largest = max(indices, key=lambda index: shares[index])
        others = sum(shares[index] for index in indices if index != largest)
        shares[largest] = round_half_up(100 - others, 2)

    return [
        replace(item, share_percent=shares.get(index, 0.0))
        for index, item in enumerate(results_list)
    ]


def _warning(start_reading: Reading | None, end_reading: Reading | None) -> str | None:
    if start_reading is None:
        return WARNING_NO_START
    if end_reading is None:
        return WARNING_NO_END
    if start_reading.date == end_reading.date:
        return WARNING_SINGLE_READING
    return None


def _month_end(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]
