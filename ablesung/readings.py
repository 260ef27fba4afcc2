from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Sequence

from .errors import ValidationError
from .models import DEFAULT_READING_INTERVAL_DAYS, Meter, Reading

ReadingRow = Mapping[str, object] | Sequence[object] | Reading


def parse_reading_date(value: object) -> date:
    """Parse a calendar day from a date, datetime or ``YYYY-MM-DD`` string."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        raw = value.strip()
        try:
            if len(raw) > 10:
                return datetime.fromisoformat(raw).date()
            return date.fromisoformat(raw)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid reading date: {value!r}", field="date", value=value
            ) from exc
    raise ValidationError(
        f"Unsupported reading date type: {type(value)!r}", field="date", value=value
    )


def parse_reading_value(value: object) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid reading value: {value!r}", field="value", value=value)
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Invalid reading value: {value!r}", field="value", value=value
        ) from exc
    if not math.isfinite(parsed):
        raise ValidationError(f"Invalid reading value: {value!r}", field="value", value=value)
    return parsed


def reading_from_mapping(row: ReadingRow, meter_id: str | None = None) -> Reading:
    """Build a reading from a mapping or a ``(meter_id, date, value)`` / ``(date, value)`` row.

    An explicit *meter_id* takes precedence over the one carried by the row.
    """

    if isinstance(row, Reading):
        return row
    if isinstance(row, Mapping):
        row_meter_id = row.get("meter_id")
        raw_date = row.get("date", row.get("reading_date"))
        raw_value = row.get("value", row.get("reading_value"))
    elif isinstance(row, (list, tuple)) and len(row) == 3:
        row_meter_id, raw_date, raw_value = row
    elif isinstance(row, (list, tuple)) and len(row) == 2:
        row_meter_id = None
        raw_date, raw_value = row
    else:
        raise ValidationError(f"Unsupported reading record: {row!r}", field="reading", value=row)
    resolved_id = meter_id if meter_id is not None else row_meter_id
    if resolved_id is None:
        raise ValidationError("Reading without meter_id", field="meter_id")
    return Reading(
        meter_id=str(resolved_id),
        date=parse_reading_date(raw_date),
        value=parse_reading_value(raw_value),
    )


def sort_readings(readings: Iterable[Reading]) -> List[Reading]:
    """Readings in ascending date order; same-date entries keep their input order."""

    return sorted(readings, key=lambda reading: reading.date)


def index_readings(rows: Iterable[ReadingRow]) -> Dict[str, List[Reading]]:
    """Group a flat collection of readings by meter, each list sorted by date."""

    grouped: Dict[str, List[Reading]] = defaultdict(list)
    for row in rows:
        reading = reading_from_mapping(row)
        grouped[reading.meter_id].append(reading)
    return {meter_id: sort_readings(items) for meter_id, items in grouped.items()}


def readings_between(
    readings: Sequence[Reading], start: date | None = None, end: date | None = None
) -> List[Reading]:
    """Readings with ``start <= date <= end``; an open bound is ignored."""

    return [
        reading
        for reading in readings
        if (start is None or reading.date >= start) and (end is None or reading.date <= end)
    ]


def meter_from_mapping(row: Mapping[str, object] | Meter) -> Meter:
    """Build a meter snapshot from ``{id, type, reading_interval_days, readings, ...}``."""

    if isinstance(row, Meter):
        return row
    if not isinstance(row, Mapping):
        raise ValidationError(f"Unsupported meter record: {type(row)!r}", field="meter")
    meter_id = row.get("id", row.get("meter_id"))
    if meter_id is None:
        raise ValidationError("Meter without id", field="id")
    meter_id = str(meter_id)
    raw_readings = row.get("readings") or []
    if not isinstance(raw_readings, (list, tuple)):
        raise ValidationError(
            f"Readings of meter {meter_id} must be a list", field="readings", value=raw_readings
        )
    readings = sort_readings(reading_from_mapping(item, meter_id) for item in raw_readings)
    return Meter(
        id=meter_id,
        type=str(row.get("type") or row.get("meter_type") or ""),
        reading_interval_days=_interval_days(row.get("reading_interval_days")),
        unit_id=_optional_str(row.get("unit_id")),
        meter_number=_optional_str(row.get("meter_number")),
        building_name=_optional_str(row.get("building_name")),
        unit_number=_optional_str(row.get("unit_number")),
        readings=tuple(readings),
    )


def _interval_days(value: object) -> int:
    if value in (None, "", 0):
        return DEFAULT_READING_INTERVAL_DAYS
    try:
        days = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Invalid reading interval: {value!r}", field="reading_interval_days", value=value
        ) from exc
    return days if days > 0 else DEFAULT_READING_INTERVAL_DAYS


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)


def shift_months(day: date, months: int) -> date:
    """Move a date by whole months, clamping to the last day of the target month.

    Results beyond the supported calendar saturate at ``date.min``/``date.max``.
    """

    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    if year < date.min.year:
        return date.min
    if year > date.max.year:
        return date.max
    return date(year, month, min(day.day, _days_in_month(year, month)))


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        return 31
    return (date(year, month + 1, 1) - date(year, month, 1)).days


def raw_meter_id(row: object) -> str:
    """Best-effort meter id of an input record, for error reports."""

    if isinstance(row, Meter):
        return row.id
    if isinstance(row, Mapping):
        return str(row.get("id", row.get("meter_id", "")))
    return ""
