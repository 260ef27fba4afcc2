"""
Shared fixtures for the consumption engine tests.

Meters are built from plain dicts in the same shape the HTTP layer
receives, so the tests also exercise input parsing.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

import pytest

from ablesung.models import Meter
from ablesung.readings import meter_from_mapping

MeterFactory = Callable[..., Meter]


@pytest.fixture()
def make_meter() -> MeterFactory:
    """Return a factory building a Meter from ``(date, value)`` pairs."""

    def _make(
        readings: list[tuple[str, float]],
        *,
        meter_id: str = "m-1",
        meter_type: str = "electricity",
        interval_days: int = 30,
        unit_id: str | None = "u-1",
    ) -> Meter:
        return meter_from_mapping(
            {
                "id": meter_id,
                "type": meter_type,
                "reading_interval_days": interval_days,
                "unit_id": unit_id,
                "meter_number": f"Z-{meter_id}",
                "building_name": "Hauptstraße 1",
                "unit_number": "WE 01",
                "readings": [{"date": day, "value": value} for day, value in readings],
            }
        )

    return _make


@pytest.fixture()
def today() -> date:
    return date(2024, 4, 15)
