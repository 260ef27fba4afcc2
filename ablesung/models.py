from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Literal, Tuple

AnomalyType = Literal["spike", "drop", "stale"]
Severity = Literal["warning", "critical"]

DEFAULT_READING_INTERVAL_DAYS = 30


@dataclass(frozen=True)
class Reading:
    """Cumulative meter value recorded on a calendar day."""

    meter_id: str
    date: date
    value: float


@dataclass(frozen=True)
class Meter:
    """Meter snapshot with its readings in ascending date order.

    Building and unit fields are display metadata that the caller has
    already joined onto the meter.
    """

    id: str
    type: str
    reading_interval_days: int = DEFAULT_READING_INTERVAL_DAYS
    unit_id: str | None = None
    meter_number: str | None = None
    building_name: str | None = None
    unit_number: str | None = None
    readings: Tuple[Reading, ...] = ()

    @property
    def last_reading(self) -> Reading | None:
        return self.readings[-1] if self.readings else None


@dataclass(frozen=True)
class ConsumptionResult:
    """Consumption of one meter within a billing period."""

    meter_id: str
    meter_type: str
    unit_label: str
    start_date: date | None
    start_value: float | None
    end_date: date | None
    end_value: float | None
    consumption: float | None
    has_data: bool
    warning: str | None
    estimated_cost: float | None
    share_percent: float = 0.0
    possible_rollover: bool = False
    meter_number: str | None = None
    unit_id: str | None = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "meter_id": self.meter_id,
            "meter_type": self.meter_type,
            "meter_number": self.meter_number,
            "unit_id": self.unit_id,
            "start_date": _iso(self.start_date),
            "start_value": self.start_value,
            "end_date": _iso(self.end_date),
            "end_value": self.end_value,
            "consumption": self.consumption,
            "consumption_share_percent": self.share_percent,
            "estimated_cost_eur": self.estimated_cost,
            "unit": self.unit_label,
            "has_data": self.has_data,
            "warning": self.warning,
            "possible_rollover": self.possible_rollover,
        }


@dataclass(frozen=True)
class AnomalyRecord:
    meter_id: str
    anomaly_type: AnomalyType
    severity: Severity
    details: str
    meter_type: str | None = None
    meter_number: str | None = None
    building_name: str | None = None
    unit_number: str | None = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "meter_id": self.meter_id,
            "meter_number": self.meter_number,
            "meter_type": self.meter_type,
            "building_name": self.building_name,
            "unit_number": self.unit_number,
            "anomaly_type": self.anomaly_type,
            "severity": self.severity,
            "details": self.details,
        }


@dataclass(frozen=True)
class TypeSummary:
    """Building-wide totals for one meter type."""

    meter_type: str
    total_consumption: float
    total_cost: float
    unit_label: str
    meter_count: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_consumption": self.total_consumption,
            "total_cost": self.total_cost,
            "unit": self.unit_label,
            "meter_count": self.meter_count,
        }


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
