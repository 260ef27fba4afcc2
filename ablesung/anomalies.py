"""Anomaly detection on cumulative meter readings.

Each meter is checked for three independent conditions:

* stale: no reading in the lookback window, or the last reading is older
  than twice the expected reading interval;
* spike: the latest daily rate is well above the historical average;
* drop: the latest daily rate is far below a non-trivial historical
  average (possible malfunction or vacancy).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Mapping, Tuple

from .config import AnomalySettings
from .costs import round_half_up, unit_label_for
from .errors import ValidationError
from .models import AnomalyRecord, AnomalyType, Meter, Severity
from .rates import daily_rates, mean
from .readings import meter_from_mapping, raw_meter_id, readings_between, shift_months

logger = logging.getLogger(__name__)

UNKNOWN_BUILDING = "Unbekannt"

MeterInput = Meter | Mapping[str, object]


def classify_meter(
    meter: Meter,
    *,
    today: date,
    settings: AnomalySettings | None = None,
) -> List[AnomalyRecord]:
    settings = settings or AnomalySettings()
    lookback_start = shift_months(today, -settings.lookback_months)
    readings = readings_between(meter.readings, start=lookback_start)

    if not readings:
        return [
            _record(
                meter,
                "stale",
                "critical",
                f"Keine Ablesungen in den letzten {settings.lookback_months} Monaten.",
            )
        ]

    anomalies: List[AnomalyRecord] = []
    interval_days = meter.reading_interval_days or settings.default_interval_days
    days_since_last = (today - readings[-1].date).days
    if days_since_last > interval_days * settings.stale_warning_factor:
        severity: Severity = (
            "critical"
            if days_since_last > interval_days * settings.stale_critical_factor
            else "warning"
        )
        anomalies.append(
            _record(
                meter,
                "stale",
                severity,
                f"Letzte Ablesung vor {days_since_last} Tagen (Intervall: {interval_days} Tage).",
            )
        )

    if len(readings) < settings.min_readings:
        return anomalies

    rates = daily_rates(readings)
    if len(rates) < 2:
        return anomalies

    average = mean(rates[:-1])
    latest = rates[-1]
    if average <= 0:
        logger.debug("Meter %s: historical average %.3f, rate comparison skipped", meter.id, average)
        return anomalies

    ratio = latest / average
    if ratio > settings.spike_ratio:
        unit = unit_label_for(meter.type, settings.unit_labels)
        anomalies.append(
            _record(
                meter,
                "spike",
                "critical" if ratio > settings.critical_spike_ratio else "warning",
                f"Verbrauch {_percent(ratio - 1)}% über dem Durchschnitt "
                f"({latest:.1f} vs. Ø {average:.1f} {unit} pro Tag).",
            )
        )
    if ratio < settings.drop_ratio and average > settings.drop_min_average:
        anomalies.append(
            _record(
                meter,
                "drop",
                "warning",
                f"Verbrauch {_percent(1 - ratio)}% unter dem Durchschnitt. "
                "Mögliche Störung oder Leerstand.",
            )
        )
    return anomalies


def detect_anomalies(
    meters: Iterable[MeterInput],
    *,
    today: date,
    settings: AnomalySettings | None = None,
) -> Tuple[List[AnomalyRecord], List[dict[str, str]], int]:
    """Classify every meter; invalid meters are skipped and reported.

    Returns the anomalies, the per-meter errors and the number of meters
    that were analysed.
    """

    settings = settings or AnomalySettings()
    anomalies: List[AnomalyRecord] = []
    errors: List[dict[str, str]] = []
    analyzed = 0
    for item in meters:
        try:
            meter = meter_from_mapping(item)
        except ValidationError as exc:
            meter_id = raw_meter_id(item)
            logger.warning("Meter %s skipped: %s", meter_id, exc)
            errors.append({"meter_id": meter_id, "message": str(exc)})
            continue
        anomalies.extend(classify_meter(meter, today=today, settings=settings))
        analyzed += 1
    logger.info("Analyzed %d meters, found %d anomalies", analyzed, len(anomalies))
    return anomalies, errors, analyzed


def analyze_anomalies(
    meters: Iterable[MeterInput],
    *,
    today: date | None = None,
    settings: AnomalySettings | None = None,
) -> List[AnomalyRecord]:
    anomalies, _, _ = detect_anomalies(meters, today=today or date.today(), settings=settings)
    return anomalies


def _record(meter: Meter, anomaly_type: AnomalyType, severity: Severity, details: str) -> AnomalyRecord:
    return AnomalyRecord(
        meter_id=meter.id,
        meter_number=meter.meter_number,
        meter_type=meter.type,
        building_name=meter.building_name or UNKNOWN_BUILDING,
        unit_number=meter.unit_number,
        anomaly_type=anomaly_type,
        severity=severity,
        details=details,
    )


def _percent(fraction: float) -> int:
    return int(round_half_up(fraction * 100))
