from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List

from .aggregates import group_by_unit, summarize_by_type
from .anomalies import MeterInput, detect_anomalies
from .config import AnomalySettings, ExportSettings
from .errors import ValidationError
from .models import AnomalyRecord, ConsumptionResult, TypeSummary
from .periods import assign_shares, buffered_window, extract_period_consumption
from .readings import meter_from_mapping, raw_meter_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportReport:
    period_start: date
    period_end: date
    consumptions: List[ConsumptionResult]
    summary_by_type: Dict[str, TypeSummary]
    errors: List[Dict[str, str]]

    def by_unit(self) -> Dict[str | None, List[ConsumptionResult]]:
        return group_by_unit(self.consumptions)

    def to_dict(self) -> Dict[str, object]:
        return {
            "period": {
                "start": self.period_start.isoformat(),
                "end": self.period_end.isoformat(),
            },
            "units": [
                {
                    "unit_id": unit_id,
                    "consumptions": [item.to_dict() for item in items],
                }
                for unit_id, items in self.by_unit().items()
            ],
            "summary": {
                meter_type: summary.to_dict()
                for meter_type, summary in self.summary_by_type.items()
            },
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class AnomalyReport:
    run_date: date
    anomalies: List[AnomalyRecord]
    meters_analyzed: int
    errors: List[Dict[str, str]]

    @property
    def count(self) -> int:
        return len(self.anomalies)

    def to_dict(self) -> Dict[str, object]:
        return {
            "anomalies": [item.to_dict() for item in self.anomalies],
            "count": self.count,
            "meters_analyzed": self.meters_analyzed,
            "date": self.run_date.isoformat(),
            "errors": list(self.errors),
        }


def export_period(
    meters: Iterable[MeterInput],
    period_start: date,
    period_end: date,
    *,
    settings: ExportSettings | None = None,
) -> ExportReport:
    """Consumption, cost and share per meter for a billing period.

    Boundary readings are searched in a buffered window around the period.
    Meters with invalid input are reported in ``errors`` and left out.
    """

    if period_end < period_start:
        raise ValueError("period_end must not be before period_start")
    settings = settings or ExportSettings()
    window = buffered_window(period_start, period_end, settings.buffer_months)

    results: List[ConsumptionResult] = []
    errors: List[Dict[str, str]] = []
    for item in meters:
        try:
            meter = meter_from_mapping(item)
        except ValidationError as exc:
            meter_id = raw_meter_id(item)
            logger.warning("Meter %s skipped in export: %s", meter_id, exc)
            errors.append({"meter_id": meter_id, "message": str(exc)})
            continue
        results.append(
            extract_period_consumption(
                meter,
                period_start,
                period_end,
                window=window,
                prices=settings.prices,
                unit_labels=settings.unit_labels,
            )
        )

    consumptions = assign_shares(results)
    logger.info(
        "Exported %d meters for %s..%s, %d without data",
        len(consumptions),
        period_start.isoformat(),
        period_end.isoformat(),
        sum(1 for item in consumptions if not item.has_data),
    )
    return ExportReport(
        period_start=period_start,
        period_end=period_end,
        consumptions=consumptions,
        summary_by_type=summarize_by_type(consumptions),
        errors=errors,
    )


def build_anomaly_report(
    meters: Iterable[MeterInput],
    *,
    today: date,
    settings: AnomalySettings | None = None,
) -> AnomalyReport:
    anomalies, errors, analyzed = detect_anomalies(meters, today=today, settings=settings)
    return AnomalyReport(
        run_date=today,
        anomalies=anomalies,
        meters_analyzed=analyzed,
        errors=errors,
    )
