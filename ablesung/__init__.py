"""Consumption engine for cumulative meter readings: period exports, cost allocation, and anomaly detection."""

from .aggregates import summarize_by_type
from .anomalies import analyze_anomalies, classify_meter
from .config import AnomalySettings, ExportSettings
from .costs import PRICE_DEFAULTS, UNIT_LABELS, estimate_cost
from .errors import ValidationError
from .formatting import export_csv
from .models import AnomalyRecord, ConsumptionResult, Meter, Reading, TypeSummary
from .periods import assign_shares, buffered_window, extract_period_consumption, year_period
from .rates import daily_rates
from .readings import index_readings, meter_from_mapping
from .reporting import AnomalyReport, ExportReport, build_anomaly_report, export_period

__all__ = [
    "analyze_anomalies",
    "AnomalyRecord",
    "AnomalyReport",
    "AnomalySettings",
    "assign_shares",
    "buffered_window",
    "build_anomaly_report",
    "classify_meter",
    "ConsumptionResult",
    "daily_rates",
    "estimate_cost",
    "export_csv",
    "export_period",
    "ExportReport",
    "ExportSettings",
    "extract_period_consumption",
    "index_readings",
    "Meter",
    "meter_from_mapping",
    "PRICE_DEFAULTS",
    "Reading",
    "summarize_by_type",
    "TypeSummary",
    "UNIT_LABELS",
    "ValidationError",
    "year_period",
]
