from __future__ import annotations

import csv
import io

from .reporting import ExportReport

CSV_HEADER = [
    "Einheit",
    "Zählertyp",
    "Zählernummer",
    "Anfangsdatum",
    "Anfangsstand",
    "Enddatum",
    "Endstand",
    "Verbrauch",
    "Maßeinheit",
    "Anteil (%)",
    "Kosten (EUR)",
    "Hinweis",
]

SUMMARY_HEADER = ["Zählertyp", "Gesamtverbrauch", "Maßeinheit", "Gesamtkosten (EUR)", "Anzahl Zähler"]


def export_csv(report: ExportReport, *, title: str | None = None) -> str:
    """Render an export report as semicolon separated CSV for spreadsheet import.

    The text starts with a byte order mark so that spreadsheet programs
    detect UTF-8.
    """

    handle = io.StringIO()
    writer = csv.writer(handle, delimiter=";", quoting=csv.QUOTE_ALL, lineterminator="\n")
    if title:
        writer.writerow([title])
    writer.writerow(
        [f"Zeitraum: {report.period_start.isoformat()} bis {report.period_end.isoformat()}"]
    )
    writer.writerow([])
    writer.writerow(CSV_HEADER)
    for unit_id, items in report.by_unit().items():
        for item in items:
            writer.writerow(
                [
                    unit_id or "",
                    item.meter_type,
                    item.meter_number or "",
                    _text(item.start_date),
                    _number(item.start_value),
                    _text(item.end_date),
                    _number(item.end_value),
                    _number(item.consumption),
                    item.unit_label,
                    _number(item.share_percent),
                    _number(item.estimated_cost),
                    item.warning or "",
                ]
            )

    writer.writerow([])
    writer.writerow(SUMMARY_HEADER)
    for meter_type, summary in sorted(report.summary_by_type.items()):
        writer.writerow(
            [
                meter_type,
                _number(summary.total_consumption),
                summary.unit_label,
                _number(summary.total_cost),
                summary.meter_count,
            ]
        )
    return "\ufeff" + handle.getvalue()


def _text(value: object) -> str:
    if value is None:
        return ""
    isoformat = getattr(value, "isoformat", None)
    return isoformat() if isoformat else str(value)


def _number(value: float | None) -> str:
    # Decimal comma for German spreadsheet locales.
    if value is None:
        return ""
    return f"{value:.2f}".replace(".", ",")
