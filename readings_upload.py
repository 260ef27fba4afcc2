from __future__ import annotations

import csv
import datetime as dt
import io
import math
import pathlib
import zipfile
from dataclasses import dataclass

from ablesung.errors import ValidationError
from ablesung.readings import parse_reading_date

METER_HEADERS = ["meter_id", "zähler", "zähler-id", "zählernummer", "meter_number", "meter"]
DATE_HEADERS = ["date", "datum", "ablesedatum", "reading_date"]
VALUE_HEADERS = ["value", "stand", "zählerstand", "wert", "reading_value"]


@dataclass(frozen=True)
class ParsingError:
    code: str
    message: str
    row: int | None = None


class UploadValidationError(Exception):
    def __init__(self, errors: list[ParsingError]) -> None:
        super().__init__("Upload validation failed")
        self.errors = errors

    def user_messages(self) -> list[dict[str, str | int]]:
        return [
            {
                "code": error.code,
                "message": error.message,
                "row": error.row or 0,
            }
            for error in self.errors
        ]


@dataclass(frozen=True)
class ParsedUpload:
    filename: str
    rows: list[dict[str, object]]

    @property
    def meter_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for row in self.rows:
            seen.setdefault(str(row["meter_id"]), None)
        return list(seen)


def parse_readings_upload(file_bytes: bytes, original_filename: str) -> ParsedUpload:
    """Parse an uploaded CSV or Excel file with one meter reading per row."""

    suffix = pathlib.Path(original_filename).suffix.lower()
    errors: list[ParsingError] = []

    if suffix == ".csv":
        rows = _parse_csv(file_bytes, errors)
    elif suffix in {".xlsx", ".xlsm"}:
        rows = _parse_xlsx(file_bytes, errors)
    else:
        raise UploadValidationError(
            [
                ParsingError(
                    code="unsupported_format",
                    message="Nur CSV- oder Excel-Dateien (.xlsx) werden unterstützt.",
                )
            ]
        )

    if not errors and not rows:
        errors.append(ParsingError(code="empty_data", message="Keine Ablesungen gefunden."))
    if errors:
        raise UploadValidationError(errors)

    _check_duplicates(rows, errors)
    if errors:
        raise UploadValidationError(errors)

    return ParsedUpload(filename=original_filename, rows=rows)


def _parse_csv(file_bytes: bytes, errors: list[ParsingError]) -> list[dict[str, object]]:
    try:
        text = file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        errors.append(
            ParsingError(code="invalid_encoding", message="CSV-Datei ist nicht UTF-8-kodiert.")
        )
        return []

    # Semicolon first, the usual delimiter of German spreadsheet exports.
    reader = csv.DictReader(io.StringIO(text), delimiter=";")
    if reader.fieldnames is not None and len(reader.fieldnames) <= 1:
        reader = csv.DictReader(io.StringIO(text), delimiter=",")

    if reader.fieldnames is None:
        errors.append(ParsingError(code="missing_header", message="CSV-Datei hat keine Kopfzeile."))
        return []

    header = [name.strip() for name in reader.fieldnames]
    keys = _resolve_columns(header, errors)
    if keys is None:
        return []
    meter_key, date_key, value_key = keys
    original = {name.strip(): name for name in reader.fieldnames}

    rows: list[dict[str, object]] = []
    for index, row in enumerate(reader, start=2):
        meter_raw = (row.get(original[meter_key]) or "").strip()
        date_raw = (row.get(original[date_key]) or "").strip()
        value_raw = (row.get(original[value_key]) or "").strip()
        if not meter_raw and not date_raw and not value_raw:
            continue
        parsed = _parse_row(meter_raw, date_raw, value_raw, index, errors)
        if parsed is not None:
            rows.append(parsed)
    return rows


def _parse_xlsx(file_bytes: bytes, errors: list[ParsingError]) -> list[dict[str, object]]:
    try:
        import openpyxl  # type: ignore
    except ImportError:  # pragma: no cover - optional dependency
        errors.append(
            ParsingError(
                code="missing_dependency",
                message="Für Excel-Dateien wird openpyxl benötigt.",
            )
        )
        return []

    from openpyxl.utils.exceptions import InvalidFileException  # type: ignore

    try:
        workbook = openpyxl.load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
        sheet = workbook.active
        rows = list(sheet.iter_rows(values_only=True))
        workbook.close()
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError):
        errors.append(ParsingError(code="invalid_file", message="Excel-Datei ist beschädigt."))
        return []
    if not rows:
        errors.append(ParsingError(code="empty_file", message="Excel-Datei enthält keine Daten."))
        return []

    header = [str(cell).strip() if cell is not None else "" for cell in rows[0]]
    keys = _resolve_columns(header, errors)
    if keys is None:
        return []
    key_index = {name: header.index(name) for name in header if name}

    rows_out: list[dict[str, object]] = []
    for idx, row in enumerate(rows[1:], start=2):
        meter_raw = _cell_to_str(row, key_index.get(keys[0], -1))
        date_raw = _cell_to_str(row, key_index.get(keys[1], -1))
        value_raw = _cell_to_str(row, key_index.get(keys[2], -1))
        if not meter_raw and not date_raw and not value_raw:
            continue
        parsed = _parse_row(meter_raw, date_raw, value_raw, idx, errors)
        if parsed is not None:
            rows_out.append(parsed)
    return rows_out


def _resolve_columns(
    header: list[str], errors: list[ParsingError]
) -> tuple[str, str, str] | None:
    meter_key = _find_header(header, METER_HEADERS)
    date_key = _find_header(header, DATE_HEADERS)
    value_key = _find_header(header, VALUE_HEADERS)
    if not meter_key or not date_key or not value_key:
        errors.append(
            ParsingError(
                code="missing_columns",
                message="Erwartet Spalten Zähler, Datum und Stand.",
            )
        )
        return None
    return meter_key, date_key, value_key


def _parse_row(
    meter_raw: str,
    date_raw: str,
    value_raw: str,
    row: int,
    errors: list[ParsingError],
) -> dict[str, object] | None:
    if not meter_raw:
        errors.append(ParsingError(code="missing_meter", message="Zähler fehlt.", row=row))
        return None
    reading_date = _parse_date(date_raw, row, errors)
    value = _parse_float(value_raw, row, errors)
    if reading_date is None or value is None:
        return None
    return {"meter_id": meter_raw, "date": reading_date, "value": value}


def _parse_date(raw: str, row: int, errors: list[ParsingError]) -> dt.date | None:
    if not raw:
        errors.append(ParsingError(code="missing_date", message="Datum fehlt.", row=row))
        return None
    for fmt in ("%d.%m.%Y", "%d/%m/%Y"):
        try:
            return dt.datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    try:
        return parse_reading_date(raw)
    except ValidationError:
        errors.append(
            ParsingError(code="invalid_date", message=f"Ungültiges Datum: {raw}.", row=row)
        )
        return None


def _parse_float(raw: str, row: int, errors: list[ParsingError]) -> float | None:
    if not raw:
        errors.append(ParsingError(code="missing_value", message="Zählerstand fehlt.", row=row))
        return None
    cleaned = raw.replace(" ", "")
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        value = float(cleaned)
    except ValueError:
        value = math.nan
    if not math.isfinite(value):
        errors.append(
            ParsingError(code="invalid_value", message=f"Ungültiger Zählerstand: {raw}.", row=row)
        )
        return None
    return value


def _find_header(header: list[str], candidates: list[str]) -> str | None:
    lowered = {name.lower(): name for name in header}
    for candidate in candidates:
        if candidate.lower() in lowered:
            return lowered[candidate.lower()]
    return None


def _cell_to_str(row: tuple[object, ...], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value).strip()


def _check_duplicates(rows: list[dict[str, object]], errors: list[ParsingError]) -> None:
    seen: dict[tuple[object, object], int] = {}
    for row in rows:
        key = (row["meter_id"], row["date"])
        seen[key] = seen.get(key, 0) + 1
    for (meter_id, reading_date), count in sorted(seen.items(), key=lambda item: str(item[0])):
        if count > 1:
            errors.append(
                ParsingError(
                    code="duplicate_reading",
                    message=f"Mehrere Ablesungen für Zähler {meter_id} am {reading_date}.",
                )
            )
