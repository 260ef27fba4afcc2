"""
Tests for parsing uploaded reading files (CSV and Excel).
"""

from __future__ import annotations

import io
from datetime import date, datetime

import pytest

from readings_upload import UploadValidationError, parse_readings_upload


def _codes(excinfo: pytest.ExceptionInfo[UploadValidationError]) -> list[str]:
    return [error.code for error in excinfo.value.errors]


class TestCsv:
    def test_semicolon_with_german_formats(self) -> None:
        content = "Zähler;Datum;Stand\nZ-1;01.01.2024;1.234,5\nZ-1;01.02.2024;1.300,0\nZ-2;2024-01-15;7\n"

        parsed = parse_readings_upload(content.encode("utf-8-sig"), "ablesungen.csv")

        assert parsed.rows[0] == {"meter_id": "Z-1", "date": date(2024, 1, 1), "value": 1234.5}
        assert parsed.rows[1]["value"] == 1300.0
        assert parsed.rows[2]["date"] == date(2024, 1, 15)
        assert parsed.meter_ids == ["Z-1", "Z-2"]

    def test_comma_fallback(self) -> None:
        content = "meter_id,date,value\nm-1,2024-01-01,10.5\n"

        parsed = parse_readings_upload(content.encode(), "readings.csv")

        assert parsed.rows == [{"meter_id": "m-1", "date": date(2024, 1, 1), "value": 10.5}]

    def test_blank_lines_are_skipped(self) -> None:
        content = "meter_id;date;value\nm-1;2024-01-01;1\n;;\n"

        assert len(parse_readings_upload(content.encode(), "r.csv").rows) == 1

    def test_missing_columns(self) -> None:
        with pytest.raises(UploadValidationError) as excinfo:
            parse_readings_upload(b"meter_id;value\nm-1;1\n", "r.csv")

        assert _codes(excinfo) == ["missing_columns"]

    def test_row_errors_are_collected(self) -> None:
        content = "meter_id;date;value\nm-1;2024-13-01;1\nm-1;2024-01-02;abc\n;2024-01-03;1\n"

        with pytest.raises(UploadValidationError) as excinfo:
            parse_readings_upload(content.encode(), "r.csv")

        messages = excinfo.value.user_messages()
        assert [(item["code"], item["row"]) for item in messages] == [
            ("invalid_date", 2),
            ("invalid_value", 3),
            ("missing_meter", 4),
        ]

    @pytest.mark.parametrize("raw", ["nan", "inf", "-Infinity", "1e999"])
    def test_non_finite_values_are_rejected(self, raw: str) -> None:
        content = f"meter_id;date;value\nm-1;2024-01-01;{raw}\n"

        with pytest.raises(UploadValidationError) as excinfo:
            parse_readings_upload(content.encode(), "r.csv")

        assert [(item["code"], item["row"]) for item in excinfo.value.user_messages()] == [
            ("invalid_value", 2)
        ]

    def test_duplicate_dates_are_rejected(self) -> None:
        content = "meter_id;date;value\nm-1;2024-01-01;1\nm-1;2024-01-01;2\n"

        with pytest.raises(UploadValidationError) as excinfo:
            parse_readings_upload(content.encode(), "r.csv")

        assert _codes(excinfo) == ["duplicate_reading"]

    def test_header_only(self) -> None:
        with pytest.raises(UploadValidationError) as excinfo:
            parse_readings_upload(b"meter_id;date;value\n", "r.csv")

        assert _codes(excinfo) == ["empty_data"]

    def test_non_utf8(self) -> None:
        with pytest.raises(UploadValidationError) as excinfo:
            parse_readings_upload("Zähler;Datum;Stand\n".encode("utf-16"), "r.csv")

        assert _codes(excinfo) == ["invalid_encoding"]


def test_unsupported_format() -> None:
    with pytest.raises(UploadValidationError) as excinfo:
        parse_readings_upload(b"{}", "readings.json")

    assert _codes(excinfo) == ["unsupported_format"]


def test_xlsx_upload() -> None:
    openpyxl = pytest.importorskip("openpyxl")
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(["Zählernummer", "Ablesedatum", "Zählerstand"])
    sheet.append(["Z-9", datetime(2024, 3, 1), 100])
    sheet.append(["Z-9", "2024-04-01", 150.5])
    buffer = io.BytesIO()
    workbook.save(buffer)

    parsed = parse_readings_upload(buffer.getvalue(), "ablesungen.xlsx")

    assert parsed.rows == [
        {"meter_id": "Z-9", "date": date(2024, 3, 1), "value": 100.0},
        {"meter_id": "Z-9", "date": date(2024, 4, 1), "value": 150.5},
    ]


@pytest.mark.parametrize("truncate", [False, True])
def test_corrupt_xlsx(truncate: bool) -> None:
    openpyxl = pytest.importorskip("openpyxl")
    content = b"not a zip"
    if truncate:
        buffer = io.BytesIO()
        openpyxl.Workbook().save(buffer)
        content = buffer.getvalue()[: len(buffer.getvalue()) // 2]

    with pytest.raises(UploadValidationError) as excinfo:
        parse_readings_upload(content, "ablesungen.xlsx")

    assert _codes(excinfo) == ["invalid_file"]
