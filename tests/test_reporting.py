"""
Tests for period exports, per-type summaries, anomaly reports and CSV output.
"""

from __future__ import annotations

import json
from datetime import date

import pytest

from ablesung.aggregates import summarize_by_type
from ablesung.config import ExportSettings
from ablesung.formatting import export_csv
from ablesung.periods import year_period
from ablesung.reporting import build_anomaly_report, export_period


def _meter(meter_id: str, meter_type: str, unit_id: str, readings: list[tuple[str, float]]) -> dict:
    return {
        "id": meter_id,
        "type": meter_type,
        "unit_id": unit_id,
        "meter_number": f"Z-{meter_id}",
        "readings": [{"date": day, "value": value} for day, value in readings],
    }


@pytest.fixture()
def building_meters() -> list[dict]:
    return [
        _meter("e-1", "electricity", "u-1", [("2023-11-15", 500), ("2024-06-10", 900)]),
        _meter("w-1", "water_cold", "u-1", [("2024-01-02", 10), ("2024-12-30", 40)]),
        _meter("e-2", "electricity", "u-2", [("2024-01-01", 0), ("2024-12-31", 1200)]),
        _meter("w-2", "water_cold", "u-2", [("2024-07-01", 55)]),
    ]


class TestExportPeriod:
    def test_consumption_cost_and_share(self, building_meters: list[dict]) -> None:
        report = export_period(building_meters, *year_period(2024))

        by_id = {item.meter_id: item for item in report.consumptions}
        assert by_id["e-1"].consumption == 400
        assert by_id["e-1"].share_percent == 25.0
        assert by_id["e-2"].share_percent == 75.0
        assert by_id["e-2"].estimated_cost == 384.0
        assert by_id["w-1"].consumption == 30
        assert by_id["w-1"].estimated_cost == 135.0
        assert by_id["w-1"].share_percent == 100.0
        assert by_id["w-2"].has_data is False
        assert by_id["w-2"].warning == "Nur eine Ablesung"
        assert by_id["w-2"].share_percent == 0.0

    def test_summary_by_type(self, building_meters: list[dict]) -> None:
        summary = export_period(building_meters, *year_period(2024)).summary_by_type

        electricity = summary["electricity"]
        assert electricity.total_consumption == 1600
        assert electricity.total_cost == 512.0
        assert electricity.unit_label == "kWh"
        assert electricity.meter_count == 2

        water = summary["water_cold"]
        assert water.total_consumption == 30
        assert water.total_cost == 135.0
        assert water.unit_label == "m³"
        assert water.meter_count == 2

    def test_grouped_by_unit(self, building_meters: list[dict]) -> None:
        units = export_period(building_meters, *year_period(2024)).by_unit()

        assert list(units) == ["u-1", "u-2"]
        assert [item.meter_id for item in units["u-2"]] == ["e-2", "w-2"]

    def test_shares_never_exceed_one_hundred(self, building_meters: list[dict]) -> None:
        report = export_period(building_meters, *year_period(2024))

        for meter_type in report.summary_by_type:
            total = sum(
                item.share_percent for item in report.consumptions if item.meter_type == meter_type
            )
            assert total <= 100

    def test_invalid_meter_is_reported_and_skipped(self, building_meters: list[dict]) -> None:
        building_meters.append(
            {"id": "bad", "type": "gas", "readings": [{"date": "2024-01-01", "value": "x"}]}
        )

        report = export_period(building_meters, *year_period(2024))

        assert [error["meter_id"] for error in report.errors] == ["bad"]
        assert len(report.consumptions) == 4
        assert "gas" not in report.summary_by_type

    @pytest.mark.parametrize("reading", [5, [2024, 1, 1, 5], None])
    def test_malformed_reading_shape_is_reported(
        self, building_meters: list[dict], reading: object
    ) -> None:
        building_meters.append({"id": "bad", "type": "gas", "readings": [reading]})

        report = export_period(building_meters, *year_period(2024))

        assert [error["meter_id"] for error in report.errors] == ["bad"]
        assert [item.meter_id for item in report.consumptions] == ["e-1", "w-1", "e-2", "w-2"]

    @pytest.mark.parametrize("year", [1, 9999])
    def test_calendar_boundary_years(self, year: int) -> None:
        day = f"{year:04d}-06-01"
        meters = [_meter("g-1", "gas", "u-1", [(day, 1)])]

        report = export_period(meters, *year_period(year))

        assert report.errors == []
        assert report.consumptions[0].warning == "Nur eine Ablesung"

    def test_buffer_can_be_configured(self) -> None:
        meters = [_meter("g-1", "gas", "u-1", [("2023-08-01", 0), ("2024-10-01", 50)])]

        narrow = export_period(meters, *year_period(2024))
        wide = export_period(meters, *year_period(2024), settings=ExportSettings(buffer_months=6))

        assert narrow.consumptions[0].has_data is False
        assert wide.consumptions[0].consumption == 50

    def test_reversed_period_raises(self) -> None:
        with pytest.raises(ValueError):
            export_period([], date(2024, 12, 31), date(2024, 1, 1))

    def test_to_dict_is_json_ready(self, building_meters: list[dict]) -> None:
        payload = export_period(building_meters, *year_period(2024)).to_dict()

        assert payload["period"] == {"start": "2024-01-01", "end": "2024-12-31"}
        first = payload["units"][0]["consumptions"][0]
        assert first["start_date"] == "2023-11-15"
        assert first["consumption_share_percent"] == 25.0
        assert payload["summary"]["electricity"]["meter_count"] == 2
        json.dumps(payload)

    def test_same_input_gives_identical_output(self, building_meters: list[dict]) -> None:
        first = json.dumps(export_period(building_meters, *year_period(2024)).to_dict())
        second = json.dumps(export_period(building_meters, *year_period(2024)).to_dict())

        assert first == second


def test_summarize_empty() -> None:
    assert summarize_by_type([]) == {}


def test_anomaly_report(today: date) -> None:
    meters = [
        {"id": "a", "type": "gas", "readings": [{"date": "2024-01-01", "value": 1}]},
        {"id": "b", "type": "gas", "readings": [{"date": "bad", "value": 1}]},
    ]

    report = build_anomaly_report(meters, today=today)

    assert report.count == 1
    assert report.meters_analyzed == 1
    payload = report.to_dict()
    assert payload["date"] == "2024-04-15"
    assert payload["anomalies"][0]["anomaly_type"] == "stale"
    assert payload["errors"][0]["meter_id"] == "b"


class TestExportCsv:
    def test_layout(self, building_meters: list[dict]) -> None:
        report = export_period(building_meters, *year_period(2024))

        text = export_csv(report, title="Nebenkostenabrechnung Hauptstraße 1")
        lines = text.lstrip("\ufeff").splitlines()

        assert text.startswith("\ufeff")
        assert lines[0] == '"Nebenkostenabrechnung Hauptstraße 1"'
        assert lines[1] == '"Zeitraum: 2024-01-01 bis 2024-12-31"'
        assert lines[3].startswith('"Einheit";"Zählertyp";"Zählernummer"')
        assert lines[4] == (
            '"u-1";"electricity";"Z-e-1";"2023-11-15";"500,00";"2024-06-10";"900,00";'
            '"400,00";"kWh";"25,00";"128,00";""'
        )
        assert '"Nur eine Ablesung"' in text
        assert '"electricity";"1600,00";"kWh";"512,00";"2"' in text

    def test_without_title(self) -> None:
        report = export_period([], *year_period(2024))

        lines = export_csv(report).lstrip("\ufeff").splitlines()

        assert lines[0] == '"Zeitraum: 2024-01-01 bis 2024-12-31"'
