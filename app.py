from __future__ import annotations

from datetime import date, datetime, timezone

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import BadRequest, RequestEntityTooLarge

from ablesung.config import AnomalySettings, ExportSettings
from ablesung.errors import ValidationError
from ablesung.formatting import export_csv
from ablesung.periods import year_period
from ablesung.readings import index_readings, parse_reading_date
from ablesung.reporting import build_anomaly_report, export_period
from readings_upload import UploadValidationError, parse_readings_upload

MAX_UPLOAD_MB = 10

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_MB * 1024 * 1024
app.config.from_prefixed_env("ABLESUNG")


@app.get("/api/health")
def health() -> object:
    return jsonify({"status": "ok"})


@app.post("/api/anomalies")
def anomalies() -> object:
    try:
        payload = _json_body()
        meters = _meters(payload)
        today = _optional_date(payload.get("today")) or date.today()
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    report = build_anomaly_report(meters, today=today, settings=_anomaly_settings())
    app.logger.info(
        "Analyzed %d meters, found %d anomalies", report.meters_analyzed, report.count
    )
    return jsonify(report.to_dict())


@app.post("/api/export")
def export() -> object:
    try:
        payload = _json_body()
        meters = _meters(payload)
        period_start, period_end = _period(payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    report = export_period(meters, period_start, period_end, settings=_export_settings())

    if request.args.get("format") == "csv":
        filename = f"bk_export_{period_start.isoformat()}_{period_end.isoformat()}.csv"
        return Response(
            export_csv(report, title=payload.get("title")),
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    body = report.to_dict()
    body["exported_at"] = datetime.now(timezone.utc).isoformat()
    body["source"] = "ablesung"
    return jsonify(body)


@app.post("/api/upload")
def upload() -> object:
    if "file" not in request.files:
        return jsonify({"error": "Keine Datei empfangen."}), 400
    file = request.files["file"]
    if not file.filename:
        return jsonify({"error": "Dateiname fehlt."}), 400

    try:
        today = _optional_date(request.form.get("today")) or date.today()
        interval_days = _parse_int_field("reading_interval_days", default=30, minimum=1)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    meter_type = (request.form.get("meter_type") or "").strip()

    try:
        parsed = parse_readings_upload(file.read(), file.filename)
    except UploadValidationError as exc:
        return jsonify({"error": "Upload-Prüfung fehlgeschlagen.", "details": exc.user_messages()}), 422

    try:
        grouped = index_readings(parsed.rows)
    except ValidationError as exc:
        details = [{"code": "invalid_reading", "message": str(exc)}]
        return jsonify({"error": "Upload-Prüfung fehlgeschlagen.", "details": details}), 422
    meters = [
        {
            "id": meter_id,
            "type": meter_type,
            "meter_number": meter_id,
            "reading_interval_days": interval_days,
            "readings": grouped[meter_id],
        }
        for meter_id in parsed.meter_ids
    ]
    report = build_anomaly_report(meters, today=today, settings=_anomaly_settings())
    return jsonify(report.to_dict())


@app.errorhandler(RequestEntityTooLarge)
def handle_file_too_large(_: RequestEntityTooLarge) -> object:
    return (
        jsonify({"error": f"Datei ist zu groß. Maximal {MAX_UPLOAD_MB} MB erlaubt."}),
        413,
    )


def _json_body() -> dict:
    try:
        payload = request.get_json(force=True)
    except BadRequest as exc:
        raise ValueError("Ungültiger JSON-Inhalt.") from exc
    if not isinstance(payload, dict):
        raise ValueError("JSON-Objekt erwartet.")
    return payload


def _meters(payload: dict) -> list:
    meters = payload.get("meters")
    if not isinstance(meters, list):
        raise ValueError("meters muss eine Liste sein.")
    return meters


def _period(payload: dict) -> tuple[date, date]:
    if payload.get("period_year") is not None:
        try:
            return year_period(int(payload["period_year"]))
        except (TypeError, ValueError) as exc:
            raise ValueError("period_year ist ungültig.") from exc
    period_start = _optional_date(payload.get("period_start"))
    period_end = _optional_date(payload.get("period_end"))
    if period_start is None or period_end is None:
        raise ValueError("period_year oder period_start/period_end erforderlich.")
    if period_end < period_start:
        raise ValueError("period_end liegt vor period_start.")
    return period_start, period_end


def _optional_date(raw: object) -> date | None:
    if raw in (None, ""):
        return None
    try:
        return parse_reading_date(raw)
    except ValidationError as exc:
        raise ValueError(f"Ungültiges Datum: {raw}.") from exc


def _parse_int_field(name: str, *, default: int, minimum: int | None = None) -> int:
    raw = request.form.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Wert für {name.replace('_', ' ')} ist ungültig.") from exc
    if minimum is not None and value < minimum:
        raise ValueError(f"Wert für {name.replace('_', ' ')} muss mindestens {minimum} sein.")
    return value


def _anomaly_settings() -> AnomalySettings:
    return AnomalySettings.from_mapping(app.config)


def _export_settings() -> ExportSettings:
    return ExportSettings.from_mapping(app.config)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
