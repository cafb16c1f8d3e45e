from __future__ import annotations

from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Callable
import os

from flask import Flask, Response, jsonify, request

from .booking import InvalidInterval, Reservation
from .catalog import format_local_date, resource_label
from .forms import BookingFormError
from .yaml_store import (
    BookingConflictError,
    BookingNotFoundError,
    BookingYamlRepository,
    submit_booking_form,
)

EXPORT_FILENAME = "room-assets-export.json"


def create_app(
    data_dir: str | Path = "data",
    now_provider: Callable[[], datetime] | None = None,
    tz: tzinfo | None = None,
) -> Flask:
    app = Flask(__name__)
    repository = BookingYamlRepository(data_dir)
    clock: Callable[[], datetime] = now_provider or datetime.now

    def _serialize_booking(record: Reservation) -> dict[str, Any]:
        payload = record.to_dict()
        payload["start_display"] = format_local_date(payload["start"], tz)
        payload["end_display"] = format_local_date(payload["end"], tz)
        return payload

    def _save(payload: dict[str, Any], booking_id: str = "") -> Any:
        try:
            saved = submit_booking_form(payload, repository, booking_id=booking_id, tz=tz, now=clock())
        except BookingFormError as error:
            return jsonify({"ok": False, "message": "Please fix the highlighted fields.", "errors": error.errors}), 400
        except InvalidInterval as error:
            return jsonify({"ok": False, "message": str(error), "errors": {"end": str(error)}}), 400
        except BookingConflictError as error:
            message = "The selected time overlaps an existing booking."
            return (
                jsonify(
                    {
                        "ok": False,
                        "message": message,
                        "errors": {"time": message},
                        "conflicting_ids": [booking.id for booking in error.conflicting],
                    }
                ),
                409,
            )
        except BookingNotFoundError as error:
            return jsonify({"ok": False, "message": str(error)}), 404
        except Exception:
            return jsonify({"ok": False, "message": "An unexpected error occurred while saving the booking."}), 500

        return jsonify({"ok": True, "booking": _serialize_booking(saved)})

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/api/catalog")
    def get_catalog() -> Any:
        rooms = repository.get_rooms()
        assets = repository.get_assets()
        return jsonify(
            {
                "ok": True,
                "rooms": [{**room.to_dict(), "label": resource_label(room)} for room in rooms],
                "assets": [{**asset.to_dict(), "label": resource_label(asset)} for asset in assets],
            }
        )

    @app.get("/api/bookings")
    def get_bookings() -> Any:
        bookings = repository.get_bookings()
        return jsonify({"ok": True, "bookings": [_serialize_booking(record) for record in bookings]})

    @app.post("/api/bookings")
    def create_booking() -> Any:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return jsonify({"ok": False, "message": "Request body must be a JSON object."}), 400
        return _save(payload)

    @app.post("/api/bookings/update")
    def update_booking() -> Any:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return jsonify({"ok": False, "message": "Request body must be a JSON object."}), 400
        booking_id = str(payload.get("id", "")).strip()
        if not booking_id:
            return jsonify({"ok": False, "message": "id is required."}), 400
        return _save(payload, booking_id=booking_id)

    @app.post("/api/bookings/delete")
    def delete_booking() -> Any:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return jsonify({"ok": False, "message": "Request body must be a JSON object."}), 400
        booking_id = str(payload.get("id", "")).strip()
        if not booking_id:
            return jsonify({"ok": False, "message": "id is required."}), 400

        try:
            deleted = repository.delete_booking(booking_id, now=clock())
        except BookingNotFoundError as error:
            return jsonify({"ok": False, "message": str(error)}), 404

        return jsonify({"ok": True, "booking": _serialize_booking(deleted)})

    @app.get("/api/export")
    def export_data() -> Any:
        return Response(
            repository.export_json(indent=2),
            mimetype="application/json",
            headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
        )

    @app.post("/api/import")
    def import_data() -> Any:
        upload = request.files.get("file")
        try:
            if upload is not None:
                data = repository.import_json(upload.read().decode("utf-8"), now=clock())
            else:
                payload = request.get_json(silent=True)
                if payload is None:
                    return jsonify({"ok": False, "message": "Send a JSON document or upload a file."}), 400
                data = repository.import_data(payload, now=clock())
        except (UnicodeDecodeError, ValueError) as error:
            return jsonify({"ok": False, "message": f"Import failed: {error}"}), 400

        return jsonify(
            {
                "ok": True,
                "counts": {
                    "rooms": len(data.rooms),
                    "assets": len(data.assets),
                    "bookings": len(data.bookings),
                },
            }
        )

    return app


if __name__ == "__main__":
    app = create_app(os.environ.get("RESOURCE_BOOKING_DATA_DIR", "data"))
    app.run(
        host=os.environ.get("RESOURCE_BOOKING_HOST", "127.0.0.1"),
        port=int(os.environ.get("RESOURCE_BOOKING_PORT", "5000")),
        debug=False,
    )
