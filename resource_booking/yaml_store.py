from __future__ import annotations

from dataclasses import replace
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Callable, Mapping, TypeVar
import json
import shutil
import threading
from uuid import uuid4

import yaml

from .booking import Reservation, find_conflicts
from .catalog import INITIAL_DATA, AppData, Asset, Room
from .forms import BookingForm, BookingFormError, build_reservation, validate_booking_form

ROOMS = "rooms"
ASSETS = "assets"
BOOKINGS = "bookings"
COLLECTIONS = (ROOMS, ASSETS, BOOKINGS)
EVENT_LOG_NAME = "booking_events.yaml"

T = TypeVar("T")


class BookingStorageError(RuntimeError):
    pass


class BookingNotFoundError(ValueError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking not found: {booking_id}")
        self.booking_id = booking_id


class BookingConflictError(ValueError):
    def __init__(self, candidate: Reservation, conflicting: list[Reservation]) -> None:
        super().__init__("Reservation overlaps with an existing booking for the same resource.")
        self.candidate = candidate
        self.conflicting = conflicting


class BookingYamlRepository:
    def __init__(self, base_dir: str | Path = "data", seed_initial_data: bool = True) -> None:
        self.base_dir = Path(base_dir)
        self.collection_files = {name: self.base_dir / f"{name}.yaml" for name in COLLECTIONS}
        self.log_file = self.base_dir / EVENT_LOG_NAME
        # Serializes read-check-write sequences inside one process only.
        self._lock = threading.RLock()
        self._ensure_files()
        if seed_initial_data and not self._read_yaml_list(self.collection_files[ROOMS]):
            self._replace_all(INITIAL_DATA, "INITIAL_DATA_SEEDED")

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in (*self.collection_files.values(), self.log_file):
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    def _collection_path(self, collection: str) -> Path:
        try:
            return self.collection_files[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        with self._lock:
            try:
                temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
                temp_path.replace(path)
            except OSError as error:
                raise BookingStorageError(f"Failed to write YAML file: {path}") from error
            finally:
                if temp_path.exists():
                    temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            pass

        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        with self._lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def _load(self, collection: str, factory: Callable[[dict[str, Any]], T]) -> list[T]:
        path = self._collection_path(collection)
        records: list[T] = []
        for index, row in enumerate(self._read_yaml_list(path)):
            try:
                records.append(factory(row))
            except (KeyError, ValueError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {"file": str(path.name), "index": index, "reason": f"malformed record: {error}"},
                )
        return records

    def get_events(self) -> list[dict[str, Any]]:
        return self._read_yaml_list(self.log_file)

    def get_rooms(self) -> list[Room]:
        return self._load(ROOMS, Room.from_dict)

    def get_assets(self) -> list[Asset]:
        return self._load(ASSETS, Asset.from_dict)

    def get_bookings(self) -> list[Reservation]:
        return self._load(BOOKINGS, Reservation.from_dict)

    def get_booking(self, booking_id: str) -> Reservation | None:
        for booking in self.get_bookings():
            if booking.id == booking_id:
                return booking
        return None

    def get_bookings_for_resource(self, resource_id: str) -> list[Reservation]:
        return [booking for booking in self.get_bookings() if booking.resource_id == resource_id]

    def get_all_data(self) -> AppData:
        return AppData(rooms=self.get_rooms(), assets=self.get_assets(), bookings=self.get_bookings())

    # Record-level operations, keyed by the record's "id".

    def add_record(self, collection: str, record: Mapping[str, Any]) -> None:
        path = self._collection_path(collection)
        record_id = str(record["id"])
        with self._lock:
            rows = self._read_yaml_list(path)
            if any(str(row.get("id")) == record_id for row in rows):
                raise BookingStorageError(f"Record '{record_id}' already exists in {collection}.")
            rows.append(dict(record))
            self._write_yaml_list(path, rows)

    def put_record(self, collection: str, record: Mapping[str, Any]) -> None:
        path = self._collection_path(collection)
        record_id = str(record["id"])
        with self._lock:
            rows = self._read_yaml_list(path)
            for index, row in enumerate(rows):
                if str(row.get("id")) == record_id:
                    rows[index] = dict(record)
                    break
            else:
                rows.append(dict(record))
            self._write_yaml_list(path, rows)

    def delete_record(self, collection: str, record_id: str) -> bool:
        path = self._collection_path(collection)
        with self._lock:
            rows = self._read_yaml_list(path)
            remaining = [row for row in rows if str(row.get("id")) != record_id]
            if len(remaining) == len(rows):
                return False
            self._write_yaml_list(path, remaining)
            return True

    def clear(self, collection: str | None = None) -> None:
        targets = COLLECTIONS if collection is None else (collection,)
        with self._lock:
            for name in targets:
                self._write_yaml_list(self._collection_path(name), [])

    # Booking workflow.

    def add_booking(self, reservation: Reservation, now: datetime | None = None) -> Reservation:
        effective_now = now or datetime.now()
        if not reservation.id:
            reservation = replace(reservation, id=f"b-{uuid4()}")

        with self._lock:
            self._reject_conflicts(reservation, effective_now)
            self.add_record(BOOKINGS, reservation.to_dict())

        self._log_event("BOOKING_CREATED", _event_payload(reservation), effective_now)
        return reservation

    def update_booking(self, reservation: Reservation, now: datetime | None = None) -> Reservation:
        effective_now = now or datetime.now()
        with self._lock:
            if not reservation.id or self.get_booking(reservation.id) is None:
                raise BookingNotFoundError(reservation.id)
            self._reject_conflicts(reservation, effective_now)
            self.put_record(BOOKINGS, reservation.to_dict())

        self._log_event("BOOKING_UPDATED", _event_payload(reservation), effective_now)
        return reservation

    def save_booking(self, reservation: Reservation, now: datetime | None = None) -> Reservation:
        with self._lock:
            if reservation.id and self.get_booking(reservation.id) is not None:
                return self.update_booking(reservation, now=now)
            return self.add_booking(reservation, now=now)

    def delete_booking(self, booking_id: str, now: datetime | None = None) -> Reservation:
        effective_now = now or datetime.now()
        with self._lock:
            existing = self.get_booking(booking_id)
            if existing is None:
                raise BookingNotFoundError(booking_id)
            self.delete_record(BOOKINGS, booking_id)

        self._log_event("BOOKING_DELETED", _event_payload(existing), effective_now)
        return existing

    def _reject_conflicts(self, reservation: Reservation, now: datetime) -> None:
        conflicting = find_conflicts(reservation, self.get_bookings_for_resource(reservation.resource_id))
        if not conflicting:
            return

        self._log_event(
            "BOOKING_REJECTED",
            {
                **_event_payload(reservation),
                "conflicting_ids": [booking.id for booking in conflicting],
            },
            now,
        )
        raise BookingConflictError(reservation, conflicting)

    # Export / import.

    def export_data(self) -> dict[str, list[dict[str, Any]]]:
        return self.get_all_data().to_dict()

    def export_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.export_data(), ensure_ascii=False, indent=indent)

    def import_data(self, payload: Any, now: datetime | None = None) -> AppData:
        data = AppData.from_dict(payload)
        for name, records in ((ROOMS, data.rooms), (ASSETS, data.assets), (BOOKINGS, data.bookings)):
            seen: set[str] = set()
            for record in records:
                if record.id in seen:
                    raise ValueError(f"Duplicate id '{record.id}' in {name}.")
                seen.add(record.id)

        self._replace_all(data, "DATA_IMPORTED", now)
        return data

    def import_json(self, text: str, now: datetime | None = None) -> AppData:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as error:
            raise ValueError(f"Import file is not valid JSON: {error.msg}") from error
        return self.import_data(payload, now=now)

    def _replace_all(self, data: AppData, event_type: str, now: datetime | None = None) -> None:
        document = data.to_dict()
        with self._lock:
            for name in COLLECTIONS:
                self._write_yaml_list(self.collection_files[name], document[name])

        self._log_event(
            event_type,
            {name: len(document[name]) for name in COLLECTIONS},
            now,
        )


def submit_booking_form(
    payload: Mapping[str, Any],
    repository: BookingYamlRepository,
    booking_id: str = "",
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> Reservation:
    form = BookingForm.from_payload(payload)
    errors = validate_booking_form(form, repository.get_rooms(), repository.get_assets())
    if errors:
        raise BookingFormError(errors)

    reservation = build_reservation(form, booking_id=booking_id, tz=tz)
    if booking_id:
        return repository.update_booking(reservation, now=now)
    return repository.save_booking(reservation, now=now)


def _event_payload(reservation: Reservation) -> dict[str, Any]:
    record = reservation.to_dict()
    return {
        "id": record["id"],
        "resource_type": record["resourceType"],
        "resource_id": record["resourceId"],
        "start": record["start"],
        "end": record["end"],
    }
