from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, Mapping

from .booking import RESOURCE_TYPES, Reservation
from .catalog import Asset, Room, find_resource


class BookingFormError(ValueError):
    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(f"{name}: {message}" for name, message in errors.items()))
        self.errors = errors


@dataclass(frozen=True)
class BookingForm:
    title: str
    resource_type: str
    resource_id: str
    start: str
    end: str
    notes: str = ""

    @staticmethod
    def from_payload(payload: Mapping[str, Any]) -> "BookingForm":
        def _field(*names: str, default: str = "") -> str:
            for name in names:
                value = payload.get(name)
                if value is not None:
                    return str(value)
            return default

        return BookingForm(
            title=_field("title"),
            resource_type=_field("resourceType", "resource_type", default="room"),
            resource_id=_field("resourceId", "resource_id"),
            start=_field("start"),
            end=_field("end"),
            notes=_field("notes"),
        )


def validate_booking_form(form: BookingForm, rooms: list[Room], assets: list[Asset]) -> dict[str, str]:
    """Check the non-temporal required fields and that both timestamps parse.

    Ordering and overlap of the interval are left to the conflict check.
    """
    errors: dict[str, str] = {}

    if not form.title.strip():
        errors["title"] = "Enter a booking title."

    if form.resource_type not in RESOURCE_TYPES:
        errors["resourceType"] = "Resource type must be 'room' or 'asset'."
    elif not form.resource_id.strip():
        errors["resourceId"] = "Select a resource."
    elif find_resource(form.resource_type, form.resource_id.strip(), rooms, assets) is None:
        errors["resourceId"] = f"Unknown {form.resource_type}: {form.resource_id.strip()}"

    for name, value in (("start", form.start), ("end", form.end)):
        if not value.strip():
            errors[name] = f"Enter the {name} time."
            continue
        try:
            to_utc_iso(value)
        except ValueError:
            errors[name] = f"Invalid {name} time: {value}"

    return errors


def to_utc_iso(value: str, tz: tzinfo | None = None) -> str:
    """Convert a form timestamp into a UTC ISO string such as ``2026-02-24T10:00:00.000Z``.

    A value without an offset (as sent by a ``datetime-local`` input) is read
    as wall-clock time in ``tz``, or in the local timezone when ``tz`` is None.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    try:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz) if tz is not None else parsed.astimezone()
        converted = parsed.astimezone(timezone.utc)
    except (OverflowError, OSError) as error:
        raise ValueError(f"Timestamp out of range: {value}") from error
    return converted.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_reservation(form: BookingForm, booking_id: str = "", tz: tzinfo | None = None) -> Reservation:
    return Reservation(
        id=booking_id,
        resource_type=form.resource_type,
        resource_id=form.resource_id.strip(),
        title=form.title.strip(),
        start=to_utc_iso(form.start, tz),
        end=to_utc_iso(form.end, tz),
        notes=form.notes,
    )
