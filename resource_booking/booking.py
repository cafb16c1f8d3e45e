from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

RESOURCE_TYPES = ("room", "asset")


class InvalidInterval(ValueError):
    """Candidate start/end is unparseable or not strictly increasing."""


@dataclass(frozen=True)
class Reservation:
    id: str
    resource_type: str
    resource_id: str
    title: str
    start: str | datetime
    end: str | datetime
    notes: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "title": self.title,
            "start": _dump_timestamp(self.start),
            "end": _dump_timestamp(self.end),
            "notes": self.notes,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Reservation":
        # start/end stay opaque here; a corrupt stored timestamp must still load.
        return Reservation(
            id=str(data["id"]),
            resource_type=str(data.get("resourceType", "room")),
            resource_id=str(data["resourceId"]),
            title=str(data.get("title") or ""),
            start=str(data.get("start") or ""),
            end=str(data.get("end") or ""),
            notes=str(data.get("notes") or ""),
        )


def parse_instant(value: str | datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime, or None if it is not an absolute instant.

    Accepts ISO-8601 strings (a trailing ``Z`` means UTC) and datetimes. Naive
    values carry no offset and are therefore rejected.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        return None
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # 0001-01-01 or 9999-12-31 shifted past the datetime range
        return None


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals overlap.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    return new_start < exist_end and new_end > exist_start


def candidate_interval(candidate: Reservation) -> tuple[datetime, datetime]:
    """Parse the candidate's interval or raise InvalidInterval."""
    start = parse_instant(candidate.start)
    end = parse_instant(candidate.end)
    if start is None:
        raise InvalidInterval(f"Invalid start timestamp: {candidate.start!r}")
    if end is None:
        raise InvalidInterval(f"Invalid end timestamp: {candidate.end!r}")
    if start >= end:
        raise InvalidInterval("Reservation start time must be earlier than end time.")
    return start, end


def find_conflicts(candidate: Reservation, existing_reservations: Iterable[Reservation]) -> list[Reservation]:
    """Return every existing reservation on the candidate's resource that overlaps it."""
    start, end = candidate_interval(candidate)
    return list(_overlapping(candidate, start, end, existing_reservations))


def conflicts(candidate: Reservation, existing_reservations: Iterable[Reservation]) -> bool:
    """Return True if the candidate overlaps any other reservation on the same resource.

    Raises InvalidInterval for a malformed candidate. Existing records with
    unparseable timestamps are skipped, and a record sharing the candidate's
    (non-empty) id is the candidate's own prior state, so it is ignored.
    """
    start, end = candidate_interval(candidate)
    for _ in _overlapping(candidate, start, end, existing_reservations):
        return True
    return False


def _overlapping(
    candidate: Reservation,
    start: datetime,
    end: datetime,
    existing_reservations: Iterable[Reservation],
) -> Iterator[Reservation]:
    for reservation in existing_reservations:
        if reservation.resource_id != candidate.resource_id:
            continue
        if candidate.id and reservation.id == candidate.id:
            continue

        exist_start = parse_instant(reservation.start)
        exist_end = parse_instant(reservation.end)
        if exist_start is None or exist_end is None:
            continue

        if has_time_overlap(start, end, exist_start, exist_end):
            yield reservation


def _dump_timestamp(value: str | datetime) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return value
