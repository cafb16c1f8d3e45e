from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any

from .booking import Reservation, parse_instant

ASSET_STATUSES = ("available", "unavailable")


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    capacity: int
    features: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "capacity": self.capacity,
            "features": list(self.features),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Room":
        try:
            return Room(
                id=str(data["id"]),
                name=str(data["name"]),
                capacity=int(data["capacity"]),
                features=tuple(str(item) for item in data.get("features") or []),
            )
        except (KeyError, TypeError, ValueError) as error:
            raise ValueError(f"Invalid room record: {data!r}") from error


@dataclass(frozen=True)
class Asset:
    id: str
    name: str
    inventory_code: str
    status: str = "available"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "inventoryCode": self.inventory_code,
            "status": self.status,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Asset":
        try:
            asset = Asset(
                id=str(data["id"]),
                name=str(data["name"]),
                inventory_code=str(data["inventoryCode"]),
                status=str(data.get("status", "available")),
            )
        except (KeyError, TypeError) as error:
            raise ValueError(f"Invalid asset record: {data!r}") from error
        if asset.status not in ASSET_STATUSES:
            raise ValueError(f"Invalid asset status: {asset.status!r}")
        return asset


@dataclass(frozen=True)
class AppData:
    """The whole dataset, in the shape used for export and import."""

    rooms: list[Room] = field(default_factory=list)
    assets: list[Asset] = field(default_factory=list)
    bookings: list[Reservation] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "rooms": [room.to_dict() for room in self.rooms],
            "assets": [asset.to_dict() for asset in self.assets],
            "bookings": [booking.to_dict() for booking in self.bookings],
        }

    @staticmethod
    def from_dict(payload: Any) -> "AppData":
        if not isinstance(payload, dict):
            raise ValueError("Dataset document must be a JSON object.")

        sections: dict[str, list[dict[str, Any]]] = {}
        for name in ("rooms", "assets", "bookings"):
            rows = payload.get(name, [])
            if not isinstance(rows, list):
                raise ValueError(f"'{name}' must be a list.")
            for index, row in enumerate(rows):
                if not isinstance(row, dict):
                    raise ValueError(f"'{name}[{index}]' must be an object.")
            sections[name] = rows

        try:
            bookings = [Reservation.from_dict(row) for row in sections["bookings"]]
        except KeyError as error:
            raise ValueError(f"Booking record is missing {error}.") from error

        return AppData(
            rooms=[Room.from_dict(row) for row in sections["rooms"]],
            assets=[Asset.from_dict(row) for row in sections["assets"]],
            bookings=bookings,
        )


INITIAL_DATA = AppData(
    rooms=[
        Room(id="r-101", name="Room 101", capacity=30, features=("projector", "whiteboard")),
        Room(id="r-203", name="Room 203", capacity=20),
    ],
    assets=[
        Asset(id="a-proj-1", name="Epson projector", inventory_code="PRJ-001", status="available"),
    ],
)


def find_resource(
    resource_type: str,
    resource_id: str,
    rooms: list[Room],
    assets: list[Asset],
) -> Room | Asset | None:
    candidates: list[Room] | list[Asset] = rooms if resource_type == "room" else assets
    for resource in candidates:
        if resource.id == resource_id:
            return resource
    return None


def resource_label(resource: Room | Asset) -> str:
    if isinstance(resource, Room):
        return f"{resource.name} ({resource.capacity} seats)"
    return f"{resource.name} - {resource.inventory_code}"


def format_local_date(iso_string: str, tz: tzinfo | None = None) -> str:
    """Format a stored timestamp as ``dd.MM.yyyy HH:mm`` in local time.

    Unparseable values are returned unchanged so that a corrupt record can
    still be listed.
    """
    instant = parse_instant(iso_string)
    if instant is None:
        return iso_string
    return instant.astimezone(tz).strftime("%d.%m.%Y %H:%M")
