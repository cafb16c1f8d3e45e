from __future__ import annotations

from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from resource_booking import BookingYamlRepository, Reservation, conflicts

mcp = FastMCP(
    "Resource Booking MCP Server",
    instructions="Expose the room and asset catalog and bookings from the resource_booking project.",
    json_response=True,
)

DATA_DIR = Path(__file__).parent / "data"
REPOSITORY = BookingYamlRepository(DATA_DIR)


@mcp.resource("booking://rooms")
async def list_rooms() -> list[dict[str, Any]]:
    """List bookable rooms."""
    return [room.to_dict() for room in REPOSITORY.get_rooms()]


@mcp.resource("booking://assets")
async def list_assets() -> list[dict[str, Any]]:
    """List bookable assets."""
    return [asset.to_dict() for asset in REPOSITORY.get_assets()]


@mcp.tool()
def list_bookings(resource_id: str | None = None) -> list[dict[str, str]]:
    """Return bookings, optionally filtered by resource id."""
    records = REPOSITORY.get_bookings()
    filtered = [record for record in records if resource_id is None or record.resource_id == resource_id]
    return [record.to_dict() for record in filtered]


@mcp.tool()
def check_conflict(resource_id: str, start_iso: str, end_iso: str, booking_id: str = "") -> bool:
    """Return True if the interval overlaps an existing booking for the resource."""
    candidate = Reservation(
        id=booking_id,
        resource_type="room",
        resource_id=resource_id,
        title="",
        start=start_iso,
        end=end_iso,
    )
    return conflicts(candidate, REPOSITORY.get_bookings_for_resource(resource_id))


@mcp.tool()
def add_booking(
    resource_type: str,
    resource_id: str,
    title: str,
    start_iso: str,
    end_iso: str,
    notes: str = "",
) -> dict[str, str]:
    """Create a booking from ISO timestamps with a UTC offset."""
    created = REPOSITORY.add_booking(
        Reservation(
            id="",
            resource_type=resource_type,
            resource_id=resource_id,
            title=title,
            start=start_iso,
            end=end_iso,
            notes=notes,
        )
    )
    return created.to_dict()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
