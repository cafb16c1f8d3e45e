from __future__ import annotations

from pathlib import Path
import tempfile
import traceback

from resource_booking import BookingConflictError, BookingYamlRepository, submit_booking_form


def main() -> int:
    print("[INFO] Resource Booking Quick Check")

    with tempfile.TemporaryDirectory() as temp_dir:
        data_dir = Path(temp_dir) / "data"
        repo = BookingYamlRepository(data_dir)
        print(f"[OK] Seeded catalog: {len(repo.get_rooms())} rooms, {len(repo.get_assets())} assets")

        created = submit_booking_form(
            {
                "title": "Programming seminar",
                "resourceType": "room",
                "resourceId": "r-101",
                "start": "2026-02-24T10:00:00Z",
                "end": "2026-02-24T11:00:00Z",
            },
            repo,
        )
        print(f"[OK] Created booking {created.id}: {created.start}~{created.end}")

        try:
            submit_booking_form(
                {
                    "title": "Overlapping lecture",
                    "resourceType": "room",
                    "resourceId": "r-101",
                    "start": "2026-02-24T10:30:00Z",
                    "end": "2026-02-24T11:30:00Z",
                },
                repo,
            )
        except BookingConflictError as error:
            print(f"[OK] Conflict rejected: {[booking.id for booking in error.conflicting]}")
        else:
            print("[ERROR] Overlapping booking was accepted.")
            return 1

        print(f"[OK] Bookings stored: {len(repo.get_bookings())}")
        print("[OK] Export:")
        print(repo.export_json())

    print("[DONE] Quick check completed successfully.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)
