import io
import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from resource_booking import BookingYamlRepository
from resource_booking.web_app import create_app

MOSCOW = timezone(timedelta(hours=3))


def _form(start: str, end: str, resource_id: str = "r-101", **extra: str) -> dict[str, str]:
    return {
        "title": "Seminar",
        "resourceType": "room",
        "resourceId": resource_id,
        "start": f"2026-02-24T{start}",
        "end": f"2026-02-24T{end}",
        **extra,
    }


class TestWebApp(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._temp_dir.name) / "data"
        app = create_app(self.data_dir, now_provider=lambda: datetime(2026, 2, 24, 9, 0), tz=MOSCOW)
        self.client = app.test_client()

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_catalog_lists_seeded_resources_with_labels(self) -> None:
        response = self.client.get("/api/catalog")

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual([room["label"] for room in payload["rooms"]], ["Room 101 (30 seats)", "Room 203 (20 seats)"])
        self.assertEqual(payload["assets"][0]["label"], "Epson projector - PRJ-001")
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")

    def test_create_list_update_delete_flow(self) -> None:
        create_response = self.client.post("/api/bookings", json=_form("13:00", "14:00"))
        self.assertEqual(create_response.status_code, 200)
        created = create_response.get_json()["booking"]
        self.assertEqual(created["start"], "2026-02-24T10:00:00.000Z")
        self.assertEqual(created["start_display"], "24.02.2026 13:00")

        listed = self.client.get("/api/bookings").get_json()["bookings"]
        self.assertEqual([booking["id"] for booking in listed], [created["id"]])

        update_response = self.client.post(
            "/api/bookings/update",
            json={**_form("13:30", "14:30"), "id": created["id"]},
        )
        self.assertEqual(update_response.status_code, 200)
        self.assertEqual(update_response.get_json()["booking"]["end"], "2026-02-24T11:30:00.000Z")

        delete_response = self.client.post("/api/bookings/delete", json={"id": created["id"]})
        self.assertEqual(delete_response.status_code, 200)
        self.assertEqual(self.client.get("/api/bookings").get_json()["bookings"], [])

    def test_conflicting_booking_is_rejected_with_409(self) -> None:
        first = self.client.post("/api/bookings", json=_form("13:00", "14:00")).get_json()["booking"]

        response = self.client.post("/api/bookings", json=_form("13:30", "14:30"))

        self.assertEqual(response.status_code, 409)
        payload = response.get_json()
        self.assertFalse(payload["ok"])
        self.assertIn("time", payload["errors"])
        self.assertEqual(payload["conflicting_ids"], [first["id"]])
        self.assertEqual(len(self.client.get("/api/bookings").get_json()["bookings"]), 1)

    def test_adjacent_booking_is_accepted(self) -> None:
        self.client.post("/api/bookings", json=_form("13:00", "14:00"))
        response = self.client.post("/api/bookings", json=_form("14:00", "15:00"))
        self.assertEqual(response.status_code, 200)

    def test_inverted_interval_is_rejected_with_400(self) -> None:
        response = self.client.post("/api/bookings", json=_form("14:00", "13:00"))

        self.assertEqual(response.status_code, 400)
        self.assertIn("end", response.get_json()["errors"])

    def test_non_object_json_body_is_rejected_with_400(self) -> None:
        for path in ("/api/bookings", "/api/bookings/update", "/api/bookings/delete"):
            with self.subTest(path=path):
                response = self.client.post(path, json=[{"id": "b-1"}])
                self.assertEqual(response.status_code, 400)
                self.assertFalse(response.get_json()["ok"])

    def test_missing_fields_are_rejected_with_400(self) -> None:
        response = self.client.post("/api/bookings", json={"resourceType": "room"})

        self.assertEqual(response.status_code, 400)
        errors = response.get_json()["errors"]
        self.assertEqual(set(errors), {"title", "resourceId", "start", "end"})

    def test_update_and_delete_unknown_booking_return_404(self) -> None:
        update_response = self.client.post("/api/bookings/update", json={**_form("13:00", "14:00"), "id": "b-none"})
        delete_response = self.client.post("/api/bookings/delete", json={"id": "b-none"})

        self.assertEqual(update_response.status_code, 404)
        self.assertEqual(delete_response.status_code, 404)

    def test_update_and_delete_require_id(self) -> None:
        self.assertEqual(self.client.post("/api/bookings/update", json=_form("13:00", "14:00")).status_code, 400)
        self.assertEqual(self.client.post("/api/bookings/delete", json={}).status_code, 400)

    def test_export_is_a_json_attachment(self) -> None:
        self.client.post("/api/bookings", json=_form("13:00", "14:00"))

        response = self.client.get("/api/export")

        self.assertEqual(response.status_code, 200)
        self.assertIn("room-assets-export.json", response.headers["Content-Disposition"])
        document = json.loads(response.get_data(as_text=True))
        self.assertEqual(len(document["bookings"]), 1)

    def test_import_from_json_body_and_file_upload(self) -> None:
        document = {
            "rooms": [{"id": "r-1", "name": "Room 1", "capacity": 4, "features": []}],
            "assets": [],
            "bookings": [],
        }
        body_response = self.client.post("/api/import", json=document)
        self.assertEqual(body_response.status_code, 200)
        self.assertEqual(body_response.get_json()["counts"], {"rooms": 1, "assets": 0, "bookings": 0})

        exported = BookingYamlRepository(self.data_dir).export_json()
        upload_response = self.client.post(
            "/api/import",
            data={"file": (io.BytesIO(exported.encode("utf-8")), "room-assets-export.json")},
            content_type="multipart/form-data",
        )
        self.assertEqual(upload_response.status_code, 200)

        catalog = self.client.get("/api/catalog").get_json()
        self.assertEqual([room["id"] for room in catalog["rooms"]], ["r-1"])

    def test_bad_import_is_rejected(self) -> None:
        upload_response = self.client.post(
            "/api/import",
            data={"file": (io.BytesIO(b"{broken"), "broken.json")},
            content_type="multipart/form-data",
        )
        empty_response = self.client.post("/api/import")

        self.assertEqual(upload_response.status_code, 400)
        self.assertEqual(empty_response.status_code, 400)
        self.assertEqual(len(self.client.get("/api/catalog").get_json()["rooms"]), 2)


if __name__ == "__main__":
    unittest.main()
