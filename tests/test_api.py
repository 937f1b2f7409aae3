# tests/test_api.py
"""HTTP-level tests for the gate, visitor, employee and OCR routers."""

import io
import pytest
from datetime import datetime, timezone
from unittest.mock import patch
from fastapi.testclient import TestClient
from PIL import Image

from app.config import settings
from app.database import get_db
from app.main import app
from app.services import visitor_service
from app.services.errors import InfrastructureFailure

API = "/api/v1"


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (200, 50), color="white").save(buf, format="PNG")
    return buf.getvalue()


class TestValidate:
    def test_unknown_plate_is_denied_and_logged(self, client):
        resp = client.post(f"{API}/access/validate", json={"plate": "zzz 999"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is False
        assert body["reason"] == "invalid_plate"
        assert body["message"] == "License plate not found in employee records"
        assert "data" not in body

        logs = client.get(f"{API}/access/logs", params={"status": "denied"}).json()
        assert logs["total"] == 1
        assert logs["data"][0]["plate"] == "ZZZ999"
        assert logs["data"][0]["denial_reason"] == "invalid_plate"

    def test_registered_employee_is_granted(self, client, make_employee):
        make_employee()
        resp = client.post(f"{API}/access/validate", json={"plate": "ABC-123", "kind": "employee"})
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["driver_name"] == "Ana Gómez"
        assert body["data"]["vehicle_type"] == "car"
        assert client.get(f"{API}/access/logs").json()["total"] == 0

    def test_visitor_is_granted(self, client, make_visitor):
        make_visitor()
        body = client.post(f"{API}/access/validate", json={"plate": "JKL789", "kind": "visitor"}).json()
        assert body["success"] is True
        assert body["data"]["destination_area"] == "Producción"

    def test_plate_without_characters(self, client):
        assert client.post(f"{API}/access/validate", json={"plate": "-- "}).status_code == 400

    def test_unknown_kind(self, client):
        assert client.post(f"{API}/access/validate", json={"plate": "ABC123", "kind": "robot"}).status_code == 422

    def test_storage_outage_is_503(self, client):
        with patch("app.services.directory_service.DirectoryService.find_employee_by_plate",
                   side_effect=InfrastructureFailure("connection refused")):
            resp = client.post(f"{API}/access/validate", json={"plate": "ABC123"})
        assert resp.status_code == 503
        assert resp.json() == {"detail": "Service temporarily unavailable", "retryable": True}


class TestEntryExit:
    def test_full_visit(self, client, make_employee):
        make_employee()

        entry = client.post(f"{API}/access/entry", json={"plate": "ABC123", "detection_method": "camera_scan"})
        assert entry.status_code == 200
        assert entry.json()["user"] == {"name": "Ana Gómez", "type": "employee"}
        assert entry.json()["access_log_id"] > 0

        occupancy = client.get(f"{API}/access/occupancy").json()
        assert occupancy["total"] == 1
        assert occupancy["entries"][0]["user_name"] == "Ana Gómez"

        assert client.post(f"{API}/access/entry", json={"plate": "ABC123"}).status_code == 409

        exit_resp = client.post(f"{API}/access/exit", json={"plate": "ABC123"})
        assert exit_resp.status_code == 200
        assert exit_resp.json()["duration_minutes"] == 0

        assert client.get(f"{API}/access/occupancy").json()["total"] == 0
        assert client.post(f"{API}/access/exit", json={"plate": "ABC123"}).status_code == 404

        counts = client.get(f"{API}/access/count/today").json()
        assert counts["entries"] == 1
        assert counts["exits"] == 1
        assert counts["currently_inside"] == 0

    def test_unregistered_plate(self, client):
        assert client.post(f"{API}/access/entry", json={"plate": "QQQ111"}).status_code == 404

    def test_denial_stats(self, client):
        client.post(f"{API}/access/validate", json={"plate": "ZZZ999"})
        client.post(f"{API}/access/validate", json={"plate": "YYY888", "kind": "visitor"})
        stats = client.get(f"{API}/access/stats/denials").json()
        assert stats == [{"reason": "invalid_plate", "count": 2}]


class TestVisitors:
    def test_validate_qr(self, client, db, make_visitor):
        visitor = make_visitor()
        visitor.qr_token = visitor_service.build_qr_token(visitor)
        db.commit()

        resp = client.post(f"{API}/visitors/validate-qr", json={"qr_token": visitor.qr_token})
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert resp.json()["data"]["plate"] == "JKL789"
        assert resp.json()["data"]["expiry_time"] is not None

    def test_garbage_qr(self, client):
        assert client.post(f"{API}/visitors/validate-qr", json={"qr_token": "%%%"}).status_code == 400

    def test_get_visitor(self, client, make_visitor):
        visitor = make_visitor()
        assert client.get(f"{API}/visitors/{visitor.id}").json()["name"] == "Jorge Ramírez"
        assert client.get(f"{API}/visitors/9999").status_code == 404

    def test_status_transition_rules(self, client, make_visitor):
        visitor = make_visitor(status="completed")
        resp = client.patch(f"{API}/visitors/{visitor.id}/status", json={"status": "approved"})
        assert resp.status_code == 400
        assert client.patch(f"{API}/visitors/9999/status", json={"status": "approved"}).status_code == 404

    def test_extend(self, client, make_visitor):
        visitor = make_visitor(hours=4)
        resp = client.patch(f"{API}/visitors/{visitor.id}/extend", json={"additional_hours": 2})
        assert resp.status_code == 200
        assert resp.json()["expected_duration_hours"] == 6


class TestEmployees:
    def test_search_by_plate(self, client, make_employee):
        make_employee()
        known = client.get(f"{API}/employees/search/plate/abc123").json()
        assert known["status"] == "known"
        assert known["owner"] == "Ana Gómez"
        assert client.get(f"{API}/employees/search/plate/XYZ000").json()["registered"] is False

    def test_by_document(self, client, make_employee):
        make_employee()
        assert client.get(f"{API}/employees/by-document/1020304050").json()["full_name"] == "Ana Gómez"
        assert client.get(f"{API}/employees/by-document/000").status_code == 404


class TestOCR:
    def test_read_plate(self, client):
        with patch("pytesseract.image_to_data", return_value={"text": ["DEF456"], "conf": [82]}):
            resp = client.post(f"{API}/ocr/plate", files={"image": ("gate.png", png_bytes(), "image/png")})
        assert resp.status_code == 200
        assert resp.json()["plate"] == "DEF456"
        assert resp.json()["confidence"] == 82

    def test_unreadable_image(self, client):
        resp = client.post(f"{API}/ocr/plate", files={"image": ("gate.png", b"nope", "image/png")})
        assert resp.status_code == 422

    def test_batch(self, client):
        files = [("images", ("a.png", png_bytes(), "image/png")),
                 ("images", ("b.png", b"nope", "image/png"))]
        with patch("pytesseract.image_to_data", return_value={"text": ["DEF456"], "conf": [82]}):
            body = client.post(f"{API}/ocr/batch", files=files).json()
        assert body["processed"] == 2
        assert [r["success"] for r in body["results"]] == [True, False]

    def test_health_reports_degraded_ocr(self, client):
        with patch("pytesseract.get_tesseract_version", side_effect=EnvironmentError("missing")):
            body = client.get(f"{API}/health").json()
        assert body["database"] == "ok"
        assert body["ocr"] == "unavailable"
        assert body["status"] == "degraded"


class TestFacilityClock:
    def test_first_thursday_follows_local_calendar(self, client, make_employee):
        make_employee(access_level="basic")
        # 01:00 UTC on Friday 3 Nov 2023 is still Thursday evening in Bogotá
        utc = datetime(2023, 11, 3, 1, 0, tzinfo=timezone.utc)
        with patch("app.services.temporal_policy._utc_now", return_value=utc), \
                patch.object(settings, "TIMEZONE", "America/Bogota"):
            body = client.post(f"{API}/access/validate", json={"plate": "ABC123"}).json()

        assert body["success"] is False
        assert body["reason"] == "first_thursday_restriction"
        log = client.get(f"{API}/access/logs", params={"status": "denied"}).json()["data"][0]
        assert log["is_first_thursday"] is True
        assert log["access_time"].startswith("2023-11-02T20:00")

    def test_wednesday_evening_locally_is_granted(self, client, make_employee):
        make_employee(access_level="basic")
        utc = datetime(2023, 11, 2, 2, 0, tzinfo=timezone.utc)
        with patch("app.services.temporal_policy._utc_now", return_value=utc), \
                patch.object(settings, "TIMEZONE", "America/Bogota"):
            body = client.post(f"{API}/access/validate", json={"plate": "ABC123"}).json()
        assert body["success"] is True


class TestListings:
    def test_visitor_list_filters_and_pages(self, client, make_visitor):
        make_visitor(name="Jorge Ramírez", plate="JKL789", document_number="1")
        make_visitor(name="Paula Torres", plate="MNO321", status="pending", document_number="2")
        make_visitor(name="Sofía Díaz", plate="PQR654", status="rejected", document_number="3")

        body = client.get(f"{API}/visitors", params={"limit": 2}).json()
        assert body["total"] == 3
        assert body["pages"] == 2
        assert len(body["data"]) == 2

        body = client.get(f"{API}/visitors", params={"search": "torres"}).json()
        assert [v["plate"] for v in body["data"]] == ["MNO321"]
        body = client.get(f"{API}/visitors", params={"status": "rejected"}).json()
        assert [v["name"] for v in body["data"]] == ["Sofía Díaz"]

    def test_access_stats(self, client, make_employee):
        make_employee()
        client.post(f"{API}/access/validate", json={"plate": "ZZZ999"})
        client.post(f"{API}/access/entry", json={"plate": "ABC123"})

        stats = client.get(f"{API}/access/stats").json()
        counts = {(s["user_type"], s["status"]): s["count"] for s in stats}
        assert counts == {("employee", "denied"): 1, ("employee", "successful"): 1}

    def test_plate_history_today(self, client, make_employee):
        make_employee()
        client.post(f"{API}/access/entry", json={"plate": "ABC123"})
        client.post(f"{API}/access/exit", json={"plate": "ABC123"})

        history = client.get(f"{API}/access/history/abc-123").json()
        assert len(history) == 1
        assert history[0]["plate"] == "ABC123"
        assert history[0]["exit_time"] is not None
        assert client.get(f"{API}/access/history/XYZ000").json() == []

    def test_vehicle_stats(self, client, make_employee):
        make_employee(plate="ABC123", brand="Mazda", color="Gris")
        make_employee(plate="XYZ12D", vehicle_type="motorcycle", document_number="2", brand="Honda")

        stats = client.get(f"{API}/vehicles/stats").json()
        assert stats["total_vehicles"] == 2
        assert stats["cars"] == 1
        assert stats["motorcycles"] == 1
        assert stats["brands"] == ["Honda", "Mazda"]
        assert stats["colors"] == ["Gris"]

    def test_log_outage_is_503(self, client):
        with patch("app.services.access_log_service.list_events",
                   side_effect=InfrastructureFailure("connection refused")):
            resp = client.get(f"{API}/access/logs")
        assert resp.status_code == 503


class TestLedgerOwnedStatuses:
    def test_in_progress_and_completed_are_refused(self, client, make_visitor):
        visitor = make_visitor()
        resp = client.patch(f"{API}/visitors/{visitor.id}/status", json={"status": "in_progress"})
        assert resp.status_code == 400
        assert client.get(f"{API}/access/occupancy").json()["total"] == 0

        inside = make_visitor(plate="MNO321", document_number="2", status="in_progress")
        resp = client.patch(f"{API}/visitors/{inside.id}/status", json={"status": "completed"})
        assert resp.status_code == 400
        assert client.get(f"{API}/visitors/{visitor.id}").json()["status"] == "approved"
