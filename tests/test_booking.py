import json
from datetime import datetime

import pytest

from safetatt.models import Appointment
from safetatt.services import booking


def _book(studio, professional, start, end=None, **extra):
    data = {
        "studio_id": studio.id,
        "professional_id": professional.id,
        "start_time": start,
        "end_time": end,
    }
    data.update(extra)
    return booking.create_appointment(data)


@pytest.mark.booking
class TestConflictDetection:
    """Same professional, same day, half-open intervals."""

    def test_overlap_reported_when_later_slot_is_checked(self, db, studio, artist):
        _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = booking.check_time_conflict(
            studio.id, artist.id, "2024-06-01T10:30:00", "2024-06-01T11:30:00"
        )

        assert result["conflict"] is True

    def test_overlap_reported_when_earlier_slot_is_checked(self, db, studio, artist):
        _book(studio, artist, "2024-06-01T10:30:00", "2024-06-01T11:30:00")

        result = booking.check_time_conflict(
            studio.id, artist.id, "2024-06-01T10:00:00", "2024-06-01T11:00:00"
        )

        assert result["conflict"] is True

    def test_touching_boundaries_do_not_conflict(self, db, studio, artist):
        _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = booking.check_time_conflict(
            studio.id, artist.id, "2024-06-01T11:00:00", "2024-06-01T12:00:00"
        )

        assert result == {"conflict": False}

    def test_cancelled_appointments_free_the_slot(self, db, studio, artist):
        created = _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")
        booking.update_appointment_status(created["data"]["id"], "Cancelado")

        result = booking.check_time_conflict(
            studio.id, artist.id, "2024-06-01T10:00:00", "2024-06-01T11:00:00"
        )

        assert result["conflict"] is False

    def test_other_professional_is_not_blocked(self, db, studio, artist, other_artist):
        _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = booking.check_time_conflict(
            studio.id, other_artist.id, "2024-06-01T10:00:00", "2024-06-01T11:00:00"
        )

        assert result["conflict"] is False

    def test_other_day_is_not_blocked(self, db, studio, artist):
        _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = booking.check_time_conflict(
            studio.id, artist.id, "2024-06-02T10:00:00", "2024-06-02T11:00:00"
        )

        assert result["conflict"] is False

    def test_own_interval_is_excluded(self, db, studio, artist):
        created = _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = booking.check_time_conflict(
            studio.id,
            artist.id,
            "2024-06-01T10:15:00",
            "2024-06-01T11:15:00",
            exclude_appointment_id=created["data"]["id"],
        )

        assert result["conflict"] is False

    def test_utc_input_is_compared_in_studio_time(self, db, studio, artist):
        # 13:30 UTC is 10:30 in Sao Paulo
        _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = booking.check_time_conflict(
            studio.id, artist.id, "2024-06-01T13:30:00Z", "2024-06-01T14:30:00Z"
        )

        assert result["conflict"] is True

    def test_interval_helper(self):
        ten = datetime(2024, 6, 1, 10)
        eleven = datetime(2024, 6, 1, 11)
        noon = datetime(2024, 6, 1, 12)
        assert booking.intervals_overlap(ten, noon, eleven, noon)
        assert not booking.intervals_overlap(ten, eleven, eleven, noon)


@pytest.mark.booking
class TestCreateAppointment:
    def test_overlapping_booking_is_rejected_with_error(self, db, studio, artist):
        _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = _book(studio, artist, "2024-06-01T10:30:00", "2024-06-01T11:30:00")

        assert result["success"] is False
        assert result["error"]["message"] == booking.CREATE_CONFLICT_MESSAGE
        assert len(db.session.query(Appointment).all()) == 1

    def test_missing_end_time_defaults_to_one_hour(self, db, studio, artist):
        result = _book(studio, artist, "2024-06-01T14:00:00")

        assert result["success"] is True
        assert result["data"]["duration_minutes"] == 60
        assert result["data"]["time"] == "14:00 - 15:00"

    def test_end_before_start_falls_back_to_default_duration(self, db, studio, artist):
        result = _book(studio, artist, "2024-06-01T14:00:00", "2024-06-01T13:00:00")

        assert result["data"]["duration_minutes"] == 60

    def test_status_label_is_stored_as_code(self, db, studio, artist):
        result = _book(studio, artist, "2024-06-01T09:00:00", status="Confirmado")

        assert result["data"]["status_code"] == "confirmed"
        assert result["data"]["status"] == "Confirmado"

    def test_new_appointments_are_pending(self, db, studio, artist):
        result = _book(studio, artist, "2024-06-01T09:00:00")

        assert result["data"]["status_code"] == "pending"
        assert result["data"]["status"] == "Pendente"

    def test_without_professional_no_conflict_check(self, db, studio):
        first = booking.create_appointment(
            {"studio_id": studio.id, "start_time": "2024-06-01T10:00:00"}
        )
        second = booking.create_appointment(
            {"studio_id": studio.id, "start_time": "2024-06-01T10:00:00"}
        )

        assert first["success"] and second["success"]

    def test_studio_is_required(self, db):
        result = booking.create_appointment({"start_time": "2024-06-01T10:00:00"})

        assert result["success"] is False

    def test_invalid_start_time(self, db, studio, artist):
        result = _book(studio, artist, "not-a-date")

        assert result["success"] is False
        assert result["error"]["message"] == "Data/hora inválida."


@pytest.mark.booking
class TestUpdateAppointment:
    def test_rescheduling_within_own_slot_is_allowed(self, db, studio, artist):
        created = _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = booking.update_appointment(
            created["data"]["id"],
            {"start_time": "2024-06-01T10:30:00", "end_time": "2024-06-01T11:30:00"},
        )

        assert result["success"] is True
        assert result["data"]["scheduled_time"] == "10:30"

    def test_moving_onto_another_booking_conflicts(self, db, studio, artist):
        _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")
        later = _book(studio, artist, "2024-06-01T13:00:00", "2024-06-01T14:00:00")

        result = booking.update_appointment(
            later["data"]["id"], {"start_time": "2024-06-01T10:30:00"}
        )

        assert result["success"] is False
        assert result["error"]["message"] == booking.UPDATE_CONFLICT_MESSAGE

    def test_changing_professional_checks_new_agenda(self, db, studio, artist, other_artist):
        _book(studio, other_artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")
        mine = _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T11:00:00")

        result = booking.update_appointment(
            mine["data"]["id"], {"professional_id": other_artist.id}
        )

        assert result["error"]["message"] == booking.UPDATE_CONFLICT_MESSAGE

    def test_price_edit_keeps_schedule(self, db, studio, artist):
        created = _book(studio, artist, "2024-06-01T10:00:00", "2024-06-01T12:00:00")

        result = booking.update_appointment(created["data"]["id"], {"price": 350})

        assert result["data"]["price"] == 350.0
        assert result["data"]["duration_minutes"] == 120

    def test_unknown_appointment(self, db):
        result = booking.update_appointment(999, {"notes": "x"})

        assert result["error"]["message"] == "Agendamento não encontrado."


@pytest.mark.booking
class TestAgendaQueries:
    def test_upcoming_skips_past_and_closed(self, db, studio, artist):
        _book(studio, artist, "2024-06-01T08:00:00")
        cancelled = _book(studio, artist, "2024-06-01T10:00:00")
        booking.update_appointment_status(cancelled["data"]["id"], "Cancelado")
        _book(studio, artist, "2024-06-01T12:00:00")
        _book(studio, artist, "2024-06-02T09:00:00")
        _book(studio, artist, "2024-06-03T09:00:00")
        _book(studio, artist, "2024-06-04T09:00:00")

        upcoming = booking.get_upcoming_appointments(
            studio.id, now=datetime(2024, 6, 1, 9, 0)
        )

        assert [a["start_time"] for a in upcoming] == [
            "2024-06-01T12:00:00",
            "2024-06-02T09:00:00",
            "2024-06-03T09:00:00",
        ]

    def test_range_filter(self, db, studio, artist):
        _book(studio, artist, "2024-06-01T10:00:00")
        _book(studio, artist, "2024-06-05T10:00:00")

        rows = booking.get_appointments(studio.id, "2024-06-04", "2024-06-30")

        assert len(rows) == 1
        assert rows[0]["scheduled_date"] == "2024-06-05"


@pytest.mark.booking
class TestAppointmentsApi:
    def test_requires_token(self, client, db, studio):
        response = client.get(f"/api/appointments/{studio.id}")

        assert response.status_code == 401

    def test_create_then_conflict(self, client, studio, artist, auth_headers):
        payload = {
            "studio_id": studio.id,
            "professional_id": artist.id,
            "start_time": "2024-06-01T10:00:00",
            "end_time": "2024-06-01T11:00:00",
        }
        first = client.post(
            "/api/appointments/add",
            data=json.dumps(payload),
            content_type="application/json",
            headers=auth_headers,
        )
        payload["start_time"] = "2024-06-01T10:30:00"
        payload["end_time"] = "2024-06-01T11:30:00"
        second = client.post(
            "/api/appointments/add",
            data=json.dumps(payload),
            content_type="application/json",
            headers=auth_headers,
        )

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.get_json()["error"]["message"] == booking.CREATE_CONFLICT_MESSAGE

    def test_day_listing(self, client, studio, artist, auth_headers):
        _book(studio, artist, "2024-06-01T10:00:00")

        response = client.get(
            f"/api/appointments/{studio.id}/day?date=2024-06-01", headers=auth_headers
        )

        assert response.status_code == 200
        assert len(response.get_json()) == 1

    def test_status_change(self, client, studio, artist, auth_headers):
        created = _book(studio, artist, "2024-06-01T10:00:00")

        response = client.put(
            f"/api/appointments/{created['data']['id']}/status",
            json={"status": "Realizado"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "Finalizado"

    def test_conflict_endpoint_requires_fields(self, client, studio, auth_headers):
        response = client.post(
            "/api/appointments/conflicts", json={"studio_id": studio.id}, headers=auth_headers
        )

        assert response.status_code == 400

    def test_missing_appointment_is_404(self, client, auth_headers):
        response = client.put("/api/appointments/999", json={}, headers=auth_headers)

        assert response.status_code == 404
