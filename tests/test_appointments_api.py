"""API tests for booking, status changes and cancellation."""

import asyncio

from clinic.modules.appointments import conflicts
from clinic.modules.appointments.models import Appointment
from clinic.modules.consultations.models import Consultation
from clinic.modules.notifications.models import Notification
from clinic.modules.users.models import AuditLog
from tests.conftest import MONDAY, TUESDAY, WEDNESDAY, auth, book, next_weekday, set_status


class TestBooking:
    async def test_scenario_a_minimum_separation(self, client, doctor, patient, other_patient):
        monday = next_weekday(MONDAY)

        resp = await book(client, patient, doctor, monday, "10:00")
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "PENDING"
        assert body["priority"] == "NORMAL"
        assert body["requestedTime"] == "10:00"

        resp = await book(client, other_patient, doctor, monday, "10:15")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "slot_conflict"

        resp = await book(client, other_patient, doctor, monday, "10:30")
        assert resp.status_code == 201

    async def test_scenario_b_disabled_day(self, client, doctor, patient):
        resp = await book(client, patient, doctor, next_weekday(TUESDAY), "10:00")
        assert resp.status_code == 409
        body = resp.json()
        assert body["detail"] == "doctor_not_available"
        assert "not available" in body["message"]

    async def test_outside_window(self, client, doctor, patient):
        resp = await book(client, patient, doctor, next_weekday(MONDAY), "17:30")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "doctor_not_available"

        resp = await book(client, patient, doctor, next_weekday(MONDAY), "17:00")
        assert resp.status_code == 201

    async def test_malformed_time_is_400(self, client, doctor, patient):
        resp = await book(client, patient, doctor, next_weekday(MONDAY), "25:00")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "invalid_time"

    async def test_malformed_date_and_empty_reason_are_422(self, client, doctor, patient):
        resp = await client.post(
            "/api/appointments",
            json={"patientId": str(patient.id), "doctorId": str(doctor.id),
                  "requestedDate": "next monday", "requestedTime": "10:00", "reason": "x"},
            headers=auth(patient),
        )
        assert resp.status_code == 422

        resp = await book(client, patient, doctor, next_weekday(MONDAY), "10:00", reason="   ")
        assert resp.status_code == 422

    async def test_only_for_yourself(self, client, doctor, patient, other_patient):
        resp = await client.post(
            "/api/appointments",
            json={"patientId": str(other_patient.id), "doctorId": str(doctor.id),
                  "requestedDate": next_weekday(MONDAY).isoformat(),
                  "requestedTime": "10:00", "reason": "Checkup"},
            headers=auth(patient),
        )
        assert resp.status_code == 403
        assert resp.json()["detail"] == "not_own_patient_id"

    async def test_doctors_cannot_book(self, client, doctor):
        resp = await book(client, doctor, doctor, next_weekday(MONDAY), "10:00")
        assert resp.status_code == 403
        assert resp.json()["detail"] == "only_patients_can_create"

    async def test_unknown_doctor(self, client, patient, other_patient):
        resp = await book(client, patient, other_patient, next_weekday(MONDAY), "10:00")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "doctor_not_found"

    async def test_requires_token(self, client):
        resp = await client.get("/api/appointments")
        assert resp.status_code == 401

    async def test_slot_key_guards_when_checks_are_bypassed(
        self, client, doctor, patient, other_patient, seed, monkeypatch
    ):
        async def no_conflict(*args, **kwargs):
            return False

        monkeypatch.setattr(conflicts, "has_conflict", no_conflict)
        monday = next_weekday(MONDAY)

        assert (await book(client, patient, doctor, monday, "10:00")).status_code == 201
        resp = await book(client, other_patient, doctor, monday, "10:10")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "slot_conflict"

        assert await seed.count(Appointment) == 1

    async def test_simultaneous_bookings_one_wins(self, client, doctor, patient, other_patient, seed):
        monday = next_weekday(MONDAY)
        first, second = await asyncio.gather(
            book(client, patient, doctor, monday, "10:00"),
            book(client, other_patient, doctor, monday, "10:15"),
        )

        assert sorted([first.status_code, second.status_code]) == [201, 409]
        loser = first if first.status_code == 409 else second
        assert loser.json()["detail"] == "slot_conflict"
        assert await seed.count(Appointment) == 1

    async def test_booking_is_audited_and_doctor_notified(self, client, doctor, patient, seed):
        resp = await book(client, patient, doctor, next_weekday(MONDAY), "10:00")
        assert resp.status_code == 201

        assert await seed.count(AuditLog, AuditLog.action == "CREATE_APPOINTMENT_REQUEST") == 1
        resp = await client.get("/api/notifications", headers=auth(doctor))
        body = resp.json()
        assert body["unread"] == 1
        assert body["items"][0]["type"] == "APPOINTMENT_REQUESTED"


class TestListing:
    async def test_role_scoped_and_paginated(self, client, doctor, patient, other_patient):
        monday = next_weekday(MONDAY)
        for hhmm in ("09:00", "10:00", "11:00"):
            assert (await book(client, patient, doctor, monday, hhmm)).status_code == 201
        assert (await book(client, other_patient, doctor, monday, "12:00")).status_code == 201

        resp = await client.get("/api/appointments?page=1&limit=2", headers=auth(patient))
        body = resp.json()
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert len(body["items"]) == 2
        assert all(item["patientId"] == str(patient.id) for item in body["items"])

        resp = await client.get("/api/appointments", headers=auth(doctor))
        assert resp.json()["pagination"]["total"] == 4

    async def test_status_filter(self, client, doctor, patient):
        monday = next_weekday(MONDAY)
        first = (await book(client, patient, doctor, monday, "09:00")).json()
        await book(client, patient, doctor, monday, "10:00")
        await set_status(client, doctor, first["id"], "CONFIRMED")

        resp = await client.get("/api/appointments?status=CONFIRMED", headers=auth(patient))
        items = resp.json()["items"]
        assert [i["id"] for i in items] == [first["id"]]

    async def test_get_one_requires_party(self, client, doctor, patient, other_patient):
        appt = (await book(client, patient, doctor, next_weekday(MONDAY), "10:00")).json()

        resp = await client.get(f"/api/appointments/{appt['id']}", headers=auth(doctor))
        assert resp.status_code == 200

        resp = await client.get(f"/api/appointments/{appt['id']}", headers=auth(other_patient))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "not_owner"


class TestStatus:
    async def test_confirm_creates_one_consultation(self, client, doctor, patient, seed):
        monday = next_weekday(MONDAY)
        appt = (await book(client, patient, doctor, monday, "14:00")).json()

        resp = await set_status(client, doctor, appt["id"], "CONFIRMED")
        assert resp.status_code == 200
        assert resp.json()["status"] == "CONFIRMED"

        resp = await client.get(f"/api/appointments/{appt['id']}/consultation", headers=auth(patient))
        assert resp.status_code == 200
        consultation = resp.json()
        assert consultation["consultationCode"].startswith(f"QH{monday.day:02d}14")
        assert consultation["startTime"].startswith(f"{monday.isoformat()}T00:00:00")

    async def test_scenario_d_reconfirm_is_noop(self, client, doctor, patient, seed):
        appt = (await book(client, patient, doctor, next_weekday(MONDAY), "10:00")).json()
        first = await set_status(client, doctor, appt["id"], "CONFIRMED")
        again = await set_status(client, doctor, appt["id"], "CONFIRMED")

        assert again.status_code == 200
        assert again.json()["status"] == "CONFIRMED"
        assert first.status_code == 200
        assert await seed.count(Consultation) == 1
        assert await seed.count(AuditLog, AuditLog.action == "UPDATE_APPOINTMENT_STATUS") == 1

    async def test_notes_are_appended(self, client, doctor, patient):
        appt = (await book(client, patient, doctor, next_weekday(MONDAY), "10:00",
                           notes="Bring X-rays")).json()
        resp = await set_status(client, doctor, appt["id"], "CONFIRMED", notes="Fasting required")
        assert resp.json()["notes"] == "Bring X-rays\nFasting required"

    async def test_illegal_and_terminal_transitions(self, client, doctor, patient):
        appt = (await book(client, patient, doctor, next_weekday(MONDAY), "10:00")).json()

        resp = await set_status(client, doctor, appt["id"], "COMPLETED")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "invalid_status_transition"

        await set_status(client, doctor, appt["id"], "CONFIRMED")
        assert (await set_status(client, doctor, appt["id"], "COMPLETED")).status_code == 200

        resp = await set_status(client, doctor, appt["id"], "CONFIRMED")
        assert resp.status_code == 409
        assert resp.json()["detail"] == "invalid_status_transition"

    async def test_unknown_status_is_422(self, client, doctor, patient):
        appt = (await book(client, patient, doctor, next_weekday(MONDAY), "10:00")).json()
        resp = await set_status(client, doctor, appt["id"], "ARCHIVED")
        assert resp.status_code == 422

    async def test_only_owning_doctor(self, client, doctor, patient, seed):
        other_doctor = await seed.user("doctor")
        appt = (await book(client, patient, doctor, next_weekday(MONDAY), "10:00")).json()

        resp = await set_status(client, other_doctor, appt["id"], "CONFIRMED")
        assert resp.status_code == 403
        assert resp.json()["detail"] == "not_owner"

        resp = await client.patch(f"/api/appointments/{appt['id']}/status",
                                  json={"status": "CONFIRMED"}, headers=auth(patient))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "forbidden_role"

    async def test_missing_appointment(self, client, doctor):
        resp = await set_status(client, doctor, "00000000-0000-4000-8000-000000000000", "CONFIRMED")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "appointment_not_found"


class TestCancel:
    async def test_cancel_keeps_notes_and_frees_slot(self, client, doctor, patient, other_patient, seed):
        monday = next_weekday(MONDAY)
        appt = (await book(client, patient, doctor, monday, "10:00", notes="Bring X-rays")).json()

        resp = await client.post(f"/api/appointments/{appt['id']}/cancel",
                                 json={"reason": "Feeling better"}, headers=auth(patient))
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "CANCELLED"
        assert body["notes"] == "Bring X-rays"
        assert body["cancellationReason"] == "Feeling better"
        assert body["cancelledBy"] == str(patient.id)

        assert (await book(client, other_patient, doctor, monday, "10:00")).status_code == 201
        assert await seed.count(Notification, Notification.type == "APPOINTMENT_CANCELLED",
                                Notification.user_id == doctor.id) == 1

    async def test_cancel_twice_is_rejected(self, client, doctor, patient):
        appt = (await book(client, patient, doctor, next_weekday(MONDAY), "10:00")).json()
        url = f"/api/appointments/{appt['id']}/cancel"

        assert (await client.post(url, json={"reason": "x"}, headers=auth(doctor))).status_code == 200
        resp = await client.post(url, json={"reason": "x"}, headers=auth(patient))
        assert resp.status_code == 409
        assert resp.json()["detail"] == "invalid_status_transition"

    async def test_outsider_cannot_cancel(self, client, doctor, patient, other_patient):
        appt = (await book(client, patient, doctor, next_weekday(WEDNESDAY), "10:00")).json()
        resp = await client.post(f"/api/appointments/{appt['id']}/cancel",
                                 json={"reason": "x"}, headers=auth(other_patient))
        assert resp.status_code == 403
