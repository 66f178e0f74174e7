from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

from fastapi.testclient import TestClient
from sqlalchemy import select

from app.main import create_app
from app.models import MessageLog, QueueTicket
from conftest import DOCTOR_ID, OTHER_DOCTOR_ID, OTHER_PATIENT_ID, PATIENT_ID

SGT = ZoneInfo("Asia/Singapore")


def local_today_at(hour: int, minute: int = 0) -> str:
    today = datetime.now(SGT).date()
    return datetime.combine(today, time(hour, minute), tzinfo=SGT).isoformat()


def book(client, headers, **overrides):
    payload = {
        "patient_id": PATIENT_ID,
        "doctor_id": DOCTOR_ID,
        "type": "CHECK_UP",
        "scheduled_at": "2030-01-07T10:00:00+08:00",
    }
    payload.update(overrides)
    return client.post("/api/appointments", json=payload, headers=headers)


def set_status(client, headers, appointment_id, status, **extra):
    return client.patch(
        f"/api/appointments/{appointment_id}/status",
        json={"status": status, **extra},
        headers=headers,
    )


def test_booking_uses_type_default_duration(client, staff_headers):
    response = book(client, staff_headers, type="FOLLOW_UP")
    assert response.status_code == 201
    appointment = response.json()["appointment"]
    assert appointment["id"].startswith("appt_")
    assert appointment["status"] == "SCHEDULED"
    assert appointment["duration_minutes"] == 30
    assert appointment["duration_iso"] == "PT0H30M"
    assert appointment["allowed_transitions"] == ["CANCELLED", "IN_PROGRESS"]
    assert appointment["scheduled_at"] == "2030-01-07T02:00:00+00:00"
    assert appointment["time_slot"] == "10:00 AM - 10:30 AM"
    assert appointment["doctor_name"] == "Dr. Sarah Chen"


def test_naive_times_are_clinic_local(client, staff_headers):
    response = book(client, staff_headers, scheduled_at="2030-01-07T15:00:00")
    assert response.json()["appointment"]["scheduled_at"] == "2030-01-07T07:00:00+00:00"


def test_booking_rejects_invalid_duration(client, staff_headers):
    response = book(client, staff_headers, duration_minutes=40)
    assert response.status_code == 400
    assert "15-minute increments" in response.json()["detail"]

    response = book(client, staff_headers, duration_minutes=20)
    assert response.status_code == 400
    assert "too short" in response.json()["detail"]


def test_booking_unknown_doctor(client, staff_headers):
    response = book(client, staff_headers, doctor_id="doctor_nobody")
    assert response.status_code == 404


def test_booking_conflict_on_overlap(client, staff_headers):
    assert book(client, staff_headers, type="FIRST_CONSULT").status_code == 201
    response = book(client, staff_headers, scheduled_at="2030-01-07T11:00:00+08:00")
    assert response.status_code == 409
    assert response.json()["detail"] == "Doctor already has an appointment at this time"

    # Back-to-back is fine, and another doctor is unaffected.
    assert book(client, staff_headers, scheduled_at="2030-01-07T11:30:00+08:00").status_code == 201
    assert book(client, staff_headers, doctor_id=OTHER_DOCTOR_ID).status_code == 201


def test_cancelled_appointment_frees_the_slot(client, staff_headers):
    appointment = book(client, staff_headers).json()["appointment"]
    assert set_status(client, staff_headers, appointment["id"], "CANCELLED").status_code == 200
    assert book(client, staff_headers).status_code == 201


def test_operating_hours_enforced(settings, seeded, staff_headers):
    settings.enforce_operating_hours = True
    client = TestClient(create_app(settings, seeded))
    response = book(client, staff_headers, scheduled_at="2030-01-07T20:00:00+08:00")
    assert response.status_code == 400
    assert response.json()["error"] == "RangeError"
    assert book(client, staff_headers, scheduled_at="2030-01-07T09:00:00+08:00").status_code == 201


def test_status_lifecycle(client, staff_headers, doctor_headers):
    appointment_id = book(client, staff_headers).json()["appointment"]["id"]

    response = set_status(client, doctor_headers, appointment_id, "IN_PROGRESS")
    assert response.status_code == 200
    assert response.json()["appointment"]["status"] == "IN_PROGRESS"

    response = set_status(client, doctor_headers, appointment_id, "COMPLETED", notes="Good progress")
    assert response.status_code == 200
    assert response.json()["appointment"]["notes"] == "Good progress"
    assert response.json()["appointment"]["allowed_transitions"] == []

    response = set_status(client, doctor_headers, appointment_id, "IN_PROGRESS")
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "InvalidTransition"
    assert body["detail"] == "Cannot change appointment status from COMPLETED to IN_PROGRESS"
    assert body["details"]["allowed"] == []


def test_skipping_states_is_rejected(client, staff_headers):
    appointment_id = book(client, staff_headers).json()["appointment"]["id"]
    response = set_status(client, staff_headers, appointment_id, "COMPLETED")
    assert response.status_code == 409
    assert response.json()["details"]["allowed"] == ["CANCELLED", "IN_PROGRESS"]


def test_unknown_status_value_is_a_validation_error(client, staff_headers):
    appointment_id = book(client, staff_headers).json()["appointment"]["id"]
    assert set_status(client, staff_headers, appointment_id, "ARCHIVED").status_code == 422


def test_patient_cannot_change_status(client, staff_headers, patient_headers):
    appointment_id = book(client, staff_headers).json()["appointment"]["id"]
    assert set_status(client, patient_headers, appointment_id, "CANCELLED").status_code == 403


def test_put_with_status_goes_through_transition_table(client, staff_headers):
    appointment_id = book(client, staff_headers).json()["appointment"]["id"]
    response = client.put(
        f"/api/appointments/{appointment_id}",
        json={"status": "COMPLETED"},
        headers=staff_headers,
    )
    assert response.status_code == 409

    response = client.put(
        f"/api/appointments/{appointment_id}",
        json={"scheduled_at": "2030-01-07T14:00:00+08:00", "duration_minutes": 45},
        headers=staff_headers,
    )
    assert response.status_code == 200
    appointment = response.json()["appointment"]
    assert appointment["time_slot"] == "2:00 PM - 2:45 PM"
    assert appointment["duration_display"] == "45 minutes"


def test_patient_books_and_lists_only_own(client, staff_headers, patient_headers):
    assert book(client, patient_headers).status_code == 201
    response = book(client, patient_headers, patient_id=OTHER_PATIENT_ID)
    assert response.status_code == 403
    response = book(client, staff_headers, patient_id=OTHER_PATIENT_ID, doctor_id=OTHER_DOCTOR_ID)
    assert response.status_code == 201

    response = client.get("/api/appointments", headers=patient_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 1
    assert body["appointments"][0]["patient_id"] == PATIENT_ID


def test_list_filters_by_clinic_day(client, staff_headers):
    book(client, staff_headers)
    book(client, staff_headers, scheduled_at="2030-01-08T10:00:00+08:00")

    response = client.get("/api/appointments", params={"date": "2030-01-07"}, headers=staff_headers)
    assert response.json()["total_count"] == 1
    response = client.get(
        "/api/appointments",
        params={"date_from": "2030-01-07", "date_to": "2030-01-08", "status": "SCHEDULED"},
        headers=staff_headers,
    )
    assert response.json()["total_count"] == 2


def test_check_in_issues_queue_tickets(client, seeded, staff_headers):
    first = book(client, staff_headers, scheduled_at=local_today_at(9)).json()["appointment"]
    second = book(client, staff_headers, scheduled_at=local_today_at(10)).json()["appointment"]

    response = client.post(f"/api/appointments/{first['id']}/check-in", headers=staff_headers)
    assert response.status_code == 200
    queue = response.json()["queue"]
    assert queue["id"].startswith("queue_")
    assert queue["queue_number"] == 1
    assert queue["status"] == "CHECKED_IN"
    assert queue["patients_ahead"] == 0
    assert queue["position"] == "1st in queue"
    assert queue["estimated_wait_minutes"] == 0
    assert response.json()["appointment"]["status"] == "SCHEDULED"

    response = client.post(f"/api/appointments/{second['id']}/check-in", headers=staff_headers)
    queue = response.json()["queue"]
    assert queue["queue_number"] == 2
    assert queue["patients_ahead"] == 1
    assert queue["position"] == "2nd in queue"
    assert queue["estimated_wait_minutes"] == 15

    response = client.post(f"/api/appointments/{first['id']}/check-in", headers=staff_headers)
    assert response.status_code == 409

    # Starting the visit calls the ticket.
    set_status(client, staff_headers, first["id"], "IN_PROGRESS")
    with seeded.session_scope() as session:
        ticket = session.execute(
            select(QueueTicket).where(QueueTicket.appointment_id == first["id"])
        ).scalar_one()
        assert ticket.status.value == "CALLED"


def test_check_in_requires_today(client, staff_headers):
    appointment_id = book(client, staff_headers).json()["appointment"]["id"]
    response = client.post(f"/api/appointments/{appointment_id}/check-in", headers=staff_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Appointment is not scheduled for today"


def test_delete_only_while_scheduled(client, staff_headers):
    first = book(client, staff_headers).json()["appointment"]["id"]
    second = book(client, staff_headers, scheduled_at="2030-01-08T10:00:00+08:00").json()[
        "appointment"
    ]["id"]

    assert client.delete(f"/api/appointments/{first}", headers=staff_headers).status_code == 204
    assert client.get(f"/api/appointments/{first}", headers=staff_headers).status_code == 404

    set_status(client, staff_headers, second, "IN_PROGRESS")
    assert client.delete(f"/api/appointments/{second}", headers=staff_headers).status_code == 409


def test_confirmation_and_cancellation_sms(client, seeded, staff_headers):
    response = book(client, staff_headers, notify_patient=True)
    assert response.status_code == 201
    body = response.json()
    assert body["notification"]["status"] == "sent"
    assert body["notification"]["message_sid"].startswith("SMmock")

    response = set_status(
        client,
        staff_headers,
        body["appointment"]["id"],
        "CANCELLED",
        notify_patient=True,
        cancellation_reason="doctor illness",
    )
    assert response.json()["notification"]["status"] == "sent"

    with seeded.session_scope() as session:
        stmt = select(MessageLog).order_by(MessageLog.template.desc())
        logs = session.execute(stmt).scalars().all()
        assert [log.template for log in logs] == ["confirmation", "cancellation"]
        assert all(log.status == "sent" for log in logs)
        assert logs[0].recipient == "91234567"
        assert "Monday, 7 January 2030 at 10:00 AM" in logs[0].body
        assert "cancelled due to doctor illness" in logs[1].body


def test_reminders_scheduled_when_enabled(settings, seeded, staff_headers):
    class RecordingSender:
        def __init__(self):
            self.calls = []

        def send_task(self, name, args=None, **options):
            self.calls.append((name, args, options["eta"]))

    sender = RecordingSender()
    settings.reminders_enabled = True
    client = TestClient(create_app(settings, seeded, task_sender=sender))
    response = book(client, staff_headers)
    assert response.status_code == 201
    assert [window["window"] for window in response.json()["reminders"]] == ["D-1", "H-2"]
    names = [name for name, _, _ in sender.calls]
    assert names == ["jobs.send_reminder_d1", "jobs.send_reminder_h2"]
    assert sender.calls[0][2] == datetime(2030, 1, 6, 2, 0, tzinfo=timezone.utc)
