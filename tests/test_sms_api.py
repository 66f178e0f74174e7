import logging
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from app.core.errors import NotificationError
from app.domain.value_objects import PhoneNumber
from app.main import create_app
from app.models import MessageLog
from app.services.sms_client import SMSClient


def test_send_in_mock_mode_logs_message(client, seeded, staff_headers):
    response = client.post(
        "/api/sms/send",
        json={"to": "+65 9123 4567", "body": "Your results are ready.", "patient_name": "John"},
        headers=staff_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message_sid"].startswith("SMmock")
    assert body["to"] == "+6591234567"
    assert body["mocked"] is True

    with seeded.session_scope() as session:
        log = session.execute(select(MessageLog)).scalar_one()
        assert log.status == "sent"
        assert log.template == "custom"
        assert log.recipient == "91234567"
        assert log.provider_message_id == body["message_sid"]
        assert log.metadata_json == {"patient_name": "John"}


def test_patients_cannot_send(client, patient_headers):
    response = client.post(
        "/api/sms/custom",
        json={"phone_number": "91234567", "message": "hi"},
        headers=patient_headers,
    )
    assert response.status_code == 403


def test_invalid_phone_number(client, doctor_headers):
    response = client.post(
        "/api/sms/test", json={"phone_number": "31234567"}, headers=doctor_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "FormatError"


def test_templated_messages(client, staff_headers):
    response = client.post(
        "/api/sms/appointment/reminder",
        json={
            "phone_number": "82345678",
            "patient_name": "Emily Tan",
            "appointment_date": "2030-01-07T06:30:00Z",
            "doctor_name": "Dr. James Wilson",
        },
        headers=staff_headers,
    )
    assert response.status_code == 200
    text = response.json()["body"]
    assert text.startswith("Hi Emily Tan, this is a reminder")
    assert "on Monday, 7 January 2030 at 02:30 PM with Dr. James Wilson" in text

    response = client.post(
        "/api/sms/appointment/cancellation",
        json={
            "phone_number": "82345678",
            "patient_name": "Emily Tan",
            "appointment_date": "2030-01-07T06:30:00Z",
            "clinic_name": "Orchard Physio",
        },
        headers=staff_headers,
    )
    text = response.json()["body"]
    assert "at Orchard Physio" in text
    assert "cancelled due to unforeseen circumstances" in text


def test_body_length_is_validated(client, staff_headers):
    response = client.post(
        "/api/sms/send", json={"to": "91234567", "body": "x" * 1601}, headers=staff_headers
    )
    assert response.status_code == 422


def _twilio_settings(settings):
    settings.sms_mock_mode = False
    settings.twilio_account_sid = "AC123"
    settings.twilio_auth_token = "secret"
    settings.twilio_phone_number = "+6560000000"
    return settings


def test_twilio_request_shape(settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(201, json={"sid": "SM0001", "status": "queued"})

    client = SMSClient(_twilio_settings(settings), transport=httpx.MockTransport(handler))
    result = client.send(PhoneNumber("9123 4567"), "Hello")

    assert result.message_id == "SM0001"
    assert result.mocked is False
    assert seen["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert seen["form"] == {"To": ["+6591234567"], "Body": ["Hello"], "From": ["+6560000000"]}


def test_twilio_missing_credentials(settings):
    settings.sms_mock_mode = False
    with pytest.raises(NotificationError):
        SMSClient(settings).send(PhoneNumber("91234567"), "Hello")


def test_provider_failure_returns_bad_gateway(settings, seeded, staff_headers):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    sms_client = SMSClient(_twilio_settings(settings), transport=httpx.MockTransport(handler))
    client = TestClient(create_app(settings, seeded, sms_client=sms_client))
    response = client.post(
        "/api/sms/custom",
        json={"phone_number": "91234567", "message": "hi"},
        headers=staff_headers,
    )
    assert response.status_code == 502
    assert response.json()["error"] == "NotificationError"
    assert response.json()["details"] == {"status_code": 500}


def test_provider_failure_is_logged_as_warning(settings, seeded, staff_headers, caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    sms_client = SMSClient(_twilio_settings(settings), transport=httpx.MockTransport(handler))
    client = TestClient(create_app(settings, seeded, sms_client=sms_client))
    with caplog.at_level(logging.INFO, logger="app.core.errors"):
        client.post(
            "/api/sms/custom",
            json={"phone_number": "91234567", "message": "hi"},
            headers=staff_headers,
        )

    records = [record for record in caplog.records if record.name == "app.core.errors"]
    assert [record.levelno for record in records] == [logging.WARNING]
    assert records[0].kind == "NotificationError"
