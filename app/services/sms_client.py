"""Thin wrapper around the Twilio Messages REST API."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import NotificationError
from app.domain.value_objects import PhoneNumber
from app.models import MessageLog
from app.services.sms_templates import MAX_SMS_LENGTH

logger = logging.getLogger(__name__)

_TIMEOUT = httpx.Timeout(connect=5.0, read=15.0, write=15.0, pool=5.0)


@dataclass(frozen=True)
class SMSResult:
    message_id: str
    to: str
    body: str
    status: str
    mocked: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "message_sid": self.message_id,
            "to": self.to,
            "body": self.body,
            "status": self.status,
            "mocked": self.mocked,
        }


class SMSClient:
    """Send SMS through Twilio, or fake delivery when ``sms_mock_mode`` is on."""

    def __init__(
        self, settings: Settings, *, transport: httpx.BaseTransport | None = None
    ) -> None:
        self.settings = settings
        self._transport = transport

    @property
    def mock_mode(self) -> bool:
        return self.settings.sms_mock_mode

    def _messages_url(self) -> str:
        base_url = self.settings.twilio_api_base_url.rstrip("/")
        return f"{base_url}/Accounts/{self.settings.twilio_account_sid}/Messages.json"

    def _mock_send(self, payload: dict[str, str]) -> dict[str, Any]:
        logger.debug("Mocking Twilio send with payload: %s", payload)
        return {
            "sid": f"SMmock{uuid.uuid4().hex[:26]}",
            "status": "queued",
            "to": payload["To"],
            "body": payload["Body"],
            "mocked": True,
        }

    def _dispatch(self, payload: dict[str, str]) -> dict[str, Any]:
        if self.mock_mode:
            return self._mock_send(payload)

        account_sid = self.settings.twilio_account_sid
        auth_token = self.settings.twilio_auth_token
        if not account_sid or not auth_token:
            raise NotificationError("Twilio credentials are not configured")

        if self.settings.twilio_messaging_service_sid:
            payload["MessagingServiceSid"] = self.settings.twilio_messaging_service_sid
        elif self.settings.twilio_phone_number:
            payload["From"] = self.settings.twilio_phone_number
        else:
            raise NotificationError("Twilio sender is not configured")

        try:
            with httpx.Client(timeout=_TIMEOUT, transport=self._transport) as client:
                response = client.post(
                    self._messages_url(), auth=(account_sid, auth_token), data=payload
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "twilio rejected message",
                extra={"status_code": exc.response.status_code, "to": payload["To"]},
            )
            raise NotificationError(
                "SMS provider rejected the message",
                details={"status_code": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("twilio request failed", extra={"error": str(exc)})
            raise NotificationError("SMS provider unavailable") from exc

        data = response.json()
        if not data.get("sid"):
            raise NotificationError("Twilio response did not include a message sid")
        logger.debug("Twilio responded with %s", data)
        return data

    def send(self, to: PhoneNumber, body: str) -> SMSResult:
        if not body or len(body) > MAX_SMS_LENGTH:
            raise NotificationError(
                f"Message body must be between 1 and {MAX_SMS_LENGTH} characters"
            )
        if not to.can_receive_sms():
            raise NotificationError(f"Phone number {to.format_for_display()} cannot receive SMS")

        data = self._dispatch({"To": to.format_for_sms(), "Body": body})
        logger.info(
            "sms dispatched",
            extra={"message_sid": data["sid"], "to": to.format_for_sms(), "mocked": self.mock_mode},
        )
        return SMSResult(
            message_id=data["sid"],
            to=to.format_for_sms(),
            body=body,
            status=str(data.get("status", "queued")),
            mocked=bool(data.get("mocked", False)),
        )


def deliver_sms(
    db: Session,
    client: SMSClient,
    *,
    to: PhoneNumber,
    body: str,
    template: str = "custom",
    appointment_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> SMSResult:
    """Send one SMS and record the attempt in ``message_logs``."""

    log_entry = MessageLog(
        appointment_id=appointment_id,
        channel="sms",
        template=template,
        recipient=to.value,
        body=body,
        metadata_json=metadata,
        status="pending",
    )
    db.add(log_entry)
    db.flush()

    try:
        result = client.send(to, body)
    except NotificationError as exc:
        log_entry.status = "failed"
        log_entry.error = exc.message
        db.flush()
        raise

    log_entry.status = "sent"
    log_entry.provider_message_id = result.message_id
    log_entry.sent_at = datetime.now(timezone.utc)
    db.flush()
    return result


__all__ = ["SMSClient", "SMSResult", "deliver_sms"]
