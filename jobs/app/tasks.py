from __future__ import annotations

from functools import lru_cache
from typing import Any

from celery.utils.log import get_task_logger

from app.core.config import Settings as AppSettings
from app.core.config import get_settings as get_app_settings
from app.db.session import Database
from app.services.documents import reap_expired_uploads as reap_uploads
from app.services.reminders import find_overdue_scheduled, send_reminder
from app.services.sms_client import SMSClient
from app.services.storage import get_storage
from jobs.app.celery_app import celery_app
from jobs.app.config import settings

logger = get_task_logger(__name__)


@lru_cache(maxsize=1)
def get_database() -> Database:
    return Database(settings.database_url, pool_pre_ping=True)


def _emit_reminder(appointment_id: str, window: str) -> dict[str, Any]:
    app_settings: AppSettings = get_app_settings()
    client = SMSClient(app_settings)
    with get_database().session_scope() as db:
        outcome = send_reminder(db, app_settings, client, appointment_id, window=window)
    logger.info(
        "%s reminder for appointment %s: %s", window, appointment_id, outcome["status"]
    )
    return outcome


@celery_app.task(name="jobs.send_reminder_d1")
def send_reminder_d1(appointment_id: str) -> dict[str, Any]:
    """Send the D-1 reminder (one day before)."""

    return _emit_reminder(appointment_id, "D-1")


@celery_app.task(name="jobs.send_reminder_h2")
def send_reminder_h2(appointment_id: str) -> dict[str, Any]:
    """Send the H-2 reminder (two hours before)."""

    return _emit_reminder(appointment_id, "H-2")


@celery_app.task(name="jobs.flag_no_show")
def flag_no_show() -> dict[str, Any]:
    """Report appointments still SCHEDULED after their end time.

    NO_SHOW is not reachable through a transition, so staff resolve these by hand.
    """

    with get_database().session_scope() as db:
        overdue = [appointment.id for appointment in find_overdue_scheduled(db)]
    for appointment_id in overdue:
        logger.warning("Appointment %s is past its end time and still scheduled", appointment_id)
    return {"flagged": overdue, "count": len(overdue)}


@celery_app.task(name="jobs.reap_expired_uploads")
def reap_expired_uploads() -> dict[str, Any]:
    """Remove pending uploads whose presigned URL has expired."""

    storage = get_storage(get_app_settings())
    with get_database().session_scope() as db:
        reaped = reap_uploads(db, storage)
    logger.info("Reaped %s expired uploads", reaped)
    return {"reaped": reaped}
