from __future__ import annotations

from celery import Celery

from jobs.app.config import settings

celery_app = Celery(
    "carepulse",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["jobs.app.tasks"],
)

celery_app.conf.timezone = settings.timezone
celery_app.conf.enable_utc = True
celery_app.conf.broker_connection_retry_on_startup = True
celery_app.conf.beat_schedule = {
    "reap-expired-uploads": {
        "task": "jobs.reap_expired_uploads",
        "schedule": float(settings.upload_reaper_interval_seconds),
    },
    "flag-no-shows": {
        "task": "jobs.flag_no_show",
        "schedule": float(settings.no_show_check_interval_seconds),
    },
}
