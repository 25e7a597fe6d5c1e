"""Autoquote Celery application: broker, beat scheduler, and configuration.

Redis serves as both broker and result backend.  Workers start with
``celery -A autoquote.celery_app worker``; the scheduler with
``celery -A autoquote.celery_app beat``.

Beat schedule:
    - expire_stale_quotes : 03:00 UTC daily
    - health_check        : every hour
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.schedules import crontab

from autoquote.config import settings

logger = logging.getLogger("autoquote.celery")

app = Celery(
    "autoquote",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["autoquote.tasks"],
)

app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    # Keep results for 24 hours
    result_expires=86400,
    task_max_retries=3,
    task_default_retry_delay=60,
    beat_schedule_filename="celerybeat-schedule",
)

app.conf.beat_schedule = {
    # Move QUOTED policies past the expiration window to EXPIRED
    "expire-stale-quotes": {
        "task": "autoquote.tasks.expire_stale_quotes",
        "schedule": crontab(hour=3, minute=0),
        "options": {"queue": "maintenance"},
    },
    "health-check": {
        "task": "autoquote.tasks.health_check",
        "schedule": crontab(minute=0),
        "options": {"queue": "default"},
    },
}

logger.info(
    "Celery app configured: broker=%s tasks=%d",
    settings.redis_url,
    len(app.conf.beat_schedule),
)
