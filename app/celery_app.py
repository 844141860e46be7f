"""Celery application instance shared across the backend.

Start a worker and the beat scheduler with:
    celery -A app.celery_app worker -Q sweep,reminder -l info --concurrency=2
    celery -A app.celery_app beat -l info
"""

import logging

from celery import Celery

from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

BROKER_URL = settings.REDIS_URL

celery_app = Celery("throw_notes_backend", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.task_ignore_result = True

celery_app.conf.task_routes = {
    "app.workers.reminder.dispatch_due": {"queue": "sweep"},
    "app.workers.reminder.deliver": {"queue": "reminder"},
}

# Beat schedule: advance due schedules and fan out deliveries every minute
celery_app.conf.beat_schedule = {
    "dispatch-due-schedules": {
        "task": "app.workers.reminder.dispatch_due",
        "schedule": settings.SWEEP_INTERVAL_SECONDS,
    }
}

# --- Ensure tasks are registered ---
import app.workers.reminder
