"""Celery application configuration"""

from celery import Celery
from dinebook.config import settings

# Create Celery app
celery_app = Celery(
    "dinebook",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "dinebook.jobs.tasks",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Beat schedule for periodic tasks
    beat_schedule={
        "expire-overdue-reservations": {
            "task": "expire_overdue_reservations",
            "schedule": settings.expiration_sweep_seconds,
            # A sweep that waited past the next tick is superseded by it
            "options": {"expires": settings.expiration_sweep_seconds},
        },
        "send-reservation-reminders": {
            "task": "send_reservation_reminders",
            "schedule": settings.reminder_check_seconds,
            "options": {"expires": settings.reminder_check_seconds},
        },
    },
)
