from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from core.env import env_str
from services.clock import APP_TIMEZONE
from services.scheduler_runner import SCHEDULER_BASE_INTERVAL_MINUTES, SCHEDULER_ENABLED, build_cron_expression

CELERY_BROKER_URL = env_str("CELERY_BROKER_URL", "redis://localhost:6379/0") or "redis://localhost:6379/0"
CELERY_RESULT_BACKEND = env_str("CELERY_RESULT_BACKEND", "redis://localhost:6379/1") or None
CELERY_DEFAULT_QUEUE = env_str("CELERY_DEFAULT_QUEUE", "alerts") or "alerts"


def cron_from_string(expr: str) -> crontab:
    """Convert a 5-field cron expression into a Celery ``crontab`` object."""
    fields = str(expr or "").split()
    if len(fields) != 5:
        raise ValueError(f"Invalid cron expression '{expr}'. Expected 5 fields.")
    minute, hour, day_of_month, month, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month,
        day_of_week=day_of_week,
    )


def build_beat_schedule(interval_minutes: int = SCHEDULER_BASE_INTERVAL_MINUTES) -> dict:
    # A tick still running when the next one is due is dropped, never queued behind it.
    return {
        "alerts-run-scheduler": {
            "task": "alerts.run_scheduler",
            "schedule": cron_from_string(build_cron_expression(interval_minutes)),
            "options": {"expires": max(1, interval_minutes) * 60},
        }
    }


app = Celery(
    "certalert",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=["worker.tasks"],
)

app.conf.update(
    task_track_started=True,
    timezone=APP_TIMEZONE,
    enable_utc=APP_TIMEZONE.upper() == "UTC",
    task_default_queue=CELERY_DEFAULT_QUEUE,
    task_queues=(Queue(CELERY_DEFAULT_QUEUE),),
    worker_prefetch_multiplier=1,
    worker_concurrency=1,
    beat_schedule=build_beat_schedule() if SCHEDULER_ENABLED else {},
)

__all__ = ["app", "build_beat_schedule", "cron_from_string"]
