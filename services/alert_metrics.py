"""Prometheus helpers for the alert scheduler and channel deliveries."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

from core.logging import get_logger

logger = get_logger(__name__)

_RUN_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)

SCHEDULER_RUNS = Counter(
    "alert_scheduler_runs_total",
    "Alert scheduler runs, by outcome.",
    ("status",),
)
SCHEDULER_ERRORS = Counter(
    "alert_scheduler_errors_total",
    "Alert scheduler runs that raised before finishing.",
)
SCHEDULER_RUN_SECONDS = Histogram(
    "alert_scheduler_run_seconds",
    "Seconds spent in one alert scheduler run.",
    buckets=_RUN_BUCKETS,
)
NOTIFICATIONS = Counter(
    "alert_channel_notifications_total",
    "Channel deliveries attempted by the alert service.",
    ("channel_type", "result"),
)


def record_scheduler_run(status: str, seconds: float) -> None:
    SCHEDULER_RUNS.labels(status=status or "unknown").inc()
    if seconds >= 0:
        SCHEDULER_RUN_SECONDS.observe(seconds)


def record_scheduler_error() -> None:
    SCHEDULER_ERRORS.inc()


def record_notification(channel_type: str, result: str) -> None:
    try:
        NOTIFICATIONS.labels(channel_type=channel_type or "unknown", result=result).inc()
    except ValueError:  # pragma: no cover
        logger.debug("Failed to record notification metric (type=%s result=%s)", channel_type, result)


__all__ = [
    "NOTIFICATIONS",
    "SCHEDULER_ERRORS",
    "SCHEDULER_RUNS",
    "record_notification",
    "record_scheduler_error",
    "record_scheduler_run",
]
