"""Schedule cadence checks and the offset/repeat rules that decide when a certificate is due."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

from schemas.alerting import AlertModel

logger = logging.getLogger(__name__)


def parse_schedule_time(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Return ``(hour, minute)`` for an ``HH:mm`` string, ``None`` when absent or malformed."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    hour_part, sep, minute_part = text.partition(":")
    if not sep or not hour_part.isdigit() or not minute_part.isdigit():
        return None
    if len(hour_part) > 2 or len(minute_part) != 2:
        return None
    hour = int(hour_part)
    minute = int(minute_part)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def resolve_daily_schedule_moment(model: AlertModel, tick: datetime) -> Optional[datetime]:
    """The configured daily firing instant on the tick's calendar day."""
    if not model.schedule_time:
        return None
    parsed = parse_schedule_time(model.schedule_time)
    if parsed is None:
        logger.warning(
            "Invalid schedule_time detected for daily alert model (model=%s schedule_time=%r)",
            model.id,
            model.schedule_time,
        )
        return None
    hour, minute = parsed
    return tick.replace(hour=hour, minute=minute, second=0, microsecond=0)


def is_schedule_due(model: AlertModel, tick: datetime) -> bool:
    """Whether ``tick`` is a firing instant for the model's cadence."""
    if model.schedule_type == "hourly":
        return tick.minute == 0

    if model.schedule_type == "daily":
        moment = resolve_daily_schedule_moment(model, tick)
        if moment is None:
            return False
        return moment == tick.replace(second=0, microsecond=0)

    return False


def compute_days_left(expires_at: datetime, tick: datetime) -> int:
    """
    Whole calendar days from the tick's day to the expiry day.

    Both instants must already be expressed in the scheduler's zone so that
    the day boundaries line up; negative once the certificate has expired.
    """
    return (expires_at.date() - tick.date()).days


def should_send_notification(days_left: int, model: AlertModel) -> bool:
    offset_before = model.offset_days_before
    if offset_before is not None and offset_before >= 0 and days_left == offset_before:
        return True

    offset_after = model.offset_days_after
    if offset_after is not None and offset_after >= 0 and days_left == -offset_after:
        return True

    repeat = model.repeat_every_days
    if repeat and repeat > 0:
        if offset_before is not None and 0 <= days_left < offset_before:
            if (offset_before - days_left) % repeat == 0:
                return True
        if days_left < 0 and abs(days_left) % repeat == 0:
            return True

    return False


__all__ = [
    "compute_days_left",
    "is_schedule_due",
    "parse_schedule_time",
    "resolve_daily_schedule_moment",
    "should_send_notification",
]
