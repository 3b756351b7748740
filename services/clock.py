"""Zone-aware clock shared by every scheduling decision."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.env import env_str
from core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEZONE = "America/Fortaleza"
APP_TIMEZONE = env_str("APP_TIMEZONE") or env_str("TZ") or DEFAULT_TIMEZONE


def resolve_zone(name: Optional[str] = None) -> ZoneInfo:
    candidate = (name or APP_TIMEZONE).strip()
    try:
        return ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone '{candidate}'") from exc


class Clock(Protocol):
    zone: ZoneInfo

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock pinned to one IANA zone."""

    def __init__(self, zone_name: Optional[str] = None) -> None:
        self.zone = resolve_zone(zone_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.zone)


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def parse_date(value: Optional[str], zone: ZoneInfo) -> Optional[datetime]:
    """
    Parse an ISO date or datetime string into ``zone``.

    Date-only strings (``2024-07-01``) become midnight in ``zone``; strings
    carrying an offset are converted to ``zone``; anything unparseable
    yields ``None``.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=zone)
    return parsed.astimezone(zone)


def local_date(value: datetime, zone: ZoneInfo) -> date:
    return value.astimezone(zone).date()


__all__ = [
    "APP_TIMEZONE",
    "Clock",
    "DEFAULT_TIMEZONE",
    "SystemClock",
    "local_date",
    "parse_date",
    "resolve_zone",
    "truncate_to_minute",
]
