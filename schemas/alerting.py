"""Domain contracts shared by the alert scheduler, notification and channel services."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

CertificateStatus = Literal["active", "expired", "revoked"]
ScheduleType = Literal["hourly", "daily"]
ChannelType = Literal["email_smtp", "telegram_bot", "slack_webhook", "googlechat_webhook"]
AuditAction = Literal["create", "update", "delete", "test_send", "link", "unlink", "notification_sent"]

DISABLED_ALERT_MODEL_ID = "disabled"

SCHEDULE_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Certificate(BaseModel):
    """Certificate as consumed by the scheduler (read-only copy)."""

    id: str
    name: str
    owner_email: str = ""
    issued_at: str = ""
    expires_at: str
    status: CertificateStatus = "active"
    alert_model_id: Optional[str] = None
    notes: Optional[str] = None
    channel_ids: List[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    @property
    def alerts_disabled(self) -> bool:
        return not self.alert_model_id or self.alert_model_id == DISABLED_ALERT_MODEL_ID


class AlertModel(BaseModel):
    """
    Alert model as stored.

    Intentionally lenient about ``schedule_time`` so that a malformed value
    coming from persistence is skipped by the scheduler instead of breaking
    the whole listing. Use :class:`AlertModelInput` to validate user input.
    """

    id: str
    name: str
    offset_days_before: int = 0
    offset_days_after: Optional[int] = None
    repeat_every_days: Optional[int] = None
    template_subject: str = ""
    template_body: str = ""
    schedule_type: ScheduleType = "hourly"
    schedule_time: Optional[str] = None
    enabled: bool = True

    model_config = {"from_attributes": True}


class AlertModelInput(BaseModel):
    """Validated payload used to create or replace an alert model."""

    name: str = Field(..., min_length=1, max_length=120)
    offset_days_before: int = Field(..., ge=0)
    offset_days_after: Optional[int] = Field(default=None, ge=0)
    repeat_every_days: Optional[int] = Field(default=None, ge=1)
    template_subject: str = Field(..., min_length=1)
    template_body: str = Field(..., min_length=1)
    schedule_type: ScheduleType = "hourly"
    schedule_time: Optional[str] = None
    enabled: bool = True

    @field_validator("name", "schedule_time", mode="before")
    def _strip_optional(cls, value: Any) -> Any:
        if isinstance(value, str):
            trimmed = value.strip()
            return trimmed or None
        return value

    @model_validator(mode="after")
    def _check_schedule(self) -> "AlertModelInput":
        if self.schedule_type == "hourly":
            self.schedule_time = None
            return self
        if not self.schedule_time:
            raise ValueError("schedule_time is required for daily alert models")
        if not SCHEDULE_TIME_PATTERN.match(self.schedule_time):
            raise ValueError("schedule_time must be formatted as HH:mm between 00:00 and 23:59")
        return self


class ChannelInstance(BaseModel):
    id: str
    name: str
    type: ChannelType
    enabled: bool = True
    deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuditActor(BaseModel):
    """Who triggered an audited action (a user or the scheduler itself)."""

    id: str
    email: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None


SYSTEM_ACTOR = AuditActor(id="system", email="system@local", ip="scheduler", user_agent="alert-scheduler")


class AuditLogEntry(BaseModel):
    timestamp: datetime
    actor_user_id: str
    actor_email: str
    entity: str
    entity_id: str
    action: AuditAction
    diff: Dict[str, Any] = Field(default_factory=dict)
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    note: Optional[str] = None

    model_config = {"from_attributes": True}


__all__ = [
    "AlertModel",
    "AlertModelInput",
    "AuditAction",
    "AuditActor",
    "AuditLogEntry",
    "Certificate",
    "ChannelInstance",
    "ChannelType",
    "DISABLED_ALERT_MODEL_ID",
    "SCHEDULE_TIME_PATTERN",
    "SYSTEM_ACTOR",
    "ScheduleType",
]
