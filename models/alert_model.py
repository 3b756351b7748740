"""Database model for reusable alert models (schedule + offsets + templates)."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.sql import func

from database import Base

SCHEDULE_TYPE = Enum(
    "hourly",
    "daily",
    name="alert_schedule_type",
)


class AlertModel(Base):
    """Alert model shared by any number of certificates."""

    __tablename__ = "alert_models"
    __table_args__ = {"extend_existing": True}

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(120), nullable=False, unique=True)
    offset_days_before = Column(Integer, nullable=False, default=0)
    offset_days_after = Column(Integer, nullable=True)
    repeat_every_days = Column(Integer, nullable=True)
    template_subject = Column(Text, nullable=False, default="")
    template_body = Column(Text, nullable=False, default="")
    schedule_type = Column(SCHEDULE_TYPE, nullable=False, default="hourly")
    schedule_time = Column(String(5), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
