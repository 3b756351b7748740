"""Database models for notification channel instances, parameters and secrets."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.sql import func

from database import Base

CHANNEL_TYPE = Enum(
    "email_smtp",
    "telegram_bot",
    "slack_webhook",
    "googlechat_webhook",
    name="channel_type",
)


class ChannelInstance(Base):
    """Configured delivery destination (one SMTP server, one bot, one webhook...)."""

    __tablename__ = "channel_instances"
    __table_args__ = {"extend_existing": True}

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(120), nullable=False)
    type = Column(CHANNEL_TYPE, nullable=False, index=True)
    enabled = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ChannelParam(Base):
    """Non-secret channel parameter stored as plain text."""

    __tablename__ = "channel_params"
    __table_args__ = {"extend_existing": True}

    channel_id = Column(String(64), ForeignKey("channel_instances.id", ondelete="CASCADE"), primary_key=True)
    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ChannelSecret(Base):
    """Channel credential; only the ciphertext is ever persisted."""

    __tablename__ = "channel_secrets"
    __table_args__ = {"extend_existing": True}

    channel_id = Column(String(64), ForeignKey("channel_instances.id", ondelete="CASCADE"), primary_key=True)
    key = Column(String(64), primary_key=True)
    value_ciphertext = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
