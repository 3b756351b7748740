"""Append-only audit trail for certificate, model and channel activity."""

from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = {"extend_existing": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    actor_user_id = Column(String(64), nullable=False)
    actor_email = Column(String(255), nullable=False)
    entity = Column(String(64), nullable=False, index=True)
    entity_id = Column(String(64), nullable=False, index=True)
    action = Column(String(32), nullable=False, index=True)
    diff = Column(JSON, nullable=False, default=dict)
    ip = Column(String(255), nullable=True)
    user_agent = Column(String(255), nullable=True)
    note = Column(Text, nullable=True)
