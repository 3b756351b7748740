"""Database models for tracked certificates and their channel links."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base

CERTIFICATE_STATUS = Enum(
    "active",
    "expired",
    "revoked",
    name="certificate_status",
)


class Certificate(Base):
    """Certificate tracked for expiration alerts."""

    __tablename__ = "certificates"
    __table_args__ = {"extend_existing": True}

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    owner_email = Column(Text, nullable=False, default="")
    issued_at = Column(String(40), nullable=False)
    expires_at = Column(String(40), nullable=False, index=True)
    status = Column(CERTIFICATE_STATUS, nullable=False, default="active", index=True)
    # "disabled" is stored verbatim to opt a certificate out of alerts.
    alert_model_id = Column(String(64), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    channel_links = relationship(
        "CertificateChannelLink",
        back_populates="certificate",
        order_by="CertificateChannelLink.position",
        cascade="all, delete-orphan",
    )

    @property
    def channel_ids(self) -> list[str]:
        return [link.channel_id for link in self.channel_links]


class CertificateChannelLink(Base):
    """Ordered link between a certificate and a channel instance."""

    __tablename__ = "certificate_channels"
    __table_args__ = {"extend_existing": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    certificate_id = Column(String(64), ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False, index=True)
    channel_id = Column(String(64), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    linked_by_user_id = Column(String(64), nullable=True)
    linked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    certificate = relationship("Certificate", back_populates="channel_links")
