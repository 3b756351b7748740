"""SQLAlchemy-backed repositories for certificates, alert models, channels and audit logs."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from models.alert_model import AlertModel as AlertModelRow
from models.audit_log import AuditLog as AuditLogRow
from models.certificate import Certificate as CertificateRow
from models.channel import ChannelInstance as ChannelRow
from models.channel import ChannelParam, ChannelSecret
from schemas.alerting import AlertModel, AuditLogEntry, Certificate, ChannelInstance

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class SqlRepository:
    """
    One repository object serving every collaborator contract.

    Each call opens its own short-lived session so the scheduler never holds
    a transaction open across channel deliveries.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        if session_factory is None:
            from database import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Certificates
    # ------------------------------------------------------------------

    def list_certificates(self) -> List[Certificate]:
        with self._session() as session:
            rows = session.scalars(
                select(CertificateRow).options(selectinload(CertificateRow.channel_links)).order_by(CertificateRow.name)
            ).all()
            return [Certificate.model_validate(row) for row in rows]

    def get_certificate(self, certificate_id: str) -> Optional[Certificate]:
        with self._session() as session:
            row = session.get(CertificateRow, certificate_id)
            return Certificate.model_validate(row) if row is not None else None

    # ------------------------------------------------------------------
    # Alert models
    # ------------------------------------------------------------------

    def list_alert_models(self) -> List[AlertModel]:
        with self._session() as session:
            rows = session.scalars(select(AlertModelRow).order_by(AlertModelRow.name)).all()
            return [AlertModel.model_validate(row) for row in rows]

    def get_alert_model(self, model_id: str) -> Optional[AlertModel]:
        with self._session() as session:
            row = session.get(AlertModelRow, model_id)
            return AlertModel.model_validate(row) if row is not None else None

    def create_alert_model(self, model: AlertModel) -> None:
        with self._session() as session:
            session.add(AlertModelRow(**model.model_dump()))
            try:
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def get_channel(self, channel_id: str) -> Optional[ChannelInstance]:
        with self._session() as session:
            row = session.get(ChannelRow, channel_id)
            return ChannelInstance.model_validate(row) if row is not None else None

    def get_channel_params(self, channel_id: str) -> Dict[str, str]:
        with self._session() as session:
            rows = session.scalars(select(ChannelParam).where(ChannelParam.channel_id == channel_id)).all()
            return {row.key: row.value or "" for row in rows}

    def get_channel_secrets(self, channel_id: str) -> Dict[str, str]:
        with self._session() as session:
            rows = session.scalars(select(ChannelSecret).where(ChannelSecret.channel_id == channel_id)).all()
            return {row.key: row.value_ciphertext for row in rows if row.value_ciphertext}

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def append_audit_log(self, entry: AuditLogEntry) -> None:
        with self._session() as session:
            session.add(AuditLogRow(**entry.model_dump()))
            try:
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                logger.exception("Failed to persist audit log entity=%s action=%s.", entry.entity, entry.action)
                raise


__all__ = ["SqlRepository"]
