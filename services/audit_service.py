"""Best-effort audit trail recording for alert and channel operations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from repositories.interfaces import AuditLogRepository
from schemas.alerting import AuditAction, AuditActor, AuditLogEntry

logger = logging.getLogger(__name__)

_MAX_CLIENT_FIELD = 255


def _trim(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value[:_MAX_CLIENT_FIELD]


class AuditService:
    def __init__(
        self,
        repository: AuditLogRepository,
        *,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._repository = repository
        self._now = now

    def record(
        self,
        *,
        actor: AuditActor,
        entity: str,
        entity_id: str,
        action: AuditAction,
        diff: Optional[Mapping[str, Any]] = None,
        note: Optional[str] = None,
    ) -> Optional[AuditLogEntry]:
        """
        Append one audit entry.

        Persistence failures are logged and swallowed so that an audit outage
        never turns a delivered notification into a reported failure. Returns
        the entry that was written, or ``None`` when the write failed.
        """
        entry = AuditLogEntry(
            timestamp=self._now(),
            actor_user_id=actor.id,
            actor_email=actor.email,
            entity=entity,
            entity_id=entity_id,
            action=action,
            diff=dict(diff or {}),
            ip=_trim(actor.ip),
            user_agent=_trim(actor.user_agent),
            note=note,
        )
        try:
            self._repository.append_audit_log(entry)
        except (SQLAlchemyError, OSError, RuntimeError, ValueError) as exc:
            logger.warning(
                "Failed to record audit entry (entity=%s id=%s action=%s): %s",
                entity,
                entity_id,
                action,
                exc,
            )
            return None
        return entry


__all__ = ["AuditService"]
