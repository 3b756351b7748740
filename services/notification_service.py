"""Fan-out of one certificate alert to every linked channel, with a single audit entry per dispatch."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from schemas.alerting import SYSTEM_ACTOR, AlertModel, AuditActor, Certificate
from services.audit_service import AuditService
from services.channel_dispatcher import ChannelDeliveryError, ChannelMessage, extract_error_message
from services.channel_service import ChannelService, ChannelServiceError
from services.template_renderer import render_template

logger = logging.getLogger(__name__)

SKIPPED_NOTE = "Alert dispatch skipped: certificate without linked channels"
ALL_FAILED_MESSAGE = "Failed to send notifications to the linked channels"

_EMAIL_SEPARATORS = re.compile(r"[,;]")


class NotificationDispatchError(RuntimeError):
    """Every linked channel failed for one certificate."""

    def __init__(self, message: str, failures: Sequence[Tuple[str, str]] = ()) -> None:
        super().__init__(message)
        self.failures = list(failures)


@dataclass
class NotificationOutcome:
    sent: List[Tuple[str, str]] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    skipped: bool = False

    @property
    def delivered(self) -> bool:
        return bool(self.sent)


def unique_channel_ids(channel_ids: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for channel_id in channel_ids:
        if channel_id and channel_id not in seen:
            seen.append(channel_id)
    return seen


def split_emails(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in _EMAIL_SEPARATORS.split(value) if part.strip()]


def build_audit_note(model_name: str, days_left: int, outcome: NotificationOutcome) -> str:
    parts = [f"alert_model={model_name}", f"days_left={days_left}"]
    if outcome.sent:
        parts.append("sent=[" + "; ".join(f"{channel_id}:{destination}" for channel_id, destination in outcome.sent) + "]")
    if outcome.failed:
        parts.append("failed=[" + "; ".join(f"{channel_id}:{error}" for channel_id, error in outcome.failed) + "]")
    return " | ".join(parts)


class NotificationService:
    def __init__(self, audit_service: AuditService, channel_service: ChannelService) -> None:
        self._audit = audit_service
        self._channels = channel_service

    def send_alerts(
        self,
        certificate: Certificate,
        alert_model: AlertModel,
        days_left: int,
        actor: AuditActor = SYSTEM_ACTOR,
    ) -> NotificationOutcome:
        """
        Render the model templates for ``certificate`` and deliver them to each
        distinct linked channel.

        Channel failures are collected rather than raised; only when nothing
        was delivered does this raise :class:`NotificationDispatchError`, and
        always after the audit entry has been written.
        """
        channel_ids = unique_channel_ids(certificate.channel_ids)
        if not channel_ids:
            logger.warning("Certificate %s has no linked channels; alert skipped.", certificate.id)
            self._audit.record(
                actor=actor,
                entity="certificate",
                entity_id=certificate.id,
                action="notification_sent",
                diff={"channelIds": {"new": []}},
                note=SKIPPED_NOTE,
            )
            return NotificationOutcome(skipped=True)

        context = {
            "name": certificate.name,
            "expires_at": certificate.expires_at,
            "days_left": days_left,
        }
        message = ChannelMessage(
            subject=render_template(alert_model.template_subject, context),
            body=render_template(alert_model.template_body, context),
            email_recipients=split_emails(certificate.owner_email),
        )

        outcome = NotificationOutcome()
        for channel_id in channel_ids:
            try:
                result = self._channels.notify_channel(channel_id, message)
            except (ChannelDeliveryError, ChannelServiceError) as exc:
                logger.warning(
                    "Alert delivery failed (certificate=%s channel=%s): %s",
                    certificate.id,
                    channel_id,
                    exc,
                )
                outcome.failed.append((channel_id, str(exc)))
                continue
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "Unexpected error while notifying channel (certificate=%s channel=%s)",
                    certificate.id,
                    channel_id,
                )
                outcome.failed.append((channel_id, extract_error_message(exc)))
                continue
            outcome.sent.append((channel_id, result.destination))

        self._audit.record(
            actor=actor,
            entity="certificate",
            entity_id=certificate.id,
            action="notification_sent",
            diff={"channelIds": {"new": channel_ids}},
            note=build_audit_note(alert_model.name, days_left, outcome),
        )

        if not outcome.delivered:
            raise NotificationDispatchError(ALL_FAILED_MESSAGE, outcome.failed)
        return outcome


__all__ = [
    "ALL_FAILED_MESSAGE",
    "NotificationDispatchError",
    "NotificationOutcome",
    "NotificationService",
    "SKIPPED_NOTE",
    "build_audit_note",
    "split_emails",
    "unique_channel_ids",
]
