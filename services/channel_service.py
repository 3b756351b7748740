"""Loads channel instances with their configuration and delivers through them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from repositories.interfaces import ChannelRepository
from schemas.alerting import AuditActor, ChannelInstance
from services import alert_metrics
from services.audit_service import AuditService
from services.channel_dispatcher import ChannelDeliveryError, ChannelMessage, ChannelSecrets, deliver
from services.retry import DEFAULT_RETRY_POLICY, RetryPolicy
from services.secret_cipher import decrypt_secret

logger = logging.getLogger(__name__)

TEST_SUBJECT = "Certificate alert channel test"
TEST_BODY = "Integration test: {name}. If you received this message the channel is configured correctly."


class ChannelServiceError(RuntimeError):
    """Base error for channel lookups."""


class ChannelNotFoundError(ChannelServiceError):
    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Channel {channel_id} not found")
        self.channel_id = channel_id


class ChannelDisabledError(ChannelServiceError):
    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Channel {channel_id} is disabled")
        self.channel_id = channel_id


@dataclass(frozen=True)
class ChannelNotificationResult:
    channel: ChannelInstance
    destination: str


@dataclass(frozen=True)
class ChannelTestResult:
    success: bool
    error: Optional[str] = None


class ChannelService:
    def __init__(
        self,
        repository: ChannelRepository,
        audit_service: Optional[AuditService] = None,
        *,
        decrypt: Callable[[str], str] = decrypt_secret,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ) -> None:
        self._repository = repository
        self._audit = audit_service
        self._decrypt = decrypt
        self._retry_policy = retry_policy

    def get_active_channel(self, channel_id: str) -> ChannelInstance:
        channel = self._repository.get_channel(channel_id)
        if channel is None or channel.deleted:
            raise ChannelNotFoundError(channel_id)
        if not channel.enabled:
            raise ChannelDisabledError(channel_id)
        return channel

    def _deliver(self, channel: ChannelInstance, message: ChannelMessage) -> str:
        params = self._repository.get_channel_params(channel.id)
        secrets = ChannelSecrets(self._repository.get_channel_secrets(channel.id), self._decrypt)
        try:
            destination = deliver(channel, params, secrets, message, retry_policy=self._retry_policy)
        except ChannelDeliveryError:
            alert_metrics.record_notification(channel.type, "failed")
            raise
        alert_metrics.record_notification(channel.type, "sent")
        return destination

    def notify_channel(self, channel_id: str, message: ChannelMessage) -> ChannelNotificationResult:
        """Deliver ``message`` through one channel; raises on lookup or delivery failure."""
        channel = self.get_active_channel(channel_id)
        destination = self._deliver(channel, message)
        logger.info("Notification delivered (channel=%s type=%s destination=%s)", channel.id, channel.type, destination)
        return ChannelNotificationResult(channel=channel, destination=destination)

    def send_test(self, channel_id: str, actor: AuditActor, to_email: Optional[str] = None) -> ChannelTestResult:
        channel = self.get_active_channel(channel_id)
        recipients = [to_email.strip()] if to_email and to_email.strip() else []
        if channel.type == "email_smtp" and not recipients:
            recipients = [actor.email]
        message = ChannelMessage(
            subject=TEST_SUBJECT,
            body=TEST_BODY.format(name=channel.name),
            email_recipients=recipients,
        )

        error: Optional[str] = None
        destination: Optional[str] = None
        try:
            destination = self._deliver(channel, message)
        except ChannelDeliveryError as exc:
            error = str(exc)
            logger.warning("Channel test failed (channel=%s type=%s): %s", channel.id, channel.type, error)

        if self._audit is not None:
            self._audit.record(
                actor=actor,
                entity="channel",
                entity_id=channel.id,
                action="test_send",
                diff={"success": {"new": error is None}},
                note=f"destination={destination}" if error is None else f"error={error}",
            )
        return ChannelTestResult(success=error is None, error=error)


__all__ = [
    "ChannelDisabledError",
    "ChannelNotFoundError",
    "ChannelNotificationResult",
    "ChannelService",
    "ChannelServiceError",
    "ChannelTestResult",
]
