"""One pass of the certificate alert scheduler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from repositories.interfaces import AlertModelRepository, CertificateRepository
from schemas.alerting import SYSTEM_ACTOR, AlertModel, Certificate
from services.alert_schedule import compute_days_left, is_schedule_due, should_send_notification
from services.clock import Clock, parse_date, truncate_to_minute
from services.dispatch_tracker import DispatchTracker
from services.notification_service import NotificationDispatchError, NotificationService

logger = logging.getLogger(__name__)


@dataclass
class SchedulerRunSummary:
    tick: datetime
    evaluated: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, object]:
        return {
            "tick": self.tick.isoformat(),
            "evaluated": self.evaluated,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class AlertSchedulerJob:
    """
    Walks every certificate once per tick and dispatches the alerts that are due.

    The decision chain per certificate is linear: alerts enabled for the
    certificate, model found and enabled, schedule due at this tick, not yet
    dispatched in this period, expiry parseable, offset/repeat rule matches.
    A failure on one certificate is logged and never stops the others.
    """

    def __init__(
        self,
        certificate_repo: CertificateRepository,
        alert_model_repo: AlertModelRepository,
        notification_service: NotificationService,
        clock: Clock,
        tracker: Optional[DispatchTracker] = None,
    ) -> None:
        self._certificates = certificate_repo
        self._alert_models = alert_model_repo
        self._notifications = notification_service
        self._clock = clock
        self._tracker = tracker if tracker is not None else DispatchTracker()

    @property
    def tracker(self) -> DispatchTracker:
        return self._tracker

    def run(self) -> SchedulerRunSummary:
        tick = truncate_to_minute(self._clock.now())
        summary = SchedulerRunSummary(tick=tick)

        certificates = self._certificates.list_certificates()
        models = {model.id: model for model in self._alert_models.list_alert_models()}

        for certificate in certificates:
            summary.evaluated += 1
            try:
                delivered = self._process(certificate, models, tick)
            except NotificationDispatchError as exc:
                summary.failed += 1
                logger.error("Alert dispatch failed for certificate %s: %s", certificate.id, exc)
                continue
            except Exception:  # noqa: BLE001 - one certificate must not stop the run
                summary.failed += 1
                logger.exception("Unexpected error while processing certificate %s", certificate.id)
                continue
            if delivered:
                summary.sent += 1
            else:
                summary.skipped += 1

        logger.info(
            "Alert scheduler tick %s: evaluated=%s sent=%s skipped=%s failed=%s",
            tick.isoformat(),
            summary.evaluated,
            summary.sent,
            summary.skipped,
            summary.failed,
        )
        return summary

    def _process(self, certificate: Certificate, models: Dict[str, AlertModel], tick: datetime) -> bool:
        if certificate.alerts_disabled:
            return False

        model = models.get(certificate.alert_model_id or "")
        if model is None:
            logger.warning(
                "Certificate %s references unknown alert model %s",
                certificate.id,
                certificate.alert_model_id,
            )
            return False
        if not model.enabled:
            return False

        if not is_schedule_due(model, tick):
            return False
        if self._tracker.already_dispatched(certificate.id, model, tick):
            return False

        expires_at = parse_date(certificate.expires_at, self._clock.zone)
        if expires_at is None:
            logger.warning("Certificate %s has an invalid expires_at: %r", certificate.id, certificate.expires_at)
            return False

        days_left = compute_days_left(expires_at, tick)
        if not should_send_notification(days_left, model):
            return False

        outcome = self._notifications.send_alerts(certificate, model, days_left, SYSTEM_ACTOR)
        self._tracker.mark_dispatched(certificate.id, model, tick)
        return not outcome.skipped


__all__ = ["AlertSchedulerJob", "SchedulerRunSummary"]
