"""Seed data the scheduler expects on a fresh install."""

from __future__ import annotations

import logging

from repositories.interfaces import AlertModelRepository
from schemas.alerting import AlertModel, AlertModelInput

logger = logging.getLogger(__name__)

DEFAULT_ALERT_MODEL_ID = "default-30-days"

DEFAULT_ALERT_MODEL = AlertModelInput(
    name="30 days before",
    offset_days_before=30,
    offset_days_after=None,
    repeat_every_days=7,
    template_subject="Alert: certificate {{name}} expires in {{days_left}} days",
    template_body=(
        "The certificate {{name}} expires on {{expires_at}}.\n"
        "Days left: {{days_left}}.\n"
        "Renew it before the expiry date to avoid an outage."
    ),
    schedule_type="hourly",
)


def ensure_default_alert_model(repository: AlertModelRepository) -> bool:
    """Create the default alert model when no model with its id exists. Returns ``True`` if created."""
    if repository.get_alert_model(DEFAULT_ALERT_MODEL_ID) is not None:
        return False
    model = AlertModel(id=DEFAULT_ALERT_MODEL_ID, **DEFAULT_ALERT_MODEL.model_dump())
    repository.create_alert_model(model)
    logger.info("Created default alert model %s (%s)", model.id, model.name)
    return True


__all__ = ["DEFAULT_ALERT_MODEL", "DEFAULT_ALERT_MODEL_ID", "ensure_default_alert_model"]
