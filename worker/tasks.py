"""Celery tasks for the certificate alert scheduler."""

from __future__ import annotations

import logging
from typing import Any, Dict

from celery import shared_task

from services.scheduler_runner import get_scheduler_runner

logger = logging.getLogger(__name__)


@shared_task(name="alerts.run_scheduler", ignore_result=False)
def run_alert_scheduler() -> Dict[str, Any]:
    """Run one scheduler tick in this worker process."""
    summary = get_scheduler_runner().run_once()
    if summary is None:
        return {"status": "disabled"}
    return {"status": "ok", **summary.as_dict()}


__all__ = ["run_alert_scheduler"]
