"""Wires the alert scheduler job to its collaborators and runs it with heartbeat + metrics."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from core.env import env_bool, env_int, env_str
from services import alert_metrics
from services.alert_scheduler import AlertSchedulerJob, SchedulerRunSummary
from services.audit_service import AuditService
from services.bootstrap import ensure_default_alert_model
from services.channel_service import ChannelService
from services.clock import Clock, SystemClock
from services.dispatch_tracker import DispatchTracker, InMemoryDispatchStore, JsonFileDispatchStore
from services.notification_service import NotificationService
from services.scheduler_heartbeat import write_heartbeat

logger = logging.getLogger(__name__)

SCHEDULER_ENABLED = env_bool("SCHEDULER_ENABLED", True)
SCHEDULER_BASE_INTERVAL_MINUTES = env_int("SCHEDULER_BASE_INTERVAL_MINUTES", 1, minimum=1)
ALERTS_DISPATCH_STATE_PATH = env_str("ALERTS_DISPATCH_STATE_PATH")


def build_cron_expression(interval_minutes: int) -> str:
    """5-field cron expression that fires every ``interval_minutes`` minutes."""
    interval = max(1, int(interval_minutes))
    if interval == 1:
        return "* * * * *"
    if interval < 60:
        return f"*/{interval} * * * *"
    hours = interval // 60
    if hours >= 24:
        return "0 0 * * *"
    return "0 * * * *" if hours == 1 else f"0 */{hours} * * *"


def build_dispatch_tracker(state_path: Optional[str] = None) -> DispatchTracker:
    path = state_path if state_path is not None else ALERTS_DISPATCH_STATE_PATH
    if path:
        logger.info("Persisting alert dispatch state to %s", path)
        return DispatchTracker(JsonFileDispatchStore(Path(path)))
    return DispatchTracker(InMemoryDispatchStore())


def build_scheduler_job(
    repository=None,
    *,
    clock: Optional[Clock] = None,
    tracker: Optional[DispatchTracker] = None,
    channel_service: Optional[ChannelService] = None,
) -> AlertSchedulerJob:
    """Assemble a job over one repository serving every collaborator contract."""
    if repository is None:
        from repositories.sql_repository import SqlRepository

        repository = SqlRepository()
    audit_service = AuditService(repository)
    channels = channel_service or ChannelService(repository, audit_service)
    notifications = NotificationService(audit_service, channels)
    return AlertSchedulerJob(
        certificate_repo=repository,
        alert_model_repo=repository,
        notification_service=notifications,
        clock=clock or SystemClock(),
        tracker=tracker or build_dispatch_tracker(),
    )


class SchedulerRunner:
    """
    Holds one job for the lifetime of the process so the dispatch tracker
    survives between ticks.
    """

    def __init__(
        self,
        job: AlertSchedulerJob,
        *,
        enabled: Optional[bool] = None,
        heartbeat_path: Optional[Path] = None,
        alert_model_repo=None,
    ) -> None:
        self.job = job
        self.enabled = SCHEDULER_ENABLED if enabled is None else enabled
        self._heartbeat_path = heartbeat_path
        self._alert_model_repo = alert_model_repo
        self._bootstrapped = False

    def _heartbeat(self, status, detail: Optional[str] = None) -> None:
        write_heartbeat(status, detail, path=self._heartbeat_path)

    def _bootstrap(self) -> None:
        if self._bootstrapped or self._alert_model_repo is None:
            return
        ensure_default_alert_model(self._alert_model_repo)
        self._bootstrapped = True

    def run_once(self) -> Optional[SchedulerRunSummary]:
        if not self.enabled:
            logger.info("Alert scheduler disabled (SCHEDULER_ENABLED=false); skipping run.")
            self._heartbeat("disabled", "SCHEDULER_ENABLED is false")
            return None

        self._heartbeat("starting")
        started = time.monotonic()
        try:
            self._bootstrap()
            summary = self.job.run()
        except Exception as exc:
            alert_metrics.record_scheduler_error()
            alert_metrics.record_scheduler_run("error", time.monotonic() - started)
            self._heartbeat("error", str(exc) or exc.__class__.__name__)
            logger.exception("Alert scheduler run failed.")
            raise

        elapsed = time.monotonic() - started
        status = "success" if summary.evaluated else "idle"
        alert_metrics.record_scheduler_run(status, elapsed)
        self._heartbeat(
            status,
            f"evaluated={summary.evaluated} sent={summary.sent} skipped={summary.skipped} failed={summary.failed}",
        )
        return summary


_RUNNER: Optional[SchedulerRunner] = None


def get_scheduler_runner() -> SchedulerRunner:
    """Process-wide runner over the SQL repository, created on first use."""
    global _RUNNER  # pylint: disable=global-statement
    if _RUNNER is None:
        from repositories.sql_repository import SqlRepository

        repository = SqlRepository()
        _RUNNER = SchedulerRunner(build_scheduler_job(repository), alert_model_repo=repository)
    return _RUNNER


def reset_scheduler_runner() -> None:
    global _RUNNER  # pylint: disable=global-statement
    _RUNNER = None


__all__ = [
    "SCHEDULER_BASE_INTERVAL_MINUTES",
    "SCHEDULER_ENABLED",
    "SchedulerRunner",
    "build_cron_expression",
    "build_dispatch_tracker",
    "build_scheduler_job",
    "get_scheduler_runner",
    "reset_scheduler_runner",
]
