"""Tests for the runner wrapper: heartbeat, enable flag and beat wiring."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from conftest import FakeClock, InMemoryRepository
from services import scheduler_runner
from worker import celery_app
from services.bootstrap import DEFAULT_ALERT_MODEL_ID
from services.dispatch_tracker import JsonFileDispatchStore
from services.scheduler_heartbeat import read_heartbeat, write_heartbeat

ZONE = ZoneInfo("America/Fortaleza")


@pytest.mark.parametrize(
    ("interval", "expected"),
    [(1, "* * * * *"), (5, "*/5 * * * *"), (60, "0 * * * *"), (180, "0 */3 * * *"), (0, "* * * * *")],
)
def test_build_cron_expression(interval: int, expected: str) -> None:
    assert scheduler_runner.build_cron_expression(interval) == expected


def test_run_once_writes_success_heartbeat(repository: InMemoryRepository, tmp_path: Path) -> None:
    heartbeat = tmp_path / "heartbeat.json"
    job = scheduler_runner.build_scheduler_job(repository, clock=FakeClock(datetime(2024, 7, 1, 12, 0, tzinfo=ZONE)))
    runner = scheduler_runner.SchedulerRunner(job, enabled=True, heartbeat_path=heartbeat, alert_model_repo=repository)

    summary = runner.run_once()

    assert summary is not None
    payload = json.loads(heartbeat.read_text(encoding="utf-8"))
    assert payload["status"] == "idle"
    assert "evaluated=0" in payload["detail"]
    assert DEFAULT_ALERT_MODEL_ID in repository.alert_models


def test_disabled_runner_skips_job(repository: InMemoryRepository, tmp_path: Path) -> None:
    heartbeat = tmp_path / "heartbeat.json"
    job = scheduler_runner.build_scheduler_job(repository, clock=FakeClock(datetime(2024, 7, 1, 12, 0, tzinfo=ZONE)))
    runner = scheduler_runner.SchedulerRunner(job, enabled=False, heartbeat_path=heartbeat)

    assert runner.run_once() is None
    assert read_heartbeat(heartbeat)["status"] == "disabled"


def test_job_failure_writes_error_heartbeat(repository: InMemoryRepository, tmp_path: Path, monkeypatch) -> None:
    heartbeat = tmp_path / "heartbeat.json"

    def broken_listing():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(repository, "list_certificates", broken_listing)
    job = scheduler_runner.build_scheduler_job(repository, clock=FakeClock(datetime(2024, 7, 1, 12, 0, tzinfo=ZONE)))
    runner = scheduler_runner.SchedulerRunner(job, enabled=True, heartbeat_path=heartbeat)

    with pytest.raises(RuntimeError):
        runner.run_once()
    payload = read_heartbeat(heartbeat)
    assert payload["status"] == "error"
    assert payload["detail"] == "database unavailable"


def test_tracker_persists_to_json_when_configured(tmp_path: Path) -> None:
    tracker = scheduler_runner.build_dispatch_tracker(str(tmp_path / "dispatches.json"))
    assert isinstance(tracker.store, JsonFileDispatchStore)


def test_heartbeat_read_handles_missing_and_corrupt_files(tmp_path: Path) -> None:
    target = tmp_path / "hb.json"
    assert read_heartbeat(target) is None
    target.write_text("nope", encoding="utf-8")
    assert read_heartbeat(target) is None
    write_heartbeat("starting", path=target)
    assert read_heartbeat(target)["status"] == "starting"


def test_beat_schedule_uses_interval_and_expiry() -> None:
    schedule = celery_app.build_beat_schedule(5)
    entry = schedule["alerts-run-scheduler"]
    assert entry["task"] == "alerts.run_scheduler"
    assert entry["options"]["expires"] == 300
    assert celery_app.cron_from_string("*/5 * * * *") == entry["schedule"]
    with pytest.raises(ValueError):
        celery_app.cron_from_string("* * *")


def test_worker_runs_ticks_in_a_single_process() -> None:
    assert celery_app.app.conf.worker_concurrency == 1
    assert celery_app.app.conf.worker_prefetch_multiplier == 1


def test_celery_task_runs_one_tick(repository: InMemoryRepository, tmp_path: Path, monkeypatch) -> None:
    from worker import tasks

    job = scheduler_runner.build_scheduler_job(repository, clock=FakeClock(datetime(2024, 7, 1, 12, 0, tzinfo=ZONE)))
    runner = scheduler_runner.SchedulerRunner(job, enabled=True, heartbeat_path=tmp_path / "hb.json")
    monkeypatch.setattr(tasks, "get_scheduler_runner", lambda: runner)

    result = tasks.run_alert_scheduler()

    assert result["status"] == "ok"
    assert result["evaluated"] == 0

    runner.enabled = False
    assert tasks.run_alert_scheduler() == {"status": "disabled"}
