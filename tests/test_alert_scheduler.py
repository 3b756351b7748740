"""End-to-end tests for one scheduler tick over in-memory collaborators."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List
from zoneinfo import ZoneInfo

import pytest

from conftest import FakeClock, InMemoryRepository
from schemas.alerting import AlertModel, Certificate, ChannelInstance
from services import channel_service as channel_service_module
from services.alert_scheduler import AlertSchedulerJob
from services.audit_service import AuditService
from services.channel_dispatcher import ChannelDeliveryError
from services.channel_service import ChannelService
from services.dispatch_tracker import DispatchTracker
from services.notification_service import NotificationService

ZONE = ZoneInfo("America/Fortaleza")


@pytest.fixture
def sent(monkeypatch: pytest.MonkeyPatch) -> List[str]:
    calls: List[str] = []

    def fake_deliver(channel, params, secrets, message, **kwargs):
        if params.get("mode") == "fail":
            raise ChannelDeliveryError("rejected", channel_type=channel.type)
        if params.get("mode") == "explode":
            raise ValueError("unexpected")
        calls.append(f"{channel.id}:{message.subject}")
        return "somewhere"

    monkeypatch.setattr(channel_service_module, "deliver", fake_deliver)
    return calls


def _job(repository: InMemoryRepository, clock: FakeClock, tracker: DispatchTracker = None) -> AlertSchedulerJob:
    audit = AuditService(repository)
    notifications = NotificationService(audit, ChannelService(repository, audit, decrypt=lambda value: value))
    return AlertSchedulerJob(repository, repository, notifications, clock, tracker or DispatchTracker())


def _seed(repository: InMemoryRepository, *, schedule_type="daily", schedule_time="23:41", **cert) -> None:
    repository.alert_models["model"] = AlertModel(
        id="model",
        name="On expiry",
        offset_days_before=0,
        template_subject="{{name}} expires in {{days_left}} days",
        template_body="Expires at {{expires_at}}",
        schedule_type=schedule_type,
        schedule_time=schedule_time,
    )
    repository.add_channel(ChannelInstance(id="slack", name="Slack", type="slack_webhook"))
    payload = {
        "id": "cert",
        "name": "api.example.com",
        "owner_email": "ops@example.com",
        "expires_at": "2024-07-01",
        "alert_model_id": "model",
        "channel_ids": ["slack"],
    }
    payload.update(cert)
    repository.certificates["cert"] = Certificate(**payload)


def test_daily_then_hourly_walkthrough(repository: InMemoryRepository, sent: List[str]) -> None:
    _seed(repository)
    clock = FakeClock(datetime(2024, 7, 1, 23, 41, 15, tzinfo=ZONE))
    job = _job(repository, clock)

    summary = job.run()
    assert sent == ["slack:api.example.com expires in 0 days"]
    assert summary.sent == 1
    assert summary.tick == datetime(2024, 7, 1, 23, 41, tzinfo=ZONE)

    # Same minute again: suppressed.
    assert job.run().sent == 0
    assert len(sent) == 1

    # Next day, certificate renewed by one day: fires again.
    repository.certificates["cert"] = repository.certificates["cert"].model_copy(update={"expires_at": "2024-07-02"})
    clock.set(datetime(2024, 7, 2, 23, 41, 5, tzinfo=ZONE))
    job.run()
    assert len(sent) == 2

    # Switch the model to hourly.
    repository.alert_models["model"] = repository.alert_models["model"].model_copy(
        update={"schedule_type": "hourly", "schedule_time": None}
    )
    repository.certificates["cert"] = repository.certificates["cert"].model_copy(update={"expires_at": "2024-07-03"})
    clock.set(datetime(2024, 7, 3, 12, 0, 5, tzinfo=ZONE))
    job.run()
    assert len(sent) == 3

    clock.set(datetime(2024, 7, 3, 12, 0, 45, tzinfo=ZONE))
    job.run()
    clock.set(datetime(2024, 7, 3, 12, 30, tzinfo=ZONE))
    job.run()
    assert len(sent) == 3


def test_not_due_minute_does_nothing(repository: InMemoryRepository, sent: List[str]) -> None:
    _seed(repository)
    summary = _job(repository, FakeClock(datetime(2024, 7, 1, 23, 40, tzinfo=ZONE))).run()

    assert sent == []
    assert summary.evaluated == 1
    assert summary.skipped == 1


@pytest.mark.parametrize("alert_model_id", [None, "disabled", "missing"])
def test_certificates_without_usable_model_are_skipped(
    repository: InMemoryRepository, sent: List[str], alert_model_id
) -> None:
    _seed(repository, alert_model_id=alert_model_id)
    _job(repository, FakeClock(datetime(2024, 7, 1, 23, 41, tzinfo=ZONE))).run()
    assert sent == []
    assert repository.audit_entries == []


def test_disabled_model_is_skipped(repository: InMemoryRepository, sent: List[str]) -> None:
    _seed(repository)
    repository.alert_models["model"] = repository.alert_models["model"].model_copy(update={"enabled": False})
    _job(repository, FakeClock(datetime(2024, 7, 1, 23, 41, tzinfo=ZONE))).run()
    assert sent == []


def test_invalid_expiry_is_logged_and_skipped(
    repository: InMemoryRepository, sent: List[str], caplog: pytest.LogCaptureFixture
) -> None:
    _seed(repository, expires_at="someday")
    caplog.set_level(logging.WARNING, logger="services.alert_scheduler")

    summary = _job(repository, FakeClock(datetime(2024, 7, 1, 23, 41, tzinfo=ZONE))).run()

    assert sent == []
    assert summary.skipped == 1
    assert "invalid expires_at" in caplog.text


def test_offset_mismatch_is_skipped(repository: InMemoryRepository, sent: List[str]) -> None:
    _seed(repository, expires_at="2024-07-05")
    _job(repository, FakeClock(datetime(2024, 7, 1, 23, 41, tzinfo=ZONE))).run()
    assert sent == []


def test_total_failure_leaves_tracker_unmarked(repository: InMemoryRepository, sent: List[str]) -> None:
    _seed(repository)
    repository.params["slack"] = {"mode": "fail"}
    tracker = DispatchTracker()
    job = _job(repository, FakeClock(datetime(2024, 7, 1, 23, 41, tzinfo=ZONE)), tracker)

    summary = job.run()

    assert summary.failed == 1
    assert tracker.last_dispatch("cert") is None
    assert len(repository.audit_entries) == 1

    # A retry within the same minute is allowed and succeeds once the channel recovers.
    repository.params["slack"] = {}
    assert job.run().sent == 1
    assert tracker.last_dispatch("cert") is not None


def test_certificate_without_channels_is_marked_but_not_counted_as_sent(
    repository: InMemoryRepository, sent: List[str]
) -> None:
    _seed(repository, channel_ids=[])
    tracker = DispatchTracker()
    summary = _job(repository, FakeClock(datetime(2024, 7, 1, 23, 41, tzinfo=ZONE)), tracker).run()

    assert summary.sent == 0
    assert summary.skipped == 1
    assert tracker.last_dispatch("cert") is not None


def test_one_certificate_error_does_not_stop_the_run(repository: InMemoryRepository, sent: List[str]) -> None:
    _seed(repository)
    repository.add_channel(ChannelInstance(id="broken", name="Broken", type="slack_webhook"), params={"mode": "explode"})
    repository.certificates["bad"] = repository.certificates["cert"].model_copy(
        update={"id": "bad", "name": "bad.example.com", "channel_ids": ["broken"]}
    )
    # Insert the failing certificate first.
    repository.certificates = {"bad": repository.certificates["bad"], "cert": repository.certificates["cert"]}

    summary = _job(repository, FakeClock(datetime(2024, 7, 1, 23, 41, tzinfo=ZONE))).run()

    assert summary.failed == 1
    assert summary.sent == 1
    assert sent == ["slack:api.example.com expires in 0 days"]
