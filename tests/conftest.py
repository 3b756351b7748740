import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Generator, List, Optional
from zoneinfo import ZoneInfo

import pytest

os.environ.setdefault("DATABASE_ALLOW_NON_POSTGRES", "1")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_URL", os.environ["TEST_DATABASE_URL"])
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key")
os.environ.setdefault("APP_TIMEZONE", "America/Fortaleza")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from database import Base  # noqa: E402
from schemas.alerting import AlertModel, AuditLogEntry, Certificate, ChannelInstance  # noqa: E402
from services.secret_cipher import SecretCipher  # noqa: E402

TEST_ZONE = ZoneInfo("America/Fortaleza")


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.zone = now.tzinfo if isinstance(now.tzinfo, ZoneInfo) else TEST_ZONE
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


@dataclass
class InMemoryRepository:
    """Serves every repository protocol from plain dictionaries."""

    certificates: Dict[str, Certificate] = field(default_factory=dict)
    alert_models: Dict[str, AlertModel] = field(default_factory=dict)
    channels: Dict[str, ChannelInstance] = field(default_factory=dict)
    params: Dict[str, Dict[str, str]] = field(default_factory=dict)
    secrets: Dict[str, Dict[str, str]] = field(default_factory=dict)
    audit_entries: List[AuditLogEntry] = field(default_factory=list)
    fail_audit: bool = False

    def list_certificates(self) -> List[Certificate]:
        return list(self.certificates.values())

    def get_certificate(self, certificate_id: str) -> Optional[Certificate]:
        return self.certificates.get(certificate_id)

    def list_alert_models(self) -> List[AlertModel]:
        return list(self.alert_models.values())

    def get_alert_model(self, model_id: str) -> Optional[AlertModel]:
        return self.alert_models.get(model_id)

    def create_alert_model(self, model: AlertModel) -> None:
        self.alert_models[model.id] = model

    def get_channel(self, channel_id: str) -> Optional[ChannelInstance]:
        return self.channels.get(channel_id)

    def get_channel_params(self, channel_id: str) -> Dict[str, str]:
        return dict(self.params.get(channel_id, {}))

    def get_channel_secrets(self, channel_id: str) -> Dict[str, str]:
        return dict(self.secrets.get(channel_id, {}))

    def append_audit_log(self, entry: AuditLogEntry) -> None:
        if self.fail_audit:
            raise RuntimeError("audit store unavailable")
        self.audit_entries.append(entry)

    def add_channel(
        self,
        channel: ChannelInstance,
        params: Optional[Dict[str, str]] = None,
        secrets: Optional[Dict[str, str]] = None,
    ) -> None:
        self.channels[channel.id] = channel
        self.params[channel.id] = dict(params or {})
        self.secrets[channel.id] = dict(secrets or {})


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def cipher() -> SecretCipher:
    return SecretCipher(os.environ["ENCRYPTION_KEY"])


@pytest.fixture(autouse=True)
def _no_retry_sleep(monkeypatch: pytest.MonkeyPatch) -> List[float]:
    """Retries never wait for real in tests; the requested delays are recorded instead."""
    from services import retry

    delays: List[float] = []
    monkeypatch.setattr(retry.time, "sleep", lambda seconds: delays.append(seconds))
    return delays


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    import models  # noqa: F401

    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
