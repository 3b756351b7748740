"""Collaborator contracts consumed by the scheduling core."""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from schemas.alerting import AlertModel, AuditLogEntry, Certificate, ChannelInstance


class CertificateRepository(Protocol):
    def list_certificates(self) -> List[Certificate]: ...

    def get_certificate(self, certificate_id: str) -> Optional[Certificate]: ...


class AlertModelRepository(Protocol):
    def list_alert_models(self) -> List[AlertModel]: ...

    def get_alert_model(self, model_id: str) -> Optional[AlertModel]: ...

    def create_alert_model(self, model: AlertModel) -> None: ...


class ChannelRepository(Protocol):
    def get_channel(self, channel_id: str) -> Optional[ChannelInstance]: ...

    def get_channel_params(self, channel_id: str) -> Dict[str, str]:
        """Return ``{key: value}`` for the channel's non-secret parameters."""
        ...

    def get_channel_secrets(self, channel_id: str) -> Dict[str, str]:
        """Return ``{key: ciphertext}``; values are never decrypted here."""
        ...


class AuditLogRepository(Protocol):
    def append_audit_log(self, entry: AuditLogEntry) -> None: ...


__all__ = [
    "AlertModelRepository",
    "AuditLogRepository",
    "CertificateRepository",
    "ChannelRepository",
]
