"""Per-type delivery for channel instances (SMTP, Telegram, Slack, Google Chat)."""

from __future__ import annotations

import json
import logging
import smtplib
import socket
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable, Dict, List, Mapping, Optional

import httpx

from core.env import env_int, env_str
from schemas.alerting import ChannelInstance
from services.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry
from services.secret_cipher import SecretDecryptionError

logger = logging.getLogger(__name__)

CHANNEL_DEFAULT_TIMEOUT_MS = env_int("CHANNEL_DEFAULT_TIMEOUT_MS", 15000, minimum=1)
TELEGRAM_API_BASE_URL = (env_str("TELEGRAM_API_BASE_URL") or "https://api.telegram.org").rstrip("/")
DEFAULT_FROM_NAME = "Cert Manager"
DEFAULT_SMTP_PORT = 587
TIMEOUT_MESSAGE = "Timed out while contacting the external service"

# Parameter/secret names accepted by each channel type.
CHANNEL_DEFINITIONS: Dict[str, Dict[str, List[str]]] = {
    "email_smtp": {
        "params": ["smtp_host", "smtp_port", "smtp_user", "from_name", "from_email", "tls", "timeout_ms"],
        "secrets": ["smtp_pass"],
    },
    "telegram_bot": {
        "params": ["chat_ids", "timeout_ms"],
        "secrets": ["bot_token"],
    },
    "slack_webhook": {
        "params": ["channel_override", "timeout_ms"],
        "secrets": ["webhook_url"],
    },
    "googlechat_webhook": {
        "params": ["space_name", "timeout_ms"],
        "secrets": ["webhook_url"],
    },
}


class ChannelDeliveryError(RuntimeError):
    """A channel could not deliver; the message is safe to show to operators."""

    def __init__(self, message: str, *, channel_type: Optional[str] = None) -> None:
        super().__init__(message)
        self.channel_type = channel_type


@dataclass(frozen=True)
class ChannelMessage:
    subject: str
    body: str
    email_recipients: List[str] = field(default_factory=list)


class ChannelSecrets:
    """Ciphertexts for one channel, decrypted only when a handler asks for a value."""

    def __init__(self, ciphertexts: Mapping[str, str], decrypt: Callable[[str], str]) -> None:
        self._ciphertexts = {key: value for key, value in ciphertexts.items() if value}
        self._decrypt = decrypt

    def has(self, key: str) -> bool:
        return key in self._ciphertexts

    def reveal(self, key: str) -> Optional[str]:
        ciphertext = self._ciphertexts.get(key)
        if ciphertext is None:
            return None
        return self._decrypt(ciphertext)

    def __repr__(self) -> str:
        return f"ChannelSecrets(keys={sorted(self._ciphertexts)})"


ChannelHandler = Callable[[ChannelInstance, Dict[str, str], ChannelSecrets, ChannelMessage, RetryPolicy], str]


def compose_param_map(channel_type: str, params: Mapping[str, str]) -> Dict[str, str]:
    """Return ``params`` with every known key of ``channel_type`` present and values trimmed."""
    definition = CHANNEL_DEFINITIONS.get(channel_type, {"params": []})
    merged = {key: str(value if value is not None else "").strip() for key, value in params.items()}
    for key in definition["params"]:
        merged.setdefault(key, "")
    return merged


def _positive_number(value: Optional[str], fallback: int) -> int:
    if not value:
        return fallback
    try:
        parsed = int(float(value))
    except (TypeError, ValueError):
        return fallback
    return parsed if parsed > 0 else fallback


def _timeout_seconds(params: Mapping[str, str]) -> float:
    return _positive_number(params.get("timeout_ms"), CHANNEL_DEFAULT_TIMEOUT_MS) / 1000.0


def _split_list(value: Optional[str]) -> List[str]:
    items: List[str] = []
    for part in (value or "").split(","):
        candidate = part.strip()
        if candidate and candidate not in items:
            items.append(candidate)
    return items


def _chat_text(message: ChannelMessage, *, bold: str = "*") -> str:
    if message.subject and message.body:
        return f"{bold}{message.subject}{bold}\n{message.body}"
    return message.subject or message.body


# ---------------------------------------------------------------------------
# Error normalisation
# ---------------------------------------------------------------------------


def _message_from_response(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except (json.JSONDecodeError, ValueError):
        data = None
    if isinstance(data, Mapping):
        for key in ("description", "error", "message"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, Mapping):
                nested = value.get("message")
                if isinstance(nested, str) and nested.strip():
                    return nested.strip()
    if isinstance(data, str) and data.strip():
        return data.strip()
    text = response.text.strip() if response.text else ""
    return text or None


def extract_error_message(exc: BaseException) -> str:
    """Operator-facing message for a transport failure."""
    if isinstance(exc, httpx.HTTPStatusError):
        detail = _message_from_response(exc.response)
        if detail:
            return detail
        return f"HTTP {exc.response.status_code} from external service"
    if isinstance(exc, (httpx.TimeoutException, socket.timeout, TimeoutError)):
        return TIMEOUT_MESSAGE
    if isinstance(exc, smtplib.SMTPResponseException):
        detail = exc.smtp_error.decode("utf-8", "replace") if isinstance(exc.smtp_error, bytes) else str(exc.smtp_error)
        return f"SMTP {exc.smtp_code}: {detail}".strip()
    return str(exc) or exc.__class__.__name__


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _post_json(url: str, payload: Mapping[str, object], *, timeout: float) -> httpx.Response:
    # httpx error text embeds the URL, which carries the bot token or webhook secret.
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(url, json=dict(payload), headers={"Content-Type": "application/json"})
            response.raise_for_status()
            return response
    except httpx.HTTPError as exc:
        raise ChannelDeliveryError(extract_error_message(exc)) from exc


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


def _deliver_email_smtp(
    channel: ChannelInstance,
    params: Dict[str, str],
    secrets: ChannelSecrets,
    message: ChannelMessage,
    policy: RetryPolicy,
) -> str:
    host = params.get("smtp_host", "")
    raw_port = params.get("smtp_port", "")
    port = _positive_number(raw_port, 0) if raw_port else DEFAULT_SMTP_PORT
    user = params.get("smtp_user", "")
    from_name = params.get("from_name") or DEFAULT_FROM_NAME
    from_email = params.get("from_email") or user
    use_tls = params.get("tls", "").lower() in {"on", "true", "1", "yes"}
    timeout = _timeout_seconds(params)

    if not host:
        raise ChannelDeliveryError("SMTP configuration missing: smtp_host is required", channel_type=channel.type)
    if not port:
        raise ChannelDeliveryError("SMTP configuration missing or invalid: smtp_port", channel_type=channel.type)
    if not from_email:
        raise ChannelDeliveryError("SMTP configuration missing: from_email is required", channel_type=channel.type)
    recipients = [address for address in message.email_recipients if address]
    if not recipients:
        raise ChannelDeliveryError("No email recipients for this certificate", channel_type=channel.type)

    password = secrets.reveal("smtp_pass") if user else None

    email = EmailMessage()
    email["From"] = formataddr((from_name, from_email)) if from_name else from_email
    email["To"] = ", ".join(recipients)
    email["Subject"] = message.subject
    email.set_content(message.body or "")

    def _send() -> None:
        context = ssl.create_default_context()
        if port == 465:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(host, port, timeout=timeout, context=context)
        else:
            smtp = smtplib.SMTP(host, port, timeout=timeout)
        with smtp as client:
            if port != 465:
                client.ehlo()
                if use_tls:
                    client.starttls(context=context)
                    client.ehlo()
                elif client.has_extn("starttls"):
                    client.starttls(context=context)
                    client.ehlo()
            if user:
                client.login(user, password or "")
            client.send_message(email)

    with_retry(_send, policy, label=f"smtp:{channel.id}")
    return f"email {', '.join(recipients)}"


def _deliver_telegram_bot(
    channel: ChannelInstance,
    params: Dict[str, str],
    secrets: ChannelSecrets,
    message: ChannelMessage,
    policy: RetryPolicy,
) -> str:
    chat_ids = _split_list(params.get("chat_ids"))
    if not chat_ids:
        raise ChannelDeliveryError("No chat_ids configured for this Telegram channel", channel_type=channel.type)
    if not secrets.has("bot_token"):
        raise ChannelDeliveryError("Telegram bot token is not configured", channel_type=channel.type)
    token = secrets.reveal("bot_token")
    timeout = _timeout_seconds(params)
    url = f"{TELEGRAM_API_BASE_URL}/bot{token}/sendMessage"
    text = _chat_text(message, bold="")

    for chat_id in chat_ids:

        def _send(chat_id: str = chat_id) -> None:
            response = _post_json(url, {"chat_id": chat_id, "text": text}, timeout=timeout)
            try:
                data = response.json()
            except (json.JSONDecodeError, ValueError):
                data = None
            if not isinstance(data, Mapping) or not data.get("ok"):
                description = data.get("description") if isinstance(data, Mapping) else None
                raise ChannelDeliveryError(
                    description or "Telegram rejected the message",
                    channel_type=channel.type,
                )

        with_retry(_send, policy, label=f"telegram:{channel.id}")

    return f"Telegram chats: {', '.join(chat_ids)}"


def _deliver_slack_webhook(
    channel: ChannelInstance,
    params: Dict[str, str],
    secrets: ChannelSecrets,
    message: ChannelMessage,
    policy: RetryPolicy,
) -> str:
    if not secrets.has("webhook_url"):
        raise ChannelDeliveryError("Slack webhook URL is not configured", channel_type=channel.type)
    webhook_url = secrets.reveal("webhook_url") or ""
    channel_override = params.get("channel_override", "")
    timeout = _timeout_seconds(params)

    payload: Dict[str, object] = {"text": _chat_text(message)}
    if channel_override:
        payload["channel"] = channel_override

    def _send() -> None:
        response = _post_json(webhook_url, payload, timeout=timeout)
        body = response.text.strip() if response.text else ""
        if not body.startswith("{") and body != "ok":
            raise ChannelDeliveryError(body or "Slack returned an empty response", channel_type=channel.type)

    with_retry(_send, policy, label=f"slack:{channel.id}")
    return f"Slack channel {channel_override}" if channel_override else "Slack default webhook destination"


def _deliver_googlechat_webhook(
    channel: ChannelInstance,
    params: Dict[str, str],
    secrets: ChannelSecrets,
    message: ChannelMessage,
    policy: RetryPolicy,
) -> str:
    if not secrets.has("webhook_url"):
        raise ChannelDeliveryError("Google Chat webhook URL is not configured", channel_type=channel.type)
    webhook_url = secrets.reveal("webhook_url") or ""
    space_name = params.get("space_name", "")
    timeout = _timeout_seconds(params)

    with_retry(
        lambda: _post_json(webhook_url, {"text": _chat_text(message)}, timeout=timeout),
        policy,
        label=f"googlechat:{channel.id}",
    )
    return f"Google Chat space {space_name}" if space_name else "Google Chat default webhook"


CHANNEL_HANDLERS: Dict[str, ChannelHandler] = {
    "email_smtp": _deliver_email_smtp,
    "telegram_bot": _deliver_telegram_bot,
    "slack_webhook": _deliver_slack_webhook,
    "googlechat_webhook": _deliver_googlechat_webhook,
}


def deliver(
    channel: ChannelInstance,
    params: Mapping[str, str],
    secrets: ChannelSecrets,
    message: ChannelMessage,
    *,
    retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> str:
    """Deliver ``message`` through ``channel`` and return a description of where it went."""
    handler = CHANNEL_HANDLERS.get(channel.type)
    if handler is None:
        raise ChannelDeliveryError(f"Unsupported channel type: {channel.type}", channel_type=channel.type)
    merged = compose_param_map(channel.type, params)
    try:
        return handler(channel, merged, secrets, message, retry_policy)
    except ChannelDeliveryError:
        raise
    except SecretDecryptionError as exc:
        raise ChannelDeliveryError(str(exc), channel_type=channel.type) from exc
    except Exception as exc:  # noqa: BLE001 - normalised and re-raised
        raise ChannelDeliveryError(extract_error_message(exc), channel_type=channel.type) from exc


__all__ = [
    "CHANNEL_DEFINITIONS",
    "CHANNEL_HANDLERS",
    "ChannelDeliveryError",
    "ChannelMessage",
    "ChannelSecrets",
    "TIMEOUT_MESSAGE",
    "compose_param_map",
    "deliver",
    "extract_error_message",
]
