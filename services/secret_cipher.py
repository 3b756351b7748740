"""AES-256-GCM helpers for channel secrets.

Ciphertexts are ``base64(iv || tag || data)`` with a 12 byte IV and a 16 byte
tag. ``ENCRYPTION_KEY`` is either a base64 encoded 32 byte key or any other
string, in which case its SHA-256 digest is used.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.env import require_env

KEY_LENGTH = 32
IV_LENGTH = 12
TAG_LENGTH = 16


class SecretDecryptionError(RuntimeError):
    """Raised when a stored ciphertext cannot be decrypted with the configured key."""


def derive_key(raw_key: str) -> bytes:
    try:
        decoded = base64.b64decode(raw_key, validate=True)
    except (binascii.Error, ValueError):
        decoded = b""
    if len(decoded) == KEY_LENGTH:
        return decoded
    return hashlib.sha256(raw_key.encode("utf-8")).digest()


class SecretCipher:
    def __init__(self, raw_key: str) -> None:
        self._aead = AESGCM(derive_key(raw_key))

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        data, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(iv + tag + data).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            payload = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SecretDecryptionError("Stored secret is not valid base64") from exc
        if len(payload) < IV_LENGTH + TAG_LENGTH:
            raise SecretDecryptionError("Stored secret is truncated")
        iv = payload[:IV_LENGTH]
        tag = payload[IV_LENGTH : IV_LENGTH + TAG_LENGTH]
        data = payload[IV_LENGTH + TAG_LENGTH :]
        try:
            return self._aead.decrypt(iv, data + tag, None).decode("utf-8")
        except InvalidTag as exc:
            raise SecretDecryptionError("Unable to decrypt stored secret with the configured key") from exc


_DEFAULT_CIPHER: Optional[SecretCipher] = None


def _default_cipher() -> SecretCipher:
    global _DEFAULT_CIPHER  # pylint: disable=global-statement
    if _DEFAULT_CIPHER is None:
        _DEFAULT_CIPHER = SecretCipher(require_env("ENCRYPTION_KEY", context="secret_cipher"))
    return _DEFAULT_CIPHER


def encrypt_secret(plaintext: str) -> str:
    return _default_cipher().encrypt(plaintext)


def decrypt_secret(ciphertext: str) -> str:
    return _default_cipher().decrypt(ciphertext)


def reset_default_cipher() -> None:
    """Forget the cached cipher so a changed ``ENCRYPTION_KEY`` is picked up."""
    global _DEFAULT_CIPHER  # pylint: disable=global-statement
    _DEFAULT_CIPHER = None


__all__ = [
    "SecretCipher",
    "SecretDecryptionError",
    "decrypt_secret",
    "derive_key",
    "encrypt_secret",
    "reset_default_cipher",
]
