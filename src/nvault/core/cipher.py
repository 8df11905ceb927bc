"""Envelope cipher for vault payloads.

Blob layout: ``base64(nonce(12) || ciphertext || tag(16))`` as one ASCII
string, so it fits any text-oriented storage medium.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from nvault.core.errors import AuthenticationFailedError, CorruptDataError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def generate_key() -> bytes:
    """Generate a cryptographically secure 32-byte key."""

    return os.urandom(KEY_SIZE)


def generate_nonce() -> bytes:
    """Generate a fresh 12-byte nonce for AES-GCM."""

    return os.urandom(NONCE_SIZE)


def _check_key(key: bytes | bytearray) -> None:
    if len(key) != KEY_SIZE:
        raise AuthenticationFailedError("Key must be 32 bytes for AES-256")


def encrypt(plaintext: bytes | str, key: bytes | bytearray, aad: bytes | None = None) -> str:
    """Encrypt ``plaintext`` under ``key`` and return a base64 blob."""

    _check_key(key)
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")

    nonce = generate_nonce()
    ciphertext = AESGCM(bytes(key)).encrypt(nonce, plaintext, aad)
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt(blob: str | bytes, key: bytes | bytearray, aad: bytes | None = None) -> bytes:
    """Verify and decrypt a blob produced by :func:`encrypt`.

    Raises:
        AuthenticationFailedError: wrong key, tampering, truncation or a blob
            that is not valid base64.
    """

    _check_key(key)
    try:
        encoded = blob.encode("ascii") if isinstance(blob, str) else bytes(blob)
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AuthenticationFailedError("Encrypted blob is not valid base64") from exc

    # Non-canonical padding bits decode to the same bytes; reject them too.
    if base64.b64encode(raw) != encoded:
        raise AuthenticationFailedError("Encrypted blob is not canonical base64")

    if len(raw) < NONCE_SIZE + TAG_SIZE:
        raise AuthenticationFailedError("Encrypted blob is truncated")

    nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        return AESGCM(bytes(key)).decrypt(nonce, ciphertext, aad)
    except InvalidTag as exc:
        logger.warning(
            "AEAD authentication failed (ciphertext_length=%d)", len(ciphertext)
        )
        raise AuthenticationFailedError(
            "Authentication failed - wrong key or data has been tampered with"
        ) from exc


def encrypt_json(payload: Any, key: bytes | bytearray, aad: bytes | None = None) -> str:
    """Serialize ``payload`` as compact JSON and encrypt it."""

    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return encrypt(data, key, aad)


def decrypt_json(blob: str | bytes, key: bytes | bytearray, aad: bytes | None = None) -> Any:
    """Decrypt a blob and parse the JSON inside."""

    plaintext = decrypt(blob, key, aad)
    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptDataError("Decrypted payload is not valid JSON") from exc


def secure_zero(data: bytearray | memoryview | None) -> None:
    """Best-effort zeroing of sensitive data held in a mutable buffer."""

    if not data:
        return

    if isinstance(data, memoryview):
        data[:] = b"\x00" * len(data)
        return

    for idx in range(len(data)):
        data[idx] = 0
