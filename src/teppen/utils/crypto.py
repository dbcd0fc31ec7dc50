"""Helpers for encrypting/decrypting provider credentials at rest.

Payload format: ``v1:<iv b64>:<tag b64>:<ciphertext b64>`` using AES-256-GCM.
"""

from __future__ import annotations

import base64
import binascii
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

VERSION = "v1"
IV_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


class SecretKeyError(ValueError):
    """TOKEN_ENCRYPTION_KEY missing or of the wrong size."""


class SecretDecryptionError(ValueError):
    """Payload is malformed, tampered, or encrypted with another key."""


def decode_key(raw_key: str) -> bytes:
    """Decode a key given as 64 hex chars, base64, or raw UTF-8 text."""
    if _HEX_KEY.match(raw_key):
        return bytes.fromhex(raw_key)
    try:
        return base64.b64decode(raw_key, validate=True)
    except (binascii.Error, ValueError):
        return raw_key.encode("utf-8")


def load_key(raw_key: str | None) -> bytes:
    if not raw_key:
        raise SecretKeyError("TOKEN_ENCRYPTION_KEY が必要です")
    key = decode_key(raw_key)
    if len(key) != KEY_LENGTH:
        raise SecretKeyError("TOKEN_ENCRYPTION_KEY は32バイトである必要があります")
    return key


def encrypt_secret(plaintext: str, raw_key: str | None) -> str:
    """Encrypt a secret with AES-256-GCM."""
    key = load_key(raw_key)
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return ":".join(
        [
            VERSION,
            base64.b64encode(iv).decode("ascii"),
            base64.b64encode(tag).decode("ascii"),
            base64.b64encode(ciphertext).decode("ascii"),
        ]
    )


def decrypt_secret(payload: str, raw_key: str | None) -> str:
    """Decrypt a payload produced by :func:`encrypt_secret`."""
    parts = payload.split(":")
    if len(parts) != 4 or parts[0] != VERSION or not parts[1] or not parts[2]:
        raise SecretDecryptionError("暗号化データが不正です")

    key = load_key(raw_key)
    try:
        iv = base64.b64decode(parts[1], validate=True)
        tag = base64.b64decode(parts[2], validate=True)
        ciphertext = base64.b64decode(parts[3], validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SecretDecryptionError("暗号化データが不正です") from exc

    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except (InvalidTag, ValueError) as exc:
        raise SecretDecryptionError("暗号化データの復号に失敗しました") from exc
    return plaintext.decode("utf-8")
