"""AES-256-GCM helpers for payloads encrypted in the visitor's browser.

The browser generates a fresh key and IV for every message and sends them
alongside the ciphertext (``{ciphertext, key, iv}``). The key is unrelated to
the token signing secret.

Precondition: an IV must never be reused with the same key. Callers generate
a fresh 96-bit IV per message; this module does not track IVs.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from cmp_backend.core.errors import BadRequest, DecryptionFailed

KEY_SIZE = 32
IV_SIZE = 12

ByteLike = Union[bytes, bytearray, Sequence[int]]


def _to_bytes(value: ByteLike, *, expected: int, label: str) -> bytes:
    # bytes(n) would silently build n zero bytes.
    if isinstance(value, (int, str)):
        raise DecryptionFailed(f"Malformed {label}")
    try:
        raw = bytes(value)
    except (TypeError, ValueError) as exc:
        raise DecryptionFailed(f"Malformed {label}") from exc
    if len(raw) != expected:
        raise DecryptionFailed(f"Malformed {label}")
    return raw


@dataclass(frozen=True)
class ImportedKey:
    """Operable AES-GCM key handle restricted to the given usages."""

    usages: frozenset[str]
    _aead: AESGCM = field(repr=False)


class PayloadCipher:
    """Encrypt and decrypt JSON payloads with caller-supplied key material."""

    def import_key(
        self, raw_key: ByteLike, usages: Iterable[str] = ("encrypt", "decrypt")
    ) -> ImportedKey:
        """Adapt raw key bytes (or a JSON byte array) into a key handle."""
        key_bytes = _to_bytes(raw_key, expected=KEY_SIZE, label="key")
        return ImportedKey(usages=frozenset(usages), _aead=AESGCM(key_bytes))

    def encrypt(self, plaintext: str | bytes, key: ImportedKey, iv: ByteLike) -> str:
        """Encrypt and return base64 ``ciphertext || tag``."""
        if "encrypt" not in key.usages:
            raise ValueError("Key was not imported for encryption.")
        nonce = _to_bytes(iv, expected=IV_SIZE, label="iv")
        data = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext
        return base64.b64encode(key._aead.encrypt(nonce, data, None)).decode("ascii")

    def decrypt(self, ciphertext: str, key: ImportedKey, iv: ByteLike) -> str:
        """Decrypt base64 ``ciphertext || tag``; never returns partial output."""
        if "decrypt" not in key.usages:
            raise DecryptionFailed("Key not usable for decryption")
        nonce = _to_bytes(iv, expected=IV_SIZE, label="iv")
        try:
            encrypted = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise DecryptionFailed("Malformed ciphertext") from exc

        try:
            plaintext = key._aead.decrypt(nonce, encrypted, None)
        except InvalidTag as exc:
            raise DecryptionFailed() from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionFailed("Malformed plaintext") from exc

    def decrypt_envelope(self, ciphertext: str, raw_key: ByteLike, iv: ByteLike) -> str:
        key = self.import_key(raw_key, ("decrypt",))
        return self.decrypt(ciphertext, key, iv)

    def decrypt_json(self, ciphertext: str, raw_key: ByteLike, iv: ByteLike) -> Any:
        """Decrypt an envelope and parse its JSON body."""
        plaintext = self.decrypt_envelope(ciphertext, raw_key, iv)
        try:
            return json.loads(plaintext)
        except json.JSONDecodeError as exc:
            raise BadRequest("Encrypted payload is not valid JSON") from exc


__all__ = ["IV_SIZE", "KEY_SIZE", "ImportedKey", "PayloadCipher"]
