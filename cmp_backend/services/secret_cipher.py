"""Encryption of site access tokens stored in the key-value store.

Keys are derived from configured secrets with SHA-256. New values are always
written with the current secret; previous secrets stay usable for reading so
the storage secret can be rotated without re-onboarding every site.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Iterable

from cryptography.fernet import Fernet, InvalidToken, MultiFernet


def _derive_fernet(secret: str) -> Fernet:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class SecretCipherService:
    """Fernet wrapper keyed by the storage encryption secret."""

    def __init__(self, *, secret: str, previous_secrets: Iterable[str] = ()) -> None:
        if not secret:
            raise ValueError("Storage encryption secret must be provided.")
        keys = [_derive_fernet(secret)]
        keys.extend(_derive_fernet(old) for old in previous_secrets if old)
        self._fernet = MultiFernet(keys)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt with the current or any previous secret.

        Raises ``ValueError`` when no configured secret produced the value.
        """
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Stored secret could not be decrypted.") from exc
        return plaintext.decode("utf-8")


__all__ = ["SecretCipherService"]
