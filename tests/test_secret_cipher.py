try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from cmp_backend.services.secret_cipher import SecretCipherService


def test_secret_cipher_roundtrip() -> None:
    cipher = SecretCipherService(secret="super-secret-key")
    plaintext = "webflow-access-token"

    encrypted = cipher.encrypt(plaintext)
    assert encrypted != plaintext

    decrypted = cipher.decrypt(encrypted)
    assert decrypted == plaintext


def test_secret_cipher_rejects_bad_ciphertext() -> None:
    cipher = SecretCipherService(secret="another-secret")

    with pytest.raises(ValueError):
        cipher.decrypt("not-valid")


def test_secret_cipher_rejects_other_secret() -> None:
    encrypted = SecretCipherService(secret="first").encrypt("token")

    with pytest.raises(ValueError):
        SecretCipherService(secret="second").decrypt(encrypted)


def test_secret_cipher_requires_secret() -> None:
    with pytest.raises(ValueError):
        SecretCipherService(secret="")


def test_previous_secret_still_decrypts_after_rotation() -> None:
    stored = SecretCipherService(secret="old-secret").encrypt("token")
    rotated = SecretCipherService(secret="new-secret", previous_secrets=["old-secret"])

    assert rotated.decrypt(stored) == "token"
    with pytest.raises(ValueError):
        SecretCipherService(secret="old-secret").decrypt(rotated.encrypt("token"))
