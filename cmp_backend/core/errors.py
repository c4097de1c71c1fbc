"""
Error taxonomy shared by the services and the HTTP layer.

Each error carries the HTTP status it maps to and a client-safe label. The
``details`` string is rendered to clients as-is, so it must never contain
secrets, token values or exception text from lower layers.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Optional


class ConsentServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    error: str = "Internal server error"

    def __init__(self, details: Optional[str] = None) -> None:
        super().__init__(details or self.error)
        self.details = details

    def to_payload(self) -> dict:
        payload = {"error": self.error}
        if self.details:
            payload["details"] = self.details
        return payload


class Unauthorized(ConsentServiceError):
    """Missing, invalid or expired credentials."""

    status_code = HTTPStatus.UNAUTHORIZED
    error = "Unauthorized"


class InvalidToken(Unauthorized):
    """Malformed token, bad signature or a token bound to another site."""


class TokenExpired(Unauthorized):
    """The token's ``exp`` claim has passed."""


class BadRequest(ConsentServiceError):
    """Missing fields, malformed envelopes or unparseable JSON."""

    status_code = HTTPStatus.BAD_REQUEST
    error = "Bad Request"


class DecryptionFailed(ConsentServiceError):
    """Ciphertext failed authentication or key material was malformed."""

    status_code = HTTPStatus.BAD_REQUEST
    error = "Decryption failed"


class NotFound(ConsentServiceError):
    """Requested record does not exist."""

    status_code = HTTPStatus.NOT_FOUND
    error = "Not found"


class SiteNotFound(NotFound):
    """No credential is stored for the requested site."""

    error = "Site not found"


class StoreUnavailable(ConsentServiceError):
    """The backing key-value store failed."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    error = "Storage unavailable"


class UpstreamError(ConsentServiceError):
    """The Webflow API returned an error or an incomplete payload."""

    status_code = HTTPStatus.BAD_GATEWAY
    error = "Upstream service error"


__all__ = [
    "BadRequest",
    "ConsentServiceError",
    "DecryptionFailed",
    "InvalidToken",
    "NotFound",
    "SiteNotFound",
    "StoreUnavailable",
    "TokenExpired",
    "Unauthorized",
    "UpstreamError",
]
