"""
Site-bound visitor tokens.

Tokens are compact HS256 JWTs signed with the access token of the site they
name. Verification is two-phase: the unverified claims are read only to find
out which site's secret to check the signature against, then the token is
fully verified with that secret. Nothing from the unverified read is returned
to callers.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import jwt as pyjwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from cmp_backend.core.errors import BadRequest, InvalidToken, TokenExpired
from cmp_backend.services.site_directory import SiteDirectory

logger = logging.getLogger(__name__)

_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True, slots=True)
class VerifiedVisitor:
    """Claims of a token whose signature has been checked."""

    visitor_id: str
    site_name: str
    site_id: str
    user_agent: str = ""
    issued_at: Optional[datetime] = None


class VisitorTokenService:
    """Mint and verify short-lived visitor tokens scoped to one site."""

    ALGORITHM = "HS256"
    _REQUIRED_CLAIMS = ["exp", "siteName", "visitorId"]

    def __init__(
        self,
        directory: SiteDirectory,
        *,
        ttl_seconds: int = 86400,
        leeway_seconds: int = 0,
    ) -> None:
        self._directory = directory
        self._ttl = ttl_seconds
        self._leeway = leeway_seconds

    def issue(self, visitor_id: str, site_name: str, user_agent: str = "") -> str:
        """Sign a token for ``visitor_id`` with the secret of ``site_name``."""
        if not visitor_id or not site_name:
            raise BadRequest("Visitor ID and site name are required")

        credential = self._directory.resolve(site_name)
        now = int(time.time())
        payload = {
            "visitorId": visitor_id,
            "userAgent": user_agent or "",
            "siteName": credential.site_name,
            "iat": now,
            "exp": now + self._ttl,
        }
        return pyjwt.encode(payload, credential.tenant_secret, algorithm=self.ALGORITHM)

    def verify(
        self, token: str, claimed_site_name: Optional[str] = None
    ) -> VerifiedVisitor:
        """Verify ``token`` against the secret of the site it names.

        Raises ``InvalidToken`` for malformed tokens, bad signatures and site
        mismatches, ``TokenExpired`` once ``exp`` has passed and
        ``SiteNotFound`` when the named site is no longer onboarded.
        """
        unverified = self._peek_claims(token)

        exp = unverified.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise InvalidToken()
        if exp + self._leeway <= time.time():
            raise TokenExpired()

        site_name = unverified.get("siteName")
        if not isinstance(site_name, str) or not site_name:
            raise InvalidToken()
        if claimed_site_name is not None and claimed_site_name != site_name:
            logger.info("Rejected visitor token presented for a different site.")
            raise InvalidToken()

        credential = self._directory.resolve(site_name)

        try:
            claims = pyjwt.decode(
                token,
                credential.tenant_secret,
                algorithms=[self.ALGORITHM],
                options={"require": self._REQUIRED_CLAIMS},
                leeway=self._leeway,
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except InvalidTokenError as exc:
            raise InvalidToken() from exc

        visitor_id = claims.get("visitorId")
        if not isinstance(visitor_id, str) or not visitor_id:
            raise InvalidToken()
        if claims.get("siteName") != credential.site_name:
            raise InvalidToken()

        issued_at = claims.get("iat")
        return VerifiedVisitor(
            visitor_id=visitor_id,
            site_name=credential.site_name,
            site_id=credential.site_id,
            user_agent=str(claims.get("userAgent") or ""),
            issued_at=(
                datetime.fromtimestamp(issued_at, tz=timezone.utc)
                if isinstance(issued_at, (int, float))
                else None
            ),
        )

    @staticmethod
    def _peek_claims(token: str) -> Dict[str, Any]:
        if not token or not isinstance(token, str):
            raise InvalidToken()
        segments = token.split(".")
        if len(segments) != 3 or not all(_SEGMENT.match(part) for part in segments):
            raise InvalidToken()
        try:
            claims = pyjwt.decode(token, options={"verify_signature": False})
        except InvalidTokenError as exc:
            raise InvalidToken() from exc
        if not isinstance(claims, dict):
            raise InvalidToken()
        return claims


__all__ = ["VerifiedVisitor", "VisitorTokenService"]
