"""
Visitor-facing consent workflow.

Ties together token verification, envelope decryption, record building and
persistence for the ``/cmp`` endpoints.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from cmp_backend.core.errors import BadRequest, SiteNotFound, Unauthorized
from cmp_backend.models.banner import BannerType
from cmp_backend.schemas.consent import (
    ConsentRecord,
    ConsentSubmission,
    ScriptCategoryEntry,
)
from cmp_backend.services.consent_records import build_consent_record
from cmp_backend.services.consent_store import ConsentStore
from cmp_backend.services.jurisdiction import classify
from cmp_backend.services.payload_crypto import PayloadCipher
from cmp_backend.services.visitor_tokens import VerifiedVisitor, VisitorTokenService

logger = logging.getLogger(__name__)

_WEBFLOW_SUFFIX = re.compile(r"\.webflow\.io$")
_TLD_SUFFIX = re.compile(r"\.(com|net|org|io|co|dev|xyz|info|studio)$")


def site_name_from_client_id(client_id: str) -> str:
    """Derive the Webflow short name from the page origin sent as ``clientId``.

    ``https://www.acme.com`` and ``acme.webflow.io`` both map to ``acme``.
    """
    if not client_id or not client_id.strip():
        raise BadRequest("Missing required fields")
    raw = client_id.strip()
    if not raw.startswith("http"):
        raw = f"https://{raw}"
    try:
        hostname = urlsplit(raw).hostname
    except ValueError as exc:
        raise BadRequest("Invalid clientId") from exc
    if not hostname:
        raise BadRequest("Invalid clientId")

    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    site_name = _TLD_SUFFIX.sub("", _WEBFLOW_SUFFIX.sub("", hostname))
    if not site_name:
        raise BadRequest("Invalid clientId")
    return site_name


@dataclass(frozen=True, slots=True)
class ConsentSubmissionResult:
    record: ConsentRecord
    storage_key: str
    raw_preferences: Dict[str, Any]


class ConsentService:
    """Authenticate visitors and read or write their consent state."""

    def __init__(
        self,
        token_service: VisitorTokenService,
        cipher: PayloadCipher,
        store: ConsentStore,
    ) -> None:
        self._tokens = token_service
        self._cipher = cipher
        self._store = store

    def authenticate(self, token: Optional[str], site_name: Optional[str]) -> VerifiedVisitor:
        """Verify a bearer visitor token for ``site_name``.

        An unknown site is reported as ``Unauthorized`` so clients cannot probe
        which sites are onboarded.
        """
        if not token:
            raise Unauthorized()
        try:
            return self._tokens.verify(token, site_name)
        except SiteNotFound as exc:
            raise Unauthorized() from exc

    def submit(
        self,
        submission: ConsentSubmission,
        *,
        token: Optional[str],
        ip: Optional[str] = None,
        country_hint: Optional[str] = None,
    ) -> ConsentSubmissionResult:
        """Verify, decrypt, normalize and persist one consent submission."""
        site_name = site_name_from_client_id(submission.client_id)
        visitor = self.authenticate(token, site_name)

        envelope = submission.encrypted_visitor_id
        visitor_id = self._cipher.decrypt_envelope(
            envelope.ciphertext, envelope.key, envelope.iv
        ).strip()
        if visitor_id != visitor.visitor_id:
            logger.info("Rejected consent submission for a visitor other than the token's.")
            raise Unauthorized()

        envelope = submission.preferences
        preferences = self._cipher.decrypt_json(
            envelope.ciphertext, envelope.key, envelope.iv
        )
        if not isinstance(preferences, dict):
            raise BadRequest("Preferences must be a JSON object")

        country = submission.country or country_hint
        banner_type: BannerType = submission.banner_type or classify(country)

        record, key = build_consent_record(
            site_id=visitor.site_id,
            visitor_id=visitor_id,
            preferences=preferences,
            banner_type=banner_type,
            metadata=submission.metadata,
            ip=ip,
            country=country,
            policy_version=submission.policy_version,
            cookies=submission.cookies,
        )
        self._store.put(key, record)
        logger.info("Stored %s consent for site %s", banner_type.value, visitor.site_id)
        return ConsentSubmissionResult(
            record=record, storage_key=key, raw_preferences=preferences
        )

    def get_consent(self, token: Optional[str], site_name: Optional[str]) -> ConsentRecord:
        visitor = self.authenticate(token, site_name)
        return self._store.get_consent(visitor.site_id, visitor.visitor_id)

    def get_script_categories(
        self, token: Optional[str], site_name: Optional[str]
    ) -> List[ScriptCategoryEntry]:
        """Return the site's script categories with inline script bodies stripped."""
        visitor = self.authenticate(token, site_name)
        entries = self._store.get_script_categories(visitor.site_id)
        return [entry.model_copy(update={"content": None}) for entry in entries]


__all__ = [
    "ConsentService",
    "ConsentSubmissionResult",
    "site_name_from_client_id",
]
