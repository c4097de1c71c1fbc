"""
Lookup of per-site credentials stored by the Webflow onboarding flow.

Records live under ``site-auth:{siteId}``. Two secondary indexes avoid full
namespace scans: ``site-name:{shortName}`` and ``site-token:{sha256(token)}``,
both pointing at the site id. When an index entry is missing (records written
before the indexes existed) the directory falls back to a bounded scan of the
``site-auth:`` namespace.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from cmp_backend.clients.kv import KeyValueStore
from cmp_backend.core.errors import SiteNotFound, StoreUnavailable
from cmp_backend.services.secret_cipher import SecretCipherService

logger = logging.getLogger(__name__)

SITE_AUTH_PREFIX = "site-auth:"
SITE_NAME_PREFIX = "site-name:"
SITE_TOKEN_PREFIX = "site-token:"


@dataclass(frozen=True, slots=True)
class SiteCredential:
    """Credential of one onboarded site.

    ``tenant_secret`` is the site's Webflow access token and doubles as the
    HMAC key for the site's visitor tokens.
    """

    site_id: str
    site_name: str
    tenant_secret: str

    def __repr__(self) -> str:
        return f"SiteCredential(site_id={self.site_id!r}, site_name={self.site_name!r})"


def access_token_digest(access_token: str) -> str:
    return hashlib.sha256(access_token.encode("utf-8")).hexdigest()


class SiteDirectory:
    """Resolve site names, ids and access tokens to stored credentials."""

    def __init__(
        self,
        store: KeyValueStore,
        cipher: SecretCipherService,
        *,
        scan_page_size: int = 100,
        scan_max_pages: int = 10,
    ) -> None:
        self._store = store
        self._cipher = cipher
        self._page_size = scan_page_size
        self._max_pages = scan_max_pages

    def resolve(self, site_name: str) -> SiteCredential:
        """Return the credential whose short name matches ``site_name`` exactly."""
        if not site_name:
            raise SiteNotFound()
        try:
            site_id = self._store.get(f"{SITE_NAME_PREFIX}{site_name}")
            credential = self._load(site_id) if site_id else None
            if credential is None or credential.site_name != site_name:
                credential = self._scan(lambda item: item.site_name == site_name)
        except StoreUnavailable as exc:
            logger.error("Site directory unavailable while resolving site name.")
            raise SiteNotFound() from exc

        if credential is None:
            raise SiteNotFound()
        return credential

    def resolve_by_id(self, site_id: str) -> SiteCredential:
        """Return the credential stored for ``site_id``."""
        if not site_id:
            raise SiteNotFound()
        try:
            credential = self._load(site_id)
        except StoreUnavailable as exc:
            logger.error("Site directory unavailable while resolving site id.")
            raise SiteNotFound() from exc
        if credential is None:
            raise SiteNotFound()
        return credential

    def find_site_id_by_access_token(self, access_token: str) -> str:
        """Map a Webflow access token back to the site it was issued for."""
        if not access_token:
            raise SiteNotFound()

        def matches(item: SiteCredential) -> bool:
            return hmac.compare_digest(
                item.tenant_secret.encode("utf-8"), access_token.encode("utf-8")
            )

        try:
            site_id = self._store.get(
                f"{SITE_TOKEN_PREFIX}{access_token_digest(access_token)}"
            )
            credential = self._load(site_id) if site_id else None
            if credential is None or not matches(credential):
                credential = self._scan(matches)
        except StoreUnavailable as exc:
            logger.error("Site directory unavailable while resolving access token.")
            raise SiteNotFound() from exc

        if credential is None:
            raise SiteNotFound()
        return credential.site_id

    def save(
        self,
        credential: SiteCredential,
        *,
        ttl_seconds: Optional[int] = None,
        index_token: bool = True,
    ) -> None:
        """Persist a credential together with its secondary index entries.

        One Webflow token can cover several sites while ``site-token:`` holds a
        single site id, so callers saving a batch set ``index_token`` for the
        site that token lookups should resolve to.
        """
        record = {
            "siteName": credential.site_name,
            "accessTokenEncrypted": self._cipher.encrypt(credential.tenant_secret),
        }
        self._store.put(
            f"{SITE_AUTH_PREFIX}{credential.site_id}",
            json.dumps(record),
            expiration_ttl=ttl_seconds,
        )
        self._store.put(
            f"{SITE_NAME_PREFIX}{credential.site_name}",
            credential.site_id,
            expiration_ttl=ttl_seconds,
        )
        if not index_token:
            return
        self._store.put(
            f"{SITE_TOKEN_PREFIX}{access_token_digest(credential.tenant_secret)}",
            credential.site_id,
            expiration_ttl=ttl_seconds,
        )

    def _load(self, site_id: str) -> Optional[SiteCredential]:
        raw = self._store.get(f"{SITE_AUTH_PREFIX}{site_id}")
        if raw is None:
            return None
        return self._parse(site_id, raw)

    def _parse(self, site_id: str, raw: str) -> Optional[SiteCredential]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Skipping unparseable site record %s", site_id)
            return None
        if not isinstance(data, dict):
            return None

        site_name = data.get("siteName")
        encrypted = data.get("accessTokenEncrypted")
        if encrypted is not None:
            if not isinstance(encrypted, str):
                logger.warning("Skipping site record %s with malformed secret", site_id)
                return None
            try:
                secret = self._cipher.decrypt(encrypted)
            except ValueError:
                logger.warning("Skipping site record %s with undecryptable secret", site_id)
                return None
        else:
            # Records written before secrets were encrypted at rest.
            secret = data.get("accessToken")

        if not isinstance(site_name, str) or not isinstance(secret, str):
            return None
        if not site_name or not secret:
            return None
        return SiteCredential(site_id=site_id, site_name=site_name, tenant_secret=secret)

    def _scan(
        self, predicate: Callable[[SiteCredential], bool]
    ) -> Optional[SiteCredential]:
        cursor: Optional[str] = None
        for _ in range(self._max_pages):
            page = self._store.list(
                prefix=SITE_AUTH_PREFIX, cursor=cursor, limit=self._page_size
            )
            for key in page.keys:
                site_id = key[len(SITE_AUTH_PREFIX):]
                raw = self._store.get(key)
                if raw is None:
                    continue
                credential = self._parse(site_id, raw)
                if credential is not None and predicate(credential):
                    return credential
            if page.list_complete or not page.cursor:
                return None
            cursor = page.cursor

        logger.warning("Site directory scan stopped after %d pages", self._max_pages)
        return None


__all__ = [
    "SITE_AUTH_PREFIX",
    "SITE_NAME_PREFIX",
    "SITE_TOKEN_PREFIX",
    "SiteCredential",
    "SiteDirectory",
    "access_token_digest",
]
