"""Persistence of consent records and script categories in the key-value store."""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from cmp_backend.clients.kv import KeyValueStore, KVListPage
from cmp_backend.core.errors import NotFound, StoreUnavailable
from cmp_backend.schemas.consent import ConsentRecord, ScriptCategoryEntry
from cmp_backend.services.consent_records import CONSENT_KEY_PREFIX, consent_storage_key

logger = logging.getLogger(__name__)

SCRIPT_CATEGORIES_PREFIX = "script-categories:"

_SCRIPT_LIST = TypeAdapter(List[ScriptCategoryEntry])


class ConsentStore:
    """Read and write consent records on top of a ``KeyValueStore``.

    Writes are last-write-wins: a second submission for the same
    ``(siteId, visitorId)`` overwrites the first.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        scan_page_size: int = 100,
        scan_max_pages: int = 10,
        script_category_ttl_seconds: Optional[int] = None,
    ) -> None:
        self._store = store
        self._page_size = scan_page_size
        self._max_pages = scan_max_pages
        self._script_ttl = script_category_ttl_seconds

    def put(self, key: str, record: ConsentRecord, ttl: Optional[int] = None) -> None:
        try:
            self._store.put(key, record.to_storage(), expiration_ttl=ttl)
        except StoreUnavailable:
            logger.error("Failed to persist consent record")
            raise

    def get(self, key: str) -> ConsentRecord:
        raw = self._store.get(key)
        if raw is None:
            raise NotFound("No consent record found for this visitor")
        try:
            return ConsentRecord.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("Stored consent record %s is unreadable", key)
            raise StoreUnavailable() from exc

    def list(
        self, prefix: str, cursor: Optional[str] = None, page_size: Optional[int] = None
    ) -> KVListPage:
        return self._store.list(
            prefix=prefix, cursor=cursor, limit=page_size or self._page_size
        )

    def save_consent(self, record: ConsentRecord, ttl: Optional[int] = None) -> str:
        key = consent_storage_key(record.site_id, record.visitor_id)
        self.put(key, record, ttl)
        return key

    def get_consent(self, site_id: str, visitor_id: str) -> ConsentRecord:
        return self.get(consent_storage_key(site_id, visitor_id))

    def list_site_consents(self, site_id: str) -> List[ConsentRecord]:
        """Collect a site's records, walking at most ``scan_max_pages`` pages.

        Entries that fail to read or parse, or that belong to another site, are
        logged and skipped.
        """
        prefix = f"{CONSENT_KEY_PREFIX}{site_id}:"
        records: List[ConsentRecord] = []
        cursor: Optional[str] = None
        pages = 0

        while pages < self._max_pages:
            page = self.list(prefix, cursor)
            pages += 1
            for key in page.keys:
                try:
                    record = self.get(key)
                except (NotFound, StoreUnavailable):
                    logger.warning("Skipping unreadable consent entry %s", key)
                    continue
                if record.site_id != site_id:
                    logger.warning("Skipping consent entry %s stored for another site", key)
                    continue
                records.append(record)
            if page.list_complete or not page.cursor:
                break
            cursor = page.cursor
        else:
            logger.warning(
                "Consent scan for site %s stopped after %d pages", site_id, self._max_pages
            )

        logger.info("Collected %d consent records for site %s", len(records), site_id)
        return records

    def save_script_categories(
        self, site_id: str, entries: List[ScriptCategoryEntry]
    ) -> None:
        payload = json.dumps([entry.model_dump(by_alias=True) for entry in entries])
        self._store.put(
            f"{SCRIPT_CATEGORIES_PREFIX}{site_id}",
            payload,
            expiration_ttl=self._script_ttl,
        )

    def get_script_categories(self, site_id: str) -> List[ScriptCategoryEntry]:
        raw = self._store.get(f"{SCRIPT_CATEGORIES_PREFIX}{site_id}")
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreUnavailable("Error parsing script categories") from exc
        # Older writers wrapped the list as {"scripts": [...]}.
        if isinstance(data, dict):
            data = data.get("scripts") or []
        try:
            return _SCRIPT_LIST.validate_python(data)
        except ValidationError as exc:
            raise StoreUnavailable("Error parsing script categories") from exc


__all__ = ["SCRIPT_CATEGORIES_PREFIX", "ConsentStore"]
