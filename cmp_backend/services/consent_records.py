"""
Normalization of decrypted consent submissions into stored records.

Everything here is a pure transformation; persistence is the consent store's
job.

Preference keys arrive from several banner versions in either camelCase
(``doNotShare``) or PascalCase (``DoNotShare``). ``normalize_preferences``
reads the camelCase key first, then the PascalCase alias, and only then falls
back to ``False``. ``necessary`` is always granted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from cmp_backend.core.errors import BadRequest
from cmp_backend.models.banner import BannerType
from cmp_backend.schemas.consent import (
    CCPAPreferences,
    CategorizedCookies,
    ConsentMetadata,
    ConsentRecord,
    GDPRPreferences,
)

CONSENT_KEY_PREFIX = "consent:"
UNKNOWN = "unknown"

GDPR_FIELDS: Tuple[str, ...] = ("marketing", "personalization", "analytics")
CCPA_FIELDS: Tuple[str, ...] = ("doNotShare", "doNotSell", "limitUse")


def consent_storage_key(site_id: str, visitor_id: str) -> str:
    return f"{CONSENT_KEY_PREFIX}{site_id}:{visitor_id}"


def _pascal(name: str) -> str:
    return name[:1].upper() + name[1:]


def _coerce_flag(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    if isinstance(value, (int, float)):
        return value != 0
    return None


def normalize_preferences(
    raw: Mapping[str, Any], fields: Sequence[str]
) -> Dict[str, bool]:
    """Resolve each canonical flag from its camelCase key, then PascalCase, then False."""
    normalized: Dict[str, bool] = {}
    for name in fields:
        value = _coerce_flag(raw.get(name))
        if value is None:
            value = _coerce_flag(raw.get(_pascal(name)))
        normalized[name] = bool(value)
    return normalized


def _resolve_banner_type(value: Union[BannerType, str, None]) -> BannerType:
    if value is None or value == "":
        raise BadRequest("Missing required fields")
    try:
        return BannerType(value)
    except ValueError as exc:
        raise BadRequest("Unsupported banner type") from exc


def build_consent_record(
    *,
    site_id: str,
    visitor_id: str,
    preferences: Optional[Mapping[str, Any]],
    banner_type: Union[BannerType, str, None],
    metadata: Union[ConsentMetadata, Mapping[str, Any], None] = None,
    ip: Optional[str] = None,
    country: Optional[str] = None,
    policy_version: Optional[str] = None,
    cookies: Union[CategorizedCookies, Mapping[str, Any], None] = None,
    now: Optional[datetime] = None,
) -> Tuple[ConsentRecord, str]:
    """Build the canonical record for one submission and return it with its key."""
    if not site_id or not visitor_id or preferences is None:
        raise BadRequest("Missing required fields")
    if not isinstance(preferences, Mapping):
        raise BadRequest("Preferences must be a JSON object")
    regime = _resolve_banner_type(banner_type)

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    resolved_ip = ip or UNKNOWN
    resolved_country = country.strip().upper() if country else UNKNOWN

    if isinstance(metadata, ConsentMetadata):
        merged_metadata = metadata.model_copy(update={"ip": resolved_ip})
    else:
        merged_metadata = ConsentMetadata.model_validate({**(metadata or {}), "ip": resolved_ip})

    if isinstance(cookies, CategorizedCookies):
        categorized = cookies
    else:
        categorized = CategorizedCookies.model_validate(cookies or {})

    if regime is BannerType.GDPR:
        flags = normalize_preferences(preferences, GDPR_FIELDS)
        regime_preferences: Union[GDPRPreferences, CCPAPreferences] = GDPRPreferences(
            necessary=True,
            marketing=flags["marketing"],
            personalization=flags["personalization"],
            analytics=flags["analytics"],
            country=resolved_country,
            ip=resolved_ip,
            last_updated=timestamp,
        )
    else:
        flags = normalize_preferences(preferences, CCPA_FIELDS)
        regime_preferences = CCPAPreferences(
            necessary=True,
            do_not_share=flags["doNotShare"],
            do_not_sell=flags["doNotSell"],
            limit_use=flags["limitUse"],
            country=resolved_country,
            ip=resolved_ip,
            last_updated=timestamp,
        )

    record = ConsentRecord(
        site_id=site_id,
        visitor_id=visitor_id,
        timestamp=timestamp,
        policy_version=policy_version,
        metadata=merged_metadata,
        preferences=regime_preferences,
        cookies=categorized,
    )
    return record, consent_storage_key(site_id, visitor_id)


__all__ = [
    "CCPA_FIELDS",
    "CONSENT_KEY_PREFIX",
    "GDPR_FIELDS",
    "build_consent_record",
    "consent_storage_key",
    "normalize_preferences",
]
