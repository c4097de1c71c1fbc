"""Banner regime selection from the visitor's country."""

from __future__ import annotations

from typing import Optional

from cmp_backend.models.banner import BannerType

EU_COUNTRIES = frozenset(
    {
        "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR",
        "DE", "GR", "HU", "IE", "IT", "LT", "LU", "LV", "MT", "NL",
        "PL", "PT", "RO", "SK", "SI", "ES", "SE",
    }
)


def classify(country_code: Optional[str]) -> BannerType:
    """Return the consent regime for an ISO 3166-1 alpha-2 country code.

    Countries outside the EU and the US get the GDPR banner: the stricter
    opt-in regime is the default for unknown jurisdictions.
    """
    code = (country_code or "").strip().upper()
    if code in EU_COUNTRIES:
        return BannerType.GDPR
    if code == "US":
        return BannerType.CCPA
    return BannerType.GDPR


__all__ = ["BannerType", "EU_COUNTRIES", "classify"]
