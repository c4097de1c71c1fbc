try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from cmp_backend.services.jurisdiction import EU_COUNTRIES, BannerType, classify


@pytest.mark.parametrize("country", ["DE", "fr", " ie ", "SE"])
def test_eu_members_get_gdpr(country: str) -> None:
    assert classify(country) is BannerType.GDPR


def test_united_states_gets_ccpa() -> None:
    assert classify("US") is BannerType.CCPA
    assert classify("us") is BannerType.CCPA


@pytest.mark.parametrize("country", ["BR", "GB", "XX", "", None, "UNKNOWN"])
def test_other_countries_default_to_gdpr(country) -> None:
    assert classify(country) is BannerType.GDPR


def test_eu_list_has_all_member_states() -> None:
    assert len(EU_COUNTRIES) == 27
    assert "GB" not in EU_COUNTRIES
