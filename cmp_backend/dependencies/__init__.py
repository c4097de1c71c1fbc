"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_consent_service,
    get_consent_store,
    get_kv_store,
    get_payload_cipher,
    get_secret_cipher_service,
    get_site_directory,
    get_site_onboarding_service,
    get_visitor_token_service,
    get_webflow_oauth_client,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_consent_service",
    "get_consent_store",
    "get_kv_store",
    "get_payload_cipher",
    "get_secret_cipher_service",
    "get_site_directory",
    "get_site_onboarding_service",
    "get_visitor_token_service",
    "get_webflow_oauth_client",
]
