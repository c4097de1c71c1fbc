"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from cmp_backend.clients import (
    DynamoDBKVStore,
    KeyValueStore,
    SQLiteKVStore,
    WebflowOAuthClient,
)
from cmp_backend.core.config import get_settings
from cmp_backend.services import (
    ConsentService,
    ConsentStore,
    PayloadCipher,
    SecretCipherService,
    SiteDirectory,
    SiteOnboardingService,
    VisitorTokenService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_kv_store() -> KeyValueStore:
    """Provide the configured key-value backend."""
    storage = _settings().storage
    if storage.backend == "dynamodb":
        return DynamoDBKVStore(storage)
    return SQLiteKVStore(storage.sqlite_path)


@lru_cache()
def get_secret_cipher_service() -> SecretCipherService:
    """Provide symmetric encryption helper for stored site tokens."""
    settings = _settings()
    secret = (
        settings.security.storage_encryption_secret or settings.webflow.client_secret
    )
    return SecretCipherService(
        secret=secret, previous_secrets=settings.security.previous_storage_secrets
    )


@lru_cache()
def get_payload_cipher() -> PayloadCipher:
    """Provide the AES-GCM helper for browser-encrypted payloads."""
    return PayloadCipher()


@lru_cache()
def get_site_directory() -> SiteDirectory:
    """Provide the site credential directory."""
    storage = _settings().storage
    return SiteDirectory(
        get_kv_store(),
        get_secret_cipher_service(),
        scan_page_size=storage.scan_page_size,
        scan_max_pages=storage.scan_max_pages,
    )


@lru_cache()
def get_visitor_token_service() -> VisitorTokenService:
    """Provide the visitor token signer and verifier."""
    return VisitorTokenService(
        get_site_directory(),
        ttl_seconds=_settings().security.visitor_token_ttl_seconds,
    )


@lru_cache()
def get_consent_store() -> ConsentStore:
    """Provide consent persistence on top of the key-value store."""
    storage = _settings().storage
    return ConsentStore(
        get_kv_store(),
        scan_page_size=storage.scan_page_size,
        scan_max_pages=storage.scan_max_pages,
        script_category_ttl_seconds=storage.script_category_ttl_seconds,
    )


def get_consent_service() -> ConsentService:
    """Build the visitor-facing consent workflow."""
    return ConsentService(
        token_service=get_visitor_token_service(),
        cipher=get_payload_cipher(),
        store=get_consent_store(),
    )


@lru_cache()
def get_webflow_oauth_client() -> WebflowOAuthClient:
    """Create a singleton Webflow OAuth client."""
    return WebflowOAuthClient(_settings().webflow)


def get_site_onboarding_service() -> SiteOnboardingService:
    """Build the OAuth onboarding workflow."""
    return SiteOnboardingService(
        get_webflow_oauth_client(),
        get_site_directory(),
        credential_ttl_seconds=_settings().storage.site_credential_ttl_seconds,
    )


__all__ = [
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
