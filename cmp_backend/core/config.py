"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the storage backends and
the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Support providing sequences as a comma-separated string."""
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class WebflowSettings(BaseSettings):
    """Configuration required for the Webflow OAuth exchange."""

    client_id: str = Field(..., validation_alias="WEBFLOW_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="WEBFLOW_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="WEBFLOW_REDIRECT_URI",
        description="Callback URL registered with the Webflow app.",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("sites:read", "sites:write", "custom_code:read", "custom_code:write"),
        validation_alias="WEBFLOW_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)


class StorageSettings(BaseSettings):
    """Key-value store selection and retention policy."""

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="KV_BACKEND"
    )
    sqlite_path: str = Field("data/kv.db", validation_alias="KV_SQLITE_PATH")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(
        None,
        validation_alias="DYNAMODB_TABLE_NAME",
        description="Table holding the key-value namespace when KV_BACKEND=dynamodb.",
    )
    site_credential_ttl_seconds: int = Field(
        86400, validation_alias="SITE_CREDENTIAL_TTL"
    )
    script_category_ttl_seconds: int = Field(
        86400 * 30, validation_alias="SCRIPT_CATEGORY_TTL"
    )
    scan_page_size: int = Field(100, validation_alias="KV_SCAN_PAGE_SIZE")
    scan_max_pages: int = Field(
        10,
        validation_alias="KV_SCAN_MAX_PAGES",
        description="Upper bound on list pages walked by a single scan.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    storage_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="STORAGE_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored site tokens."
        ),
    )
    previous_storage_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="STORAGE_ENCRYPTION_PREVIOUS_SECRETS",
        description="Retired secrets still accepted when reading stored tokens.",
    )
    visitor_token_ttl_seconds: int = Field(
        86400, validation_alias="VISITOR_TOKEN_TTL"
    )

    @field_validator("previous_storage_secrets", mode="before")
    @classmethod
    def _split_previous_secrets(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)


class CORSSettings(BaseSettings):
    """Origins allowed to call the visitor-facing endpoints."""

    allowed_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        ("*",), validation_alias="CORS_ALLOWED_ORIGINS"
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    webflow: WebflowSettings = Field(default_factory=WebflowSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "CORSSettings",
    "SecuritySettings",
    "StorageSettings",
    "WebflowSettings",
    "get_settings",
]
