"""
Pydantic models for consent submissions and persisted consent records.

Wire and storage shapes use camelCase keys; models are populated by either
the camelCase alias or the snake_case field name.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cmp_backend.models.banner import BannerType

ByteValue = Annotated[int, Field(ge=0, le=255)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EncryptedEnvelope(CamelModel):
    """Browser-encrypted payload with its ephemeral AES-GCM key and IV."""

    ciphertext: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("ciphertext", "encryptedData"),
        description="Base64 AES-GCM ciphertext including the 16-byte tag.",
    )
    key: List[ByteValue] = Field(..., min_length=32, max_length=32)
    iv: List[ByteValue] = Field(..., min_length=12, max_length=12)


class ConsentMetadata(CamelModel):
    """Browser metadata captured alongside a consent decision."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    user_agent: Optional[str] = None
    language: Optional[str] = None
    platform: Optional[str] = None
    timezone: Optional[str] = None
    ip: Optional[str] = None


class CategorizedCookies(CamelModel):
    """Cookies observed on the page, grouped by consent category."""

    necessary: List[Dict[str, Any]] = Field(default_factory=list)
    marketing: List[Dict[str, Any]] = Field(default_factory=list)
    personalization: List[Dict[str, Any]] = Field(default_factory=list)
    analytics: List[Dict[str, Any]] = Field(default_factory=list)
    other: List[Dict[str, Any]] = Field(default_factory=list)


class GDPRPreferences(CamelModel):
    banner_type: Literal["GDPR"] = "GDPR"
    necessary: bool = True
    marketing: bool = False
    personalization: bool = False
    analytics: bool = False
    country: str
    ip: str
    last_updated: str


class CCPAPreferences(CamelModel):
    banner_type: Literal["CCPA"] = "CCPA"
    necessary: bool = True
    do_not_share: bool = False
    do_not_sell: bool = False
    limit_use: bool = False
    country: str
    ip: str
    last_updated: str


RegimePreferences = Annotated[
    Union[GDPRPreferences, CCPAPreferences], Field(discriminator="banner_type")
]


class ConsentRecord(CamelModel):
    """Canonical consent record stored under ``consent:{siteId}:{visitorId}``."""

    site_id: str
    visitor_id: str
    timestamp: str
    policy_version: Optional[str] = None
    metadata: ConsentMetadata = Field(default_factory=ConsentMetadata)
    preferences: RegimePreferences
    cookies: CategorizedCookies = Field(default_factory=CategorizedCookies)

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True)


class ConsentSubmission(CamelModel):
    """Request body of ``POST /api/cmp/consent``."""

    client_id: str = Field(..., min_length=1)
    encrypted_visitor_id: EncryptedEnvelope = Field(
        ..., validation_alias=AliasChoices("encryptedVisitorId", "visitorId")
    )
    preferences: EncryptedEnvelope
    metadata: ConsentMetadata = Field(default_factory=ConsentMetadata)
    policy_version: Optional[str] = None
    timestamp: Optional[str] = None
    cookies: CategorizedCookies = Field(default_factory=CategorizedCookies)
    country: Optional[str] = None
    banner_type: Optional[BannerType] = None


class ConsentSubmissionResponse(CamelModel):
    message: str
    consent_data: ConsentRecord


class ScriptCategoryEntry(CamelModel):
    """A third-party script and the consent categories that gate it."""

    src: Optional[str] = None
    content: Optional[str] = None
    selected_categories: List[str] = Field(default_factory=list)


class EncryptedScriptCategories(CamelModel):
    """Request body of ``POST /api/save-categories``."""

    scripts: str = Field(..., min_length=1, description="Base64 AES-GCM ciphertext.")
    key: List[ByteValue] = Field(..., min_length=32, max_length=32)
    iv: List[ByteValue] = Field(..., min_length=12, max_length=12)


__all__ = [
    "CCPAPreferences",
    "CategorizedCookies",
    "ConsentMetadata",
    "ConsentRecord",
    "ConsentSubmission",
    "ConsentSubmissionResponse",
    "EncryptedEnvelope",
    "EncryptedScriptCategories",
    "GDPRPreferences",
    "RegimePreferences",
    "ScriptCategoryEntry",
]
