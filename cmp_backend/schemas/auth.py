"""Schemas for visitor token issuance and location detection."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cmp_backend.models.banner import BannerType


class VisitorTokenRequest(BaseModel):
    """Payload sent by the consent banner to obtain a visitor token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    visitor_id: str = Field("", description="Browser-generated visitor identifier.")
    user_agent: str = Field("", description="User agent reported by the browser.")
    site_name: str = Field("", description="Webflow short name of the site.")


class VisitorTokenResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str
    visitor_id: str


class LocationResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    banner_type: BannerType
    country: str


__all__ = ["LocationResponse", "VisitorTokenRequest", "VisitorTokenResponse"]
