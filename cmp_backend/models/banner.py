"""
Domain enums shared by the schemas and services.
"""

from enum import Enum


class BannerType(str, Enum):
    """Consent regime a banner is rendered for."""

    GDPR = "GDPR"
    CCPA = "CCPA"


__all__ = ["BannerType"]
