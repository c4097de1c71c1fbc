"""Settings dependency for routes that read configuration directly."""

from typing import Annotated

from fastapi import Depends

from cmp_backend.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """Process-wide settings; tests swap them via ``dependency_overrides``."""
    return get_settings()


SettingsDependency = Annotated[AppSettings, Depends(get_app_settings)]

__all__ = ["SettingsDependency", "get_app_settings"]
