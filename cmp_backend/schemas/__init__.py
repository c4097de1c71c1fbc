"""Public schema exports."""

from .auth import LocationResponse, VisitorTokenRequest, VisitorTokenResponse
from .consent import (
    CCPAPreferences,
    CategorizedCookies,
    ConsentMetadata,
    ConsentRecord,
    ConsentSubmission,
    ConsentSubmissionResponse,
    EncryptedEnvelope,
    EncryptedScriptCategories,
    GDPRPreferences,
    ScriptCategoryEntry,
)

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
    "LocationResponse",
    "ScriptCategoryEntry",
    "VisitorTokenRequest",
    "VisitorTokenResponse",
]
