"""Service layer exports."""

from .consent_service import ConsentService, ConsentSubmissionResult
from .consent_store import ConsentStore
from .payload_crypto import PayloadCipher
from .secret_cipher import SecretCipherService
from .site_directory import SiteCredential, SiteDirectory
from .site_onboarding import AuthorizationResult, SiteOnboardingService
from .visitor_tokens import VerifiedVisitor, VisitorTokenService

__all__ = [
    "AuthorizationResult",
    "ConsentService",
    "ConsentStore",
    "ConsentSubmissionResult",
    "PayloadCipher",
    "SecretCipherService",
    "SiteCredential",
    "SiteDirectory",
    "SiteOnboardingService",
    "VerifiedVisitor",
    "VisitorTokenService",
]
