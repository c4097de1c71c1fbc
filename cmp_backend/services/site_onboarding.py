"""
Helpers for completing the Webflow OAuth flow and registering sites.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from cmp_backend.clients.webflow import WebflowOAuthClient, WebflowSite
from cmp_backend.core.errors import BadRequest
from cmp_backend.services.site_directory import SiteCredential, SiteDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthorizationResult:
    """Sites registered by one authorization and the workspaces it covers."""

    sites: List[WebflowSite]
    workspace_ids: List[str] = field(default_factory=list)


class SiteOnboardingService:
    """Exchange an authorization code and store a credential per authorized site."""

    def __init__(
        self,
        oauth_client: WebflowOAuthClient,
        directory: SiteDirectory,
        *,
        credential_ttl_seconds: Optional[int] = 86400,
    ) -> None:
        self._oauth = oauth_client
        self._directory = directory
        self._ttl = credential_ttl_seconds

    async def complete_authorization(self, code: str) -> AuthorizationResult:
        """Register every site the code grants.

        Token lookups resolve to the first listed site, the same site the
        browser is sent to when no workspace was authorized.
        """
        if not code:
            raise BadRequest("No code provided")

        access_token = await self._oauth.exchange_authorization_code(code)
        sites = await self._oauth.list_sites(access_token)
        workspace_ids = await self._oauth.list_workspace_ids(access_token)
        if not sites:
            raise BadRequest("No Webflow sites found.")

        for index, site in enumerate(sites):
            self._directory.save(
                SiteCredential(
                    site_id=site.site_id,
                    site_name=site.short_name,
                    tenant_secret=access_token,
                ),
                ttl_seconds=self._ttl,
                index_token=index == 0,
            )
        logger.info("Registered %d Webflow site(s)", len(sites))
        return AuthorizationResult(sites=sites, workspace_ids=workspace_ids)


__all__ = ["AuthorizationResult", "SiteOnboardingService"]
