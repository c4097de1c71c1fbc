"""
Webflow OAuth utilities.

These helpers build the authorization URL, exchange authorization codes for
site-scoped access tokens and list the sites a token was granted for.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List
from urllib.parse import urlencode

import httpx

from cmp_backend.core.config import WebflowSettings
from cmp_backend.core.errors import UpstreamError
from cmp_backend.utils.http import request_with_retry


@dataclass(frozen=True, slots=True)
class WebflowSite:
    """Subset of the Webflow site resource used for onboarding."""

    site_id: str
    short_name: str
    display_name: str | None = None


class WebflowOAuthClient:
    """Build Webflow authorization URLs and exchange authorization codes."""

    AUTH_BASE_URL = "https://webflow.com/oauth/authorize"
    TOKEN_URL = "https://api.webflow.com/oauth/access_token"
    SITES_URL = "https://api.webflow.com/v2/sites"
    INTROSPECT_URL = "https://api.webflow.com/v2/token/introspect"

    def __init__(self, settings: WebflowSettings, *, timeout: float = 10.0) -> None:
        self._settings = settings
        self._timeout = timeout

    def build_authorization_url(self, state: str | None = None) -> str:
        """Construct the Webflow consent URL."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "scope": " ".join(self._settings.scopes),
        }
        if self._settings.redirect_uri:
            params["redirect_uri"] = str(self._settings.redirect_uri)
        if state:
            params["state"] = state
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "code": code,
            "grant_type": "authorization_code",
        }
        if self._settings.redirect_uri:
            payload["redirect_uri"] = str(self._settings.redirect_uri)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            raise UpstreamError("Failed to reach Webflow.") from exc

        if response.status_code != httpx.codes.OK:
            raise UpstreamError("Failed to exchange authorization code.")

        access_token = _json_object(response).get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise UpstreamError("Incomplete token payload returned from Webflow.")
        return access_token

    async def list_sites(self, access_token: str) -> List[WebflowSite]:
        """Return the sites the access token is authorized for."""
        headers = {"Authorization": f"Bearer {access_token}", "accept": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await request_with_retry(
                    client.get, self.SITES_URL, headers=headers
                )
        except httpx.HTTPError as exc:
            raise UpstreamError("Failed to list Webflow sites.") from exc

        sites = []
        for raw in _json_object(response).get("sites") or []:
            if not isinstance(raw, dict):
                continue
            site_id = raw.get("id")
            short_name = raw.get("shortName")
            if not isinstance(site_id, str) or not isinstance(short_name, str):
                continue
            if not site_id or not short_name:
                continue
            sites.append(
                WebflowSite(
                    site_id=site_id,
                    short_name=short_name,
                    display_name=raw.get("displayName"),
                )
            )
        return sites

    async def list_workspace_ids(self, access_token: str) -> List[str]:
        """Return the workspaces the access token was authorized for, if any."""
        headers = {"Authorization": f"Bearer {access_token}", "accept": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await request_with_retry(
                    client.get, self.INTROSPECT_URL, headers=headers
                )
        except httpx.HTTPError as exc:
            raise UpstreamError("Failed to introspect Webflow token.") from exc

        authorization = _json_object(response).get("authorization")
        authorized_to = (
            authorization.get("authorizedTo") if isinstance(authorization, dict) else None
        )
        workspace_ids = (
            authorized_to.get("workspaceIds") if isinstance(authorized_to, dict) else None
        )
        if not isinstance(workspace_ids, list):
            return []
        return [item for item in workspace_ids if isinstance(item, str) and item]


def _json_object(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamError("Webflow returned a non-JSON response.") from exc
    if not isinstance(data, dict):
        raise UpstreamError("Webflow returned an unexpected payload.")
    return data


__all__ = ["WebflowOAuthClient", "WebflowSite"]
