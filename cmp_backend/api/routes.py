"""
FastAPI routes for the consent management backend.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from cmp_backend.core.errors import BadRequest, SiteNotFound, Unauthorized
from cmp_backend.dependencies import (
    SettingsDependency,
    get_consent_service,
    get_consent_store,
    get_payload_cipher,
    get_site_directory,
    get_site_onboarding_service,
    get_visitor_token_service,
    get_webflow_oauth_client,
)
from cmp_backend.schemas import (
    ConsentSubmission,
    ConsentSubmissionResponse,
    EncryptedScriptCategories,
    LocationResponse,
    ScriptCategoryEntry,
    VisitorTokenRequest,
    VisitorTokenResponse,
)
from cmp_backend.services.jurisdiction import classify

router = APIRouter()
logger = logging.getLogger(__name__)

_CONSENT_COOKIE_MAX_AGE = 31536000
_DESIGNER_STATE = "webflow_designer"
_POPUP_CLOSE_HTML = """<!DOCTYPE html>
<html>
  <head><title>Authorization Complete</title></head>
  <body>
    <script>
      window.opener.postMessage('authComplete', '*');
      window.close();
    </script>
  </body>
</html>"""


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("cf-connecting-ip")
    if forwarded:
        return forwarded
    return request.client.host if request.client else None


def _require_site_name(site_name: Optional[str]) -> str:
    if not site_name:
        raise BadRequest("Site name is required")
    return site_name


def _site_id_for_access_token(request: Request, directory: Any) -> str:
    """Authenticate an admin call made with a site's Webflow access token."""
    access_token = _bearer_token(request)
    if not access_token:
        raise Unauthorized()
    try:
        return directory.find_site_id_by_access_token(access_token)
    except SiteNotFound as exc:
        raise Unauthorized("SiteId not found") from exc


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/visitor-token", response_model=VisitorTokenResponse)
async def issue_visitor_token(
    payload: VisitorTokenRequest,
    token_service: Annotated[Any, Depends(get_visitor_token_service)],
) -> VisitorTokenResponse:
    """Mint a visitor token bound to the requested site."""
    token = token_service.issue(
        payload.visitor_id, payload.site_name, payload.user_agent
    )
    return VisitorTokenResponse(token=token, visitor_id=payload.visitor_id)


@router.get("/cmp/detect-location", response_model=LocationResponse)
async def detect_location(
    request: Request,
    service: Annotated[Any, Depends(get_consent_service)],
    site_name: Optional[str] = Query(default=None, alias="siteName"),
    country_header: Optional[str] = Header(default=None, alias="CF-IPCountry"),
) -> LocationResponse:
    """Choose the banner regime for the visitor's country."""
    service.authenticate(_bearer_token(request), _require_site_name(site_name))
    country = (country_header or "UNKNOWN").upper()
    return LocationResponse(banner_type=classify(country), country=country)


@router.post("/cmp/consent")
async def submit_consent(
    payload: ConsentSubmission,
    request: Request,
    service: Annotated[Any, Depends(get_consent_service)],
) -> JSONResponse:
    """Decrypt and persist a visitor's consent decision."""
    result = service.submit(
        payload,
        token=_bearer_token(request),
        ip=_client_ip(request),
        country_hint=request.headers.get("cf-ipcountry"),
    )
    record = result.record
    body = ConsentSubmissionResponse(
        message="Consent data saved successfully", consent_data=record
    )
    response = JSONResponse(content=body.model_dump(mode="json", by_alias=True))

    mirrored = record.preferences.model_dump(by_alias=True, exclude={"last_updated"})
    response.set_cookie(
        "visitor-id",
        record.visitor_id,
        path="/",
        httponly=True,
        secure=True,
        samesite="lax",
    )
    response.set_cookie(
        "consent-preferences",
        json.dumps(mirrored, separators=(",", ":")),
        max_age=_CONSENT_COOKIE_MAX_AGE,
        path="/",
        secure=True,
        samesite="strict",
    )
    return response


@router.get("/cmp/consent")
async def get_consent(
    request: Request,
    service: Annotated[Any, Depends(get_consent_service)],
    site_name: Optional[str] = Query(default=None, alias="siteName"),
) -> dict:
    """Return the stored consent record of the authenticated visitor."""
    record = service.get_consent(_bearer_token(request), _require_site_name(site_name))
    return {"consentData": record.model_dump(mode="json", by_alias=True)}


@router.get("/cmp/script-category")
async def get_script_categories(
    request: Request,
    service: Annotated[Any, Depends(get_consent_service)],
    site_name: Optional[str] = Query(default=None, alias="siteName"),
    request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
) -> dict:
    """Return the script categories configured for the visitor's site."""
    if not request_id:
        raise BadRequest("Missing request ID")
    entries = service.get_script_categories(
        _bearer_token(request), _require_site_name(site_name)
    )
    response = {
        "scripts": [entry.model_dump(by_alias=True) for entry in entries],
        "requestId": request_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if not entries:
        response["message"] = "No script categories found for this site"
    return response


@router.post("/save-categories")
async def save_script_categories(
    payload: EncryptedScriptCategories,
    request: Request,
    directory: Annotated[Any, Depends(get_site_directory)],
    cipher: Annotated[Any, Depends(get_payload_cipher)],
    store: Annotated[Any, Depends(get_consent_store)],
) -> dict:
    """Store the encrypted script category list sent by the designer extension."""
    site_id = _site_id_for_access_token(request, directory)

    data = cipher.decrypt_json(payload.scripts, payload.key, payload.iv)
    scripts = data.get("scripts") if isinstance(data, dict) else data
    if not isinstance(scripts, list):
        raise BadRequest("Invalid script data format")
    try:
        entries = [ScriptCategoryEntry.model_validate(item) for item in scripts]
    except ValueError as exc:
        raise BadRequest("Invalid script data format") from exc

    store.save_script_categories(site_id, entries)
    return {"success": True}


@router.post("/cmp/filter-entries")
async def filter_consent_entries(
    request: Request,
    directory: Annotated[Any, Depends(get_site_directory)],
    store: Annotated[Any, Depends(get_consent_store)],
) -> dict:
    """List the consent records stored for the caller's site."""
    site_id = _site_id_for_access_token(request, directory)
    records = store.list_site_consents(site_id)
    return {
        "title": "Filtered Consent Entries",
        "entries": [
            {"entryNumber": index, **record.model_dump(mode="json", by_alias=True)}
            for index, record in enumerate(records, start=1)
        ],
    }


@router.get("/auth/authorize", status_code=HTTPStatus.OK)
async def start_webflow_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_webflow_oauth_client)],
    state: Optional[str] = Query(
        default=None, description="Opaque state echoed back to the callback."
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Webflow consent screen.",
    ),
) -> Any:
    """Kick off the OAuth flow by building the Webflow authorization URL."""
    authorization_url = oauth_client.build_authorization_url(state=state)

    accept_header = request.headers.get("accept", "")
    wants_html = "text/html" in accept_header.lower()
    if redirect or wants_html:
        return RedirectResponse(
            url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    return {"authorization_url": authorization_url}


@router.get("/auth/callback")
async def handle_webflow_oauth_callback(
    request: Request,
    onboarding: Annotated[Any, Depends(get_site_onboarding_service)],
    settings: SettingsDependency,
    code: Optional[str] = Query(default=None, description="Authorization code."),
    state: Optional[str] = Query(default=None, description="OAuth state value."),
) -> Any:
    """Complete the OAuth exchange and register every authorized site."""
    if not code:
        raise BadRequest("No code provided")

    result = await onboarding.complete_authorization(code)
    sites = result.sites

    if state == _DESIGNER_STATE:
        return HTMLResponse(content=_POPUP_CLOSE_HTML)

    accept_header = request.headers.get("accept", "")
    if "text/html" in accept_header.lower():
        if result.workspace_ids:
            url = f"https://webflow.com/dashboard?workspace={quote(result.workspace_ids[0])}"
        else:
            url = (
                f"https://{sites[0].short_name}.design.webflow.com"
                f"?app={settings.webflow.client_id}"
            )
        return RedirectResponse(
            url=url,
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )

    return {
        "status": "connected",
        "sites": [
            {"siteId": site.site_id, "siteName": site.short_name} for site in sites
        ],
    }


__all__ = ["router"]
