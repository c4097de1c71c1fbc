try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
import os
from dataclasses import dataclass

import httpx
import pytest

from cmp_backend.main import app
from cmp_backend.schemas import ScriptCategoryEntry
from cmp_backend.services import (
    ConsentService,
    ConsentStore,
    PayloadCipher,
    SecretCipherService,
    SiteCredential,
    SiteDirectory,
    VisitorTokenService,
)

ACME_SECRET = "acme-site-access-token-0123456789abcdef"
BETA_SECRET = "beta-site-access-token-fedcba9876543210"


@dataclass
class Harness:
    directory: SiteDirectory
    tokens: VisitorTokenService
    store: ConsentStore
    cipher: PayloadCipher
    kv: object


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture()
def harness(kv_store):
    from cmp_backend import dependencies

    directory = SiteDirectory(kv_store, SecretCipherService(secret="endpoint-tests"))
    directory.save(
        SiteCredential(site_id="site-acme", site_name="acme", tenant_secret=ACME_SECRET)
    )
    directory.save(
        SiteCredential(site_id="site-beta", site_name="beta", tenant_secret=BETA_SECRET)
    )
    tokens = VisitorTokenService(directory, ttl_seconds=3600)
    store = ConsentStore(kv_store)
    cipher = PayloadCipher()

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_site_directory: lambda: directory,
            dependencies.get_visitor_token_service: lambda: tokens,
            dependencies.get_consent_store: lambda: store,
            dependencies.get_payload_cipher: lambda: cipher,
            dependencies.get_consent_service: lambda: ConsentService(
                token_service=tokens, cipher=cipher, store=store
            ),
        }
    )

    yield Harness(directory=directory, tokens=tokens, store=store, cipher=cipher, kv=kv_store)

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(harness):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


def _envelope(cipher: PayloadCipher, plaintext: str) -> dict:
    key, iv = list(os.urandom(32)), list(os.urandom(12))
    ciphertext = cipher.encrypt(plaintext, cipher.import_key(key), iv)
    return {"ciphertext": ciphertext, "key": key, "iv": iv}


def _submission(cipher: PayloadCipher, visitor_id: str, preferences: dict, **extra) -> dict:
    body = {
        "clientId": "https://www.acme.com",
        "encryptedVisitorId": _envelope(cipher, visitor_id),
        "preferences": _envelope(cipher, json.dumps(preferences)),
        "metadata": {"userAgent": "Mozilla/5.0", "language": "en-US"},
        "policyVersion": "2025-01",
    }
    body.update(extra)
    return body


async def test_issue_visitor_token(harness, client):
    response = await client.post(
        "/api/visitor-token",
        json={"visitorId": "visitor-1", "userAgent": "Mozilla/5.0", "siteName": "acme"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["visitorId"] == "visitor-1"
    assert harness.tokens.verify(body["token"], "acme").visitor_id == "visitor-1"


async def test_issue_visitor_token_for_unknown_site(harness, client):
    response = await client.post(
        "/api/visitor-token", json={"visitorId": "visitor-1", "siteName": "nowhere"}
    )

    assert response.status_code == 404
    assert response.json() == {"error": "Site not found"}


async def test_issue_visitor_token_requires_fields(harness, client):
    response = await client.post("/api/visitor-token", json={"siteName": "acme"})

    assert response.status_code == 400
    assert response.json()["error"] == "Bad Request"


async def test_ccpa_submission_is_normalized_and_stored(harness, client):
    token = harness.tokens.issue("visitor-1", "acme")
    payload = _submission(
        harness.cipher, "visitor-1", {"DoNotShare": True}, bannerType="CCPA"
    )

    response = await client.post(
        "/api/cmp/consent",
        json=payload,
        headers={
            "Authorization": f"Bearer {token}",
            "CF-IPCountry": "US",
            "CF-Connecting-IP": "203.0.113.9",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Consent data saved successfully"
    preferences = body["consentData"]["preferences"]
    assert preferences == {
        "bannerType": "CCPA",
        "necessary": True,
        "doNotShare": True,
        "doNotSell": False,
        "limitUse": False,
        "country": "US",
        "ip": "203.0.113.9",
        "lastUpdated": preferences["lastUpdated"],
    }

    stored = harness.store.get_consent("site-acme", "visitor-1")
    assert stored.preferences.do_not_share is True
    assert stored.metadata.user_agent == "Mozilla/5.0"
    assert stored.policy_version == "2025-01"

    cookies = [value.lower() for value in response.headers.get_list("set-cookie")]
    assert any(c.startswith("visitor-id=visitor-1") and "httponly" in c for c in cookies)
    assert any(c.startswith("consent-preferences=") and "samesite=strict" in c for c in cookies)


async def test_banner_type_defaults_from_country(harness, client):
    token = harness.tokens.issue("visitor-2", "acme")
    payload = _submission(harness.cipher, "visitor-2", {"analytics": True})

    response = await client.post(
        "/api/cmp/consent",
        json=payload,
        headers={"Authorization": f"Bearer {token}", "CF-IPCountry": "de"},
    )

    assert response.status_code == 200
    preferences = response.json()["consentData"]["preferences"]
    assert preferences["bannerType"] == "GDPR"
    assert preferences["analytics"] is True
    assert preferences["country"] == "DE"


async def test_malformed_envelope_is_rejected_without_writing(harness, client):
    token = harness.tokens.issue("visitor-1", "acme")
    payload = _submission(harness.cipher, "visitor-1", {"analytics": True})
    payload["preferences"]["key"] = payload["preferences"]["key"][:31]

    response = await client.post(
        "/api/cmp/consent", json=payload, headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Bad Request"
    assert harness.kv.list(prefix="consent:").keys == []


async def test_tampered_ciphertext_is_rejected_without_writing(harness, client):
    token = harness.tokens.issue("visitor-1", "acme")
    payload = _submission(harness.cipher, "visitor-1", {"analytics": True})
    payload["preferences"]["iv"] = [0] * 12

    response = await client.post(
        "/api/cmp/consent", json=payload, headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Decryption failed"
    assert harness.kv.list(prefix="consent:").keys == []


async def test_submission_for_another_visitor_is_unauthorized(harness, client):
    token = harness.tokens.issue("visitor-1", "acme")
    payload = _submission(harness.cipher, "visitor-2", {"analytics": True})

    response = await client.post(
        "/api/cmp/consent", json=payload, headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
    assert harness.kv.list(prefix="consent:").keys == []


async def test_token_from_another_site_is_unauthorized(harness, client):
    token = harness.tokens.issue("visitor-1", "beta")
    payload = _submission(harness.cipher, "visitor-1", {"analytics": True})

    response = await client.post(
        "/api/cmp/consent", json=payload, headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


async def test_submission_without_token_is_unauthorized(harness, client):
    payload = _submission(harness.cipher, "visitor-1", {"analytics": True})

    response = await client.post("/api/cmp/consent", json=payload)

    assert response.status_code == 401


async def test_get_consent_returns_stored_record(harness, client):
    token = harness.tokens.issue("visitor-1", "acme")
    await client.post(
        "/api/cmp/consent",
        json=_submission(harness.cipher, "visitor-1", {"marketing": True}, bannerType="GDPR"),
        headers={"Authorization": f"Bearer {token}"},
    )

    response = await client.get(
        "/api/cmp/consent",
        params={"siteName": "acme"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 200
    record = response.json()["consentData"]
    assert record["siteId"] == "site-acme"
    assert record["preferences"]["marketing"] is True


async def test_get_consent_without_record_is_not_found(harness, client):
    token = harness.tokens.issue("visitor-9", "acme")

    response = await client.get(
        "/api/cmp/consent",
        params={"siteName": "acme"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 404


async def test_detect_location(harness, client):
    token = harness.tokens.issue("visitor-1", "acme")

    response = await client.get(
        "/api/cmp/detect-location",
        params={"siteName": "acme"},
        headers={"Authorization": f"Bearer {token}", "CF-IPCountry": "us"},
    )

    assert response.status_code == 200
    assert response.json() == {"bannerType": "CCPA", "country": "US"}


async def test_detect_location_requires_site_name(harness, client):
    token = harness.tokens.issue("visitor-1", "acme")

    response = await client.get(
        "/api/cmp/detect-location", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 400


async def test_script_categories_hide_inline_content(harness, client):
    harness.store.save_script_categories(
        "site-acme",
        [
            ScriptCategoryEntry(src="https://cdn.example.com/a.js", selected_categories=["analytics"]),
            ScriptCategoryEntry(content="track()", selected_categories=["marketing"]),
        ],
    )
    token = harness.tokens.issue("visitor-1", "acme")

    response = await client.get(
        "/api/cmp/script-category",
        params={"siteName": "acme"},
        headers={"Authorization": f"Bearer {token}", "X-Request-ID": "req-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["requestId"] == "req-1"
    assert [entry["content"] for entry in body["scripts"]] == [None, None]
    assert body["scripts"][0]["selectedCategories"] == ["analytics"]


async def test_script_categories_require_request_id(harness, client):
    token = harness.tokens.issue("visitor-1", "acme")

    response = await client.get(
        "/api/cmp/script-category",
        params={"siteName": "acme"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 400
    assert response.json()["details"] == "Missing request ID"


async def test_save_categories_with_site_access_token(harness, client):
    scripts = [{"src": "https://cdn.example.com/a.js", "selectedCategories": ["analytics"]}]
    envelope = _envelope(harness.cipher, json.dumps({"scripts": scripts}))

    response = await client.post(
        "/api/save-categories",
        json={"scripts": envelope["ciphertext"], "key": envelope["key"], "iv": envelope["iv"]},
        headers={"Authorization": f"Bearer {ACME_SECRET}"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    (entry,) = harness.store.get_script_categories("site-acme")
    assert entry.src == "https://cdn.example.com/a.js"


async def test_save_categories_rejects_unknown_access_token(harness, client):
    envelope = _envelope(harness.cipher, json.dumps([]))

    response = await client.post(
        "/api/save-categories",
        json={"scripts": envelope["ciphertext"], "key": envelope["key"], "iv": envelope["iv"]},
        headers={"Authorization": "Bearer not-a-site-token"},
    )

    assert response.status_code == 401
    assert response.json()["details"] == "SiteId not found"


async def test_filter_entries_lists_site_records(harness, client):
    for visitor_id in ("visitor-1", "visitor-2"):
        token = harness.tokens.issue(visitor_id, "acme")
        await client.post(
            "/api/cmp/consent",
            json=_submission(harness.cipher, visitor_id, {"analytics": True}),
            headers={"Authorization": f"Bearer {token}"},
        )
    beta_token = harness.tokens.issue("visitor-3", "beta")
    await client.post(
        "/api/cmp/consent",
        json=_submission(
            harness.cipher, "visitor-3", {}, clientId="beta.webflow.io"
        ),
        headers={"Authorization": f"Bearer {beta_token}"},
    )

    response = await client.post(
        "/api/cmp/filter-entries", headers={"Authorization": f"Bearer {ACME_SECRET}"}
    )

    assert response.status_code == 200
    entries = response.json()["entries"]
    assert [entry["entryNumber"] for entry in entries] == [1, 2]
    assert {entry["visitorId"] for entry in entries} == {"visitor-1", "visitor-2"}


async def test_health(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class BrokenConsentStore:
    def list_site_consents(self, site_id):
        raise RuntimeError("driver exploded")


async def test_unexpected_failure_is_rendered_as_json(harness):
    from cmp_backend import dependencies

    app.dependency_overrides[dependencies.get_consent_store] = BrokenConsentStore
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://testserver",
    ) as test_client:
        response = await test_client.post(
            "/api/cmp/filter-entries", headers={"Authorization": f"Bearer {ACME_SECRET}"}
        )

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert "driver exploded" not in response.text
