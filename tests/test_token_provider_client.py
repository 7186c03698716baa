from __future__ import annotations

import base64
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from session_service.clients.token_provider import (
    OAuthStateEncoder,
    OAuthStateError,
    OAuthTokenProviderClient,
    ProviderNetworkError,
    ProviderRejectedError,
)
from session_service.core.config import OAuthProviderSettings


def _settings(**overrides) -> OAuthProviderSettings:
    values = {
        "OAUTH_CLIENT_ID": "client",
        "OAUTH_CLIENT_SECRET": "secret",
        "OAUTH_REDIRECT_URI": "https://example.com/api/auth/callback",
        "OAUTH_TOKEN_URL": "https://oauth.example/token",
        "OAUTH_AUTHORIZE_URL": "https://oauth.example/authorize",
        "OAUTH_SCOPES": "user-read-private,user-top-read",
    }
    values.update(overrides)
    return OAuthProviderSettings(**values)


class TokenEndpoint:
    """Records token requests and answers with a canned response."""

    def __init__(self, status_code: int = 200, payload=None) -> None:
        self.status_code = status_code
        self.payload = payload
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    def form(self, index: int = -1) -> dict[str, str]:
        body = self.requests[index].content.decode("utf-8")
        return {key: values[0] for key, values in parse_qs(body).items()}


def _client(handler) -> OAuthTokenProviderClient:
    return OAuthTokenProviderClient(_settings(), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_exchange_code_posts_form_with_basic_auth() -> None:
    endpoint = TokenEndpoint(
        payload={"access_token": "A1", "refresh_token": "R1", "expires_in": 3600}
    )

    bundle = await _client(endpoint).exchange_code("auth-code")

    assert (bundle.access_token, bundle.refresh_token, bundle.issued_duration_seconds) == (
        "A1",
        "R1",
        3600,
    )
    request = endpoint.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://oauth.example/token"
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    expected_auth = base64.b64encode(b"client:secret").decode("ascii")
    assert request.headers["authorization"] == f"Basic {expected_auth}"
    assert endpoint.form() == {
        "grant_type": "authorization_code",
        "code": "auth-code",
        "redirect_uri": "https://example.com/api/auth/callback",
    }


@pytest.mark.asyncio
async def test_exchange_code_rejection_carries_status_and_body() -> None:
    endpoint = TokenEndpoint(
        status_code=400,
        payload={"error": "invalid_grant", "error_description": "Invalid authorization code"},
    )

    with pytest.raises(ProviderRejectedError) as excinfo:
        await _client(endpoint).exchange_code("used-code")

    assert excinfo.value.status_code == 400
    assert excinfo.value.error_body["error"] == "invalid_grant"
    assert len(endpoint.requests) == 1


@pytest.mark.asyncio
async def test_exchange_code_requires_refresh_token() -> None:
    endpoint = TokenEndpoint(payload={"access_token": "A1", "expires_in": 3600})

    with pytest.raises(ProviderRejectedError):
        await _client(endpoint).exchange_code("auth-code")


@pytest.mark.asyncio
async def test_refresh_sends_refresh_grant_and_allows_missing_rotation() -> None:
    endpoint = TokenEndpoint(payload={"access_token": "A2", "expires_in": "3600"})

    bundle = await _client(endpoint).refresh("R1")

    assert bundle.access_token == "A2"
    assert bundle.refresh_token is None
    assert bundle.issued_duration_seconds == 3600
    assert endpoint.form() == {"grant_type": "refresh_token", "refresh_token": "R1"}


@pytest.mark.asyncio
async def test_refresh_rejects_payload_without_expiry() -> None:
    endpoint = TokenEndpoint(payload={"access_token": "A2"})

    with pytest.raises(ProviderRejectedError):
        await _client(endpoint).refresh("R1")


@pytest.mark.asyncio
async def test_refresh_rejection_with_text_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized client")

    with pytest.raises(ProviderRejectedError) as excinfo:
        await _client(handler).refresh("R1")

    assert excinfo.value.status_code == 401
    assert excinfo.value.error_body == "unauthorized client"


@pytest.mark.asyncio
async def test_timeout_is_reported_as_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(ProviderNetworkError):
        await _client(handler).refresh("R1")


@pytest.mark.asyncio
async def test_connection_failure_is_reported_as_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderNetworkError):
        await _client(handler).exchange_code("auth-code")


def test_authorization_url_contains_client_scopes_and_state() -> None:
    client = OAuthTokenProviderClient(_settings())

    url = client.build_authorization_url(state="opaque-state")

    parsed = urlparse(url)
    params = {key: values[0] for key, values in parse_qs(parsed.query).items()}
    assert url.startswith("https://oauth.example/authorize?")
    assert params == {
        "response_type": "code",
        "client_id": "client",
        "scope": "user-read-private user-top-read",
        "redirect_uri": "https://example.com/api/auth/callback",
        "state": "opaque-state",
        "show_dialog": "true",
    }


def test_state_encoder_roundtrip_and_tamper_detection() -> None:
    encoder = OAuthStateEncoder(secret_key="state-secret")
    token = encoder.encode({"nonce": "abc", "issued_at": "2026-01-01T00:00:00+00:00"})

    assert encoder.decode(token)["nonce"] == "abc"

    forged = OAuthStateEncoder(secret_key="other-secret").encode({"nonce": "abc"})
    with pytest.raises(OAuthStateError):
        encoder.decode(forged)
    with pytest.raises(OAuthStateError):
        encoder.decode("%%%not-base64%%%")
