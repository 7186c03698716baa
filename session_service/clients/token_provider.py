"""
OAuth2 provider utilities.

These helpers build the consent URL, protect the ``state`` round trip and call
the provider's token endpoint for the authorization-code and refresh grants.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from session_service.core.config import OAuthProviderSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TokenBundle:
    """Token set returned by a successful grant."""

    access_token: str
    refresh_token: Optional[str]
    issued_duration_seconds: int


class OAuthStateError(ValueError):
    """Raised when a returned OAuth state value is forged or unreadable."""


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise OAuthStateError("Malformed OAuth state.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise OAuthStateError("Invalid OAuth state signature.")
        return json.loads(serialized)


class ProviderRejectedError(Exception):
    """Raised when the token endpoint answers a grant with an error."""

    def __init__(self, status_code: int, error_body: Any) -> None:
        self.status_code = status_code
        self.error_body = error_body
        super().__init__(f"Token endpoint rejected the grant ({status_code}): {error_body}")


class ProviderNetworkError(Exception):
    """Raised when the token endpoint cannot be reached or does not answer in time."""


class OAuthTokenProviderClient:
    """Build authorization URLs and perform token grants against the provider.

    Neither grant is retried: authorization codes are single-use and a rejected
    refresh token does not recover by waiting, so the caller decides what a
    failure means.
    """

    def __init__(
        self,
        settings: OAuthProviderSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def build_authorization_url(self, state: str) -> str:
        """Construct the provider consent URL."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "scope": " ".join(self._settings.scopes),
            "redirect_uri": str(self._settings.redirect_uri),
            "state": state,
        }
        if self._settings.show_dialog:
            params["show_dialog"] = "true"
        return f"{self._settings.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenBundle:
        """Exchange a single-use authorization code for a token bundle."""
        payload = await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": str(self._settings.redirect_uri),
            }
        )
        bundle = self._parse_bundle(payload)
        if not bundle.refresh_token:
            raise ProviderRejectedError(200, "Token payload is missing refresh_token.")
        return bundle

    async def refresh(self, refresh_token: str) -> TokenBundle:
        """Obtain a new access token.

        ``refresh_token`` on the result is ``None`` when the provider did not
        rotate it; callers keep using the one they sent.
        """
        payload = await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        return self._parse_bundle(payload)

    async def _request_token(self, form: Dict[str, str]) -> Dict[str, Any]:
        grant_type = form["grant_type"]
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    str(self._settings.token_url),
                    data=form,
                    auth=(self._settings.client_id, self._settings.client_secret),
                    headers={"Accept": "application/json"},
                )
        except httpx.TransportError as exc:
            logger.warning("Token endpoint unreachable during %s grant: %s", grant_type, exc)
            raise ProviderNetworkError(str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            error_body = self._error_body(response)
            logger.warning(
                "Token endpoint rejected %s grant with %s: %s",
                grant_type,
                response.status_code,
                error_body,
            )
            raise ProviderRejectedError(response.status_code, error_body)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderRejectedError(response.status_code, response.text) from exc
        if not isinstance(payload, dict):
            raise ProviderRejectedError(response.status_code, payload)
        return payload

    @staticmethod
    def _parse_bundle(payload: Dict[str, Any]) -> TokenBundle:
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token") or None
        expires_in = payload.get("expires_in")

        try:
            issued_duration = int(expires_in)
        except (TypeError, ValueError):
            issued_duration = 0

        if not access_token or issued_duration <= 0:
            raise ProviderRejectedError(200, "Incomplete token payload returned from provider.")

        return TokenBundle(
            access_token=access_token,
            refresh_token=refresh_token,
            issued_duration_seconds=issued_duration,
        )

    @staticmethod
    def _error_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text


__all__ = [
    "OAuthStateEncoder",
    "OAuthStateError",
    "OAuthTokenProviderClient",
    "ProviderNetworkError",
    "ProviderRejectedError",
    "TokenBundle",
]
