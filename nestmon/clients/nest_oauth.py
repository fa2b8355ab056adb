"""
Google OAuth utilities for Nest Device Access.

These helpers build the consent URL, exchange authorization codes and refresh
access tokens. Every call carries an explicit timeout.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from fastapi import HTTPException, status

from nestmon.core.config import GoogleSettings, OAuthSettings
from nestmon.models.credential import Credential


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    _SIGNATURE_SIZE = 32

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
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed OAuth state.",
            ) from exc
        signature, serialized = decoded[: self._SIGNATURE_SIZE], decoded[self._SIGNATURE_SIZE :]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid OAuth state signature.",
            )
        return json.loads(serialized)


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint rejects a request or cannot be reached."""


class OAuthTokenNotFoundError(Exception):
    """Raised when no credential is available for a user."""


class NestOAuthClient:
    """Build Google authorization URLs, exchange codes and refresh tokens."""

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._timeout = timeout
        self._transport = transport

    @property
    def token_url(self) -> str:
        return self._oauth.token_uri

    def build_authorization_url(self, state: str) -> str:
        """Construct the Google OAuth consent URL requesting offline access."""
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": self._google.redirect_uri,
            "response_type": "code",
            "scope": self._oauth.scope,
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self._oauth.auth_uri}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> Credential:
        """Exchange an authorization code for a fresh credential."""
        payload = {
            "code": code,
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "redirect_uri": self._google.redirect_uri,
            "grant_type": "authorization_code",
        }
        token_payload = await self._post_token_request(payload)
        try:
            return Credential.from_token_response(token_payload)
        except ValueError as exc:
            raise OAuthTokenExchangeError(
                "Incomplete token payload returned from Google."
            ) from exc

    async def refresh_token(self, refresh_token: str) -> Credential:
        """
        Refresh the access token using a stored refresh token.

        The returned credential carries the rotated refresh token when Google
        issues one, otherwise the refresh token that was sent.
        """
        payload = {
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        token_payload = await self._post_token_request(payload)
        try:
            return Credential.from_token_response(
                token_payload, fallback_refresh_token=refresh_token
            )
        except ValueError as exc:
            raise OAuthTokenExchangeError(
                "Incomplete refresh payload returned from Google."
            ) from exc

    async def _post_token_request(self, payload: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self.token_url, data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(
                f"Token endpoint unreachable: {exc.__class__.__name__}"
            ) from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(
                f"Token endpoint returned {response.status_code}: {response.text}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError("Token endpoint returned invalid JSON.") from exc


__all__ = [
    "NestOAuthClient",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "OAuthTokenNotFoundError",
]
