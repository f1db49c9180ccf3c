"""Garmin Connect OAuth2 (PKCE) + Wellness API client.

Environment variables:
    GARMIN_CLIENT_ID      — OAuth2 client ID
    GARMIN_CLIENT_SECRET  — OAuth2 client secret
    GARMIN_REDIRECT_URI   — Callback address registered with Garmin

Endpoints used:
    https://connect.garmin.com/oauthConfirm                      — User consent page
    https://connectapi.garmin.com/oauth-service/oauth/token      — Code + refresh grants
    https://connectapi.garmin.com/oauth-service/oauth/revoke     — Token revocation
    https://apis.garmin.com/wellness-api/rest/activities         — Activity summaries
    https://apis.garmin.com/wellness-api/rest/user/id            — Garmin user id

This is a thin transport layer: every method returns decoded JSON or raises
``GarminAPIError`` with the upstream status and body.  Mapping those errors
into the integration's taxonomy is the auth manager's and ingestor's job.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from urllib.parse import urlencode

import httpx
from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from src.services.http import Sleeper, send_with_retry
from src.surf.config_loader import OAuthConfig, RetryConfig, get_surf_config
from src.wearables.base import GarminAPIError

logger = logging.getLogger("swellsync.wearables.garmin")

_GARMIN_AUTH_URL = "https://connect.garmin.com/oauthConfirm"
_GARMIN_OAUTH_BASE = "https://connectapi.garmin.com/oauth-service/oauth"
_GARMIN_API_BASE = "https://apis.garmin.com/wellness-api/rest"

_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}

# 43 characters is the RFC 7636 minimum verifier length.
_VERIFIER_LENGTH = 64
_STATE_LENGTH = 32


def generate_pkce() -> tuple[str, str]:
    """Create a PKCE verifier and its S256 challenge.

    Returns:
        (verifier, challenge).  The verifier is secret; only the challenge
        leaves the server.
    """
    verifier = generate_token(_VERIFIER_LENGTH)
    return verifier, create_s256_code_challenge(verifier)


def generate_state() -> str:
    """Create a random, URL-safe OAuth ``state`` value."""
    return generate_token(_STATE_LENGTH)


class GarminClient:
    """Async client for Garmin's OAuth2 and Wellness endpoints."""

    SOURCE_ID = "garmin"

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        oauth_config: OAuthConfig | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """Initialize the Garmin client.

        Args:
            client_id:     OAuth2 client ID (GARMIN_CLIENT_ID).
            client_secret: OAuth2 client secret (GARMIN_CLIENT_SECRET).
            redirect_uri:  Registered callback URL (GARMIN_REDIRECT_URI).
            http_client:   Optional pre-configured httpx client (for testing).
            oauth_config:  Scope and token defaults (from surf config if None).
            retry_config:  429 backoff settings (from surf config if None).
            sleep:         Awaitable sleep used between 429 retries.
        """
        config = get_surf_config() if oauth_config is None or retry_config is None else None
        self._client_id = client_id or ""
        self._client_secret = client_secret or ""
        self._redirect_uri = redirect_uri or ""
        self._http_client = http_client
        self._oauth = oauth_config or config.oauth
        self._retry = retry_config or config.retry
        self._sleep = sleep

        if not self.is_configured:
            logger.warning(
                "Garmin client id/secret not configured. "
                "Set GARMIN_CLIENT_ID and GARMIN_CLIENT_SECRET environment variables."
            )

    @property
    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    # ------------------------------------------------------------------
    # OAuth2
    # ------------------------------------------------------------------

    def build_authorization_url(self, state: str, code_challenge: str) -> str:
        """Return the Garmin consent URL for a PKCE authorization request."""
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "scope": self._oauth.scope,
            "redirect_uri": self._redirect_uri,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{_GARMIN_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str) -> dict:
        """Exchange an authorization code (plus PKCE verifier) for tokens.

        Returns:
            Token response: access_token, refresh_token, expires_in, ...

        Raises:
            GarminAPIError: On a non-success response.
        """
        return await self._post_form(
            f"{_GARMIN_OAUTH_BASE}/token",
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "code_verifier": code_verifier,
            },
        )

    async def refresh(self, refresh_token: str) -> dict:
        """Exchange a refresh token for a new access token.

        Raises:
            GarminAPIError: On a non-success response.
        """
        return await self._post_form(
            f"{_GARMIN_OAUTH_BASE}/token",
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
        )

    async def revoke(self, access_token: str) -> None:
        """Revoke an access token at Garmin.

        Raises:
            GarminAPIError:  On a non-success response.
            httpx.HTTPError: On transport failure.
        """
        response = await self._send(
            "POST",
            f"{_GARMIN_OAUTH_BASE}/revoke",
            data={"token": access_token},
            headers=_FORM_HEADERS,
        )
        self._check(response)

    # ------------------------------------------------------------------
    # Wellness API
    # ------------------------------------------------------------------

    async def fetch_activities(
        self, access_token: str, start: datetime, end: datetime
    ) -> list[dict]:
        """List activity summaries uploaded between ``start`` and ``end``.

        Raises:
            GarminAPIError: On a non-success response.
        """
        params = {
            "uploadStartTimeInSeconds": str(int(start.timestamp())),
            "uploadEndTimeInSeconds": str(int(end.timestamp())),
        }
        response = await self._send(
            "GET",
            f"{_GARMIN_API_BASE}/activities",
            params=params,
            headers=self._bearer(access_token),
        )
        data = self._json(response)
        if isinstance(data, dict):
            data = data.get("activities") or []
        logger.info("Garmin: fetched %d activities from %s to %s", len(data), start, end)
        return list(data)

    async def fetch_user_id(self, access_token: str) -> str | None:
        """Return the Garmin user id for the token's owner.

        Raises:
            GarminAPIError: On a non-success response.
        """
        response = await self._send(
            "GET", f"{_GARMIN_API_BASE}/user/id", headers=self._bearer(access_token)
        )
        data = self._json(response)
        user_id = data.get("userId") if isinstance(data, dict) else None
        return str(user_id) if user_id else None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _bearer(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        return await send_with_retry(
            method,
            url,
            http_client=self._http_client,
            max_retries=self._retry.max_retries,
            base_delay_seconds=self._retry.base_delay_seconds,
            sleep=self._sleep,
            **kwargs,
        )

    async def _post_form(self, url: str, form: dict[str, str]) -> dict:
        response = await self._send("POST", url, data=form, headers=_FORM_HEADERS)
        return self._json(response)

    @staticmethod
    def _check(response: httpx.Response) -> None:
        if not response.is_success:
            raise GarminAPIError(response.status_code, response.text)

    def _json(self, response: httpx.Response):
        self._check(response)
        try:
            return response.json()
        except ValueError as exc:
            raise GarminAPIError(response.status_code, f"invalid JSON: {exc}") from exc
