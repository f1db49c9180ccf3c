"""Wearable authorization manager — OAuth2/PKCE lifecycle for Garmin.

Flow:
1. ``begin_authorization(user_id)`` creates a PKCE pair and a random state,
   stores a PendingAuthorization and returns the Garmin consent URL.
2. Garmin redirects back with ``code`` + ``state``;
   ``complete_authorization(code, state)`` consumes the pending entry
   exactly once, exchanges the code and persists the credential.
3. ``ensure_fresh_token(credential)`` refreshes an expired access token
   before any outbound call.  Refreshes are serialized per user so two
   concurrent callers never persist competing refresh tokens.
4. ``disconnect(user_id)`` revokes at Garmin (best-effort) and deletes the
   local credential regardless of the revocation outcome.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

import httpx

from src.surf.config_loader import OAuthConfig, get_surf_config
from src.wearables.adapters.garmin import GarminClient, generate_pkce, generate_state
from src.wearables.base import (
    ExchangeFailed,
    ExpiredState,
    GarminAPIError,
    InvalidState,
    NotConfigured,
    NotConnected,
    PendingAuthorization,
    Persistence,
    RefreshFailed,
    WearableCredential,
)
from src.wearables.pending import Clock, PendingAuthorizationStore, utc_now

logger = logging.getLogger("swellsync.wearables.auth")


@dataclass(frozen=True)
class AuthorizationRequest:
    authorization_url: str
    state: str


class WearableAuthManager:
    """Own the Garmin authorization-code flow and stored credentials."""

    def __init__(
        self,
        client: GarminClient,
        persistence: Persistence,
        pending_store: PendingAuthorizationStore,
        oauth_config: OAuthConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._client = client
        self._persistence = persistence
        self._pending = pending_store
        self._oauth = oauth_config or get_surf_config().oauth
        self._clock = clock
        self._refresh_locks: dict[str, asyncio.Lock] = {}

    @property
    def is_configured(self) -> bool:
        return self._client.is_configured

    # ------------------------------------------------------------------
    # Authorization code flow
    # ------------------------------------------------------------------

    def begin_authorization(self, user_id: str) -> AuthorizationRequest:
        """Start a PKCE authorization for ``user_id``.

        Raises:
            NotConfigured: If Garmin client credentials are absent.
        """
        self._require_configured()
        verifier, challenge = generate_pkce()
        state = generate_state()
        self._pending.put(
            PendingAuthorization(
                state=state, verifier=verifier, user_id=user_id, created_at=self._clock()
            )
        )
        logger.info("Garmin authorization started for user %s", user_id)
        return AuthorizationRequest(
            authorization_url=self._client.build_authorization_url(state, challenge),
            state=state,
        )

    async def complete_authorization(self, code: str, state: str) -> WearableCredential:
        """Finish an authorization and persist the resulting credential.

        Raises:
            NotConfigured:  If Garmin client credentials are absent.
            InvalidState:   If ``state`` is unknown or already consumed.
            ExpiredState:   If ``state`` outlived the pending TTL.
            ExchangeFailed: If Garmin rejected the code exchange.
        """
        self._require_configured()
        pending = self._pending.pop(state)
        if pending is None:
            raise InvalidState("Unknown or already used authorization state")
        now = self._clock()
        if pending.is_expired(now, self._oauth.pending_ttl_seconds):
            raise ExpiredState("Authorization state expired; restart the connect flow")

        try:
            tokens = await self._client.exchange_code(code, pending.verifier)
        except GarminAPIError as exc:
            logger.warning("Garmin code exchange rejected (%s)", exc.status)
            raise ExchangeFailed(exc.status, exc.body) from exc
        except httpx.HTTPError as exc:
            raise ExchangeFailed(None, f"{type(exc).__name__}: {exc}") from exc

        access_token = tokens.get("access_token")
        if not access_token:
            raise ExchangeFailed(200, "token response has no access_token")

        credential = WearableCredential(
            user_id=pending.user_id,
            access_token=access_token,
            refresh_token=tokens.get("refresh_token"),
            expires_at=self._expiry(now, tokens.get("expires_in")),
            external_account_id=await self._lookup_account_id(access_token),
        )
        await self._persistence.upsert_credential(credential)
        logger.info(
            "Garmin connected for user %s (garmin user %s)",
            credential.user_id, credential.external_account_id,
        )
        return credential

    # ------------------------------------------------------------------
    # Token freshness
    # ------------------------------------------------------------------

    async def get_credential(self, user_id: str) -> WearableCredential:
        """Return the stored credential for ``user_id``.

        Raises:
            NotConnected: If the user has not connected Garmin.
        """
        credential = await self._persistence.get_credential(user_id)
        if credential is None:
            raise NotConnected(f"User {user_id} has no Garmin connection")
        return credential

    async def ensure_fresh_token(self, credential: WearableCredential) -> str:
        """Return a usable access token, refreshing first if it has expired.

        The credential is updated in place and persisted after a refresh.

        Raises:
            RefreshFailed: If Garmin rejected the refresh.
        """
        if not credential.is_expired(self._clock()):
            return credential.access_token

        lock = self._refresh_locks.setdefault(credential.user_id, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed while we waited.
            stored = await self._persistence.get_credential(credential.user_id)
            current = stored or credential
            now = self._clock()
            if not current.is_expired(now):
                self._copy_tokens(current, credential)
                return credential.access_token

            if not current.refresh_token:
                raise RefreshFailed(None, "credential has no refresh token")

            try:
                tokens = await self._client.refresh(current.refresh_token)
            except GarminAPIError as exc:
                logger.warning(
                    "Garmin token refresh rejected for user %s (%s)", credential.user_id, exc.status
                )
                raise RefreshFailed(exc.status, exc.body) from exc
            except httpx.HTTPError as exc:
                raise RefreshFailed(None, f"{type(exc).__name__}: {exc}") from exc

            access_token = tokens.get("access_token")
            if not access_token:
                raise RefreshFailed(200, "refresh response has no access_token")

            current.access_token = access_token
            current.expires_at = self._expiry(now, tokens.get("expires_in"))
            if tokens.get("refresh_token"):
                current.refresh_token = tokens["refresh_token"]
            await self._persistence.upsert_credential(current)
            self._copy_tokens(current, credential)
            logger.info("Refreshed Garmin token for user %s", credential.user_id)
            return credential.access_token

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    async def revoke(self, credential: WearableCredential) -> None:
        """Revoke the access token at Garmin.  Never raises."""
        try:
            await self._client.revoke(credential.access_token)
        except (GarminAPIError, httpx.HTTPError) as exc:
            logger.warning(
                "Garmin token revocation failed for user %s: %s", credential.user_id, exc
            )

    async def disconnect(self, user_id: str) -> bool:
        """Revoke (best-effort) and delete the user's credential.

        Returns:
            False if there was nothing to disconnect.
        """
        credential = await self._persistence.get_credential(user_id)
        if credential is None:
            return False
        await self.revoke(credential)
        await self._persistence.delete_credential(user_id)
        self._refresh_locks.pop(user_id, None)
        logger.info("Garmin disconnected for user %s", user_id)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_configured(self) -> None:
        if not self._client.is_configured:
            raise NotConfigured("Garmin integration unavailable")

    def _expiry(self, now: datetime, expires_in: object) -> datetime:
        try:
            seconds = int(expires_in) if expires_in is not None else 0
        except (TypeError, ValueError):
            seconds = 0
        if seconds <= 0:
            seconds = self._oauth.default_token_lifetime_seconds
        return now + timedelta(seconds=seconds)

    async def _lookup_account_id(self, access_token: str) -> str | None:
        try:
            return await self._client.fetch_user_id(access_token)
        except (GarminAPIError, httpx.HTTPError) as exc:
            logger.warning("Could not fetch Garmin user id: %s", exc)
            return None

    @staticmethod
    def _copy_tokens(source: WearableCredential, target: WearableCredential) -> None:
        if source is target:
            return
        target.access_token = source.access_token
        target.refresh_token = source.refresh_token
        target.expires_at = source.expires_at
