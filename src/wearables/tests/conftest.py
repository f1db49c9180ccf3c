"""Shared fixtures and mock Garmin responses for wearable import tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.services.memory import InMemoryPersistence
from src.services.spots import Location, SpotCatalogue
from src.surf.config_loader import IngestionConfig, OAuthConfig, load_surf_config
from src.wearables.adapters.garmin import GarminClient
from src.wearables.auth import WearableAuthManager
from src.wearables.base import WearableCredential
from src.wearables.pending import InMemoryPendingStore
from src.wearables.sync.ingestor import ActivityIngestor

# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Canonical test identities
TEST_USER_ID = "user_2abcDEF"
GARMIN_USER_ID = "garmin-user-1"
TEST_NOW = datetime(2026, 2, 24, 12, 0, tzinfo=timezone.utc)

SUNSET_POINT = Location(id="sunset-point", name="Sunset Point", lat=34.0, lng=-118.5)
MALIBU = Location(id="malibu", name="Malibu Surfrider", lat=34.0359, lng=-118.6776)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = TEST_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_credential(
    expires_in_seconds: float,
    now: datetime = TEST_NOW,
    user_id: str = TEST_USER_ID,
    refresh_token: str | None = "refresh-1",
) -> WearableCredential:
    return WearableCredential(
        user_id=user_id,
        access_token="access-1",
        refresh_token=refresh_token,
        expires_at=now + timedelta(seconds=expires_in_seconds),
        external_account_id=GARMIN_USER_ID,
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def oauth_config() -> OAuthConfig:
    return load_surf_config().oauth


@pytest.fixture
def ingestion_config() -> IngestionConfig:
    return load_surf_config().ingestion


# ---------------------------------------------------------------------------
# JSON fixture loaders
# ---------------------------------------------------------------------------


@pytest.fixture
def garmin_activities_raw() -> list[dict]:
    return json.loads((FIXTURES_DIR / "garmin_activities.json").read_text())


@pytest.fixture
def garmin_webhook_raw() -> dict:
    return json.loads((FIXTURES_DIR / "garmin_webhook.json").read_text())


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def spots() -> SpotCatalogue:
    return SpotCatalogue([SUNSET_POINT, MALIBU])


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def pending_store() -> InMemoryPendingStore:
    return InMemoryPendingStore()


@pytest.fixture
def garmin_client() -> MagicMock:
    """GarminClient stand-in with canned token, user and activity responses."""
    client = MagicMock(spec=GarminClient)
    client.is_configured = True
    client.build_authorization_url = MagicMock(
        side_effect=lambda state, challenge: (
            f"https://connect.garmin.com/oauthConfirm?state={state}&code_challenge={challenge}"
        )
    )
    client.exchange_code = AsyncMock(
        return_value={
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "expires_in": 86400,
            "token_type": "bearer",
        }
    )
    client.refresh = AsyncMock(
        return_value={"access_token": "access-2", "refresh_token": "refresh-2", "expires_in": 86400}
    )
    client.revoke = AsyncMock(return_value=None)
    client.fetch_user_id = AsyncMock(return_value=GARMIN_USER_ID)
    client.fetch_activities = AsyncMock(return_value=[])
    return client


@pytest.fixture
def auth_manager(
    garmin_client: MagicMock,
    persistence: InMemoryPersistence,
    pending_store: InMemoryPendingStore,
    oauth_config: OAuthConfig,
    clock: FakeClock,
) -> WearableAuthManager:
    return WearableAuthManager(
        garmin_client, persistence, pending_store, oauth_config=oauth_config, clock=clock
    )


@pytest.fixture
def ingestor(
    auth_manager: WearableAuthManager,
    garmin_client: MagicMock,
    persistence: InMemoryPersistence,
    spots: SpotCatalogue,
    ingestion_config: IngestionConfig,
    clock: FakeClock,
) -> ActivityIngestor:
    return ActivityIngestor(
        auth_manager, garmin_client, persistence, spots, config=ingestion_config, clock=clock
    )
