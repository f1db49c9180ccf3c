"""Shared fixtures for surf engine tests."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.services.spots import Location
from src.surf.config_loader import RetryConfig, SurfConfig, load_surf_config
from src.surf.providers.base import (
    ConditionsProvider,
    ForecastWindow,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    Reading,
    TideExtreme,
)

# Canonical test data
TEST_TIME = datetime(2026, 2, 23, 0, 0, tzinfo=timezone.utc)
TEST_SPOT = Location(id="malibu", name="Malibu Surfrider", lat=34.0359, lng=-118.6776)
TEST_WINDOW = ForecastWindow(start=TEST_TIME, hours=2)


def make_reading(
    quantity: str,
    value: float,
    model: str = "sg",
    time: datetime = TEST_TIME,
    provider: str = "stormglass",
) -> Reading:
    return Reading(quantity=quantity, value=value, time=time, model=model, provider=provider)


def mock_http_client(*responses: httpx.Response) -> MagicMock:
    """httpx.AsyncClient stand-in whose ``request`` returns ``responses`` in order."""
    client = MagicMock(spec=httpx.AsyncClient)
    client.request = AsyncMock(side_effect=list(responses))
    return client


class FakeProvider(ConditionsProvider):
    """Provider strategy returning canned results."""

    def __init__(
        self,
        source_id: str,
        result: ProviderResult,
        tides: list[TideExtreme] | ProviderFailure | None = None,
    ) -> None:
        super().__init__(retry_config=RetryConfig())
        self.SOURCE_ID = source_id
        self.SUPPORTS_TIDES = tides is not None
        self._result = result
        self._tides = tides
        self.calls = 0

    async def fetch(self, location: Location, window: ForecastWindow) -> ProviderResult:
        self.calls += 1
        return self._result

    async def fetch_tides(
        self, location: Location, window: ForecastWindow
    ) -> list[TideExtreme] | ProviderFailure:
        return self._tides


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def surf_config() -> SurfConfig:
    """Load the real surf config for tests."""
    return load_surf_config()


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def primary_success() -> FakeProvider:
    return FakeProvider(
        "stormglass",
        ProviderSuccess("stormglass", [make_reading("wave_height", 1.2)]),
    )


@pytest.fixture
def primary_failure() -> FakeProvider:
    return FakeProvider("stormglass", ProviderFailure("stormglass", "Internal error", 500))


@pytest.fixture
def fallback_success() -> FakeProvider:
    return FakeProvider(
        "open-meteo",
        ProviderSuccess(
            "open-meteo",
            [make_reading("wave_height", 1.1, model="open-meteo", provider="open-meteo")],
        ),
    )


@pytest.fixture
def fallback_failure() -> FakeProvider:
    return FakeProvider("open-meteo", ProviderFailure("open-meteo", "ConnectTimeout: timed out"))
