"""App-level fixtures: a fully wired API with fake providers and a mocked Garmin."""

from __future__ import annotations

from typing import Iterator
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from src.config import Settings
from src.dependencies import AuthContext, Services, build_services
from src.main import create_app
from src.services.spots import SpotCatalogue
from src.surf.gateway import ProviderGateway
from src.wearables.auth import WearableAuthManager
from src.wearables.sync.ingestor import ActivityIngestor
from src.wearables.tests.conftest import (  # noqa: F401
    MALIBU,
    SUNSET_POINT,
    FakeClock,
    garmin_activities_raw,
    garmin_client,
    garmin_webhook_raw,
)

USER_HEADER = "X-Test-User"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        garmin_client_id="test_client_id",
        garmin_client_secret="test_client_secret",
        stormglass_api_key=None,
        database_url=None,
        environment="test",
    )


@pytest.fixture
def services(settings: Settings, garmin_client: MagicMock) -> Services:
    services = build_services(settings, spots=SpotCatalogue([SUNSET_POINT, MALIBU]))
    clock = FakeClock()
    services.garmin = garmin_client
    services.auth = WearableAuthManager(
        garmin_client, services.persistence, services.pending_store, clock=clock
    )
    services.ingestor = ActivityIngestor(
        services.auth, garmin_client, services.persistence, services.spots, clock=clock
    )
    return services


@pytest.fixture
def app(services: Services) -> FastAPI:
    app = create_app(services=services)

    @app.middleware("http")
    async def fake_auth(request: Request, call_next):
        user_id = request.headers.get(USER_HEADER)
        if user_id:
            request.state.auth = AuthContext(user_id=user_id)
        return await call_next(request)

    return app


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def use_gateway(services: Services, *providers) -> None:
    services.gateway = ProviderGateway(list(providers))
