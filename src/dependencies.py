"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, Request

from src.config import Settings, get_settings
from src.services.memory import InMemoryPersistence
from src.services.spots import Location, SpotCatalogue, load_spots
from src.surf.agreement import AgreementScorer
from src.surf.config_loader import get_surf_config
from src.surf.gateway import ProviderGateway
from src.surf.providers import build_provider_chain
from src.surf.rating import RatingEngine
from src.wearables.adapters.garmin import GarminClient
from src.wearables.auth import WearableAuthManager
from src.wearables.base import Persistence
from src.wearables.pending import InMemoryPendingStore, PendingSweeper
from src.wearables.sync.ingestor import ActivityIngestor


@dataclass(frozen=True)
class AuthContext:
    """Authenticated user context set by the upstream auth layer."""

    user_id: str
    email: str | None = None
    session_id: str | None = None


@dataclass
class Services:
    """Long-lived collaborators built once per app and shared by all requests."""

    settings: Settings
    spots: SpotCatalogue
    persistence: Persistence
    pending_store: InMemoryPendingStore
    sweeper: PendingSweeper
    garmin: GarminClient
    auth: WearableAuthManager
    ingestor: ActivityIngestor
    gateway: ProviderGateway
    rating: RatingEngine
    agreement: AgreementScorer


def build_services(
    settings: Settings,
    persistence: Persistence | None = None,
    http_client: httpx.AsyncClient | None = None,
    spots: SpotCatalogue | None = None,
) -> Services:
    """Wire every collaborator from settings.

    Args:
        settings:    Environment settings.
        persistence: Record store (in-memory when None).
        http_client: Shared outbound client (one per request when None).
        spots:       Spot catalogue (loaded from ``settings.spots_path`` when None).
    """
    config = get_surf_config()
    persistence = persistence or InMemoryPersistence()
    spots = spots if spots is not None else load_spots(settings.spots_path)
    pending_store = InMemoryPendingStore()
    garmin = GarminClient(
        settings.garmin_client_id,
        settings.garmin_client_secret,
        settings.garmin_redirect_uri,
        http_client=http_client,
    )
    auth = WearableAuthManager(garmin, persistence, pending_store)
    return Services(
        settings=settings,
        spots=spots,
        persistence=persistence,
        pending_store=pending_store,
        sweeper=PendingSweeper(
            pending_store,
            ttl_seconds=config.oauth.pending_ttl_seconds,
            interval_seconds=config.oauth.sweep_interval_seconds,
        ),
        garmin=garmin,
        auth=auth,
        ingestor=ActivityIngestor(auth, garmin, persistence, spots),
        gateway=ProviderGateway(
            build_provider_chain(settings.stormglass_api_key, http_client=http_client)
        ),
        rating=RatingEngine(),
        agreement=AgreementScorer(),
    )


async def get_current_user(request: Request) -> AuthContext:
    """Extract the authenticated user from the request state.

    The auth layer in front of the API sets ``request.state.auth`` before
    routes run.
    """
    auth: AuthContext | None = getattr(request.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return auth


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_spot(spot_id: str, services: Annotated[Services, Depends(get_services)]) -> Location:
    """Resolve a ``spot_id`` path parameter or 404."""
    location = services.spots.get(spot_id)
    if location is None:
        raise HTTPException(status_code=404, detail="Spot not found")
    return location


# Annotated shortcuts for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
AppSettings = Annotated[Settings, Depends(get_settings)]
AppServices = Annotated[Services, Depends(get_services)]
Spot = Annotated[Location, Depends(get_spot)]
