"""Spot catalogue, current conditions, forecast, model comparison and tides.

All condition endpoints go through the ProviderGateway, so a primary
provider outage is served transparently from the free fallback.  Only when
every provider fails does the client see a 502.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import AppServices, Spot
from src.models.conditions import (
    CompareResponse,
    ConditionsResponse,
    ForecastResponse,
    SpotRead,
    TidesResponse,
)
from src.surf.conditions import build_snapshots, compare_models
from src.surf.gateway import AllSourcesFailed, ConditionsReport
from src.surf.providers.base import MAX_FORECAST_DAYS, ForecastWindow
from src.services.spots import Location

router = APIRouter(tags=["conditions"])
logger = logging.getLogger("swellsync.conditions")

_COMPARE_DAYS = 3
_TIDE_HOURS = 24


async def _fetch(services: AppServices, spot: Location, window: ForecastWindow) -> ConditionsReport:
    try:
        return await services.gateway.fetch_conditions(spot, window)
    except AllSourcesFailed as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


# ---------- Spots ----------

@router.get("/spots", response_model=list[SpotRead])
async def list_spots(services: AppServices) -> Any:
    return [loc.to_dict() for loc in services.spots]


@router.get("/spots/{spot_id}", response_model=SpotRead)
async def read_spot(spot: Spot) -> Any:
    return spot.to_dict()


# ---------- Conditions ----------

@router.get("/conditions/{spot_id}", response_model=ConditionsResponse)
async def current_conditions(spot: Spot, services: AppServices) -> Any:
    report = await _fetch(services, spot, ForecastWindow.starting_now(1))
    snapshots = build_snapshots(report.readings, services.rating)
    return {
        "spot": spot.to_dict(),
        "source": report.source,
        "fallback_used": report.fallback_used,
        "current": snapshots[0].to_dict() if snapshots else None,
    }


@router.get("/forecast/{spot_id}", response_model=ForecastResponse)
async def forecast(
    spot: Spot,
    services: AppServices,
    days: int = Query(default=7, ge=1, le=MAX_FORECAST_DAYS),
) -> Any:
    window = ForecastWindow.days_from_now(days)
    report = await _fetch(services, spot, window)
    return {
        "spot": spot.to_dict(),
        "source": report.source,
        "fallback_used": report.fallback_used,
        "days": window.days,
        "hours": [s.to_dict() for s in build_snapshots(report.readings, services.rating)],
    }


@router.get("/compare/{spot_id}", response_model=CompareResponse)
async def compare_sources(spot: Spot, services: AppServices) -> Any:
    report = await _fetch(services, spot, ForecastWindow.days_from_now(_COMPARE_DAYS))
    rows = compare_models(report.readings, services.agreement)
    models = list(dict.fromkeys(r.model for r in report.readings if r.quantity == "wave_height"))
    overall = rows[0].agreement if rows else services.agreement.score([])
    return {
        "spot": spot.to_dict(),
        "source": report.source,
        "models": models,
        "agreement": overall.to_dict(),
        "hours": [r.to_dict() for r in rows],
    }


# ---------- Tides ----------

@router.get("/tides/{spot_id}", response_model=TidesResponse)
async def tides(spot: Spot, services: AppServices) -> Any:
    try:
        report = await services.gateway.fetch_tides(spot, ForecastWindow.starting_now(_TIDE_HOURS))
    except AllSourcesFailed as exc:
        raise HTTPException(status_code=502, detail=f"Tide data unavailable: {exc.primary_error}") from exc

    if report is None:
        return {
            "spot": spot.to_dict(),
            "source": "none",
            "message": "Tide data requires a StormGlass API key",
        }
    return {
        "spot": spot.to_dict(),
        "source": report.source,
        "extremes": [e.to_dict() for e in report.extremes],
    }
