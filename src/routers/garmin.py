"""Garmin connect flow, connection status, disconnect and manual sync."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import AppServices, CurrentUser
from src.models.base import StatusResponse
from src.models.garmin import (
    AuthorizationStart,
    ConnectionResult,
    ConnectionStatus,
    SyncResult,
)
from src.wearables.base import (
    ActivityFetchFailed,
    ExchangeFailed,
    ExpiredState,
    InvalidState,
    NotConfigured,
    NotConnected,
    RefreshFailed,
)

router = APIRouter(tags=["garmin"])
logger = logging.getLogger("swellsync.garmin")


def _upstream_error(message: str, exc: ExchangeFailed | RefreshFailed | ActivityFetchFailed) -> HTTPException:
    return HTTPException(
        status_code=502,
        detail={"error": message, "upstream_status": exc.status, "upstream_detail": exc.body},
    )


# ---------- Connect flow ----------

@router.get("/auth/garmin", response_model=AuthorizationStart)
async def start_authorization(user: CurrentUser, services: AppServices) -> Any:
    try:
        request = services.auth.begin_authorization(user.user_id)
    except NotConfigured as exc:
        raise HTTPException(status_code=503, detail="Garmin integration unavailable") from exc
    return {"authorization_url": request.authorization_url, "state": request.state}


@router.get("/auth/garmin/callback", response_model=ConnectionResult)
async def authorization_callback(
    services: AppServices,
    code: str = Query(..., min_length=1),
    state: str = Query(..., min_length=1),
) -> Any:
    try:
        credential = await services.auth.complete_authorization(code, state)
    except NotConfigured as exc:
        raise HTTPException(status_code=503, detail="Garmin integration unavailable") from exc
    except ExpiredState as exc:
        raise HTTPException(
            status_code=400, detail="Authorization expired; please reconnect Garmin"
        ) from exc
    except InvalidState as exc:
        raise HTTPException(status_code=400, detail="Invalid or already used state") from exc
    except ExchangeFailed as exc:
        raise _upstream_error("Garmin token exchange failed", exc) from exc
    return {"connected": True, "external_account_id": credential.external_account_id}


@router.get("/garmin/status", response_model=ConnectionStatus)
async def connection_status(user: CurrentUser, services: AppServices) -> Any:
    credential = await services.persistence.get_credential(user.user_id)
    return {
        "configured": services.auth.is_configured,
        "connected": credential is not None,
        "expires_at": credential.expires_at if credential else None,
    }


@router.post("/auth/garmin/disconnect", response_model=StatusResponse)
async def disconnect(user: CurrentUser, services: AppServices) -> Any:
    removed = await services.auth.disconnect(user.user_id)
    return {"status": "disconnected" if removed else "not_connected"}


# ---------- Sync ----------

@router.post("/garmin/sync", response_model=SyncResult)
async def sync_activities(user: CurrentUser, services: AppServices) -> Any:
    try:
        summary = await services.ingestor.sync(user.user_id)
    except NotConnected as exc:
        raise HTTPException(status_code=409, detail="Garmin is not connected") from exc
    except RefreshFailed as exc:
        raise _upstream_error("Garmin token refresh failed; please reconnect", exc) from exc
    except ActivityFetchFailed as exc:
        raise _upstream_error("Garmin activity fetch failed", exc) from exc
    return summary.to_dict()
