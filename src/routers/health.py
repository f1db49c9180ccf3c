"""Public status endpoint for load balancers and uptime checks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppServices

router = APIRouter(tags=["system"])
logger = logging.getLogger("swellsync.health")


@router.get("/health")
async def health_check(services: AppServices) -> dict:
    """Report process liveness plus the state of each collaborator.

    ``status`` degrades when the record store cannot be reached; conditions
    and the Garmin flow are reported but never fail the probe.
    """
    try:
        store_ok = await services.persistence.ping()
    except Exception as exc:
        logger.warning("Record store unreachable: %s", exc)
        store_ok = False

    return {
        "status": "healthy" if store_ok else "degraded",
        "version": services.settings.app_version,
        "environment": services.settings.environment,
        "database": "connected" if store_ok else "unreachable",
        "spots": len(services.spots),
        "providers": [p.SOURCE_ID for p in services.gateway.providers],
        "garmin_configured": services.auth.is_configured,
        "pending_authorizations": len(services.pending_store),
        "sweeper_running": services.sweeper.running,
        "checked_at": datetime.now(timezone.utc).isoformat(),
    }
