"""Garmin push webhook.

Garmin posts batches of activity summaries here.  The handler acknowledges
immediately and processes the batch as a background task after the
response is sent, so slow or failing ingestion never delays or fails the
acknowledgment and never triggers Garmin retries.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Request

from src.dependencies import AppServices

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger("swellsync.webhooks")


@router.get("/garmin")
async def garmin_webhook_handshake() -> dict:
    """Endpoint verification used by Garmin when registering the webhook."""
    return {"status": "ok"}


@router.post("/garmin")
async def garmin_webhook(
    request: Request, background: BackgroundTasks, services: AppServices
) -> dict:
    """Acknowledge a Garmin push and queue it for ingestion."""
    body = await request.body()
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        logger.warning("Garmin webhook body is not JSON (%d bytes); ignored", len(body))
        return {"status": "ok"}

    background.add_task(services.ingestor.process_webhook, payload)
    logger.info("Garmin webhook received; processing queued")
    return {"status": "ok"}
