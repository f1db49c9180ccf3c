"""SwellSync API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import get_settings
from src.dependencies import Services, build_services
from src.routers import conditions, garmin, health, webhooks
from src.services import database

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("swellsync")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks.

    Services injected via ``create_app(services=...)`` are used as-is;
    otherwise they are built from settings, with Postgres persistence when
    ``DATABASE_URL`` is set.
    """
    settings = get_settings()
    logger.info(
        "Starting SwellSync API v%s [%s]",
        settings.app_version,
        settings.environment,
    )

    http_client: httpx.AsyncClient | None = None
    pool_opened = False
    services: Services | None = getattr(app.state, "services", None)
    if services is None:
        persistence = None
        if settings.database_url:
            await database.init_pool(settings.database_url)
            await database.apply_schema()
            pool_opened = True
            persistence = database.PostgresPersistence()
        else:
            logger.warning("DATABASE_URL not set; using in-memory persistence")
        http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        services = build_services(settings, persistence=persistence, http_client=http_client)
        app.state.services = services

    services.sweeper.start()
    yield
    await services.sweeper.stop()

    if http_client is not None:
        await http_client.aclose()
    if pool_opened:
        await database.close_pool()
    logger.info("SwellSync API shut down")


# ---------- App factory ----------

def create_app(services: Services | None = None) -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="SwellSync API",
        description=(
            "Surf session logging backend — condition ratings, multi-source "
            "forecast agreement, and Garmin activity import."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # ---------- Middleware ----------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(conditions.router, prefix=v1_prefix)
    app.include_router(garmin.router, prefix=v1_prefix)
    app.include_router(webhooks.router, prefix=v1_prefix)

    return app


app = create_app()
