"""Application configuration loaded from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "SwellSync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Database ---
    database_url: str | None = None  # asyncpg DSN; unset = in-memory persistence

    # --- Garmin ---
    garmin_client_id: str | None = None
    garmin_client_secret: str | None = None  # server-side only
    garmin_redirect_uri: str = "http://localhost:8000/api/v1/auth/garmin/callback"

    # --- Conditions providers ---
    stormglass_api_key: str | None = None  # unset = Open-Meteo only

    # --- Spots ---
    spots_path: Path | None = None  # JSON list of {id, name, lat, lng}

    # --- Outbound HTTP ---
    http_timeout_seconds: float = 15.0

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:5173"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
