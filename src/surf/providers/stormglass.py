"""StormGlass v2 provider (paid, multi-model).

Environment variables:
    STORMGLASS_API_KEY — API key sent in the Authorization header

API base: https://api.stormglass.io/v2

Endpoints used:
    /weather/point        — Hourly marine + weather parameters, one value per model
    /tide/extremes/point  — High/low tide times and heights

Each hour in a /weather/point response carries one value per requested
model, e.g. ``{"waveHeight": {"sg": 1.2, "noaa": 1.1}}``.  Every model value
becomes its own Reading so the agreement scorer can compare them.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from src.services.http import Sleeper
from src.services.spots import Location
from src.surf.config_loader import ProvidersConfig, RetryConfig, get_surf_config
from src.surf.providers.base import (
    ConditionsProvider,
    ForecastWindow,
    ProviderError,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    Reading,
    TideExtreme,
)

logger = logging.getLogger("swellsync.surf.providers.stormglass")

_STORMGLASS_API_BASE = "https://api.stormglass.io/v2"

# StormGlass parameter name → canonical quantity
_PARAM_MAP: dict[str, str] = {
    "waveHeight": "wave_height",
    "wavePeriod": "wave_period",
    "waveDirection": "wave_direction",
    "swellHeight": "swell_height",
    "swellPeriod": "swell_period",
    "swellDirection": "swell_direction",
    "windSpeed": "wind_speed",
    "windDirection": "wind_direction",
    "gust": "gust",
    "airTemperature": "air_temperature",
    "waterTemperature": "water_temperature",
}


class StormGlassProvider(ConditionsProvider):
    """Primary provider: StormGlass point forecasts from several models."""

    SOURCE_ID = "stormglass"
    SUPPORTS_TIDES = True

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
        providers_config: ProvidersConfig | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """Initialize the StormGlass provider.

        Args:
            api_key:          StormGlass API key.
            http_client:      Optional pre-configured httpx client (for testing).
            providers_config: Parameter/model lists (from surf config if None).
            retry_config:     429 backoff settings (from surf config if None).
            sleep:            Awaitable sleep used between 429 retries.
        """
        super().__init__(http_client=http_client, retry_config=retry_config, sleep=sleep)
        self._api_key = api_key
        self._providers = providers_config or get_surf_config().providers

    @property
    def models(self) -> list[str]:
        """Requested models in preference order."""
        return list(self._providers.stormglass_sources)

    async def fetch(self, location: Location, window: ForecastWindow) -> ProviderResult:
        params = {
            "lat": location.lat,
            "lng": location.lng,
            "params": ",".join(self._providers.stormglass_params or _PARAM_MAP),
            "source": ",".join(self._providers.stormglass_sources),
            "start": window.start.isoformat(),
            "end": window.end.isoformat(),
        }
        try:
            data = await self._get_json(
                f"{_STORMGLASS_API_BASE}/weather/point", params, self._headers()
            )
        except ProviderError as exc:
            return exc.failure
        except httpx.HTTPError as exc:
            return ProviderFailure(self.SOURCE_ID, f"{type(exc).__name__}: {exc}")

        readings = self.parse_hours(data.get("hours") or [], window)
        logger.info(
            "StormGlass: %d readings for %s from %s", len(readings), location.id, window.start
        )
        return ProviderSuccess(self.SOURCE_ID, readings)

    async def fetch_tides(
        self, location: Location, window: ForecastWindow
    ) -> list[TideExtreme] | ProviderFailure:
        params = {
            "lat": location.lat,
            "lng": location.lng,
            "start": window.start.isoformat(),
            "end": window.end.isoformat(),
        }
        try:
            data = await self._get_json(
                f"{_STORMGLASS_API_BASE}/tide/extremes/point", params, self._headers()
            )
        except ProviderError as exc:
            return exc.failure
        except httpx.HTTPError as exc:
            return ProviderFailure(self.SOURCE_ID, f"{type(exc).__name__}: {exc}")

        extremes: list[TideExtreme] = []
        for row in data.get("data") or []:
            if not isinstance(row, dict):
                continue
            time = self._parse_time(row.get("time"))
            height = self._safe_float(row.get("height"))
            if time is None or height is None:
                continue
            extremes.append(TideExtreme(time=time, height_m=height, type=str(row.get("type", ""))))
        return extremes

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def parse_hours(self, hours: list[dict], window: ForecastWindow) -> list[Reading]:
        """Flatten StormGlass hourly model values into Readings.

        Pure function: unknown parameters, null values, malformed entries and
        hours outside the window are dropped.
        """
        readings: list[Reading] = []
        if not isinstance(hours, list):
            return readings
        for hour in hours:
            if not isinstance(hour, dict):
                continue
            time = self._parse_time(hour.get("time"))
            if time is None or not window.contains(time):
                continue
            for param, quantity in _PARAM_MAP.items():
                per_model = hour.get(param)
                if not isinstance(per_model, dict):
                    continue
                for model, raw_value in per_model.items():
                    value = self._safe_float(raw_value)
                    if value is None:
                        continue
                    readings.append(
                        Reading(
                            quantity=quantity,
                            value=value,
                            time=time,
                            model=model,
                            provider=self.SOURCE_ID,
                        )
                    )
        return readings

    def _headers(self) -> dict[str, str]:
        return {"Authorization": self._api_key}
