"""Open-Meteo provider (free fallback, single model).

No credentials required.

Endpoints used:
    https://marine-api.open-meteo.com/v1/marine  — Hourly wave + swell
    https://api.open-meteo.com/v1/forecast       — Hourly wind + air temperature

Both responses use column arrays (``hourly.time[i]`` pairs with
``hourly.wave_height[i]``).  Wind is requested in m/s so every Reading is SI.
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
)

logger = logging.getLogger("swellsync.surf.providers.open_meteo")

_MARINE_URL = "https://marine-api.open-meteo.com/v1/marine"
_WEATHER_URL = "https://api.open-meteo.com/v1/forecast"

MODEL_ID = "open-meteo"

# Open-Meteo hourly variable → canonical quantity
_VARIABLE_MAP: dict[str, str] = {
    "wave_height": "wave_height",
    "wave_direction": "wave_direction",
    "wave_period": "wave_period",
    "swell_wave_height": "swell_height",
    "swell_wave_direction": "swell_direction",
    "swell_wave_period": "swell_period",
    "temperature_2m": "air_temperature",
    "wind_speed_10m": "wind_speed",
    "wind_direction_10m": "wind_direction",
    "wind_gusts_10m": "gust",
}


class OpenMeteoProvider(ConditionsProvider):
    """Fallback provider backed by the free Open-Meteo APIs."""

    SOURCE_ID = "open-meteo"

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        providers_config: ProvidersConfig | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        super().__init__(http_client=http_client, retry_config=retry_config, sleep=sleep)
        self._providers = providers_config or get_surf_config().providers

    async def fetch(self, location: Location, window: ForecastWindow) -> ProviderResult:
        common = {
            "latitude": location.lat,
            "longitude": location.lng,
            "forecast_days": window.days,
            "timezone": "UTC",
        }
        marine_vars = self._providers.open_meteo_marine_hourly or [
            v for v in _VARIABLE_MAP if "wave" in v
        ]
        weather_vars = self._providers.open_meteo_weather_hourly or [
            v for v in _VARIABLE_MAP if "wave" not in v
        ]

        try:
            marine, weather = await asyncio.gather(
                self._get_json(_MARINE_URL, {**common, "hourly": ",".join(marine_vars)}),
                self._get_json(
                    _WEATHER_URL,
                    {**common, "hourly": ",".join(weather_vars), "wind_speed_unit": "ms"},
                ),
            )
        except ProviderError as exc:
            return exc.failure
        except httpx.HTTPError as exc:
            return ProviderFailure(self.SOURCE_ID, f"{type(exc).__name__}: {exc}")

        readings = self.parse_hourly(marine.get("hourly") or {}, window)
        readings += self.parse_hourly(weather.get("hourly") or {}, window)
        logger.info(
            "Open-Meteo: %d readings for %s from %s", len(readings), location.id, window.start
        )
        return ProviderSuccess(self.SOURCE_ID, readings)

    def parse_hourly(self, hourly: dict, window: ForecastWindow) -> list[Reading]:
        """Convert an Open-Meteo ``hourly`` column block into Readings.

        Pure function: unknown variables, nulls and times outside the window
        are dropped; columns shorter than ``time`` are tolerated.
        """
        if not isinstance(hourly, dict):
            return []
        times = [self._parse_time(t) for t in hourly.get("time") or []]
        readings: list[Reading] = []
        for variable, quantity in _VARIABLE_MAP.items():
            column = hourly.get(variable)
            if not isinstance(column, list):
                continue
            for time, raw_value in zip(times, column):
                if time is None or not window.contains(time):
                    continue
                value = self._safe_float(raw_value)
                if value is None:
                    continue
                readings.append(
                    Reading(
                        quantity=quantity,
                        value=value,
                        time=time,
                        model=MODEL_ID,
                        provider=self.SOURCE_ID,
                    )
                )
        return readings
