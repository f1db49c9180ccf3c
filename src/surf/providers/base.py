"""Base types for ocean/weather condition providers.

Each provider is a strategy that turns a Location + ForecastWindow into
either a ``ProviderSuccess`` carrying canonical Readings or a
``ProviderFailure`` describing what went wrong.  Providers never raise for
upstream problems; the gateway walks its ordered strategy list and keeps
the failures as context.

All Reading values are SI: metres, metres per second, seconds, degrees,
degrees Celsius.  Times are timezone-aware UTC.
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx

from src.services.http import Sleeper, send_with_retry
from src.services.spots import Location
from src.surf.config_loader import RetryConfig, get_surf_config

logger = logging.getLogger("swellsync.surf.providers")

# Canonical quantity names → SI unit
QUANTITY_UNITS: dict[str, str] = {
    "wave_height": "m",
    "wave_period": "s",
    "wave_direction": "deg",
    "swell_height": "m",
    "swell_period": "s",
    "swell_direction": "deg",
    "wind_speed": "m/s",
    "wind_direction": "deg",
    "gust": "m/s",
    "air_temperature": "C",
    "water_temperature": "C",
}

MAX_FORECAST_DAYS = 16


@dataclass(frozen=True)
class Reading:
    """One model's report of one quantity at one time.

    Attributes:
        quantity: Canonical quantity name (key of QUANTITY_UNITS).
        value:    Value in SI units.
        time:     UTC timestamp the value applies to.
        model:    Forecast model that produced it (e.g. 'sg', 'noaa', 'open-meteo').
        provider: Provider that served it (e.g. 'stormglass').
    """

    quantity: str
    value: float
    time: datetime
    model: str
    provider: str

    @property
    def unit(self) -> str:
        return QUANTITY_UNITS.get(self.quantity, "")


@dataclass(frozen=True)
class ForecastWindow:
    """A time range to fetch, starting on an hour boundary."""

    start: datetime
    hours: int

    @classmethod
    def starting_now(cls, hours: int, now: datetime | None = None) -> "ForecastWindow":
        current = now or datetime.now(timezone.utc)
        return cls(start=current.replace(minute=0, second=0, microsecond=0), hours=max(1, hours))

    @classmethod
    def days_from_now(cls, days: int, now: datetime | None = None) -> "ForecastWindow":
        days = max(1, min(MAX_FORECAST_DAYS, days))
        return cls.starting_now(days * 24, now)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(hours=self.hours)

    @property
    def days(self) -> int:
        """Whole days needed to cover the window (1–16)."""
        return max(1, min(MAX_FORECAST_DAYS, math.ceil(self.hours / 24)))

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@dataclass(frozen=True)
class TideExtreme:
    time: datetime
    height_m: float
    type: str  # 'high' | 'low'

    def to_dict(self) -> dict:
        return {"time": self.time.isoformat(), "height_m": self.height_m, "type": self.type}


@dataclass
class ProviderSuccess:
    provider: str
    readings: list[Reading] = field(default_factory=list)
    ok: bool = True


@dataclass
class ProviderFailure:
    """Why a provider could not serve a request.

    Attributes:
        provider: Provider slug.
        error:    Human-readable failure detail (upstream body or exception).
        status:   Upstream HTTP status, if a response was received.
    """

    provider: str
    error: str
    status: int | None = None
    ok: bool = False

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.provider} {self.status}: {self.error}"
        return f"{self.provider}: {self.error}"


ProviderResult = ProviderSuccess | ProviderFailure


class ProviderError(Exception):
    """Carries a ProviderFailure out of a provider's HTTP helper."""

    def __init__(self, failure: ProviderFailure) -> None:
        super().__init__(str(failure))
        self.failure = failure


class ConditionsProvider(ABC):
    """Abstract base class for condition/forecast providers."""

    #: Provider slug used to tag results.
    SOURCE_ID: str = "unknown"

    #: Whether ``fetch_tides`` is implemented.
    SUPPORTS_TIDES: bool = False

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """Initialize shared HTTP plumbing.

        Args:
            http_client:  Optional pre-configured httpx client (for testing).
            retry_config: 429 backoff settings (from surf config if None).
            sleep:        Awaitable sleep used between 429 retries.
        """
        self._http_client = http_client
        self._retry = retry_config or get_surf_config().retry
        self._sleep = sleep

    @abstractmethod
    async def fetch(self, location: Location, window: ForecastWindow) -> ProviderResult:
        """Fetch readings for a location and window.

        Must not raise for upstream failures; return ProviderFailure instead.
        """

    async def fetch_tides(
        self, location: Location, window: ForecastWindow
    ) -> list[TideExtreme] | ProviderFailure:
        return ProviderFailure(self.SOURCE_ID, "tide data not supported")

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_float(value: object) -> float | None:
        """Safely coerce a value to float, returning None on failure or NaN."""
        if value is None:
            return None
        try:
            result = float(value)
        except (TypeError, ValueError):
            return None
        return None if math.isnan(result) else result

    @staticmethod
    def _parse_time(value: str | None) -> datetime | None:
        """Parse an ISO-8601 timestamp as UTC; naive strings are assumed UTC."""
        if not value:
            return None
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            logger.warning("Could not parse provider timestamp: %r", value)
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    async def _get_json(
        self, url: str, params: dict, headers: dict | None = None
    ) -> dict:
        """GET a JSON document with 429 backoff.

        Raises:
            ProviderError:   On a non-success status, an undecodable body, or a
                             body that is not a JSON object.
            httpx.HTTPError: On transport failures and timeouts.
        """
        response = await send_with_retry(
            "GET",
            url,
            http_client=self._http_client,
            max_retries=self._retry.max_retries,
            base_delay_seconds=self._retry.base_delay_seconds,
            sleep=self._sleep,
            params=params,
            headers=headers or {},
        )
        if response.status_code >= 400:
            raise ProviderError(
                ProviderFailure(self.SOURCE_ID, response.text, response.status_code)
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                ProviderFailure(self.SOURCE_ID, f"invalid JSON: {exc}", response.status_code)
            ) from exc
        if not isinstance(data, dict):
            raise ProviderError(
                ProviderFailure(
                    self.SOURCE_ID, "unexpected response shape", response.status_code
                )
            )
        return data
