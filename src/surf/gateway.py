"""Provider gateway — ordered fallback across condition providers.

The gateway holds an ordered list of ``ConditionsProvider`` strategies
(primary first, free fallback last) and evaluates them until one returns a
``ProviderSuccess``.  Each ``ProviderFailure`` along the way is kept on the
report as context.  Only when every strategy fails does the gateway raise
``AllSourcesFailed``, carrying the primary provider's error detail.

Source tags on the report:
    "stormglass"           — primary served the request
    "open-meteo"           — fallback served it, no primary configured
    "open-meteo-fallback"  — fallback served it after the primary failed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.services.spots import Location
from src.surf.providers.base import (
    ConditionsProvider,
    ForecastWindow,
    ProviderFailure,
    Reading,
    TideExtreme,
)

logger = logging.getLogger("swellsync.surf.gateway")


class AllSourcesFailed(Exception):
    """Every provider in the chain failed.

    Attributes:
        primary_error: Error detail from the first (primary) provider.
        failures:      Every failure, in chain order.
    """

    def __init__(self, primary_error: str, failures: list[ProviderFailure]) -> None:
        super().__init__(f"All data sources failed: {primary_error}")
        self.primary_error = primary_error
        self.failures = failures


@dataclass
class ConditionsReport:
    """Readings for one location and window, tagged with the serving source."""

    location: Location
    window: ForecastWindow
    source: str
    readings: list[Reading] = field(default_factory=list)
    failures: list[ProviderFailure] = field(default_factory=list)

    @property
    def fallback_used(self) -> bool:
        return bool(self.failures)


@dataclass
class TideReport:
    source: str
    extremes: list[TideExtreme] = field(default_factory=list)


class ProviderGateway:
    """Evaluate provider strategies in order until one succeeds."""

    def __init__(self, providers: list[ConditionsProvider]) -> None:
        if not providers:
            raise ValueError("ProviderGateway needs at least one provider")
        self._providers = list(providers)

    @property
    def providers(self) -> list[ConditionsProvider]:
        return list(self._providers)

    @property
    def primary(self) -> ConditionsProvider:
        return self._providers[0]

    async def fetch_conditions(
        self, location: Location, window: ForecastWindow
    ) -> ConditionsReport:
        """Fetch readings from the first provider that succeeds.

        Raises:
            AllSourcesFailed: If every provider returned a failure.
        """
        failures: list[ProviderFailure] = []
        for provider in self._providers:
            try:
                result = await provider.fetch(location, window)
            except Exception as exc:
                logger.exception("Provider %s raised for %s", provider.SOURCE_ID, location.id)
                result = ProviderFailure(provider.SOURCE_ID, f"{type(exc).__name__}: {exc}")
            if result.ok:
                source = provider.SOURCE_ID
                if failures:
                    source = f"{source}-fallback"
                    logger.warning(
                        "Served %s from %s after %d failure(s)",
                        location.id, provider.SOURCE_ID, len(failures),
                    )
                return ConditionsReport(
                    location=location,
                    window=window,
                    source=source,
                    readings=result.readings,
                    failures=failures,
                )

            logger.warning("Provider failed for %s: %s", location.id, result)
            failures.append(result)

        logger.error("All %d providers failed for %s", len(failures), location.id)
        raise AllSourcesFailed(str(failures[0]), failures)

    async def fetch_tides(
        self, location: Location, window: ForecastWindow
    ) -> TideReport | None:
        """Fetch tide extremes from the first provider that supports tides.

        Returns:
            TideReport, or None when no configured provider serves tides.

        Raises:
            AllSourcesFailed: If the tide provider returned a failure.
        """
        for provider in self._providers:
            if not provider.SUPPORTS_TIDES:
                continue
            result = await provider.fetch_tides(location, window)
            if isinstance(result, ProviderFailure):
                logger.warning("Tide fetch failed for %s: %s", location.id, result)
                raise AllSourcesFailed(str(result), [result])
            return TideReport(source=provider.SOURCE_ID, extremes=result)
        return None
