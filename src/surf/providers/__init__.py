"""Ocean/weather condition providers for SwellSync.

Each provider implements the ConditionsProvider ABC and handles:
- Fetching hourly marine and weather data for a spot
- Normalizing provider-specific JSON into canonical SI Readings
- Reporting upstream problems as ProviderFailure values, never raising

Available providers:
    StormGlassProvider — StormGlass v2 (paid, multi-model, tides)
    OpenMeteoProvider  — Open-Meteo marine + forecast APIs (free, single model)
"""

from __future__ import annotations

import httpx

from src.surf.providers.base import ConditionsProvider
from src.surf.providers.open_meteo import OpenMeteoProvider
from src.surf.providers.stormglass import StormGlassProvider

__all__ = [
    "ConditionsProvider",
    "OpenMeteoProvider",
    "StormGlassProvider",
    "build_provider_chain",
]


def build_provider_chain(
    stormglass_api_key: str | None,
    http_client: httpx.AsyncClient | None = None,
) -> list[ConditionsProvider]:
    """Return providers in fallback order.

    StormGlass leads when an API key is configured; Open-Meteo always closes
    the chain.

    Args:
        stormglass_api_key: StormGlass key, or None/empty to skip the paid tier.
        http_client:        Optional shared httpx client.

    Returns:
        Ordered list of provider strategies.
    """
    chain: list[ConditionsProvider] = []
    if stormglass_api_key:
        chain.append(StormGlassProvider(stormglass_api_key, http_client=http_client))
    chain.append(OpenMeteoProvider(http_client=http_client))
    return chain
