"""Wearable device clients for SwellSync.

Available clients:
    GarminClient — Garmin Connect OAuth2 (PKCE) and Wellness API
"""

from src.wearables.adapters.garmin import GarminClient, generate_pkce, generate_state

__all__ = [
    "GarminClient",
    "generate_pkce",
    "generate_state",
]
