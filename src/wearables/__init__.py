"""SwellSync wearable activity import.

Connects a user's Garmin account (OAuth2 + PKCE), keeps the access token
fresh, and turns recorded surf activities into session drafts matched to
the nearest known spot.

Subpackages:
    adapters/ — Garmin OAuth2 + Wellness API client
    sync/     — Activity ingestion (pull sync and webhook push), deduplication

Core modules:
    base    — Domain records, error taxonomy, Persistence protocol
    auth    — Authorization lifecycle and token refresh
    pending — Pending authorization store and expiry sweeper
    geo     — Haversine distance and nearest-spot matching
"""

from src.wearables.auth import WearableAuthManager
from src.wearables.base import (
    ExternalActivity,
    Persistence,
    SessionDraft,
    WearableCredential,
    WearableError,
)
from src.wearables.pending import InMemoryPendingStore, PendingSweeper

__all__ = [
    "ExternalActivity",
    "InMemoryPendingStore",
    "PendingSweeper",
    "Persistence",
    "SessionDraft",
    "WearableAuthManager",
    "WearableCredential",
    "WearableError",
]
