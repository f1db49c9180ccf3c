"""Domain records, error taxonomy and collaborator interfaces for wearable import.

These types are the single source of truth shared by the Garmin client, the
auth manager, the activity ingestor, the persistence adapters and the API
layer.  All timestamps are timezone-aware UTC.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Protocol

logger = logging.getLogger("swellsync.wearables")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class WearableError(Exception):
    """Base class for wearable integration errors."""


class NotConfigured(WearableError):
    """Garmin client credentials are missing; the integration is unavailable."""


class NotConnected(WearableError):
    """The user has no stored wearable credential."""


class InvalidState(WearableError):
    """OAuth ``state`` is unknown or already consumed."""


class ExpiredState(InvalidState):
    """OAuth ``state`` was issued but outlived its time-to-live."""


class _UpstreamError(WearableError):
    def __init__(self, status: int | None, body: str) -> None:
        super().__init__(f"upstream returned {status}: {body}")
        self.status = status
        self.body = body


class ExchangeFailed(_UpstreamError):
    """The token endpoint rejected an authorization-code exchange."""


class RefreshFailed(_UpstreamError):
    """The token endpoint rejected a refresh-token exchange."""


class ActivityFetchFailed(_UpstreamError):
    """The activity-listing endpoint rejected a request."""


class GarminAPIError(Exception):
    """Non-success response from a Garmin endpoint.

    Attributes:
        status: HTTP status code.
        body:   Response body text.
    """

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Garmin API error {status}: {body}")
        self.status = status
        self.body = body


class ConflictError(Exception):
    """A session with the same external activity id already exists."""


# ---------------------------------------------------------------------------
# Credentials and pending authorizations
# ---------------------------------------------------------------------------


@dataclass
class WearableCredential:
    """Stored OAuth credential for one user's Garmin connection.

    Attributes:
        user_id:             Internal user identifier that owns the credential.
        access_token:        Bearer token for API calls.
        refresh_token:       Long-lived token used to mint a new access_token.
        expires_at:          UTC datetime when access_token expires.
        external_account_id: Garmin user id, used to route webhook pushes.
    """

    user_id: str
    access_token: str
    refresh_token: str | None
    expires_at: datetime
    external_account_id: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def __repr__(self) -> str:
        return (
            f"WearableCredential(user_id={self.user_id!r}, "
            f"expires_at={self.expires_at.isoformat()}, "
            f"external_account_id={self.external_account_id!r})"
        )


@dataclass(frozen=True)
class PendingAuthorization:
    """An authorization flow awaiting its callback.

    Keyed by ``state``; consumed exactly once.  ``verifier`` is the PKCE
    secret and must never be logged.
    """

    state: str
    verifier: str
    user_id: str
    created_at: datetime

    def is_expired(self, now: datetime, ttl_seconds: int) -> bool:
        return now - self.created_at > timedelta(seconds=ttl_seconds)


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExternalActivity:
    """One activity as reported by Garmin, before filtering or matching."""

    activity_id: str
    start_time: datetime | None
    duration_seconds: float | None
    activity_type: str | None
    name: str | None = None
    start_lat: float | None = None
    start_lng: float | None = None

    @property
    def has_location(self) -> bool:
        return self.start_lat is not None and self.start_lng is not None

    @classmethod
    def from_garmin(cls, raw: dict) -> "ExternalActivity":
        """Parse a Garmin activity summary.

        Tolerates missing fields: anything absent or unparsable becomes None.

        Raises:
            ValueError: If the record has no activity identifier at all.
        """
        activity_id = raw.get("activityId", raw.get("summaryId"))
        if activity_id in (None, ""):
            raise ValueError("activity record has no activityId")

        start_time = _epoch_to_utc(raw.get("startTimeInSeconds"))
        activity_type = raw.get("activityType")
        return cls(
            activity_id=str(activity_id),
            start_time=start_time,
            duration_seconds=_optional_float(raw.get("durationInSeconds")),
            activity_type=str(activity_type) if activity_type is not None else None,
            name=raw.get("activityName") or None,
            start_lat=_optional_float(raw.get("startingLatitudeInDegree")),
            start_lng=_optional_float(raw.get("startingLongitudeInDegree")),
        )


@dataclass
class SessionDraft:
    """A surf session derived from an external activity, ready to persist.

    ``external_activity_id`` is the dedup key.  Wave count, board, rating
    and structured conditions are left for the user to fill in.
    """

    user_id: str
    spot_id: str
    spot_name: str
    date: date
    start_time: str  # "HH:MM" UTC
    duration_minutes: int
    external_activity_id: str
    notes: str
    wave_count: int | None = None
    board: str | None = None
    rating: int | None = None
    conditions: dict | None = None
    id: str | None = field(default=None, compare=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "spot_id": self.spot_id,
            "spot_name": self.spot_name,
            "date": self.date.isoformat(),
            "start_time": self.start_time,
            "duration": self.duration_minutes,
            "wave_count": self.wave_count,
            "board": self.board,
            "notes": self.notes,
            "rating": self.rating,
            "conditions": self.conditions,
            "garmin_activity_id": self.external_activity_id,
        }


def _optional_float(value: object) -> float | None:
    """Coerce to a finite float; None for missing, unparsable, NaN or infinite."""
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _epoch_to_utc(value: object) -> datetime | None:
    seconds = _optional_float(value)
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.warning("Activity start time out of range: %r", value)
        return None


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class Persistence(Protocol):
    """Record store for credentials and session drafts.

    Implementations must enforce uniqueness of ``external_activity_id`` and
    raise ConflictError on a duplicate insert.
    """

    async def create_session_draft(self, draft: SessionDraft) -> str: ...

    async def find_session_by_external_activity_id(
        self, external_activity_id: str
    ) -> SessionDraft | None: ...

    async def get_credential(self, user_id: str) -> WearableCredential | None: ...

    async def upsert_credential(self, credential: WearableCredential) -> None: ...

    async def delete_credential(self, user_id: str) -> None: ...

    async def find_user_by_external_account_id(self, external_account_id: str) -> str | None: ...

    async def ping(self) -> bool: ...
