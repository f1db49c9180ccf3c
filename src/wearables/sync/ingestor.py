"""Activity ingestor — turn Garmin activities into surf session drafts.

Two entry points share the same per-activity pipeline:

    sync(user_id)            Pull the trailing 30 days for one user.
    process_webhook(payload) Handle a Garmin push; never raises.

Per activity, in order:
1. Discard if the activity type is not a tracked sport (not counted).
2. Skip if a session already references the external activity id.
3. Record a diagnostic if the activity has no GPS start coordinates.
4. Record a diagnostic if no known spot lies within the match radius.
5. Build a SessionDraft (UTC date/time, rounded minutes, default notes).
6. Persist it; a unique-key conflict on insert counts as skipped.

Steps 3 and 4 are non-fatal: the batch continues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable

import httpx

from src.services.spots import Location, SpotCatalogue
from src.surf.config_loader import IngestionConfig, get_surf_config
from src.surf.units import round_half_up
from src.wearables.adapters.garmin import GarminClient
from src.wearables.auth import WearableAuthManager
from src.wearables.base import (
    ActivityFetchFailed,
    ConflictError,
    ExternalActivity,
    GarminAPIError,
    Persistence,
    SessionDraft,
)
from src.wearables.geo import find_nearest_location
from src.wearables.pending import Clock, utc_now
from src.wearables.sync.dedup import InMemoryDedupCache, activity_key

logger = logging.getLogger("swellsync.wearables.ingest")


@dataclass
class SyncSummary:
    """Outcome of one sync run or webhook batch.

    Attributes:
        synced:    SessionDrafts persisted.
        skipped:   Activities already imported.
        errors:    Diagnostics for activities that could not be imported.
        discarded: Activities of an untracked type.
        sessions:  The drafts that were persisted.
    """

    synced: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    discarded: int = 0
    sessions: list[SessionDraft] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"synced": self.synced, "skipped": self.skipped, "errors": list(self.errors)}


@dataclass
class WebhookSummary(SyncSummary):
    """SyncSummary plus records whose Garmin user is not connected here."""

    unknown_users: int = 0


def build_session_draft(
    user_id: str,
    activity: ExternalActivity,
    location: Location,
    config: IngestionConfig,
) -> SessionDraft:
    """Derive a SessionDraft from a matched activity.

    Pure function.  ``activity.start_time`` must be set.
    """
    start = activity.start_time
    duration = round_half_up((activity.duration_seconds or 0) / 60)
    return SessionDraft(
        user_id=user_id,
        spot_id=location.id,
        spot_name=location.name,
        date=start.date(),
        start_time=start.strftime("%H:%M"),
        duration_minutes=duration or config.default_duration_minutes,
        external_activity_id=activity.activity_id,
        notes=activity.name or config.default_notes,
    )


class ActivityIngestor:
    """Filter, deduplicate, geo-match and persist Garmin activities."""

    def __init__(
        self,
        auth: WearableAuthManager,
        client: GarminClient,
        persistence: Persistence,
        spots: SpotCatalogue,
        config: IngestionConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._auth = auth
        self._client = client
        self._persistence = persistence
        self._spots = spots
        self._config = config or get_surf_config().ingestion
        self._clock = clock
        self._tracked = {t.upper() for t in self._config.tracked_activity_types}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def sync(self, user_id: str) -> SyncSummary:
        """Import the user's activities from the trailing sync window.

        Raises:
            NotConnected:        If the user has no Garmin credential.
            RefreshFailed:       If an expired token could not be refreshed.
            ActivityFetchFailed: If Garmin rejected the activity listing.
        """
        credential = await self._auth.get_credential(user_id)
        access_token = await self._auth.ensure_fresh_token(credential)

        end = self._clock()
        start = end - timedelta(days=self._config.sync_window_days)
        try:
            raw_activities = await self._client.fetch_activities(access_token, start, end)
        except GarminAPIError as exc:
            raise ActivityFetchFailed(exc.status, exc.body) from exc
        except httpx.HTTPError as exc:
            raise ActivityFetchFailed(None, f"{type(exc).__name__}: {exc}") from exc

        summary = await self.ingest(user_id, raw_activities)
        logger.info(
            "Garmin sync for user %s: %d synced, %d skipped, %d errors",
            user_id, summary.synced, summary.skipped, len(summary.errors),
        )
        return summary

    async def process_webhook(self, payload: Any) -> WebhookSummary:
        """Ingest a Garmin activity push.

        Each record names its Garmin ``userId``; records for users not
        connected here are ignored.  A failing record is logged, noted in
        ``errors`` and does not stop the records after it.
        """
        summary = WebhookSummary()
        records = payload.get("activities") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            logger.info("Garmin webhook without an activities list ignored")
            return summary

        cache = InMemoryDedupCache()
        for record in records:
            if not isinstance(record, dict) or not record.get("userId"):
                summary.errors.append("Webhook record without userId ignored")
                continue
            external_id = str(record["userId"])
            try:
                user_id = await self._persistence.find_user_by_external_account_id(external_id)
                if user_id is None:
                    summary.unknown_users += 1
                    continue
                await self.ingest(user_id, [record], cache=cache, summary=summary)
            except Exception:
                logger.exception("Garmin webhook record for %s failed", external_id)
                summary.errors.append(f"Webhook record for Garmin user {external_id} failed")

        logger.info(
            "Garmin webhook: %d synced, %d skipped, %d errors, %d unknown users",
            summary.synced, summary.skipped, len(summary.errors), summary.unknown_users,
        )
        return summary

    # ------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------

    async def ingest(
        self,
        user_id: str,
        raw_activities: Iterable[Any],
        cache: InMemoryDedupCache | None = None,
        summary: SyncSummary | None = None,
    ) -> SyncSummary:
        """Run the per-activity pipeline over raw Garmin records for one user."""
        cache = cache if cache is not None else InMemoryDedupCache()
        summary = summary if summary is not None else SyncSummary()

        for raw in raw_activities:
            try:
                activity = ExternalActivity.from_garmin(raw)
            except (ValueError, AttributeError):
                summary.errors.append("Malformed activity record skipped")
                continue
            try:
                await self._ingest_one(user_id, activity, cache, summary)
            except Exception:
                logger.exception("Ingesting activity %s failed", activity.activity_id)
                summary.errors.append(f"Activity {activity.activity_id}: ingestion failed")
        return summary

    def is_tracked(self, activity_type: str | None) -> bool:
        return activity_type is not None and activity_type.upper() in self._tracked

    async def _ingest_one(
        self,
        user_id: str,
        activity: ExternalActivity,
        cache: InMemoryDedupCache,
        summary: SyncSummary,
    ) -> None:
        if not self.is_tracked(activity.activity_type):
            summary.discarded += 1
            return

        key = activity_key(GarminClient.SOURCE_ID, activity.activity_id)
        if cache.is_seen(key) or await self._persistence.find_session_by_external_activity_id(
            activity.activity_id
        ):
            logger.debug("Activity %s already imported", activity.activity_id)
            summary.skipped += 1
            return
        cache.mark_seen(key)

        if not activity.has_location:
            summary.errors.append(f"Activity {activity.activity_id}: no GPS start coordinates")
            return
        if activity.start_time is None:
            summary.errors.append(f"Activity {activity.activity_id}: no start time")
            return

        match = find_nearest_location(
            activity.start_lat,
            activity.start_lng,
            self._spots,
            self._config.match_radius_km,
        )
        if match is None:
            summary.errors.append(
                f"Activity {activity.activity_id}: no known spot within "
                f"{self._config.match_radius_km:g} km"
            )
            return

        draft = build_session_draft(user_id, activity, match.location, self._config)
        try:
            draft.id = await self._persistence.create_session_draft(draft)
        except ConflictError:
            logger.debug("Activity %s inserted concurrently", activity.activity_id)
            summary.skipped += 1
            return

        summary.synced += 1
        summary.sessions.append(draft)
        logger.debug(
            "Imported activity %s at %s (%.1f km)",
            activity.activity_id, match.location.id, match.distance_km,
        )
