"""Tests for the activity ingestor: sync, webhook, dedup and geo-matching."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.services.memory import InMemoryPersistence
from src.surf.config_loader import IngestionConfig
from src.wearables.base import (
    ActivityFetchFailed,
    ExternalActivity,
    GarminAPIError,
    NotConnected,
    SessionDraft,
)
from src.wearables.sync.dedup import InMemoryDedupCache, activity_key
from src.wearables.sync.ingestor import ActivityIngestor, build_session_draft
from src.wearables.tests.conftest import (
    SUNSET_POINT,
    TEST_NOW,
    TEST_USER_ID,
    make_credential,
)


async def connect(persistence: InMemoryPersistence, expires_in_seconds: float = 3600) -> None:
    await persistence.upsert_credential(make_credential(expires_in_seconds=expires_in_seconds))


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestExternalActivity:
    def test_from_garmin(self, garmin_activities_raw: list[dict]) -> None:
        activity = ExternalActivity.from_garmin(garmin_activities_raw[0])

        assert activity.activity_id == "1001"
        assert activity.start_time == datetime(2026, 2, 23, 7, 15, tzinfo=timezone.utc)
        assert activity.duration_seconds == 3600
        assert activity.has_location

    def test_missing_gps(self, garmin_activities_raw: list[dict]) -> None:
        assert not ExternalActivity.from_garmin(garmin_activities_raw[2]).has_location

    def test_requires_identifier(self) -> None:
        with pytest.raises(ValueError):
            ExternalActivity.from_garmin({"activityType": "SURFING"})

    def test_summary_id_fallback(self) -> None:
        assert ExternalActivity.from_garmin({"summaryId": "abc"}).activity_id == "abc"

    @pytest.mark.parametrize("seconds", [1e20, -1e20, float("inf"), float("nan"), "soon"])
    def test_unusable_start_time_is_none(self, seconds: object) -> None:
        activity = ExternalActivity.from_garmin({"activityId": 9, "startTimeInSeconds": seconds})
        assert activity.start_time is None


class TestBuildSessionDraft:
    def _activity(self, seconds: float | None, name: str | None = None) -> ExternalActivity:
        return ExternalActivity(
            activity_id="9",
            start_time=datetime(2026, 2, 23, 6, 5, 59, tzinfo=timezone.utc),
            duration_seconds=seconds,
            activity_type="SURFING",
            name=name,
            start_lat=34.0,
            start_lng=-118.5,
        )

    def test_fields(self, ingestion_config: IngestionConfig) -> None:
        draft = build_session_draft(
            TEST_USER_ID, self._activity(3600, "Glassy"), SUNSET_POINT, ingestion_config
        )

        assert draft.spot_id == "sunset-point"
        assert draft.spot_name == "Sunset Point"
        assert draft.date == date(2026, 2, 23)
        assert draft.start_time == "06:05"
        assert draft.duration_minutes == 60
        assert draft.notes == "Glassy"
        assert draft.external_activity_id == "9"
        assert (draft.wave_count, draft.board, draft.rating, draft.conditions) == (
            None, None, None, None,
        )

    @pytest.mark.parametrize(
        ("seconds", "minutes"),
        [(5430, 91), (5369, 89), (30, 1), (29, 60), (0, 60), (None, 60)],
    )
    def test_duration_rounding_and_default(
        self, ingestion_config: IngestionConfig, seconds: float | None, minutes: int
    ) -> None:
        draft = build_session_draft(
            TEST_USER_ID, self._activity(seconds), SUNSET_POINT, ingestion_config
        )
        assert draft.duration_minutes == minutes

    def test_default_notes(self, ingestion_config: IngestionConfig) -> None:
        draft = build_session_draft(
            TEST_USER_ID, self._activity(60), SUNSET_POINT, ingestion_config
        )
        assert draft.notes == "Garmin sync"

    def test_to_dict_keys(self, ingestion_config: IngestionConfig) -> None:
        data = build_session_draft(
            TEST_USER_ID, self._activity(3600), SUNSET_POINT, ingestion_config
        ).to_dict()
        assert data["duration"] == 60
        assert data["garmin_activity_id"] == "9"
        assert data["date"] == "2026-02-23"


class TestDedupCache:
    def test_key_and_cache(self) -> None:
        cache = InMemoryDedupCache()
        key = activity_key("garmin", "1001")

        assert key == "garmin:1001"
        assert not cache.is_seen(key)
        cache.mark_seen(key)
        assert cache.is_seen(key)
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class TestSync:
    @pytest.mark.asyncio
    async def test_end_to_end(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
        garmin_activities_raw: list[dict],
    ) -> None:
        await connect(persistence)
        garmin_client.fetch_activities.return_value = garmin_activities_raw

        summary = await ingestor.sync(TEST_USER_ID)

        assert summary.synced == 2
        assert summary.skipped == 0
        assert summary.discarded == 1
        assert summary.errors == [
            "Activity 1003: no GPS start coordinates",
            "Activity 1004: no known spot within 10 km",
        ]
        by_id = {s.external_activity_id: s for s in persistence.sessions()}
        dawn = by_id["1001"]
        assert (dawn.spot_id, dawn.start_time, dawn.duration_minutes) == ("sunset-point", "07:15", 60)
        assert dawn.notes == "Dawn patrol"
        late = by_id["1005"]
        assert (late.spot_id, late.start_time, late.duration_minutes) == ("malibu", "15:00", 91)
        assert late.notes == "Garmin sync"

    @pytest.mark.asyncio
    async def test_fetch_window(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
    ) -> None:
        await connect(persistence)

        await ingestor.sync(TEST_USER_ID)

        garmin_client.fetch_activities.assert_awaited_once_with(
            "access-1", TEST_NOW - timedelta(days=30), TEST_NOW
        )

    @pytest.mark.asyncio
    async def test_second_sync_skips_everything_imported(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
        garmin_activities_raw: list[dict],
    ) -> None:
        await connect(persistence)
        garmin_client.fetch_activities.return_value = garmin_activities_raw
        await ingestor.sync(TEST_USER_ID)

        summary = await ingestor.sync(TEST_USER_ID)

        assert summary.synced == 0
        assert summary.skipped == 2
        assert len(persistence.sessions()) == 2

    @pytest.mark.asyncio
    async def test_duplicate_within_batch(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
        garmin_activities_raw: list[dict],
    ) -> None:
        await connect(persistence)
        garmin_client.fetch_activities.return_value = [garmin_activities_raw[0]] * 3

        summary = await ingestor.sync(TEST_USER_ID)

        assert (summary.synced, summary.skipped) == (1, 2)

    @pytest.mark.asyncio
    async def test_insert_conflict_counts_as_skipped(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
        garmin_activities_raw: list[dict],
        ingestion_config: IngestionConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await connect(persistence)
        existing = build_session_draft(
            TEST_USER_ID,
            ExternalActivity.from_garmin(garmin_activities_raw[0]),
            SUNSET_POINT,
            ingestion_config,
        )
        await persistence.create_session_draft(existing)
        # simulate a concurrent insert landing between lookup and insert
        monkeypatch.setattr(
            persistence, "find_session_by_external_activity_id", AsyncMock(return_value=None)
        )
        garmin_client.fetch_activities.return_value = [garmin_activities_raw[0]]

        summary = await ingestor.sync(TEST_USER_ID)

        assert (summary.synced, summary.skipped, summary.errors) == (0, 1, [])

    @pytest.mark.asyncio
    async def test_expired_token_refreshed_before_fetch(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
    ) -> None:
        await connect(persistence, expires_in_seconds=-1)

        await ingestor.sync(TEST_USER_ID)

        garmin_client.refresh.assert_awaited_once()
        assert garmin_client.fetch_activities.await_args.args[0] == "access-2"

    @pytest.mark.asyncio
    async def test_not_connected(self, ingestor: ActivityIngestor) -> None:
        with pytest.raises(NotConnected):
            await ingestor.sync(TEST_USER_ID)

    @pytest.mark.asyncio
    async def test_fetch_failure(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
    ) -> None:
        await connect(persistence)
        garmin_client.fetch_activities.side_effect = GarminAPIError(500, "server error")

        with pytest.raises(ActivityFetchFailed) as exc_info:
            await ingestor.sync(TEST_USER_ID)
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_malformed_and_timeless_records(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
    ) -> None:
        await connect(persistence)
        at_sunset_point = {
            "activityType": "SURFING",
            "startingLatitudeInDegree": 34.0,
            "startingLongitudeInDegree": -118.5,
        }
        garmin_client.fetch_activities.return_value = [
            "garbage",
            {"activityType": "SURFING"},
            {"activityId": 77, **at_sunset_point},
            {"activityId": 78, "startTimeInSeconds": 1e20, **at_sunset_point},
            {"activityId": 79, "startTimeInSeconds": float("inf"), **at_sunset_point},
            {"activityId": 80, "startTimeInSeconds": 1771830900, **at_sunset_point},
        ]

        summary = await ingestor.sync(TEST_USER_ID)

        assert summary.errors == [
            "Malformed activity record skipped",
            "Malformed activity record skipped",
            "Activity 77: no start time",
            "Activity 78: no start time",
            "Activity 79: no start time",
        ]
        assert summary.to_dict() == {"synced": 1, "skipped": 0, "errors": summary.errors}
        assert [s.external_activity_id for s in persistence.sessions()] == ["80"]

    @pytest.mark.asyncio
    async def test_store_failure_for_one_activity_does_not_stop_batch(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
        garmin_activities_raw: list[dict],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await connect(persistence)
        original = persistence.create_session_draft
        calls = 0

        async def flaky_insert(draft: SessionDraft) -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("connection reset")
            return await original(draft)

        monkeypatch.setattr(persistence, "create_session_draft", flaky_insert)
        garmin_client.fetch_activities.return_value = garmin_activities_raw

        summary = await ingestor.sync(TEST_USER_ID)

        assert summary.synced == 1
        assert "Activity 1001: ingestion failed" in summary.errors
        assert [s.external_activity_id for s in persistence.sessions()] == ["1005"]


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


class TestWebhook:
    @pytest.mark.asyncio
    async def test_routes_by_garmin_user(
        self,
        ingestor: ActivityIngestor,
        persistence: InMemoryPersistence,
        garmin_webhook_raw: dict,
    ) -> None:
        await connect(persistence)

        summary = await ingestor.process_webhook(garmin_webhook_raw)

        assert summary.synced == 2
        assert summary.unknown_users == 1
        assert summary.errors == ["Webhook record without userId ignored"]
        evening = {s.external_activity_id: s for s in persistence.sessions()}["1007"]
        assert evening.user_id == TEST_USER_ID
        assert (evening.start_time, evening.duration_minutes) == ("18:45", 46)

    @pytest.mark.asyncio
    async def test_sync_then_webhook_dedups(
        self,
        ingestor: ActivityIngestor,
        garmin_client: MagicMock,
        persistence: InMemoryPersistence,
        garmin_activities_raw: list[dict],
        garmin_webhook_raw: dict,
    ) -> None:
        await connect(persistence)
        garmin_client.fetch_activities.return_value = garmin_activities_raw
        await ingestor.sync(TEST_USER_ID)

        summary = await ingestor.process_webhook(garmin_webhook_raw)

        assert summary.synced == 1
        assert summary.skipped == 1
        ids = [s.external_activity_id for s in persistence.sessions()]
        assert ids.count("1001") == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [None, [], "text", {"activities": "nope"}, {}])
    async def test_unexpected_shapes_are_ignored(
        self, ingestor: ActivityIngestor, payload: object
    ) -> None:
        summary = await ingestor.process_webhook(payload)
        assert (summary.synced, summary.skipped, summary.errors) == (0, 0, [])

    @pytest.mark.asyncio
    async def test_never_raises(
        self,
        ingestor: ActivityIngestor,
        persistence: InMemoryPersistence,
        garmin_webhook_raw: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(
            persistence,
            "find_user_by_external_account_id",
            AsyncMock(side_effect=RuntimeError("database went away")),
        )

        summary = await ingestor.process_webhook(garmin_webhook_raw)

        assert summary.synced == 0
        assert summary.errors == [
            "Webhook record for Garmin user garmin-user-1 failed",
            "Webhook record for Garmin user garmin-user-1 failed",
            "Webhook record for Garmin user someone-else failed",
            "Webhook record without userId ignored",
        ]

    @pytest.mark.asyncio
    async def test_failed_record_does_not_drop_later_ones(
        self,
        ingestor: ActivityIngestor,
        persistence: InMemoryPersistence,
        garmin_webhook_raw: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(
            persistence,
            "find_user_by_external_account_id",
            AsyncMock(side_effect=[RuntimeError("timeout"), TEST_USER_ID, None]),
        )

        summary = await ingestor.process_webhook(garmin_webhook_raw)

        assert summary.synced == 1
        assert summary.unknown_users == 1
        assert [s.external_activity_id for s in persistence.sessions()] == ["1007"]

    @pytest.mark.asyncio
    async def test_out_of_range_start_time_does_not_drop_batch(
        self, ingestor: ActivityIngestor, persistence: InMemoryPersistence
    ) -> None:
        await connect(persistence)
        spot = {
            "userId": "garmin-user-1",
            "activityType": "SURFING",
            "startingLatitudeInDegree": 34.0,
            "startingLongitudeInDegree": -118.5,
        }
        payload = {
            "activities": [
                {**spot, "activityId": "bad", "startTimeInSeconds": 1e20},
                {**spot, "activityId": "good", "startTimeInSeconds": 1771830900},
            ]
        }

        summary = await ingestor.process_webhook(payload)

        assert summary.synced == 1
        assert summary.errors == ["Activity bad: no start time"]
        assert [s.external_activity_id for s in persistence.sessions()] == ["good"]

    @pytest.mark.asyncio
    async def test_untracked_types_discarded(
        self, ingestor: ActivityIngestor, persistence: InMemoryPersistence
    ) -> None:
        await connect(persistence)
        payload = {
            "activities": [
                {"userId": "garmin-user-1", "activityId": 5, "activityType": "CYCLING"},
            ]
        }

        summary = await ingestor.process_webhook(payload)

        assert summary.discarded == 1
        assert summary.errors == []
        assert persistence.sessions() == []


class TestTracking:
    def test_case_insensitive(self, ingestor: ActivityIngestor) -> None:
        assert ingestor.is_tracked("surfing")
        assert ingestor.is_tracked("SURF")
        assert not ingestor.is_tracked("OPEN_WATER_SWIMMING")
        assert not ingestor.is_tracked(None)


class TestSessionDraftEquality:
    def test_id_not_compared(self) -> None:
        kwargs = dict(
            user_id="u", spot_id="s", spot_name="S", date=date(2026, 1, 1),
            start_time="00:00", duration_minutes=1, external_activity_id="x", notes="n",
        )
        assert SessionDraft(id="a", **kwargs) == SessionDraft(id="b", **kwargs)
