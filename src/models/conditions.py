"""Pydantic models for spots, conditions, forecasts, comparisons and tides."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from src.models.base import SwellSyncBase


# ---------- Spots ----------

class SpotRead(SwellSyncBase):
    id: str
    name: str
    lat: float
    lng: float


# ---------- Ratings / agreement ----------

class RatingRead(SwellSyncBase):
    level: int = Field(ge=0, le=6)
    label: str
    color: str


class AgreementRead(SwellSyncBase):
    score: int | None = Field(default=None, ge=0, le=100)
    label: str
    color: str
    source_count: int


# ---------- Conditions ----------

class SnapshotRead(SwellSyncBase):
    time: datetime
    wave_height_ft: float | None = None
    swell_height_ft: float | None = None
    swell_period_s: float | None = None
    swell_direction_deg: float | None = None
    swell_compass: str
    wind_knots: float | None = None
    wind_direction_deg: float | None = None
    wind_compass: str
    gust_knots: float | None = None
    air_temperature_f: float | None = None
    water_temperature_f: float | None = None
    rating: RatingRead


class ConditionsResponse(SwellSyncBase):
    spot: SpotRead
    source: str
    fallback_used: bool
    current: SnapshotRead | None = None


class ForecastResponse(SwellSyncBase):
    spot: SpotRead
    source: str
    fallback_used: bool
    days: int
    hours: list[SnapshotRead] = Field(default_factory=list)


# ---------- Multi-source comparison ----------

class ModelComparisonRead(SwellSyncBase):
    time: datetime
    wave_height_ft: dict[str, float] = Field(default_factory=dict)
    wind_knots: dict[str, float] = Field(default_factory=dict)
    agreement: AgreementRead


class CompareResponse(SwellSyncBase):
    spot: SpotRead
    source: str
    models: list[str] = Field(default_factory=list)
    agreement: AgreementRead
    hours: list[ModelComparisonRead] = Field(default_factory=list)


# ---------- Tides ----------

class TideExtremeRead(SwellSyncBase):
    time: datetime
    height_m: float
    type: str


class TidesResponse(SwellSyncBase):
    spot: SpotRead
    source: str
    extremes: list[TideExtremeRead] = Field(default_factory=list)
    message: str | None = None
