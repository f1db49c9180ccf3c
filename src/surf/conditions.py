"""Turn provider readings into rated, display-ready hourly snapshots.

Providers return a flat list of SI Readings, possibly with several models
reporting the same quantity at the same hour.  This module:

- picks one value per quantity per hour, by model preference
- converts to feet / knots / compass points
- rates each hour with the RatingEngine
- builds the per-model comparison used by the multi-source view
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from src.surf.agreement import AgreementResult, AgreementScorer
from src.surf.rating import Rating, RatingEngine
from src.surf.units import (
    celsius_to_fahrenheit,
    degrees_to_compass,
    meters_to_feet,
    ms_to_knots,
)
from src.surf.providers.base import Reading

# Fallback-provider model always ranks after any configured StormGlass models.
DEFAULT_MODEL_PREFERENCE: tuple[str, ...] = ("sg", "noaa", "dwd", "meteo", "meto", "open-meteo")


@dataclass(frozen=True)
class ConditionsSnapshot:
    """Conditions at one hour, converted for display and rated."""

    time: datetime
    wave_height_ft: float | None
    swell_height_ft: float | None
    swell_period_s: float | None
    swell_direction_deg: float | None
    wind_knots: float | None
    wind_direction_deg: float | None
    gust_knots: float | None
    air_temperature_f: float | None
    water_temperature_f: float | None
    rating: Rating

    @property
    def swell_compass(self) -> str:
        return degrees_to_compass(self.swell_direction_deg)

    @property
    def wind_compass(self) -> str:
        return degrees_to_compass(self.wind_direction_deg)

    def to_dict(self) -> dict:
        return {
            "time": self.time.isoformat(),
            "wave_height_ft": self.wave_height_ft,
            "swell_height_ft": self.swell_height_ft,
            "swell_period_s": self.swell_period_s,
            "swell_direction_deg": self.swell_direction_deg,
            "swell_compass": self.swell_compass,
            "wind_knots": self.wind_knots,
            "wind_direction_deg": self.wind_direction_deg,
            "wind_compass": self.wind_compass,
            "gust_knots": self.gust_knots,
            "air_temperature_f": self.air_temperature_f,
            "water_temperature_f": self.water_temperature_f,
            "rating": self.rating.to_dict(),
        }


@dataclass(frozen=True)
class ModelComparison:
    """Per-model wave height and wind for one hour, plus wave agreement."""

    time: datetime
    wave_height_ft: dict[str, float]
    wind_knots: dict[str, float]
    agreement: AgreementResult

    def to_dict(self) -> dict:
        return {
            "time": self.time.isoformat(),
            "wave_height_ft": self.wave_height_ft,
            "wind_knots": self.wind_knots,
            "agreement": self.agreement.to_dict(),
        }


def _round1(value: float | None) -> float | None:
    return None if value is None else round(value, 1)


def _index(readings: Iterable[Reading]) -> dict[datetime, dict[str, dict[str, float]]]:
    """time → quantity → model → value (first value per model wins)."""
    table: dict[datetime, dict[str, dict[str, float]]] = defaultdict(lambda: defaultdict(dict))
    for r in readings:
        table[r.time][r.quantity].setdefault(r.model, r.value)
    return table


def _preferred(values: dict[str, float], preference: tuple[str, ...]) -> float | None:
    for model in preference:
        if model in values:
            return values[model]
    if values:
        return next(iter(values.values()))
    return None


def build_snapshots(
    readings: Iterable[Reading],
    engine: RatingEngine | None = None,
    preference: Iterable[str] = DEFAULT_MODEL_PREFERENCE,
) -> list[ConditionsSnapshot]:
    """Build one rated snapshot per hour, ordered by time.

    Swell period and direction fall back to the combined wave period and
    direction when a model reports no separate swell partition.

    Args:
        readings:   Provider readings for any number of hours and models.
        engine:     RatingEngine (default config if None).
        preference: Model ids in preference order for picking one value.

    Returns:
        Snapshots sorted by time.
    """
    engine = engine or RatingEngine()
    order = tuple(preference)
    snapshots: list[ConditionsSnapshot] = []

    for time, quantities in sorted(_index(readings).items()):
        def pick(quantity: str) -> float | None:
            return _preferred(quantities.get(quantity, {}), order)

        wave_m = pick("wave_height")
        swell_m = pick("swell_height")
        period = pick("swell_period")
        if period is None:
            period = pick("wave_period")
        swell_dir = pick("swell_direction")
        if swell_dir is None:
            swell_dir = pick("wave_direction")
        wind_ms = pick("wind_speed")
        wind_dir = pick("wind_direction")
        gust_ms = pick("gust")

        wave_ft = meters_to_feet(wave_m) if wave_m is not None else None
        wind_kn = ms_to_knots(wind_ms) if wind_ms is not None else None

        snapshots.append(
            ConditionsSnapshot(
                time=time,
                wave_height_ft=_round1(wave_ft),
                swell_height_ft=_round1(meters_to_feet(swell_m) if swell_m is not None else None),
                swell_period_s=_round1(period),
                swell_direction_deg=_round1(swell_dir),
                wind_knots=_round1(wind_kn),
                wind_direction_deg=_round1(wind_dir),
                gust_knots=_round1(ms_to_knots(gust_ms) if gust_ms is not None else None),
                air_temperature_f=_round1(celsius_to_fahrenheit(pick("air_temperature"))),
                water_temperature_f=_round1(celsius_to_fahrenheit(pick("water_temperature"))),
                rating=engine.rate(wave_ft, wind_kn, wind_dir, swell_dir, period),
            )
        )
    return snapshots


def compare_models(
    readings: Iterable[Reading],
    scorer: AgreementScorer | None = None,
) -> list[ModelComparison]:
    """Per-hour, per-model wave height and wind speed with wave agreement."""
    scorer = scorer or AgreementScorer()
    rows: list[ModelComparison] = []
    for time, quantities in sorted(_index(readings).items()):
        waves = {m: meters_to_feet(v) for m, v in quantities.get("wave_height", {}).items()}
        winds = {m: ms_to_knots(v) for m, v in quantities.get("wind_speed", {}).items()}
        rows.append(
            ModelComparison(
                time=time,
                wave_height_ft={m: round(v, 1) for m, v in waves.items()},
                wind_knots={m: round(v, 1) for m, v in winds.items()},
                agreement=scorer.score(waves.values()),
            )
        )
    return rows
