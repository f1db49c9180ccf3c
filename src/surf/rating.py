"""Surf quality rating — convert raw ocean telemetry into a 0–6 level.

The rating is a small pipeline of pure steps, each independently testable:

    base_level(height)  →  apply_wind(...)  →  apply_period(...)  →  band lookup

1. ``base_level`` finds the wave-height band (half-open, lower-inclusive).
2. ``apply_wind`` bumps the level up one for light offshore wind (wind
   blowing against swell travel) and down one for strong onshore wind.
   Skipped when wind speed, wind direction or swell direction is unknown.
3. ``apply_period`` bumps a non-flat level up one for long-period swell.
4. The final level is treated strictly as an ordinal index into the band
   table for label and colour.  It is never re-derived from height.

Every step clamps to [0, 6].  Inputs are already converted: feet, knots,
degrees, seconds (see ``src.surf.units``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from src.surf.config_loader import MAX_LEVEL, RatingConfig, get_surf_config
from src.surf.units import angular_difference, meters_to_feet, ms_to_knots


@dataclass(frozen=True)
class Rating:
    """Value object returned by the rating engine.

    Attributes:
        level: Ordinal quality level, 0 (flat) to 6 (epic).
        label: Band label for the level, e.g. ``"FAIR"``.
        color: Hex display colour for the level.
    """

    level: int
    label: str
    color: str

    def to_dict(self) -> dict:
        return {"level": self.level, "label": self.label, "color": self.color}


def _clamp(level: int) -> int:
    return max(0, min(MAX_LEVEL, level))


def base_level(wave_height_ft: float | None, config: RatingConfig) -> int:
    """Return the band level for a wave height.

    Heights that are missing, negative or NaN rate as FLAT.  A height exactly
    on a band boundary belongs to the upper band.
    """
    if wave_height_ft is None or math.isnan(wave_height_ft) or wave_height_ft < 0:
        return 0
    level = 0
    for band in config.bands:
        if wave_height_ft >= band.min_ft:
            level = band.level
        else:
            break
    return level


def apply_wind(
    level: int,
    wind_knots: float | None,
    wind_dir_deg: float | None,
    swell_dir_deg: float | None,
    config: RatingConfig,
) -> int:
    """Adjust a level for wind direction relative to swell direction."""
    if wind_knots is None or wind_dir_deg is None or swell_dir_deg is None:
        return level

    wind = config.wind
    diff = angular_difference(wind_dir_deg, swell_dir_deg)
    if diff > wind.offshore_min_angle and wind_knots < wind.offshore_max_knots:
        return _clamp(level + 1)
    if diff < wind.onshore_max_angle and wind_knots > wind.onshore_min_knots:
        return _clamp(level - 1)
    return level


def apply_period(
    level: int, swell_period_s: float | None, config: RatingConfig
) -> int:
    """Bump a non-flat level for long-period groundswell."""
    if swell_period_s is None or level <= 0:
        return level
    if swell_period_s >= config.long_period_seconds:
        return _clamp(level + 1)
    return level


def rating_for_level(level: float, config: RatingConfig | None = None) -> Rating:
    """Look up the band for an arbitrary level, rounding and clamping it first."""
    cfg = config or get_surf_config().rating
    band = cfg.band_for_level(_clamp(int(math.floor(level + 0.5))))
    return Rating(level=band.level, label=band.label, color=band.color)


def rate(
    wave_height_ft: float | None,
    wind_knots: float | None = None,
    wind_dir_deg: float | None = None,
    swell_dir_deg: float | None = None,
    swell_period_s: float | None = None,
    config: RatingConfig | None = None,
) -> Rating:
    """Rate surf conditions.

    Args:
        wave_height_ft: Significant wave height in feet.
        wind_knots:     Wind speed in knots.
        wind_dir_deg:   Direction the wind is coming from, degrees.
        swell_dir_deg:  Direction the swell is coming from, degrees.
        swell_period_s: Swell period in seconds.
        config:         RatingConfig (loaded from singleton if None).

    Returns:
        Rating with level 0–6, label and colour.
    """
    cfg = config or get_surf_config().rating
    level = base_level(wave_height_ft, cfg)
    level = apply_wind(level, wind_knots, wind_dir_deg, swell_dir_deg, cfg)
    level = apply_period(level, swell_period_s, cfg)
    band = cfg.band_for_level(level)
    return Rating(level=band.level, label=band.label, color=band.color)


def rate_metric(
    wave_height_m: float | None,
    wind_ms: float | None = None,
    wind_dir_deg: float | None = None,
    swell_dir_deg: float | None = None,
    swell_period_s: float | None = None,
    config: RatingConfig | None = None,
) -> Rating:
    """Convenience wrapper for raw provider units (metres, m/s)."""
    return rate(
        meters_to_feet(wave_height_m) if wave_height_m is not None else None,
        ms_to_knots(wind_ms) if wind_ms is not None else None,
        wind_dir_deg,
        swell_dir_deg,
        swell_period_s,
        config,
    )


class RatingEngine:
    """Config-bound rating engine.

    Usage::

        engine = RatingEngine()
        engine.rate(4.5, wind_knots=6, wind_dir_deg=60, swell_dir_deg=250, swell_period_s=13)
    """

    def __init__(self, config: RatingConfig | None = None) -> None:
        self._config = config or get_surf_config().rating

    @property
    def bands(self) -> list[Rating]:
        return [Rating(b.level, b.label, b.color) for b in self._config.bands]

    def rate(
        self,
        wave_height_ft: float | None,
        wind_knots: float | None = None,
        wind_dir_deg: float | None = None,
        swell_dir_deg: float | None = None,
        swell_period_s: float | None = None,
    ) -> Rating:
        return rate(
            wave_height_ft,
            wind_knots,
            wind_dir_deg,
            swell_dir_deg,
            swell_period_s,
            self._config,
        )

    def for_level(self, level: float) -> Rating:
        return rating_for_level(level, self._config)
