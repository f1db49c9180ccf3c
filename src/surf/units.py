"""Unit conversions for ocean and weather telemetry.

Providers report SI units (metres, metres per second, degrees Celsius).  The
rating engine and every user-facing snapshot work in feet and knots, so all
conversions live here as small pure functions.
"""

from __future__ import annotations

import math

FEET_PER_METER = 3.28084
KNOTS_PER_MS = 1.94384
KNOTS_PER_KMH = 0.539957
MILES_PER_KM = 0.621371

COMPASS_POINTS: tuple[str, ...] = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding).

    Durations and agreement scores are displayed next to numbers computed the
    same way on the client, so ``round(2.5)`` must be 3 here.
    """
    return int(math.floor(value + 0.5))


def meters_to_feet(meters: float) -> float:
    return meters * FEET_PER_METER


def feet_to_meters(feet: float) -> float:
    return feet / FEET_PER_METER


def ms_to_knots(ms: float) -> float:
    return ms * KNOTS_PER_MS


def kmh_to_knots(kmh: float) -> float:
    return kmh * KNOTS_PER_KMH


def km_to_miles(km: float) -> float:
    return km * MILES_PER_KM


def celsius_to_fahrenheit(celsius: float | None) -> float | None:
    if celsius is None:
        return None
    return celsius * 9 / 5 + 32


def degrees_to_compass(degrees: float | None) -> str:
    """Convert a bearing in degrees to a 16-point compass label.

    Args:
        degrees: Bearing in degrees; any real value, wrapped into [0, 360).

    Returns:
        Compass label such as ``"SW"``, or ``"--"`` when the bearing is unknown.
    """
    if degrees is None:
        return "--"
    idx = round_half_up((degrees % 360) / 22.5) % 16
    return COMPASS_POINTS[idx]


def angular_difference(a_deg: float, b_deg: float) -> float:
    """Return the absolute smallest angle between two bearings, in [0, 180]."""
    return abs(((a_deg - b_deg + 180) % 360) - 180)
