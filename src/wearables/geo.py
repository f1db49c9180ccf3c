"""Geo-matching — resolve GPS coordinates to the nearest known surf spot.

Distance is great-circle (haversine) on a spherical Earth of radius 6371 km.
A spot matches only if it lies within ``max_km`` (inclusive) of the point.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

from src.services.spots import Location

logger = logging.getLogger("swellsync.wearables.geo")

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class SpotMatch:
    """A matched spot and its distance from the query point."""

    location: Location
    distance_km: float


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return the great-circle distance between two points in kilometres.

    Args:
        lat1, lng1: First point, decimal degrees.
        lat2, lng2: Second point, decimal degrees.

    Returns:
        Distance in km.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def find_nearest_location(
    lat: float,
    lng: float,
    locations: Iterable[Location],
    max_km: float = 10.0,
) -> SpotMatch | None:
    """Find the closest location within ``max_km``.

    Ties keep the first location encountered.

    Returns:
        SpotMatch, or None when nothing is in range.
    """
    best: SpotMatch | None = None
    for location in locations:
        distance = haversine_km(lat, lng, location.lat, location.lng)
        if distance > max_km:
            continue
        if best is None or distance < best.distance_km:
            best = SpotMatch(location=location, distance_km=distance)

    if best is None:
        logger.debug("No spot within %.1f km of (%.4f, %.4f)", max_km, lat, lng)
    return best
