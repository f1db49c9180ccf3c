"""Static surf spot catalogue.

Spots are loaded once at startup from a JSON file (a list of objects with
``id``, ``name``, ``lat`` and ``lng``) and are read-only afterwards.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

logger = logging.getLogger("swellsync.spots")


@dataclass(frozen=True)
class Location:
    """A named surf spot.

    Attributes:
        id:   Stable spot identifier (slug).
        name: Display name.
        lat:  Latitude in decimal degrees.
        lng:  Longitude in decimal degrees.
    """

    id: str
    name: str
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "lat": self.lat, "lng": self.lng}


class SpotCatalogue:
    """Read-only, id-indexed collection of Locations."""

    def __init__(self, locations: Iterable[Location]) -> None:
        self._locations = list(locations)
        self._by_id = {loc.id: loc for loc in self._locations}

    def get(self, spot_id: str) -> Location | None:
        return self._by_id.get(spot_id)

    def all(self) -> list[Location]:
        return list(self._locations)

    def __iter__(self) -> Iterator[Location]:
        return iter(self._locations)

    def __len__(self) -> int:
        return len(self._locations)


def parse_locations(raw: list[dict]) -> list[Location]:
    """Build Locations from decoded JSON, skipping malformed rows."""
    locations: list[Location] = []
    for row in raw:
        try:
            locations.append(
                Location(
                    id=str(row["id"]),
                    name=str(row.get("name") or row["id"]),
                    lat=float(row["lat"]),
                    lng=float(row["lng"]),
                )
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed spot record: %r", row)
    return locations


def load_spots(path: Path | None) -> SpotCatalogue:
    """Load the spot catalogue from a JSON file.

    A missing or unreadable file yields an empty catalogue (logged), so the
    API can still start and serve health checks.
    """
    if path is None:
        logger.warning("No spots file configured; spot catalogue is empty")
        return SpotCatalogue([])
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.error("Failed to load spots from %s: %s", path, exc)
        return SpotCatalogue([])

    catalogue = SpotCatalogue(parse_locations(raw if isinstance(raw, list) else []))
    logger.info("Loaded %d spots from %s", len(catalogue), path)
    return catalogue
