"""Deduplication logic for activity ingestion.

The same Garmin activity can arrive more than once: a user-triggered sync
overlaps an earlier one, or Garmin pushes a webhook for an activity that was
already pulled.  The external activity id is the dedup key.

Two layers:
    - Persistence UNIQUE constraint on ``external_activity_id`` — authoritative.
      A duplicate insert raises ConflictError.
    - ``InMemoryDedupCache`` — per-batch cache so an activity repeated within
      one payload is only looked up and inserted once.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("swellsync.wearables.sync.dedup")


def activity_key(source: str, external_activity_id: str) -> str:
    """Generate a dedup key for an external activity.

    Args:
        source:               Provider slug (e.g. 'garmin').
        external_activity_id: Activity ID from the device.

    Returns:
        Dedup key string.
    """
    return f"{source}:{external_activity_id}"


class InMemoryDedupCache:
    """In-process dedup cache for one sync run or webhook batch.

    Not a replacement for the persistence UNIQUE constraint.

    Usage::

        cache = InMemoryDedupCache()
        if cache.is_seen(key):
            logger.debug("Skipping duplicate: %s", key)
        else:
            cache.mark_seen(key)
            # process the record
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def is_seen(self, key: str) -> bool:
        return key in self._seen

    def mark_seen(self, key: str) -> None:
        self._seen.add(key)

    def clear(self) -> None:
        """Reset the cache."""
        self._seen.clear()

    def __len__(self) -> int:
        return len(self._seen)
