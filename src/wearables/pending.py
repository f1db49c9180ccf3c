"""Pending OAuth authorizations and their expiry sweep.

A ``PendingAuthorization`` lives from ``begin_authorization`` until its
callback consumes it, or until it outlives the TTL and the sweeper purges
it.  Both removals use delete-if-present semantics, so a callback racing the
sweep never fails with anything other than "state not found".

Usage::

    store = InMemoryPendingStore()
    sweeper = PendingSweeper(store, ttl_seconds=600, interval_seconds=60)
    sweeper.start()
    ...
    await sweeper.stop()
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from src.wearables.base import PendingAuthorization

logger = logging.getLogger("swellsync.wearables.pending")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PendingAuthorizationStore(Protocol):
    """Keyed store of in-flight authorizations."""

    def put(self, pending: PendingAuthorization) -> None: ...

    def pop(self, state: str) -> PendingAuthorization | None: ...

    def purge_expired(self, now: datetime, ttl_seconds: int) -> int: ...


class InMemoryPendingStore:
    """Process-local PendingAuthorizationStore.

    Guarded by a lock so it is safe from both the event loop and worker
    threads.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingAuthorization] = {}
        self._lock = threading.Lock()

    def put(self, pending: PendingAuthorization) -> None:
        with self._lock:
            self._entries[pending.state] = pending

    def pop(self, state: str) -> PendingAuthorization | None:
        """Remove and return the entry for ``state``, or None if absent."""
        with self._lock:
            return self._entries.pop(state, None)

    def purge_expired(self, now: datetime, ttl_seconds: int) -> int:
        """Delete every entry older than ``ttl_seconds``.

        Returns:
            Number of entries removed.
        """
        cutoff = now - timedelta(seconds=ttl_seconds)
        with self._lock:
            stale = [s for s, p in self._entries.items() if p.created_at < cutoff]
            for state in stale:
                self._entries.pop(state, None)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, state: object) -> bool:
        with self._lock:
            return state in self._entries


class PendingSweeper:
    """Own the periodic task that purges expired pending authorizations.

    The task runs on the current event loop between ``start()`` and
    ``stop()``.  ``sweep_once()`` performs a single purge and is what tests
    call directly.
    """

    def __init__(
        self,
        store: PendingAuthorizationStore,
        ttl_seconds: int = 600,
        interval_seconds: float = 60.0,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._interval = interval_seconds
        self._clock = clock
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        removed = self._store.purge_expired(self._clock(), self._ttl_seconds)
        if removed:
            logger.debug("Purged %d expired pending authorization(s)", removed)
        return removed

    def start(self) -> None:
        """Start the sweep loop.  Calling twice is a no-op."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Pending authorization sweeper started (every %ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Pending authorization sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Pending authorization sweep failed")
