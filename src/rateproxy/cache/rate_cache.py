"""In-memory rate cache with freshness window, stale fallback and single-flight refresh.

The cache is both a store and the on-demand refresh trigger: a read that
finds no fresh snapshot refreshes synchronously for its caller. Refreshes
from readers and from the background scheduler go through the same
in-flight task, so concurrent callers share one outbound fetch cycle.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import replace

from rateproxy.cache.error_tracker import ErrorTracker
from rateproxy.logging import get_logger
from rateproxy.models import CacheEntry, RateRead, RateSnapshot, UsageStats
from rateproxy.pricing.calculator import RateCalculator

logger = get_logger(__name__)

STALE_WARNING = "Serving cached rate because the latest refresh failed"


class RateCache:
    """Owns the cached snapshot, usage counters and the refresh guard.

    Args:
        calculator: Produces fresh snapshots.
        error_tracker: Observes refresh outcomes.
        freshness_seconds: Maximum age served without attempting a refresh.
        clock: Monotonic clock for snapshot age.
    """

    def __init__(
        self,
        calculator: RateCalculator,
        error_tracker: ErrorTracker,
        freshness_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._calculator = calculator
        self._error_tracker = error_tracker
        self._freshness_seconds = freshness_seconds
        self._clock = clock
        self._entry = CacheEntry()
        self._stats = UsageStats()
        self._refresh_lock = asyncio.Lock()
        self._inflight: asyncio.Task[RateSnapshot] | None = None

    @property
    def freshness_seconds(self) -> float:
        return self._freshness_seconds

    @property
    def stats(self) -> UsageStats:
        return self._stats

    @property
    def error_tracker(self) -> ErrorTracker:
        return self._error_tracker

    def get(self) -> tuple[RateSnapshot | None, float | None]:
        """Return the cached snapshot and its age in seconds, or (None, None)."""
        entry = self._entry
        if entry.snapshot is None or entry.last_updated_at is None:
            return None, None
        return entry.snapshot, max(0.0, self._clock() - entry.last_updated_at)

    def put(self, snapshot: RateSnapshot) -> None:
        """Replace the cached snapshot and stamp it with the current time."""
        # Single assignment so readers never see a snapshot without its timestamp
        self._entry = CacheEntry(snapshot=snapshot, last_updated_at=self._clock())

    def _within_window(self, age: float | None) -> bool:
        return age is not None and age < self._freshness_seconds

    def is_fresh(self) -> bool:
        """Whether a snapshot exists and is younger than the freshness window."""
        _, age = self.get()
        return self._within_window(age)

    async def refresh(self) -> RateSnapshot:
        """Compute and store a new snapshot, joining any refresh already in flight.

        Raises:
            Exception: Whatever the failed refresh raised. The previous snapshot is kept.
        """
        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(self._run_refresh())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        else:
            logger.debug("rate_refresh_joined")
        # Shielded so a disconnecting caller does not cancel the shared refresh
        return await asyncio.shield(task)

    async def refresh_if_needed(self) -> RateSnapshot:
        """Return the cached snapshot if fresh, otherwise refresh."""
        snapshot, age = self.get()
        if snapshot is not None and self._within_window(age):
            return snapshot
        return await self.refresh()

    async def _run_refresh(self) -> RateSnapshot:
        async with self._refresh_lock:
            logger.info("rate_refresh_started")
            try:
                snapshot = await self._calculator.compute()
            except Exception as exc:
                self._error_tracker.record_failure(exc)
                logger.warning(
                    "rate_refresh_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    has_previous=self._entry.snapshot is not None,
                )
                raise
            self.put(snapshot)
            self._error_tracker.record_success()
            logger.info("rate_cache_updated", final_rate=str(snapshot.final_rate))
            return snapshot

    async def aclose(self) -> None:
        """Cancel any in-flight refresh and wait for it to unwind.

        Called on shutdown before the listing client is closed.
        """
        task = self._inflight
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("inflight_refresh_failed_on_close", exc_info=True)
        logger.info("rate_cache_closed")

    def _clear_inflight(self, task: asyncio.Task[RateSnapshot]) -> None:
        if self._inflight is task:
            self._inflight = None
        # Mark the outcome retrieved even if every waiter was cancelled
        if not task.cancelled():
            task.exception()

    async def read(self) -> RateRead:
        """Serve one rate request.

        Fresh snapshot: served from cache. Otherwise a refresh runs for this
        caller; if it fails and an older snapshot exists, that snapshot is
        served with a warning.

        Raises:
            Exception: The refresh failed and nothing is cached.
        """
        self._stats.total_requests += 1

        snapshot, age = self.get()
        if snapshot is not None and self._within_window(age):
            self._stats.served_from_cache += 1
            logger.debug("rate_served_from_cache", age_seconds=int(age))
            return RateRead(
                snapshot=snapshot,
                from_cache=True,
                age_seconds=int(age),
                stats=replace(self._stats),
            )

        try:
            fresh = await self.refresh()
        except Exception:
            stale, stale_age = self.get()
            if stale is None or stale_age is None:
                raise
            logger.warning("rate_served_stale", age_seconds=int(stale_age))
            return RateRead(
                snapshot=stale,
                from_cache=True,
                age_seconds=int(stale_age),
                warning=STALE_WARNING,
            )

        return RateRead(snapshot=fresh, from_cache=False)
