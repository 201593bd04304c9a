"""Background refresh loop: once at start, then on a fixed interval.

Uses the same RateCache.refresh() entry point as demand-driven reads,
so a timer tick that lands during a reader's refresh joins it instead
of issuing a second fetch.
"""

import asyncio

from rateproxy.cache.rate_cache import RateCache
from rateproxy.logging import get_logger

logger = get_logger(__name__)


class RefreshScheduler:
    """Keeps the rate cache warm.

    A failed refresh is logged and the loop waits for the next tick; the
    previous snapshot stays in the cache.
    """

    def __init__(self, cache: RateCache, interval_seconds: float = 900.0) -> None:
        self._cache = cache
        self._interval_seconds = interval_seconds
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Begin refreshing in the background."""
        if self._running:
            logger.warning("refresh_scheduler_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("refresh_scheduler_started", interval_seconds=self._interval_seconds)

    async def stop(self) -> None:
        """Stop the background loop. An in-flight refresh is left to finish on its own."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("refresh_scheduler_stopped")

    async def _run_loop(self) -> None:
        while self._running:
            await self.tick()
            if self._running:
                await asyncio.sleep(self._interval_seconds)

    async def tick(self) -> None:
        """Run one scheduled refresh, logging instead of raising on failure."""
        try:
            snapshot = await self._cache.refresh()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("scheduled_refresh_failed", exc_info=True)
            return
        logger.info("scheduled_refresh_complete", final_rate=str(snapshot.final_rate))
