"""Consecutive refresh-failure counter with a cancellable cooldown timer.

Crossing the failure threshold marks a cooldown and schedules a one-shot
reset on the running event loop. The cooldown is advisory: it is exposed
on the health endpoint and in logs, but refresh attempts are never
suppressed by it.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from rateproxy.logging import get_logger
from rateproxy.models import ErrorState

logger = get_logger(__name__)


class ErrorTracker:
    """Tracks consecutive refresh failures.

    States: counting -> cooling down (threshold reached, timer pending) ->
    counting (timer fired or a refresh succeeded). Reaching the threshold
    again while cooling down does not schedule a second timer.

    Args:
        threshold: Consecutive failures that start a cooldown.
        cooldown_seconds: Delay before the counter is reset.
        clock: Wall clock used for ``cooldown_until``.
    """

    def __init__(
        self,
        threshold: int = 3,
        cooldown_seconds: float = 1800.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._threshold = threshold
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._state = ErrorState()
        self._timer: asyncio.TimerHandle | None = None

    @property
    def state(self) -> ErrorState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._state.consecutive_failures

    @property
    def in_cooldown(self) -> bool:
        """True while a cooldown reset is pending."""
        return self._timer is not None

    def record_failure(self, error: BaseException | None = None) -> None:
        """Count one failed refresh and start a cooldown on crossing the threshold.

        Must be called from a coroutine running on the event loop that
        will own the reset timer.
        """
        self._state.consecutive_failures += 1
        logger.warning(
            "refresh_failure_recorded",
            consecutive_failures=self._state.consecutive_failures,
            threshold=self._threshold,
            error=str(error) if error is not None else None,
        )

        if self._state.consecutive_failures < self._threshold or self._timer is not None:
            return

        loop = asyncio.get_running_loop()
        self._state.cooldown_until = self._clock() + self._cooldown_seconds
        self._timer = loop.call_later(self._cooldown_seconds, self._expire_cooldown)
        logger.warning(
            "error_cooldown_started",
            consecutive_failures=self._state.consecutive_failures,
            cooldown_seconds=self._cooldown_seconds,
        )

    def record_success(self) -> None:
        """Reset the counter and drop any pending cooldown."""
        if self._state.consecutive_failures:
            logger.info(
                "refresh_recovered",
                after_failures=self._state.consecutive_failures,
            )
        self._cancel_timer()
        self._state.consecutive_failures = 0
        self._state.cooldown_until = None

    def _expire_cooldown(self) -> None:
        self._timer = None
        self._state.consecutive_failures = 0
        self._state.cooldown_until = None
        logger.info("error_cooldown_expired")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> None:
        """Cancel the pending reset, if any. Counter state is kept."""
        self._cancel_timer()
