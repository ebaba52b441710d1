"""Request spacing limiter: one shared admission queue for outbound calls.

Guarantees a minimum gap between the starts of any two outbound calls made
by the process, no matter which inbound request they belong to. This is a
single global queue, not a per-agent or per-user limit.

The timestamp read-then-write is guarded by an asyncio.Lock; the wait itself
happens outside the lock. Each caller reserves the next free slot while
holding the lock and then sleeps until that slot comes up, so concurrent
callers are spaced out in the order they reached the lock.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from triage_gateway.gateway.types import MIN_REQUEST_INTERVAL

logger = logging.getLogger(__name__)


class RequestSpacingLimiter:
    """Process-wide single-slot throttle.

    Usage:
        limiter = RequestSpacingLimiter()

        # Once per inbound request, before the first upstream attempt:
        await limiter.acquire()
    """

    def __init__(
        self,
        min_interval: float = MIN_REQUEST_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_request_time: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Wait until the caller may start an outbound call.

        Returns the number of seconds the caller was held back (0 if none).
        """
        async with self._lock:
            now = self._clock()
            wait = 0.0
            if self._last_request_time is not None:
                wait = max(0.0, self._last_request_time + self.min_interval - now)
            # Stamp the moment this caller is released; never moves backwards
            self._last_request_time = now + wait

        if wait > 0:
            logger.info("Rate limit protection: waiting %dms before next request", int(wait * 1000))
            await self._sleep(wait)

        return wait

    def get_stats(self) -> dict:
        """Current limiter state for the status endpoint."""
        since_last = None
        queued_delay = 0.0
        if self._last_request_time is not None:
            # The last slot may still be in the future while callers are queued
            elapsed = self._clock() - self._last_request_time
            since_last = round(max(0.0, elapsed), 3)
            queued_delay = round(max(0.0, -elapsed), 3)
        return {
            "min_interval_seconds": self.min_interval,
            "seconds_since_last_request": since_last,
            "queued_delay_seconds": queued_delay,
        }
