"""Implementation of a rate limiter.

Controls the frequency of outgoing requests so the Hacienda API, whose
limits are undocumented, never sees more than ``max_requests`` calls start
within any trailing window. Uses a sliding window over admission
timestamps. This is a client-side courtesy throttle, not a shared lock.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Optional, TypeVar

from hacienda.domain.events import ApiCallDeferred, EventListener, dispatch_event
from hacienda.domain.interfaces.clock import Clock
from hacienda.domain.models.resilience import RateLimiterOptions
from hacienda.infrastructure.resilience.clock import SystemClock

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_REQUESTS = RateLimiterOptions.max_requests
DEFAULT_WINDOW_SECONDS = RateLimiterOptions.window_seconds

class RateLimiter:
    """Sliding window rate limiter."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Optional[Clock] = None,
        on_event: Optional[EventListener] = None,
    ):
        """Initializes the rate limiter.

        Args:
            max_requests: Maximum number of requests allowed in the window.
            window_seconds: The window length in seconds.
            clock: Time source; defaults to the system clock.
            on_event: Optional listener for ApiCallDeferred events.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or SystemClock()
        self._on_event = on_event
        self._timestamps: Deque[float] = deque()
        self._lock = asyncio.Lock()
        logger.debug(f"RateLimiter initialized: {max_requests} requests / {window_seconds} seconds")

    @classmethod
    def from_options(
        cls,
        options: RateLimiterOptions,
        clock: Optional[Clock] = None,
        on_event: Optional[EventListener] = None,
    ) -> "RateLimiter":
        return cls(options.max_requests, options.window_seconds, clock=clock, on_event=on_event)

    def _prune(self) -> None:
        """Removes timestamps that are outside the current window."""
        cutoff = self._clock.now() - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    async def wait_for_permission(self) -> None:
        """Waits until a request is permitted, then records its timestamp."""
        while True:
            async with self._lock:
                self._prune()
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(self._clock.now())
                    return
                wait_time = self._timestamps[0] + self.window_seconds - self._clock.now()

            # The lock is released while sleeping; the window is re-checked afterwards.
            if wait_time > 0:
                logger.debug(f"Rate limit reached. Waiting for {wait_time:.3f} seconds.")
                dispatch_event(ApiCallDeferred(wait_time_seconds=wait_time), self._on_event)
                await self._clock.sleep(wait_time)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Runs ``operation`` once a slot in the window is available.

        Args:
            operation: Zero-argument coroutine function to run.

        Returns:
            Whatever the operation returns. Its errors propagate unchanged.
        """
        await self.wait_for_permission()
        return await operation()

    @property
    def available_tokens(self) -> int:
        """Remaining admissions in the current window (diagnostic only)."""
        self._prune()
        return max(0, self.max_requests - len(self._timestamps))

    def reset(self) -> None:
        """Clears all tracked timestamps."""
        self._timestamps.clear()
