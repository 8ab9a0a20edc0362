"""Interface for time sources.

The pipeline never reads the system clock or sleeps directly; it goes
through this port so tests can drive virtual time deterministically.
"""

import abc


class Clock(abc.ABC):
    """Abstract Base Class for a monotonic clock with an async sleep."""

    @abc.abstractmethod
    def now(self) -> float:
        """Returns the current time in seconds (monotonic, arbitrary origin)."""
        pass

    @abc.abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspends the calling coroutine for ``seconds``.

        Args:
            seconds: Duration to wait. Non-positive values return promptly.
        """
        pass
