"""System clock backed by ``time.monotonic`` and ``asyncio.sleep``."""

import asyncio
import time

from hacienda.domain.interfaces.clock import Clock


class SystemClock(Clock):
    """Real time source used outside of tests."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
