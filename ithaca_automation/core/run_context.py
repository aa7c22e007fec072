"""
Run context carrying the cancellation signal for the automation loop.

All suspension points (retry backoff, confirmation polling, wallet pacing and
the inter-cycle cooldown) sleep through :meth:`RunContext.sleep`, so a stop
request takes effect at the next suspension point instead of requiring the
process to be killed.
"""

import asyncio
import time
from typing import Callable, Optional

import structlog

from .types import ShutdownRequested

logger = structlog.get_logger(__name__)


class RunContext:
    """Cancellation signal plus the clock used by time-bounded loops"""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._stop_event = asyncio.Event()
        self.clock = clock or time.monotonic

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        """Ask the run to stop at the next suspension point"""
        if not self._stop_event.is_set():
            logger.warning("Stop requested, finishing current network call")
        self._stop_event.set()

    def check(self) -> None:
        """Raise ShutdownRequested if a stop has been requested"""
        if self._stop_event.is_set():
            raise ShutdownRequested("run stopped")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless a stop is requested first

        Raises:
            ShutdownRequested: if the stop signal is set before or during the sleep
        """
        self.check()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.check()
