"""
Minute clock for the date/time step.

When the client is looking at today's slots, the list of bookable times
shrinks as the day goes on. MinuteTicker pushes a fresh "now" to its owner
at a fixed interval while it runs. It is a scoped resource: the owner
starts it when the condition that needs it begins and stops it when that
condition ends. Nothing else creates or keeps intervals alive.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class MinuteTicker:
    """Calls on_tick(now_fn()) every interval_seconds between start() and stop()."""

    def __init__(
        self,
        on_tick: Callable[[datetime], None],
        now_fn: Callable[[], datetime],
        interval_seconds: float = 60.0,
    ):
        self._on_tick = on_tick
        self._now_fn = now_fn
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin ticking. Must be called from a running event loop; no-op if already running."""
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())
        logger.debug(f"Minute clock started (interval={self._interval}s)")

    def stop(self) -> None:
        """Stop ticking. Safe to call when not running."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            logger.debug("Minute clock stopped")
        self._task = None

    def tick(self) -> datetime:
        """Deliver one tick immediately and return the time delivered."""
        now = self._now_fn()
        self._on_tick(now)
        return now

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Minute clock tick failed: {e}")
