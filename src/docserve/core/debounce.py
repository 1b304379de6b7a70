"""
Delayed reconciliation for rename-class filesystem events.

Editors save "safely" in several steps (write a temp file and rename it
over the target, or move the target to a backup and write a fresh file),
each producing its own raw event. Reacting to the first one would briefly
see the target missing. Instead, a burst of such events arms one timer and
a single reconciliation pass runs once the window elapses.

The pass always re-reads live filesystem state, so no event payloads are
queued and an armed timer never goes stale.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class DebounceScheduler:
    """
    Arms at most one pending run of a callback after a quiet window.

    Example:
        rename at t=0ms     -> timer armed, fires at t=200ms
        rename at t=50ms    -> already armed, nothing to do
        t=200ms             -> callback runs once against live state
        rename at t=250ms   -> new timer armed
    """

    def __init__(self, delay_seconds: float, callback: Callable[[], Awaitable[object] | object]):
        """
        Initialize the scheduler.

        Args:
            delay_seconds: Quiet window before the callback runs
            callback: Sync or async callable that re-derives state itself

        Raises:
            ValueError: If the delay is negative
        """
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._armed = False
        self._tasks: set[asyncio.Task] = set()
        self.runs = 0

    @property
    def is_armed(self) -> bool:
        """True while a timer is waiting out its window."""
        return self._armed

    def schedule(self) -> bool:
        """
        Arm the timer unless one is already waiting.

        Must be called from the event loop thread.

        Returns:
            True if a new timer was armed
        """
        if self._armed:
            logger.debug("Rescan already scheduled")
            return False

        loop = asyncio.get_running_loop()
        self._armed = True
        task = loop.create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Rescan scheduled in %.3fs", self.delay_seconds)
        return True

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.delay_seconds)
        finally:
            # Events arriving from here on need a fresh pass
            self._armed = False

        self.runs += 1
        try:
            result = self._callback()
            if asyncio.iscoroutine(result) or hasattr(result, "__await__"):
                await result
        except Exception as e:
            logger.error("Scheduled rescan failed: %s", e, exc_info=True)

    async def wait_idle(self) -> None:
        """Wait until every armed or running pass has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel(self) -> None:
        """Cancel pending and running passes, used on shutdown only."""
        for task in list(self._tasks):
            task.cancel()
        self._armed = False
