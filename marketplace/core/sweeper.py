"""Periodic background cleanup for in-memory stores.

The rate limit table and the TTL cache both expire entries lazily on access;
a key that is never touched again would otherwise live forever. A sweeper
runs a cleanup callback on a fixed interval in its own asyncio task, started
and stopped with the application lifespan.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """Run ``callback`` every ``interval_seconds`` until stopped.

    The callback is synchronous and short (a dict scan under a lock), so it
    runs inline on the event loop between requests. Exceptions are logged and
    the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], int],
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.name = name
        self._callback = callback
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Invoke the callback now and return the number of entries removed."""
        try:
            removed = self._callback()
        except Exception:
            logger.exception("sweeper.failed", extra={"sweeper": self.name})
            return 0

        if removed:
            logger.info("sweeper.completed", extra={"sweeper": self.name, "removed": removed})
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.run_once()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"sweeper:{self.name}"
        )
        logger.debug(
            "sweeper.started",
            extra={"sweeper": self.name, "interval_s": self._interval},
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to exit."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("sweeper.stopped", extra={"sweeper": self.name})
