"""Periodic driver for the feed sync cycle."""

import asyncio
from typing import Optional

import structlog

from feed_relay.core import FeedResult
from feed_relay.use_cases import FeedSyncService

logger = structlog.get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 600


class FeedScheduler:
    """Run a cycle at startup and then on a fixed interval.

    Ticks are started on the clock regardless of how long a cycle takes. A
    tick that fires while the previous cycle is still running is skipped.
    """

    def __init__(
        self,
        service: FeedSyncService,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        run_on_start: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.service = service
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self.skipped_ticks = 0
        self._lock = asyncio.Lock()
        self._stopped = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_running_cycle(self) -> bool:
        return self._lock.locked()

    async def tick(self) -> Optional[list[FeedResult]]:
        """Run one cycle unless another one is in progress."""
        if self._lock.locked():
            self.skipped_ticks += 1
            logger.warning("Previous cycle still running, skipping tick", skipped=self.skipped_ticks)
            return None

        async with self._lock:
            try:
                return await self.service.run_cycle()
            except Exception:
                logger.exception("Feed cycle failed")
                return None

    async def run_forever(self) -> None:
        """Schedule ticks until ``stop()`` is called."""
        logger.info("Scheduler started", interval_seconds=self.interval_seconds)
        self._stopped.clear()

        if not self.run_on_start:
            await self._sleep()

        while not self._stopped.is_set():
            task = asyncio.create_task(self.tick())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            await self._sleep()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        if self.is_running_cycle:
            logger.info("Stop requested, waiting for the running cycle to finish")
        self._stopped.set()

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            pass
