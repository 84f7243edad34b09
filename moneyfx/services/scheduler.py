"""
Periodic background jobs.

The rate refresh and the reconciliation run are plain asyncio tasks owned
by the service that schedules them. A tick that is still running when the
next one is due is skipped, not queued.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog


logger = structlog.get_logger(__name__)


class PeriodicJob:
    """
    Run an async callable every `interval_seconds`.

    Usage:
        job = PeriodicJob("rate_refresh", fetcher.fetch_todays_rates, 3600)
        job.start()
        ...
        await job.stop()
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[object]],
        interval_seconds: float,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self._func = func
        self._interval = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._ticks: set[asyncio.Task] = set()
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        """A tick is in flight right now."""
        return self._running

    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> bool:
        """
        Run one tick.

        Returns False if skipped because the previous tick has not finished.
        Exceptions from the tick are logged and swallowed so the loop survives.
        """
        if self._running:
            logger.info("job_tick_skipped", job=self.name)
            return False

        self._running = True
        try:
            await self._func()
            self.runs += 1
        except Exception as e:
            self.failures += 1
            logger.error("job_tick_failed", job=self.name, error=str(e), exc_info=True)
        finally:
            self._running = False
        return True

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop. First tick runs immediately."""
        if self.is_started:
            return self._task
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.info("job_started", job=self.name, interval_seconds=self._interval)
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        for tick in list(self._ticks):
            tick.cancel()
        if self._ticks:
            await asyncio.gather(*self._ticks, return_exceptions=True)
        self._task = None
        logger.info("job_stopped", job=self.name)

    async def _loop(self) -> None:
        while True:
            # Not awaited, so a slow tick cannot delay the schedule
            tick = asyncio.create_task(self.run_once())
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)
            await asyncio.sleep(self._interval)
