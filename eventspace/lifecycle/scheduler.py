"""Recurring retention sweep.

A single asyncio task runs the sweep once on start and then every interval.
Timer ticks and manual triggers share one code path and never overlap.
stop() prevents future ticks; a sweep already running is allowed to finish.

One scheduler per deployment: running it on several instances needs an
external mutex, which this class does not provide.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from eventspace.models.common import utc_now
from eventspace.models.workspace import SchedulerStatus, SweepReport

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 24 * 60 * 60


class DissolutionScheduler:
    def __init__(
        self,
        sweep: Callable[[], Awaitable[SweepReport]],
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._sweep = sweep
        self._interval = interval_seconds
        self._clock = clock

        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._tick_lock = asyncio.Lock()

        self._last_run_at: datetime | None = None
        self._last_error: str | None = None
        self._run_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the loop. No-op if already running."""
        if self.running:
            logger.debug("Dissolution scheduler already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="dissolution-scheduler")
        logger.info("Dissolution scheduler started (interval: %ss)", self._interval)

    async def stop(self) -> None:
        """Stop scheduling. Waits for an in-flight sweep instead of cancelling it."""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Dissolution scheduler stopped")

    def status(self) -> SchedulerStatus:
        next_run: datetime | None = None
        if self.running and self._last_run_at is not None:
            next_run = self._last_run_at + timedelta(seconds=self._interval)
        return SchedulerStatus(
            running=self.running,
            interval_seconds=self._interval,
            next_run_estimate=next_run,
            last_run_at=self._last_run_at,
            last_error=self._last_error,
            run_count=self._run_count,
        )

    async def trigger_manual_processing(self) -> SweepReport:
        """Run one sweep now, independent of the timer. Errors propagate."""
        return await self._run_sweep()

    async def _run_sweep(self) -> SweepReport:
        async with self._tick_lock:
            self._last_run_at = self._clock()
            self._run_count += 1
            try:
                report = await self._sweep()
            except Exception as exc:
                self._last_error = f"{type(exc).__name__}: {exc}"
                raise
            self._last_error = None
            return report

    async def _tick(self) -> None:
        try:
            await self._run_sweep()
        except Exception:
            logger.exception("Scheduled dissolution sweep failed")

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            await self._tick()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                continue
