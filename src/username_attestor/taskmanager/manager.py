"""Periodic background jobs on the engine's event loop.

Each :class:`CronJob` gets one asyncio task that waits ``period`` seconds,
runs the handler, and repeats until :meth:`TaskManager.stop` is called.
Stopping wakes every waiting loop at once; a handler that is mid-run is
given ``STOP_GRACE`` seconds before it is cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from username_attestor.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)

STOP_GRACE = 5.0


@dataclass
class CronJob:
    name: str
    period: float
    handler: Callable[[], Awaitable[object]]
    runs: int = 0
    failures: int = 0
    last_finished: float | None = None


class TaskManager:
    """Schedules :class:`CronJob` loops.

    Usage::

        tm = TaskManager(metrics=engine_metrics)
        tm.add(CronJob("expiry_sweep", 60, sweep))
        await tm.start()
        ...
        await tm.stop()
    """

    def __init__(self, *, metrics: EngineMetrics | None = None) -> None:
        self._metrics = metrics
        self._jobs: dict[str, CronJob] = {}
        self._loops: dict[str, asyncio.Task[None]] = {}
        self._stopping = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return bool(self._loops) and not self._stopping.is_set()

    @property
    def jobs(self) -> dict[str, CronJob]:
        return dict(self._jobs)

    def add(self, job: CronJob) -> None:
        """Add *job*; it is scheduled right away when the manager is running."""
        if job.name in self._jobs:
            msg = f"cron job {job.name!r} already registered"
            raise ValueError(msg)
        self._jobs[job.name] = job
        if self.is_running:
            self._spawn(job)

    async def run_now(self, name: str) -> None:
        """Run a registered job once, outside its schedule.

        Raises:
            KeyError: If no job named *name* is registered.
        """
        await self._run(self._jobs[name])

    async def start(self) -> None:
        if self.is_running:
            return
        self._stopping.clear()
        for job in self._jobs.values():
            self._spawn(job)
        logger.info("Started %d cron jobs: %s", len(self._loops), ", ".join(self._loops))

    async def stop(self) -> None:
        if not self._loops:
            return
        self._stopping.set()
        loops = list(self._loops.values())
        _, pending = await asyncio.wait(loops, timeout=STOP_GRACE)
        for task in pending:
            logger.warning("Cron job %s did not finish in time, cancelling", task.get_name())
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._loops.clear()
        logger.info("Cron jobs stopped")

    def _spawn(self, job: CronJob) -> None:
        self._loops[job.name] = asyncio.create_task(self._loop(job), name=f"cron:{job.name}")

    async def _loop(self, job: CronJob) -> None:
        while not self._stopping.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=job.period)
                return
            try:
                await self._run(job)
            except Exception:
                job.failures += 1
                logger.exception("Cron job %s failed (%d failures)", job.name, job.failures)

    async def _run(self, job: CronJob) -> None:
        job.runs += 1
        try:
            if self._metrics is None:
                await job.handler()
            else:
                with self._metrics.track_cron(job.name):
                    await job.handler()
        finally:
            job.last_finished = time.time()
