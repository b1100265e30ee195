"""
Periodic Job Scheduler.

Runs named maintenance jobs (scans, sweeps, batch flushes) on fixed
intervals measured by the injected clock. One failing job never stops the
others.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ...core.clock import Clock, SystemClock
from ...core.logging import get_logger
from .errors import UnknownJobError

logger = get_logger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    """A named job and when it next runs."""

    name: str
    interval: timedelta
    func: JobFunc = field(repr=False)
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_error: str | None = None
    run_count: int = 0
    error_count: int = 0


@dataclass
class Scheduler:
    """
    Interval scheduler driven by ``run_due``.

    ``run_forever`` polls ``run_due``; tests call ``run_due`` directly
    after advancing a ManualClock.
    """

    clock: Clock = field(default_factory=SystemClock)
    _jobs: dict[str, ScheduledJob] = field(default_factory=dict)
    _task: asyncio.Task | None = field(default=None, repr=False)

    def add_job(
        self,
        name: str,
        interval: timedelta,
        func: JobFunc,
        run_immediately: bool = False,
    ) -> ScheduledJob:
        """
        Register a job.

        Args:
            name: Unique job name (re-registering replaces the job)
            interval: Time between runs
            func: Async callable to run
            run_immediately: Make the job due now instead of after one interval
        """
        now = self.clock.now()
        job = ScheduledJob(
            name=name,
            interval=interval,
            func=func,
            next_run=now if run_immediately else now + interval,
        )
        self._jobs[name] = job
        return job

    @property
    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    async def _execute(self, job: ScheduledJob) -> Any:
        now = self.clock.now()
        job.last_run = now
        job.next_run = now + job.interval
        job.run_count += 1
        try:
            result = await job.func()
            job.last_error = None
            return result
        except Exception as e:
            job.error_count += 1
            job.last_error = str(e) or type(e).__name__
            logger.error("Scheduled job %s failed: %s", job.name, e, exc_info=True)
            return None

    async def run_job(self, name: str) -> Any:
        """Run one job now, regardless of its schedule."""
        job = self._jobs.get(name)
        if job is None:
            raise UnknownJobError(name)
        return await self._execute(job)

    async def run_due(self) -> dict[str, Any]:
        """
        Run every job whose next run time has passed.

        Returns:
            Mapping of job name to its result (None for failed jobs)
        """
        now = self.clock.now()
        results: dict[str, Any] = {}
        for job in list(self._jobs.values()):
            if job.next_run is None or job.next_run <= now:
                results[job.name] = await self._execute(job)
        return results

    async def run_all(self) -> dict[str, Any]:
        """Run every job now."""
        results: dict[str, Any] = {}
        for job in list(self._jobs.values()):
            results[job.name] = await self._execute(job)
        return results

    async def run_forever(self, poll_interval: float = 30.0) -> None:
        """Poll for due jobs until cancelled."""
        logger.info("Scheduler running %d jobs", len(self._jobs))
        while True:
            try:
                await self.run_due()
                await asyncio.sleep(poll_interval)
            except asyncio.CancelledError:
                break

    def start(self, poll_interval: float = 30.0) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run_forever(poll_interval))

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def get_status(self) -> list[dict[str, Any]]:
        return [
            {
                "name": job.name,
                "interval_seconds": job.interval.total_seconds(),
                "next_run": job.next_run.isoformat() if job.next_run else None,
                "last_run": job.last_run.isoformat() if job.last_run else None,
                "run_count": job.run_count,
                "error_count": job.error_count,
                "last_error": job.last_error,
            }
            for job in self._jobs.values()
        ]
