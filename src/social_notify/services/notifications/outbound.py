"""
Outbound Delivery Queue.

Bounded async queue for push and real-time sends with bounded retry and a
dead-letter list. Callers enqueue and move on; a background loop does the
sending.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ...core.clock import Clock, SystemClock
from ...core.logging import get_logger
from .errors import DeliveryError

logger = get_logger(__name__)

JobHandler = Callable[[], Awaitable[bool]]


@dataclass
class OutboundJob:
    """A delivery queued for sending."""

    kind: str  # "push" or "realtime"
    user_id: str
    handler: JobHandler = field(repr=False)
    description: str = ""
    attempts: int = 0
    max_attempts: int | None = None  # Queue default when unset
    not_before: datetime | None = None
    enqueued_at: datetime | None = None
    last_error: str | None = None

    def is_due(self, now: datetime) -> bool:
        return self.not_before is None or self.not_before <= now


@dataclass
class OutboundHealth:
    """Health status of the outbound queue."""

    queue_depth: int
    waiting: int
    dead_letters: int
    sent_total: int
    failed_total: int
    dropped_total: int
    is_running: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "queue_depth": self.queue_depth,
            "waiting": self.waiting,
            "dead_letters": self.dead_letters,
            "sent_total": self.sent_total,
            "failed_total": self.failed_total,
            "dropped_total": self.dropped_total,
            "is_running": self.is_running,
        }


@dataclass
class OutboundQueue:
    """
    Bounded queue of outbound delivery jobs.

    Features:
    - Max size: 1000 jobs (oldest dropped if full)
    - Retry: failed jobs wait backoff * 2^(attempt-1) before the next try
    - Dead letters: jobs out of attempts are kept (bounded) for inspection;
      a non-retryable DeliveryError dead-letters immediately
    - Deferred jobs wait until ``not_before``
    """

    clock: Clock = field(default_factory=SystemClock)
    max_size: int = 1000
    max_attempts: int = 3
    backoff_seconds: float = 30.0
    dead_letter_size: int = 100
    poll_interval: float = 0.5

    _queue: deque[OutboundJob] = field(default_factory=deque)
    _dead_letters: deque[OutboundJob] = field(default_factory=deque)

    def __post_init__(self) -> None:
        """Initialize deques with configured bounds."""
        self._queue = deque(maxlen=self.max_size)
        self._dead_letters = deque(maxlen=self.dead_letter_size)

    _sent_total: int = 0
    _failed_total: int = 0
    _dropped_total: int = 0

    _task: asyncio.Task | None = field(default=None, repr=False)
    _running: bool = False

    def enqueue(self, job: OutboundJob) -> bool:
        """
        Add a job to the queue. Never blocks.

        Returns:
            True (the job is always accepted; the oldest job is dropped when full)
        """
        if len(self._queue) >= self.max_size:
            dropped = self._queue[0]
            self._dropped_total += 1
            logger.warning(
                "Outbound queue full, dropping oldest %s job for %s (depth=%d)",
                dropped.kind,
                dropped.user_id,
                len(self._queue),
            )

        if job.enqueued_at is None:
            job.enqueued_at = self.clock.now()
        if job.max_attempts is None:
            job.max_attempts = self.max_attempts

        self._queue.append(job)
        return True

    async def _run(self, job: OutboundJob) -> bool:
        job.attempts += 1
        try:
            ok = await job.handler()
            if not ok:
                job.last_error = "handler reported failure"
        except DeliveryError as e:
            ok = False
            job.last_error = str(e)
            if not e.retryable:
                job.attempts = job.max_attempts
        except Exception as e:
            ok = False
            job.last_error = str(e) or type(e).__name__
        return ok

    async def process_due(self) -> int:
        """
        Run every job that is due.

        Returns:
            Number of jobs delivered successfully
        """
        now = self.clock.now()
        pending = list(self._queue)
        self._queue.clear()

        sent = 0
        for job in pending:
            if not job.is_due(now):
                self._queue.append(job)
                continue

            if await self._run(job):
                sent += 1
                self._sent_total += 1
                logger.debug("Delivered %s job for %s", job.kind, job.user_id)
                continue

            self._failed_total += 1
            if job.attempts >= job.max_attempts:
                self._dead_letters.append(job)
                logger.error(
                    "Dead-lettered %s job for %s after %d attempts: %s",
                    job.kind,
                    job.user_id,
                    job.attempts,
                    job.last_error,
                )
            else:
                delay = self.backoff_seconds * (2 ** (job.attempts - 1))
                job.not_before = now + timedelta(seconds=delay)
                self._queue.append(job)
                logger.warning(
                    "%s job for %s failed (attempt %d/%d), retrying in %.0fs: %s",
                    job.kind,
                    job.user_id,
                    job.attempts,
                    job.max_attempts,
                    delay,
                    job.last_error,
                )

        return sent

    async def run_forever(self) -> None:
        """Process due jobs until cancelled."""
        while True:
            try:
                await self.process_due()
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in outbound process loop: %s", e)
                await asyncio.sleep(5)  # Back off on error

    def start(self) -> None:
        """Start the background processor on the running loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self.run_forever())
        logger.info("Outbound queue started")

    async def stop(self) -> None:
        """Stop the background processor. Pending jobs stay queued."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    @property
    def dead_letters(self) -> list[OutboundJob]:
        return list(self._dead_letters)

    @property
    def depth(self) -> int:
        """Get current queue depth."""
        return len(self._queue)

    def get_health(self) -> OutboundHealth:
        now = self.clock.now()
        return OutboundHealth(
            queue_depth=len(self._queue),
            waiting=sum(1 for job in self._queue if not job.is_due(now)),
            dead_letters=len(self._dead_letters),
            sent_total=self._sent_total,
            failed_total=self._failed_total,
            dropped_total=self._dropped_total,
            is_running=self._running,
        )
