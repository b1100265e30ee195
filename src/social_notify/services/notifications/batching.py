"""
Notification Batcher.

Groups likes and comments on the same post for the same recipient into
one notification per window ("Sarah and 3 others liked your post").
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ...core.clock import Clock, SystemClock
from ...core.logging import get_logger
from .formatter import format_batch
from .types import NotificationType

logger = get_logger(__name__)

BATCHABLE_TYPES: frozenset[NotificationType] = frozenset(
    {NotificationType.POST_LIKE, NotificationType.COMMENT}
)

NotifyFn = Callable[..., Awaitable[Any]]


@dataclass
class BatchSender:
    sender_id: str
    sender_name: str


@dataclass
class PendingBatch:
    """Senders collected for one (recipient, post, type)."""

    recipient_id: str
    post_id: str
    type: NotificationType
    post_title: str
    first_created_at: datetime
    senders: list[BatchSender] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str, NotificationType]:
        return (self.recipient_id, self.post_id, self.type)

    def build_data(self) -> dict[str, Any]:
        first = self.senders[0] if self.senders else None
        return {
            "postId": self.post_id,
            "senderIds": [s.sender_id for s in self.senders],
            "senderNames": [s.sender_name for s in self.senders],
            "senderId": first.sender_id if first else None,
            "senderName": first.sender_name if first else None,
            "batchCount": len(self.senders),
            "postTitle": self.post_title,
        }


@dataclass
class NotificationBatcher:
    """
    Collects batchable notifications and flushes them after ``window``.

    ``notify`` receives the consolidated notification on flush.
    """

    notify: NotifyFn
    clock: Clock = field(default_factory=SystemClock)
    window: timedelta = field(default_factory=lambda: timedelta(minutes=15))
    _batches: dict[tuple[str, str, NotificationType], PendingBatch] = field(
        default_factory=dict
    )

    def add(
        self,
        recipient_id: str,
        type_: NotificationType,
        sender_id: str,
        sender_name: str,
        post_id: str,
        post_title: str,
    ) -> bool:
        """
        Add a sender to the batch for this post, creating it if needed.

        Returns:
            True if batched, False if the type is not batchable
        """
        if type_ not in BATCHABLE_TYPES:
            return False

        key = (recipient_id, post_id, type_)
        batch = self._batches.get(key)

        if batch is None:
            batch = PendingBatch(
                recipient_id=recipient_id,
                post_id=post_id,
                type=type_,
                post_title=post_title,
                first_created_at=self.clock.now(),
            )
            self._batches[key] = batch
            logger.debug("Created batch %s:%s:%s", recipient_id, post_id, type_.value)

        if not any(s.sender_id == sender_id for s in batch.senders):
            batch.senders.append(BatchSender(sender_id=sender_id, sender_name=sender_name))

        return True

    async def _flush(self, batch: PendingBatch) -> bool:
        copy = format_batch(batch.type, [s.sender_name for s in batch.senders], batch.post_title)
        try:
            await self.notify(
                batch.recipient_id,
                batch.type,
                copy.title,
                copy.message,
                batch.build_data(),
            )
        except Exception as e:
            logger.error("Failed to flush batched notification: %s", e, exc_info=True)
            return False

        logger.info(
            "Batched notification sent to %s: %s with %d senders",
            batch.recipient_id,
            batch.type.value,
            len(batch.senders),
        )
        return True

    async def flush_due(self) -> int:
        """Flush batches whose window has elapsed. Returns batches flushed."""
        now = self.clock.now()
        due = [b for b in self._batches.values() if now - b.first_created_at >= self.window]

        flushed = 0
        for batch in due:
            self._batches.pop(batch.key, None)
            if await self._flush(batch):
                flushed += 1
        return flushed

    async def flush_all(self) -> int:
        """Flush every pending batch regardless of age."""
        batches = list(self._batches.values())
        self._batches.clear()

        flushed = 0
        for batch in batches:
            if await self._flush(batch):
                flushed += 1

        if batches:
            logger.info("Flushed %d notification batches", len(batches))
        return flushed

    def get_status(self) -> dict[str, int]:
        return {
            "active_batches": len(self._batches),
            "total_pending": sum(len(b.senders) for b in self._batches.values()),
        }
