"""
Real-time Sync HTTP Client.

Mirrors persisted notifications and friend-activity events to the
real-time backend that drives live in-app updates. Each call is one
``{path, args}`` mutation posted to ``{base_url}/api/mutation``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import httpx

from ...core.clock import Clock, SystemClock, to_epoch
from ...core.logging import get_logger
from ...core.retry import delivery_retry, is_retryable_status
from .errors import DeliveryError

if TYPE_CHECKING:
    from ..store.protocol import Notification
    from .types import FriendActivity

logger = get_logger(__name__)

NOTIFICATION_MUTATION = "notifications:pushNotification"
ACTIVITY_MUTATION = "friendActivity:recordActivity"

ACTIVITY_TTL = timedelta(hours=24)

# Notification data keys forwarded as metadata
METADATA_KEYS = ("postId", "commentId", "chatroomId", "friendRequestId")


def _epoch_ms(clock: Clock) -> int:
    return int(to_epoch(clock.now()) * 1000)


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


@dataclass
class RealtimeClient:
    """
    HTTP client for the real-time backend's mutation endpoint.

    Unconfigured clients accept every call as a no-op. Transient failures
    are retried; anything still failing raises DeliveryError.
    """

    base_url: str | None = None
    clock: Clock = field(default_factory=SystemClock)
    timeout: float = 10.0
    retry_attempts: int = 3
    retry_min_wait: float = 0.5
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    _client: httpx.AsyncClient | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.base_url:
            logger.info("Real-time backend not configured, sync disabled")
        self._post_with_retry = delivery_retry(
            max_attempts=self.retry_attempts,
            min_wait=self.retry_min_wait,
            max_wait=self.retry_min_wait * 16,
        )(self._post)

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    @property
    def mutation_url(self) -> str:
        return f"{(self.base_url or '').rstrip('/')}/api/mutation"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json"},
                transport=self.transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        response = await client.post(self.mutation_url, json=body)
        response.raise_for_status()
        return response

    async def mutate(self, path: str, args: dict[str, Any]) -> bool:
        """
        Run one mutation.

        Returns:
            True once delivered (or skipped because unconfigured)

        Raises:
            DeliveryError: when the backend still fails after retries
        """
        if not self.is_configured:
            return True

        try:
            await self._post_with_retry({"path": path, "args": args})
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise DeliveryError(
                "realtime",
                f"{path} rejected",
                status_code=status,
                retryable=is_retryable_status(status),
            ) from e
        except httpx.RequestError as e:
            raise DeliveryError("realtime", f"{path} request error: {e}") from e

        logger.debug("Real-time mutation %s delivered", path)
        return True

    async def push_notification(
        self,
        notification: Notification,
        sender_id: str | None = None,
        sender_name: str | None = None,
    ) -> bool:
        """Mirror a persisted notification for live delivery."""
        data = notification.data or {}
        metadata = _compact({key: data.get(key) for key in METADATA_KEYS})
        if sender_id:
            metadata["userId"] = sender_id

        args = _compact(
            {
                "recipientId": notification.user_id,
                "senderId": sender_id,
                "senderName": sender_name,
                "type": notification.type,
                "title": notification.title,
                "message": notification.message,
                "metadata": metadata or None,
                "storeId": notification.id,
                "isRead": False,
                "createdAt": _epoch_ms(self.clock),
            }
        )
        return await self.mutate(NOTIFICATION_MUTATION, args)

    async def record_activity(self, activity: FriendActivity) -> bool:
        """Publish a friend-activity event that expires after 24 hours."""
        created_at = _epoch_ms(self.clock)
        args = _compact(
            {
                "actorId": activity.user_id,
                "actorName": activity.user_name,
                "activityType": activity.activity_type,
                "targetId": activity.target_id,
                "targetType": activity.target_type,
                "targetPreview": activity.target_preview,
                "createdAt": created_at,
                "expiresAt": created_at + int(ACTIVITY_TTL.total_seconds() * 1000),
            }
        )
        return await self.mutate(ACTIVITY_MUTATION, args)
