"""
Push Gateway HTTP Client.

Builds APNs-style payloads and posts one request per device token to an
HTTP push gateway. Transient failures (429, 5xx, network) are retried with
backoff before a token is reported as failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from ...core.clock import Clock, SystemClock
from ...core.logging import get_logger
from ...core.retry import delivery_retry, is_retryable_status
from .errors import DeliveryError
from .types import NotificationType, get_push_category, type_name

if TYPE_CHECKING:
    from ..store.protocol import NotificationStore

logger = get_logger(__name__)

# Gateway says the token is permanently invalid
GONE_STATUS_CODES = {404, 410}


@dataclass
class PushResult:
    """Per-user outcome of a push send."""

    sent: int
    failed: int
    gone: int = 0  # Tokens the gateway reported invalid (deactivated)
    rejected: int = 0  # Tokens refused with a non-retryable status
    failed_tokens: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0 and self.rejected == 0

    @property
    def permanently_rejected(self) -> bool:
        """True when no token was delivered and none is worth retrying."""
        return self.rejected > 0 and self.sent == 0 and self.failed == 0


def build_push_payload(
    type_: NotificationType | str,
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
    badge: int | None = None,
    sound: str = "default",
) -> dict[str, Any]:
    """
    Build an APNs notification payload.

    Custom data is merged at the top level next to ``aps`` along with the
    notification type. The thread id groups notifications for the same
    post or chat on the device.
    """
    data = data or {}
    aps: dict[str, Any] = {
        "alert": {"title": title, "body": body},
        "sound": sound,
        "mutable-content": 1,
        "category": get_push_category(type_).value,
    }
    if badge is not None:
        aps["badge"] = badge

    thread_id = data.get("postId") or data.get("chatroomId")
    if thread_id:
        aps["thread-id"] = thread_id

    payload: dict[str, Any] = {"aps": aps}
    payload.update({"notificationType": type_name(type_), **data})
    return payload


@dataclass
class PushClient:
    """
    HTTP client for the push gateway.

    Features:
    - One POST per active device token
    - Retry on 429/5xx/network errors with exponential backoff
    - Other 4xx responses count as rejected and are never retried
    - Tokens the gateway reports as gone are deactivated
    - No gateway URL: every send is a no-op returning PushResult(0, 0)
    """

    store: NotificationStore
    gateway_url: str | None = None
    api_key: str | None = None
    clock: Clock = field(default_factory=SystemClock)
    timeout: float = 10.0
    retry_attempts: int = 3
    retry_min_wait: float = 0.5
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    # Metrics
    _total_sent: int = 0
    _total_failed: int = 0
    _last_success: datetime | None = None
    _last_failure: datetime | None = None

    _client: httpx.AsyncClient | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.gateway_url:
            logger.info("Push gateway not configured, push delivery disabled")
        self._post_with_retry = delivery_retry(
            max_attempts=self.retry_attempts,
            min_wait=self.retry_min_wait,
            max_wait=self.retry_min_wait * 16,
        )(self._post)

    @property
    def is_configured(self) -> bool:
        return bool(self.gateway_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self.transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post(self, token: str, payload: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        response = await client.post(self.gateway_url, json={"token": token, "payload": payload})
        if response.status_code not in GONE_STATUS_CODES:
            response.raise_for_status()
        return response

    async def send_to_device(self, token: str, payload: dict[str, Any]) -> bool | None:
        """
        Send one payload to one device token.

        Returns:
            True on success, False on failure, None when the gateway reports
            the token gone (the token is deactivated)

        Raises:
            DeliveryError: Non-retryable rejection (400, 401, 403, ...)
        """
        try:
            response = await self._post_with_retry(token, payload)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("Push gateway rejected token %s...: HTTP %d", token[:12], status)
            if not is_retryable_status(status):
                raise DeliveryError(
                    "push", f"token {token[:12]}... rejected", status, retryable=False
                ) from e
            return False
        except httpx.RequestError as e:
            logger.warning("Push gateway request error: %s", e)
            return False

        if response.status_code in GONE_STATUS_CODES:
            logger.info("Deactivating gone device token %s...", token[:12])
            await self.store.deactivate_device_token(token)
            return None

        return True

    async def send(
        self,
        user_id: str,
        type_: NotificationType | str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        tokens: list[str] | None = None,
    ) -> PushResult:
        """
        Push a notification to a user's devices.

        Args:
            user_id: Recipient
            type_: Notification type (drives the payload category)
            title: Alert title
            message: Alert body
            data: Custom payload data
            tokens: Restrict the send to these tokens (used for retries);
                defaults to every active token of the user

        Returns:
            PushResult with per-token counts and the tokens that failed
        """
        if not self.is_configured:
            return PushResult(sent=0, failed=0)

        if tokens is None:
            tokens = await self.store.list_active_device_tokens(user_id)
        if not tokens:
            logger.debug("No active device tokens for user %s", user_id)
            return PushResult(sent=0, failed=0)

        badge = await self.store.count_unread_notifications(user_id)
        payload = build_push_payload(type_, title, message, data, badge=badge)

        result = PushResult(sent=0, failed=0)
        for token in tokens:
            try:
                outcome = await self.send_to_device(token, payload)
            except DeliveryError:
                result.rejected += 1
                continue
            if outcome is None:
                result.gone += 1
            elif outcome:
                result.sent += 1
                await self.store.touch_device_token(token, self.clock.now())
            else:
                result.failed += 1
                result.failed_tokens.append(token)

        self._total_sent += result.sent
        self._total_failed += result.failed + result.rejected
        if result.sent:
            self._last_success = self.clock.now()
        if result.failed or result.rejected:
            self._last_failure = self.clock.now()

        logger.debug(
            "Push results for %s: %d sent, %d failed", user_id, result.sent, result.failed
        )
        return result

    @property
    def success_rate(self) -> float:
        """Calculate success rate (0.0 to 1.0)."""
        total = self._total_sent + self._total_failed
        if total == 0:
            return 1.0
        return self._total_sent / total

    def get_metrics(self) -> dict[str, Any]:
        """Get client metrics for status reporting."""
        return {
            "configured": self.is_configured,
            "total_sent": self._total_sent,
            "total_failed": self._total_failed,
            "success_rate": round(self.success_rate, 3),
            "last_success": self._last_success.isoformat() if self._last_success else None,
            "last_failure": self._last_failure.isoformat() if self._last_failure else None,
        }
