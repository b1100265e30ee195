"""
Notification Service Errors.

Domain-specific exceptions for delivery and orchestration. Callers of the
dispatcher never see these; they surface from the delivery clients and are
handled by the outbound queue.
"""

from __future__ import annotations


class NotificationError(Exception):
    """Base exception for notification operations."""

    pass


class DeliveryError(NotificationError):
    """Raised when a delivery channel rejects or fails a send."""

    def __init__(
        self,
        channel: str,
        message: str,
        status_code: int | None = None,
        retryable: bool = True,
    ):
        self.channel = channel
        self.status_code = status_code
        self.retryable = retryable
        msg = f"{channel} delivery failed: {message}"
        if status_code is not None:
            msg += f" (HTTP {status_code})"
        super().__init__(msg)


class UnknownJobError(NotificationError):
    """Raised when a scheduler job name is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown scheduled job: {name}")


class StoreNotInitializedError(NotificationError, RuntimeError):
    """Raised when a store is used before initialize()."""

    def __init__(self, store: str = "Store"):
        super().__init__(f"{store} not initialized. Call initialize() first.")
