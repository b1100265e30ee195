"""
Social Notify Services.

Notification orchestration and the storage layer it runs against.
"""

from __future__ import annotations

__all__ = [
    "notifications",
    "store",
]


def __getattr__(name: str):
    """Lazy import services to avoid circular imports."""
    if name == "notifications":
        from . import notifications

        return notifications
    if name == "store":
        from . import store

        return store
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
