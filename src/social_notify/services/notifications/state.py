"""
Keyed State Store.

Shared home for in-process engine state (rate-limit counters, activity
pattern cache). Entries carry an optional expiry; expired entries read as
missing and are dropped by purge_expired().

Swap MemoryStateStore for a shared backend to run several engine processes
against one set of counters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from ...core.clock import Clock, SystemClock
from ...core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class StateStore(Protocol):
    """Keyed value store with per-entry TTL."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> list[str]: ...

    def purge_expired(self) -> int: ...


@dataclass
class _Entry:
    value: Any
    expires_at: datetime | None = None


@dataclass
class MemoryStateStore:
    """
    In-process StateStore backed by a dict.

    Expiry is evaluated against the injected clock.
    """

    clock: Clock = field(default_factory=SystemClock)
    _entries: dict[str, _Entry] = field(default_factory=dict)

    def _expired(self, entry: _Entry) -> bool:
        return entry.expires_at is not None and entry.expires_at <= self.clock.now()

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        expires_at = self.clock.now() + ttl if ttl is not None else None
        self._entries[key] = _Entry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        """Live keys starting with ``prefix``."""
        return [
            key
            for key, entry in list(self._entries.items())
            if key.startswith(prefix) and not self._expired(entry)
        ]

    def purge_expired(self) -> int:
        """
        Remove expired entries to prevent memory growth.

        Returns:
            Number of entries removed
        """
        expired = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug("Purged %d expired state entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
