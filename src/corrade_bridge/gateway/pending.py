"""Pending-acknowledgment table: correlation id -> Corrade command awaiting a status report."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from cachetools import TTLCache
from loguru import logger


class _ExpiringPending(TTLCache):
    """TTLCache that logs entries dropped for size before a status report arrived."""

    def popitem(self) -> tuple[Any, Any]:
        key, value = super().popitem()
        logger.warning("Pending message {} evicted (table full) without a status report", key)
        return key, value


class PendingAckTable:
    """Outbound Corrade commands keyed by correlation id.

    Without a TTL entries live until their status report arrives; a report that
    never comes leaves the entry behind for the life of the process. With
    ``ttl`` set, entries older than ``ttl`` seconds are dropped and logged.
    """

    def __init__(
        self,
        ttl: float | None = None,
        maxsize: int = 10000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._entries: dict[str, dict[str, str]] | _ExpiringPending
        if ttl:
            self._entries = _ExpiringPending(maxsize=maxsize, ttl=ttl, timer=timer)
        else:
            self._entries = {}

    def _expire(self) -> None:
        if isinstance(self._entries, TTLCache):
            for key, _ in self._entries.expire():
                logger.warning(
                    "Pending message {} expired after {}s without a status report",
                    key,
                    self._ttl,
                )

    def insert(self, correlation_id: str, payload: dict[str, str]) -> None:
        """Record a payload; an existing entry with the same id is overwritten."""
        self._expire()
        self._entries[correlation_id] = payload

    def remove(self, correlation_id: str) -> dict[str, str] | None:
        """Remove and return the payload, or None when the id is unknown."""
        self._expire()
        return self._entries.pop(correlation_id, None)

    def __contains__(self, correlation_id: object) -> bool:
        return correlation_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
