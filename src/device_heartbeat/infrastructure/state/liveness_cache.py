"""In-memory implementation of the liveness cache port."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from device_heartbeat.application.ports.liveness_cache import LivenessCachePort
from device_heartbeat.domain.heartbeat import CacheEntry


class InMemoryLivenessCache(LivenessCachePort):
    """Process-local TTL cache; only suitable for a single replica or tests."""

    def __init__(self, *, clock: Callable[[], datetime]) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[CacheEntry, datetime]] = {}

    async def get(self, device_id: str) -> CacheEntry | None:
        stored = self._entries.get(device_id)
        if stored is None:
            return None
        entry, expires_at = stored
        if self._clock() >= expires_at:
            self._entries.pop(device_id, None)
            return None
        return entry

    async def set(self, device_id: str, entry: CacheEntry, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._entries[device_id] = (entry, self._clock() + timedelta(seconds=ttl_seconds))

    async def delete(self, device_id: str) -> None:
        self._entries.pop(device_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["InMemoryLivenessCache"]
