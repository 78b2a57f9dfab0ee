"""Port describing the shared liveness cache."""

from __future__ import annotations

from typing import Protocol

from device_heartbeat.domain.heartbeat import CacheEntry


class LivenessCachePort(Protocol):
    """TTL store recording the scheduled transition per device."""

    async def get(self, device_id: str) -> CacheEntry | None:
        """Return the entry for ``device_id`` or ``None`` on a miss."""

    async def set(self, device_id: str, entry: CacheEntry, ttl_seconds: int) -> None:
        """Store ``entry`` so that it expires after ``ttl_seconds``."""

    async def delete(self, device_id: str) -> None:
        """Remove the entry, if present."""


__all__ = ["LivenessCachePort"]
