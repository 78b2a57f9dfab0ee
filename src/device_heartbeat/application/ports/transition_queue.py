"""Port describing the delayed transition queue."""

from __future__ import annotations

from typing import Protocol

from device_heartbeat.domain.heartbeat import HeartbeatState, QueuedMessage, QueueStats


class TransitionQueuePort(Protocol):
    """Delayed queue with per-receive visibility timeouts.

    Delivery is at-least-once; a received message stays hidden from every
    consumer for ``visibility_timeout`` seconds and reappears unless deleted.
    """

    async def ensure_queue(self) -> None:
        """Create the backing queue when it does not exist yet."""

    async def send(self, device_id: str, next_state: HeartbeatState, delay_seconds: int) -> str:
        """Schedule ``next_state`` for ``device_id`` and return the message id."""

    async def receive(self, visibility_timeout: int) -> QueuedMessage | None:
        """Lease the next visible message, or return ``None`` when none is due."""

    async def delete(self, message_id: str) -> bool:
        """Delete the message; ``False`` when it no longer exists."""

    async def stats(self) -> QueueStats:
        """Return queue depth and lifetime counters."""


__all__ = ["TransitionQueuePort"]
