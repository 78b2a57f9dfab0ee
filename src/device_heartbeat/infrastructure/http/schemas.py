"""Response schemas for the heartbeat HTTP API."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class HeartbeatAcceptedResponse:
    status: str
    device_id: str


@dataclass(frozen=True, slots=True)
class QueueStatsModel:
    queue_depth: int
    hidden_messages: int
    total_sent: int
    total_received: int
    collected_at: str


@dataclass(frozen=True, slots=True)
class HeartbeatStatusResponse:
    status: str
    enabled: bool
    consumer_running: bool = False
    changes_applied: int = 0
    changes_failed: int = 0
    last_change_at: str | None = None
    last_error: str | None = None
    queue: QueueStatsModel | None = None


__all__ = ["HeartbeatAcceptedResponse", "HeartbeatStatusResponse", "QueueStatsModel"]
