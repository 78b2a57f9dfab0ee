"""Heartbeat states and the records exchanged by the liveness engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class HeartbeatState(StrEnum):
    """Believed liveness of a device; values match the persisted column."""

    UNKNOWN = "unknown"
    ONLINE = "online"
    TIMEOUT = "timeout"
    OFFLINE = "offline"


# scheduled transitions only ever demote one step at a time
SCHEDULED_TRANSITIONS: dict[HeartbeatState, HeartbeatState] = {
    HeartbeatState.ONLINE: HeartbeatState.TIMEOUT,
    HeartbeatState.TIMEOUT: HeartbeatState.OFFLINE,
}


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """What transition is scheduled for a device and the state we last believed."""

    scheduled_message_id: str
    current_state: HeartbeatState
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.scheduled_message_id.strip():
            raise ValueError("scheduled_message_id must not be empty")


@dataclass(frozen=True, slots=True)
class Transition:
    """Decoded body of a scheduled queue message."""

    device_id: str
    next_state: HeartbeatState


@dataclass(frozen=True, slots=True)
class QueuedMessage:
    """A message handed out by the transition queue, hidden until its lease expires."""

    message_id: str
    body: str
    receive_count: int = 1
    first_received_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class QueueStats:
    msgs: int
    hidden_msgs: int
    total_sent: int
    total_recv: int


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Emitted for every attempt to persist a new heartbeat state."""

    device_id: str
    new_state: HeartbeatState
    start_at: datetime
    end_at: datetime
    error: BaseException | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def duration_ms(self) -> float:
        return round((self.end_at - self.start_at).total_seconds() * 1000, 2)


@dataclass(frozen=True, slots=True)
class StatsEvent:
    """Periodic snapshot of the transition queue."""

    queue_depth: int
    total_sent: int
    total_received: int
    hidden_messages: int
    start_at: datetime
    end_at: datetime

    @classmethod
    def from_stats(cls, stats: QueueStats, *, start_at: datetime, end_at: datetime) -> StatsEvent:
        return cls(
            queue_depth=stats.msgs,
            total_sent=stats.total_sent,
            total_received=stats.total_recv,
            hidden_messages=stats.hidden_msgs,
            start_at=start_at,
            end_at=end_at,
        )


__all__ = [
    "SCHEDULED_TRANSITIONS",
    "CacheEntry",
    "ChangeEvent",
    "HeartbeatState",
    "QueueStats",
    "QueuedMessage",
    "StatsEvent",
    "Transition",
]
