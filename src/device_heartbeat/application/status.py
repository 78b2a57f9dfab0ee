"""Simple status snapshot provider for the heartbeat service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TypedDict

from device_heartbeat.domain.heartbeat import ChangeEvent, StatsEvent


@dataclass
class InMemoryStatus:
    enabled: bool = False
    consumer_running: bool = False
    changes_applied: int = 0
    changes_failed: int = 0
    last_change_at: datetime | None = None
    last_error: str | None = None
    last_stats: StatsEvent | None = None


class QueueStatsSnapshot(TypedDict):
    queue_depth: int
    hidden_messages: int
    total_sent: int
    total_received: int
    collected_at: str


class StatusSnapshot(TypedDict):
    status: str
    enabled: bool
    consumer_running: bool
    changes_applied: int
    changes_failed: int
    last_change_at: str | None
    last_error: str | None
    queue: QueueStatsSnapshot | None


@dataclass(slots=True)
class StatusProvider:
    """Tracks lightweight runtime status; subscribes to heartbeat events."""

    state: InMemoryStatus = field(default_factory=InMemoryStatus)

    def on_change(self, event: ChangeEvent) -> None:
        self.state.last_change_at = event.end_at
        if event.error is None:
            self.state.changes_applied += 1
            return
        self.state.changes_failed += 1
        self.state.last_error = f"{event.device_id}: {event.error!r}"

    def on_stats(self, event: StatsEvent) -> None:
        self.state.last_stats = event

    def snapshot(self) -> StatusSnapshot:
        if not self.state.enabled:
            status_value = "disabled"
        elif self.state.consumer_running:
            status_value = "running"
        else:
            status_value = "idle"
        stats = self.state.last_stats
        return {
            "status": status_value,
            "enabled": self.state.enabled,
            "consumer_running": self.state.consumer_running,
            "changes_applied": self.state.changes_applied,
            "changes_failed": self.state.changes_failed,
            "last_change_at": self._iso(self.state.last_change_at),
            "last_error": self.state.last_error,
            "queue": (
                {
                    "queue_depth": stats.queue_depth,
                    "hidden_messages": stats.hidden_messages,
                    "total_sent": stats.total_sent,
                    "total_received": stats.total_received,
                    "collected_at": stats.end_at.isoformat(),
                }
                if stats is not None
                else None
            ),
        }

    @staticmethod
    def _iso(value: datetime | None) -> str | None:
        return value.isoformat() if value else None


__all__ = ["InMemoryStatus", "QueueStatsSnapshot", "StatusProvider", "StatusSnapshot"]
