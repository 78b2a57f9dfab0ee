"""Port for subscribers of heartbeat change and queue stats events."""

from __future__ import annotations

from typing import Protocol

from device_heartbeat.domain.heartbeat import ChangeEvent, StatsEvent


class HeartbeatObserver(Protocol):
    def on_change(self, event: ChangeEvent) -> None:
        ...

    def on_stats(self, event: StatsEvent) -> None:
        ...


__all__ = ["HeartbeatObserver"]
