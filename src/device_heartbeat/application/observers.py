"""Observers publishing heartbeat events to logs and other subscribers."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from device_heartbeat.application.ports.observer import HeartbeatObserver
from device_heartbeat.domain.heartbeat import ChangeEvent, StatsEvent


class LoggingHeartbeatObserver:
    """Writes change and stats events to the ``device_heartbeat.events`` logger."""

    def __init__(self, logger_name: str = "device_heartbeat.events") -> None:
        self._logger = logging.getLogger(logger_name)

    def on_change(self, event: ChangeEvent) -> None:
        data = {
            "device_id": event.device_id,
            "new_state": event.new_state,
            "duration_ms": event.duration_ms,
        }
        if event.error is not None:
            self._logger.warning("heartbeat.change.failed", extra={"data": data | {"error": repr(event.error)}})
            return
        self._logger.debug("heartbeat.change", extra={"data": data})

    def on_stats(self, event: StatsEvent) -> None:
        self._logger.info(
            "heartbeat.queue.stats",
            extra={
                "data": {
                    "queue_depth": event.queue_depth,
                    "hidden_messages": event.hidden_messages,
                    "total_sent": event.total_sent,
                    "total_received": event.total_received,
                    "duration_ms": round((event.end_at - event.start_at).total_seconds() * 1000, 2),
                }
            },
        )


class HeartbeatObserverSet:
    """Fans events out to several observers; one failing observer does not starve the rest."""

    def __init__(self, observers: Iterable[HeartbeatObserver] = ()) -> None:
        self._observers: list[HeartbeatObserver] = list(observers)
        self._logger = logging.getLogger("device_heartbeat.events")

    def subscribe(self, observer: HeartbeatObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: HeartbeatObserver) -> None:
        self._observers.remove(observer)

    def __len__(self) -> int:
        return len(self._observers)

    def on_change(self, event: ChangeEvent) -> None:
        for observer in tuple(self._observers):
            try:
                observer.on_change(event)
            except Exception:
                self._logger.exception("observer failed on change event", extra={"data": {"observer": repr(observer)}})

    def on_stats(self, event: StatsEvent) -> None:
        for observer in tuple(self._observers):
            try:
                observer.on_stats(event)
            except Exception:
                self._logger.exception("observer failed on stats event", extra={"data": {"observer": repr(observer)}})


__all__ = ["HeartbeatObserverSet", "LoggingHeartbeatObserver"]
