"""Background workers driving the heartbeat transition queue."""

from __future__ import annotations

from device_heartbeat.application.heartbeat_manager import HeartbeatStateManager
from device_heartbeat.application.status import StatusProvider
from device_heartbeat.runtime.base_worker import BaseWorker

# wait between empty receives
CONSUMER_IDLE_DELAY_SECONDS = 1.0
QUEUE_STATS_INTERVAL_SECONDS = 10.0


class HeartbeatConsumerWorker(BaseWorker):
    """Drains due transitions one at a time.

    A failing transition is logged and left on the queue until its lease
    lapses; the next due message is taken without waiting. Only an empty
    or failed receive waits for the idle delay.
    """

    worker_name = "heartbeat-consumer"
    logger_name = "device_heartbeat.consumer"
    default_poll_interval = CONSUMER_IDLE_DELAY_SECONDS

    def __init__(
        self,
        *,
        manager: HeartbeatStateManager,
        status_provider: StatusProvider | None = None,
        idle_delay_seconds: float = CONSUMER_IDLE_DELAY_SECONDS,
    ) -> None:
        super().__init__(poll_interval=idle_delay_seconds)
        self._manager = manager
        self._status = status_provider

    def start(self) -> None:
        if not self._manager.enabled:
            self._logger.info("heartbeat tracking disabled; consumer not started")
            return
        super().start()

    async def _tick(self) -> bool:
        message = await self._manager.receive_next()
        if message is None:
            return False
        try:
            await self._manager.handle_message(message)
        except Exception:
            # the message waits out its lease; move straight on to the next due one
            self._logger.exception(
                "heartbeat transition failed",
                extra={"data": {"worker": self.worker_name, "message_id": message.message_id}},
            )
            self._on_error()
        return True

    def _on_started(self) -> None:
        if self._status is not None:
            self._status.state.consumer_running = True

    def _on_stopped(self) -> None:
        if self._status is not None:
            self._status.state.consumer_running = False

    def _on_error(self) -> None:
        if self._status is not None:
            self._status.state.last_error = "heartbeat transition failed (see logs)"


class QueueStatsWorker(BaseWorker):
    """Publishes transition queue counters on a fixed interval."""

    worker_name = "heartbeat-queue-stats"
    logger_name = "device_heartbeat.queue_stats"
    default_poll_interval = QUEUE_STATS_INTERVAL_SECONDS

    def __init__(
        self,
        *,
        manager: HeartbeatStateManager,
        interval_seconds: float = QUEUE_STATS_INTERVAL_SECONDS,
    ) -> None:
        super().__init__(poll_interval=interval_seconds)
        self._manager = manager

    def start(self) -> None:
        if not self._manager.enabled:
            return
        super().start()

    async def _tick(self) -> bool:
        await self._manager.emit_queue_stats()
        return False


__all__ = [
    "CONSUMER_IDLE_DELAY_SECONDS",
    "QUEUE_STATS_INTERVAL_SECONDS",
    "HeartbeatConsumerWorker",
    "QueueStatsWorker",
]
