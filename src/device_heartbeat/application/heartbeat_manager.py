"""Heartbeat state machine: captures device activity and applies scheduled demotions.

Every replica of the API runs the same manager against one shared cache and one
shared delayed queue. The cache records which demotion is scheduled for a device
(and the state we last believed), the queue carries the demotions themselves.
Nothing here takes an in-process lock: the queue's visibility timeout is the
only mutual exclusion between consumers, cache writes are last-write-wins and
store writes are conditional, so replaying a transition is harmless.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from opentelemetry import trace

from device_heartbeat.application.dto.transition import decode_transition
from device_heartbeat.application.ports.device_store import DeviceRecordStorePort
from device_heartbeat.application.ports.liveness_cache import LivenessCachePort
from device_heartbeat.application.ports.observer import HeartbeatObserver
from device_heartbeat.application.ports.transition_queue import TransitionQueuePort
from device_heartbeat.domain.exceptions import MalformedTransitionError, UnexpectedTargetStateError
from device_heartbeat.domain.heartbeat import (
    SCHEDULED_TRANSITIONS,
    CacheEntry,
    ChangeEvent,
    HeartbeatState,
    QueuedMessage,
    StatsEvent,
    Transition,
)

Clock = Callable[[], datetime]

DEVICE_STATE_FIELD = "api_heartbeat_state"
CACHE_TTL_MARGIN_SECONDS = 5
RECEIVE_VISIBILITY_TIMEOUT_SECONDS = 30

logger = logging.getLogger("device_heartbeat.state")


@dataclass(frozen=True)
class HeartbeatConfig:
    """Static configuration of the state machine."""

    enabled: bool
    grace_timeout_seconds: int
    online_update_throttle: bool = True
    online_update_grace: timedelta = timedelta(minutes=5)
    visibility_timeout_seconds: int = RECEIVE_VISIBILITY_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.grace_timeout_seconds < 0:
            raise ValueError("grace_timeout_seconds must be non-negative")
        if self.visibility_timeout_seconds <= 0:
            raise ValueError("visibility_timeout_seconds must be positive")


class HeartbeatStateManager:
    """Decides when a device is online, timed out or offline."""

    def __init__(
        self,
        *,
        cache: LivenessCachePort,
        queue: TransitionQueuePort,
        store: DeviceRecordStorePort,
        observer: HeartbeatObserver | None,
        clock: Clock,
        config: HeartbeatConfig,
    ) -> None:
        self._cache = cache
        self._queue = queue
        self._store = store
        self._observer = observer
        self._clock = clock
        self._config = config

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def config(self) -> HeartbeatConfig:
        return self._config

    async def setup(self) -> None:
        """Create the transition queue; a no-op when tracking is disabled."""
        if not self.enabled:
            return
        await self._queue.ensure_queue()

    # ------------------------------------------------------------------
    # activity capture

    async def capture_event_for(self, device_id: str, timeout_seconds: float) -> None:
        """Record activity for ``device_id`` and schedule its next timeout.

        The timeout is rescheduled even when the online write fails; the store
        error is raised once scheduling is done.
        """
        if not self.enabled:
            return

        previous = await self._read_cache(device_id)
        now = self._clock()
        store_error: Exception | None = None

        if self._should_write_online(previous, now):
            try:
                await self._update_device_model(device_id, HeartbeatState.ONLINE)
            except Exception as exc:
                store_error = exc
            # no write time after a failure, so the next poll retries the write
            updated_at: datetime | None = now if store_error is None else None
        else:
            # keep the first write time so continuous polling cannot extend the throttle window
            updated_at = previous.updated_at if previous is not None else None
            logger.debug(
                "skipping online write for recently refreshed device",
                extra={"data": {"device_id": device_id, "updated_at": updated_at}},
            )

        # always a whole number of seconds, rounded up so we never expire too soon
        await self._schedule_change_of_state(
            device_id,
            current_state=HeartbeatState.ONLINE,
            next_state=SCHEDULED_TRANSITIONS[HeartbeatState.ONLINE],
            delay_seconds=math.ceil(timeout_seconds),
            previous=previous,
            updated_at=updated_at,
        )
        if store_error is not None:
            raise store_error

    def _should_write_online(self, previous: CacheEntry | None, now: datetime) -> bool:
        if previous is None:
            return True
        if previous.current_state is not HeartbeatState.ONLINE:
            return True
        if not self._config.online_update_throttle:
            return True
        if previous.updated_at is None:
            return True
        return now - previous.updated_at > self._config.online_update_grace

    # ------------------------------------------------------------------
    # consumer

    async def process_next(self) -> bool:
        """Apply one due transition; return ``False`` when nothing was due."""
        message = await self.receive_next()
        if message is None:
            return False
        await self.handle_message(message)
        return True

    async def receive_next(self) -> QueuedMessage | None:
        """Lease the next due message, or ``None`` when nothing is due."""
        if not self.enabled:
            return None
        return await self._queue.receive(self._config.visibility_timeout_seconds)

    async def handle_message(self, message: QueuedMessage) -> None:
        """Apply a leased message and delete it; failures leave it for redelivery."""
        try:
            transition = decode_transition(message.body)
        except MalformedTransitionError:
            logger.error(
                "discarding malformed heartbeat transition",
                extra={"data": {"message_id": message.message_id, "body": message.body}},
            )
            await self._queue.delete(message.message_id)
            return

        try:
            await self._apply(transition)
        except Exception:
            logger.warning(
                "heartbeat transition failed; message left for redelivery",
                extra={
                    "data": {
                        "message_id": message.message_id,
                        "device_id": transition.device_id,
                        "next_state": transition.next_state,
                        "receive_count": message.receive_count,
                    }
                },
            )
            raise

        await self._queue.delete(message.message_id)

    async def _apply(self, transition: Transition) -> None:
        device_id = transition.device_id
        match transition.next_state:
            case HeartbeatState.TIMEOUT:
                # missed the expected poll: mark as timed out, then offline after the grace period
                await asyncio.gather(
                    self._schedule_offline(device_id),
                    self._update_device_model(device_id, HeartbeatState.TIMEOUT),
                )
            case HeartbeatState.OFFLINE:
                await self._update_device_model(device_id, HeartbeatState.OFFLINE)
                # dropping the entry forces the next capture to rewrite the store
                await self._clear_cache(device_id)
            case _:
                raise UnexpectedTargetStateError(
                    f"unexpected target state {transition.next_state!r} for device {device_id}"
                )

    async def _schedule_offline(self, device_id: str) -> None:
        previous = await self._read_cache(device_id)
        await self._schedule_change_of_state(
            device_id,
            current_state=HeartbeatState.TIMEOUT,
            next_state=SCHEDULED_TRANSITIONS[HeartbeatState.TIMEOUT],
            delay_seconds=self._config.grace_timeout_seconds,
            previous=previous,
            updated_at=previous.updated_at if previous is not None else None,
        )

    # ------------------------------------------------------------------
    # stats

    async def emit_queue_stats(self) -> StatsEvent | None:
        """Read the queue counters and publish them to the observer."""
        if not self.enabled:
            return None
        start_at = self._clock()
        stats = await self._queue.stats()
        event = StatsEvent.from_stats(stats, start_at=start_at, end_at=self._clock())
        self._notify_stats(event)
        return event

    # ------------------------------------------------------------------
    # helpers

    async def _schedule_change_of_state(
        self,
        device_id: str,
        *,
        current_state: HeartbeatState,
        next_state: HeartbeatState,
        delay_seconds: int,
        previous: CacheEntry | None,
        updated_at: datetime | None,
    ) -> str:
        if previous is not None:
            try:
                await self._queue.delete(previous.scheduled_message_id)
            except Exception:
                # it may already have been consumed or expired
                logger.debug(
                    "could not delete superseded transition",
                    extra={"data": {"device_id": device_id, "message_id": previous.scheduled_message_id}},
                    exc_info=True,
                )

        message_id = await self._queue.send(device_id, next_state, delay_seconds)

        entry = CacheEntry(
            scheduled_message_id=message_id,
            current_state=current_state,
            updated_at=updated_at,
        )
        try:
            await self._cache.set(device_id, entry, delay_seconds + CACHE_TTL_MARGIN_SECONDS)
        except Exception:
            logger.warning(
                "liveness cache write failed",
                extra={"data": {"device_id": device_id, "message_id": message_id}},
                exc_info=True,
            )
        return message_id

    async def _read_cache(self, device_id: str) -> CacheEntry | None:
        try:
            return await self._cache.get(device_id)
        except Exception:
            logger.warning(
                "liveness cache read failed; treating as miss",
                extra={"data": {"device_id": device_id}},
                exc_info=True,
            )
            return None

    async def _clear_cache(self, device_id: str) -> None:
        try:
            await self._cache.delete(device_id)
        except Exception:
            logger.warning(
                "liveness cache delete failed",
                extra={"data": {"device_id": device_id}},
                exc_info=True,
            )

    async def _update_device_model(self, device_id: str, new_state: HeartbeatState) -> None:
        start_at = self._clock()
        error: Exception | None = None
        tracer = trace.get_tracer("device_heartbeat.state")
        with tracer.start_as_current_span(
            "heartbeat.state.update",
            attributes={"device.id": device_id, "heartbeat.state": new_state.value},
        ):
            try:
                await self._store.conditional_update(device_id, {DEVICE_STATE_FIELD: new_state.value})
            except Exception as exc:
                error = exc
                logger.warning(
                    "failed to update the device heartbeat state",
                    extra={"data": {"device_id": device_id, "new_state": new_state, "error": repr(exc)}},
                )
                raise
            finally:
                self._notify_change(
                    ChangeEvent(
                        device_id=device_id,
                        new_state=new_state,
                        start_at=start_at,
                        end_at=self._clock(),
                        error=error,
                    )
                )

    def _notify_change(self, event: ChangeEvent) -> None:
        if self._observer is None:
            return
        try:
            self._observer.on_change(event)
        except Exception:
            logger.exception("heartbeat change observer failed")

    def _notify_stats(self, event: StatsEvent) -> None:
        if self._observer is None:
            return
        try:
            self._observer.on_stats(event)
        except Exception:
            logger.exception("heartbeat stats observer failed")


__all__ = [
    "CACHE_TTL_MARGIN_SECONDS",
    "DEVICE_STATE_FIELD",
    "RECEIVE_VISIBILITY_TIMEOUT_SECONDS",
    "HeartbeatConfig",
    "HeartbeatStateManager",
]
