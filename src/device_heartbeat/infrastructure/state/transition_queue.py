"""In-memory delayed queue with visibility timeouts."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import uuid4

from device_heartbeat.application.dto.transition import encode_transition
from device_heartbeat.application.ports.transition_queue import TransitionQueuePort
from device_heartbeat.domain.heartbeat import HeartbeatState, QueuedMessage, QueueStats


@dataclass(slots=True)
class _StoredMessage:
    message_id: str
    body: str
    visible_at: datetime
    sent_seq: int
    receive_count: int = 0
    first_received_at: datetime | None = None


class InMemoryTransitionQueue(TransitionQueuePort):
    """Clock-driven queue mirroring the shared queue's delivery semantics."""

    def __init__(self, *, clock: Callable[[], datetime]) -> None:
        self._clock = clock
        self._messages: dict[str, _StoredMessage] = {}
        self._seq = 0
        self._total_sent = 0
        self._total_recv = 0

    async def ensure_queue(self) -> None:
        return None

    async def send(self, device_id: str, next_state: HeartbeatState, delay_seconds: int) -> str:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        return self.send_raw(encode_transition(device_id, next_state), delay_seconds)

    def send_raw(self, body: str, delay_seconds: int = 0) -> str:
        """Enqueue an arbitrary body; lets callers inject payloads other replicas may write."""
        message_id = uuid4().hex
        self._seq += 1
        self._messages[message_id] = _StoredMessage(
            message_id=message_id,
            body=body,
            visible_at=self._clock() + timedelta(seconds=delay_seconds),
            sent_seq=self._seq,
        )
        self._total_sent += 1
        return message_id

    async def receive(self, visibility_timeout: int) -> QueuedMessage | None:
        now = self._clock()
        due = [message for message in self._messages.values() if message.visible_at <= now]
        if not due:
            return None
        message = min(due, key=lambda item: (item.visible_at, item.sent_seq))
        message.visible_at = now + timedelta(seconds=visibility_timeout)
        message.receive_count += 1
        if message.first_received_at is None:
            message.first_received_at = now
        self._total_recv += 1
        return QueuedMessage(
            message_id=message.message_id,
            body=message.body,
            receive_count=message.receive_count,
            first_received_at=message.first_received_at,
        )

    async def delete(self, message_id: str) -> bool:
        return self._messages.pop(message_id, None) is not None

    async def stats(self) -> QueueStats:
        now = self._clock()
        hidden = sum(1 for message in self._messages.values() if message.visible_at > now)
        return QueueStats(
            msgs=len(self._messages),
            hidden_msgs=hidden,
            total_sent=self._total_sent,
            total_recv=self._total_recv,
        )

    def pending(self) -> tuple[QueuedMessage, ...]:
        """Return every stored message ordered by visibility, without leasing them."""
        ordered = sorted(self._messages.values(), key=lambda item: (item.visible_at, item.sent_seq))
        return tuple(
            QueuedMessage(
                message_id=item.message_id,
                body=item.body,
                receive_count=item.receive_count,
                first_received_at=item.first_received_at,
            )
            for item in ordered
        )

    def visible_at(self, message_id: str) -> datetime | None:
        message = self._messages.get(message_id)
        return message.visible_at if message is not None else None

    def __len__(self) -> int:
        return len(self._messages)


__all__ = ["InMemoryTransitionQueue"]
