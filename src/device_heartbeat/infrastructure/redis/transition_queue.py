"""Redis delayed queue compatible with the RSMQ key layout.

Messages live in a sorted set scored by the millisecond timestamp at which they
become visible; bodies and counters live in a companion hash. Receiving a
message atomically pushes its score to ``now + visibility_timeout`` so no other
consumer (on any replica) sees it until that lease lapses. All timestamps come
from the Redis server clock so replicas agree on what is due.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import uuid4

from redis.asyncio import Redis

from device_heartbeat.application.dto.transition import encode_transition
from device_heartbeat.application.ports.transition_queue import TransitionQueuePort
from device_heartbeat.domain.heartbeat import HeartbeatState, QueuedMessage, QueueStats
from device_heartbeat.infrastructure.redis.liveness_cache import REDIS_NAMESPACE

EXPIRED_QUEUE = "expired"

_RECEIVE_SCRIPT = """
local msg = redis.call("ZRANGEBYSCORE", KEYS[1], "-inf", ARGV[1], "LIMIT", "0", "1")
if #msg == 0 then
    return {}
end
redis.call("ZADD", KEYS[1], ARGV[2], msg[1])
redis.call("HINCRBY", KEYS[2], "totalrecv", 1)
local body = redis.call("HGET", KEYS[2], msg[1])
local rc = redis.call("HINCRBY", KEYS[2], msg[1] .. ":rc", 1)
local out = {msg[1], body, rc}
if rc == 1 then
    redis.call("HSET", KEYS[2], msg[1] .. ":fr", ARGV[1])
    table.insert(out, ARGV[1])
else
    table.insert(out, redis.call("HGET", KEYS[2], msg[1] .. ":fr"))
end
return out
"""

logger = logging.getLogger("device_heartbeat.redis.queue")


class RedisTransitionQueue(TransitionQueuePort):
    def __init__(
        self,
        client: Redis,
        *,
        namespace: str = REDIS_NAMESPACE,
        queue_name: str = EXPIRED_QUEUE,
    ) -> None:
        self._redis = client
        self._key = f"{namespace}:{queue_name}"
        self._hash_key = f"{self._key}:Q"
        self._receive = client.register_script(_RECEIVE_SCRIPT)

    @property
    def key(self) -> str:
        return self._key

    async def ensure_queue(self) -> None:
        now_ms = await self._now_ms()
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hsetnx(self._hash_key, "created", now_ms // 1000)
            pipe.hsetnx(self._hash_key, "totalsent", 0)
            pipe.hsetnx(self._hash_key, "totalrecv", 0)
            created, _, _ = await pipe.execute()
        if created:
            logger.info("created transition queue", extra={"data": {"queue": self._key}})

    async def send(self, device_id: str, next_state: HeartbeatState, delay_seconds: int) -> str:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        body = encode_transition(device_id, next_state)
        message_id = uuid4().hex
        visible_at = await self._now_ms() + delay_seconds * 1000
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zadd(self._key, {message_id: visible_at})
            pipe.hset(self._hash_key, message_id, body)
            pipe.hincrby(self._hash_key, "totalsent", 1)
            await pipe.execute()
        return message_id

    async def receive(self, visibility_timeout: int) -> QueuedMessage | None:
        now_ms = await self._now_ms()
        result = await self._receive(
            keys=[self._key, self._hash_key],
            args=[now_ms, now_ms + visibility_timeout * 1000],
        )
        if not result:
            return None
        message_id, body, receive_count, first_received = result
        return QueuedMessage(
            message_id=str(message_id),
            body=body if body is not None else "",
            receive_count=int(receive_count),
            first_received_at=_from_ms(first_received),
        )

    async def delete(self, message_id: str) -> bool:
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zrem(self._key, message_id)
            pipe.hdel(self._hash_key, message_id, f"{message_id}:rc", f"{message_id}:fr")
            removed, _ = await pipe.execute()
        return int(removed) == 1

    async def stats(self) -> QueueStats:
        now_ms = await self._now_ms()
        async with self._redis.pipeline(transaction=False) as pipe:
            pipe.hmget(self._hash_key, ["totalsent", "totalrecv"])
            pipe.zcard(self._key)
            pipe.zcount(self._key, f"({now_ms}", "+inf")
            (total_sent, total_recv), msgs, hidden = await pipe.execute()
        return QueueStats(
            msgs=int(msgs),
            hidden_msgs=int(hidden),
            total_sent=int(total_sent or 0),
            total_recv=int(total_recv or 0),
        )

    async def _now_ms(self) -> int:
        seconds, microseconds = await self._redis.time()
        return int(seconds) * 1000 + int(microseconds) // 1000


def _from_ms(value: object) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(str(value)) / 1000, tz=UTC)


__all__ = ["EXPIRED_QUEUE", "RedisTransitionQueue"]
