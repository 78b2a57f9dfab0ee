"""Redis-backed liveness cache shared by every API replica."""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from redis.asyncio import Redis

from device_heartbeat.application.ports.liveness_cache import LivenessCachePort
from device_heartbeat.domain.heartbeat import CacheEntry, HeartbeatState

REDIS_NAMESPACE = "device-online-state"

logger = logging.getLogger("device_heartbeat.redis.cache")


class CacheEntryPayload(BaseModel):
    """JSON stored under ``device-online-state:<uuid>``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    current_state: HeartbeatState = Field(alias="currentState")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @classmethod
    def from_entry(cls, entry: CacheEntry) -> CacheEntryPayload:
        return cls(id=entry.scheduled_message_id, current_state=entry.current_state, updated_at=entry.updated_at)

    def to_entry(self) -> CacheEntry:
        return CacheEntry(
            scheduled_message_id=self.id,
            current_state=self.current_state,
            updated_at=self.updated_at,
        )


class RedisLivenessCache(LivenessCachePort):
    """Stores one JSON entry per device with a Redis-side expiry."""

    def __init__(self, client: Redis, *, namespace: str = REDIS_NAMESPACE) -> None:
        self._redis = client
        self._namespace = namespace

    def key_for(self, device_id: str) -> str:
        return f"{self._namespace}:{device_id}"

    async def get(self, device_id: str) -> CacheEntry | None:
        raw = await self._redis.get(self.key_for(device_id))
        if raw is None:
            return None
        try:
            return CacheEntryPayload.model_validate_json(raw).to_entry()
        except (ValidationError, ValueError):
            logger.warning(
                "ignoring undecodable liveness cache entry",
                extra={"data": {"device_id": device_id, "raw": raw}},
            )
            return None

    async def set(self, device_id: str, entry: CacheEntry, ttl_seconds: int) -> None:
        payload = CacheEntryPayload.from_entry(entry).model_dump_json(by_alias=True, exclude_none=True)
        await self._redis.set(self.key_for(device_id), payload, ex=ttl_seconds)

    async def delete(self, device_id: str) -> None:
        await self._redis.delete(self.key_for(device_id))


__all__ = ["REDIS_NAMESPACE", "CacheEntryPayload", "RedisLivenessCache"]
