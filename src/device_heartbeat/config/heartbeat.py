"""Heartbeat tracking settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

HeartbeatBackend = Literal["redis", "memory"]


class HeartbeatSettings(BaseSettings):
    """Feature flag, grace periods and the default supervisor poll interval."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    enabled: bool = Field(default=True, alias="API_HEARTBEAT_STATE_ENABLED")
    timeout_seconds: int = Field(default=15, ge=0, alias="API_HEARTBEAT_STATE_TIMEOUT_SECONDS")
    online_update_throttle: bool = Field(
        default=True, alias="API_HEARTBEAT_STATE_ONLINE_UPDATE_THROTTLE"
    )
    online_update_grace_seconds: int = Field(
        default=300, ge=0, alias="API_HEARTBEAT_STATE_ONLINE_UPDATE_GRACE_SECONDS"
    )
    default_supervisor_poll_interval_ms: int = Field(
        default=600_000, gt=0, alias="DEFAULT_SUPERVISOR_POLL_INTERVAL"
    )
    backend: HeartbeatBackend = Field(default="redis", alias="HEARTBEAT_STATE_BACKEND")


__all__ = ["HeartbeatBackend", "HeartbeatSettings"]
