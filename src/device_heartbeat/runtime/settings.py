"""Configuration helpers for runtime wiring."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from device_heartbeat.config.device_api import DeviceApiSettings
from device_heartbeat.config.heartbeat import HeartbeatSettings
from device_heartbeat.config.observability import ObservabilitySettings
from device_heartbeat.config.redis import RedisSettings


class Settings(BaseSettings):
    """Service configuration resolved from the environment.

    Internal constants (queue name, visibility timeout, cache margin) live in
    the modules that use them.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # --- Server ---
    listen_host: str = Field(default="0.0.0.0", alias="HEARTBEAT_API_HOST")  # noqa: S104
    port: int = Field(default=8200, alias="HEARTBEAT_API_PORT")

    # --- Component settings ---
    heartbeat: HeartbeatSettings = Field(default_factory=HeartbeatSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    device_api: DeviceApiSettings = Field(default_factory=DeviceApiSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    # --- Loader ---
    @classmethod
    def load(cls) -> Settings:
        instance = cls()
        logger = logging.getLogger("device_heartbeat.settings")
        logger.info("heartbeat settings loaded: %r", instance)
        return instance


__all__ = ["Settings"]
