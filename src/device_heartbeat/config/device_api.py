"""Device resource API connectivity settings."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeviceApiSettings(BaseSettings):
    """Endpoint and credentials used to read config and persist device state."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    base_url: str | None = Field(default=None, alias="DEVICE_API_BASE_URL")
    api_token: SecretStr = Field(default_factory=lambda: SecretStr(""), alias="DEVICE_API_TOKEN")
    api_version: str = Field(default="v6", alias="DEVICE_API_VERSION")
    timeout_seconds: float = Field(default=10.0, gt=0, alias="DEVICE_API_TIMEOUT_SECONDS")

    @property
    def api_token_value(self) -> str:
        return self.api_token.get_secret_value()


__all__ = ["DeviceApiSettings"]
