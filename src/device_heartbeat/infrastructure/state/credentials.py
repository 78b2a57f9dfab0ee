"""In-memory credential verifier."""

from __future__ import annotations

from collections.abc import Iterable

from device_heartbeat.application.ports.credentials import CredentialVerifierPort


class StaticCredentialVerifier(CredentialVerifierPort):
    """Accepts a fixed set of device API keys."""

    def __init__(self, device_keys: Iterable[str] = ()) -> None:
        self._keys = set(device_keys)

    def add(self, key: str) -> None:
        self._keys.add(key)

    async def is_device_api_key(self, key: str) -> bool:
        return key in self._keys


__all__ = ["StaticCredentialVerifier"]
