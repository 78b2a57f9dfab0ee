"""Port used to decide whether a presented credential belongs to a device."""

from __future__ import annotations

from typing import Protocol


class CredentialVerifierPort(Protocol):
    async def is_device_api_key(self, key: str) -> bool:
        """Return ``True`` when ``key`` is an API key carrying the device role."""


__all__ = ["CredentialVerifierPort"]
