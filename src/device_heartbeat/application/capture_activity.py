"""Use case turning an inbound device request into a liveness capture."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from device_heartbeat.application.heartbeat_manager import HeartbeatStateManager
from device_heartbeat.application.poll_interval import PollIntervalResolver
from device_heartbeat.application.ports.credentials import CredentialVerifierPort

logger = logging.getLogger("device_heartbeat.capture")


@dataclass(frozen=True, slots=True)
class ActivitySignal:
    """Raised whenever a device request has been accepted."""

    device_id: str
    api_key: str | None
    prefetched_config: Mapping[str, str] | None = None


class DeviceActivityCapture:
    """Captures liveness for requests authenticated with a device API key."""

    def __init__(
        self,
        *,
        manager: HeartbeatStateManager,
        resolver: PollIntervalResolver,
        credentials: CredentialVerifierPort,
    ) -> None:
        self._manager = manager
        self._resolver = resolver
        self._credentials = credentials

    async def handle(self, signal: ActivitySignal) -> bool:
        """Capture the signal; return ``True`` when a capture ran.

        Never raises: capturing liveness is best-effort relative to serving the
        device's own request.
        """
        if not self._manager.enabled:
            return False
        if not signal.device_id or not isinstance(signal.api_key, str) or not signal.api_key:
            return False

        try:
            is_device_key, poll_interval_ms = await asyncio.gather(
                self._credentials.is_device_api_key(signal.api_key),
                self._resolver.resolve(signal.device_id, signal.prefetched_config),
            )
            if not is_device_key:
                return False
            await self._manager.capture_event_for(signal.device_id, poll_interval_ms / 1000)
        except Exception:
            logger.exception(
                "unable to capture the heartbeat event for device",
                extra={"data": {"device_id": signal.device_id}},
            )
            return False
        return True


__all__ = ["ActivitySignal", "DeviceActivityCapture"]
