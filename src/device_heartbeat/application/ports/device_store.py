"""Port describing the persistent device record store."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol


class DeviceRecordStorePort(Protocol):
    async def conditional_update(
        self,
        device_id: str,
        fields: Mapping[str, str],
        *,
        only_if_different: bool = True,
    ) -> None:
        """Write ``fields`` for the device, skipping a record that already holds them.

        Raises ``DeviceStoreError`` when the write cannot be applied.
        """


__all__ = ["DeviceRecordStorePort"]
