"""In-memory device record store."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from device_heartbeat.application.ports.device_store import DeviceRecordStorePort
from device_heartbeat.domain.exceptions import DeviceStoreError


@dataclass(frozen=True, slots=True)
class StoreWrite:
    device_id: str
    fields: Mapping[str, str]
    applied: bool


@dataclass(slots=True)
class InMemoryDeviceRecordStore(DeviceRecordStorePort):
    """Keeps device fields in a dict and logs every write attempt."""

    records: dict[str, dict[str, str]] = field(default_factory=dict)
    writes: list[StoreWrite] = field(default_factory=list)

    def register(self, device_id: str, **fields: str) -> None:
        self.records[device_id] = dict(fields)

    def get_field(self, device_id: str, name: str) -> str | None:
        return self.records.get(device_id, {}).get(name)

    async def conditional_update(
        self,
        device_id: str,
        fields: Mapping[str, str],
        *,
        only_if_different: bool = True,
    ) -> None:
        record = self.records.get(device_id)
        if record is None:
            raise DeviceStoreError(f"device {device_id} not found")
        current = {name: record.get(name) for name in fields}
        applied = not only_if_different or current != dict(fields)
        if applied:
            record.update(fields)
        self.writes.append(StoreWrite(device_id=device_id, fields=dict(fields), applied=applied))


__all__ = ["InMemoryDeviceRecordStore", "StoreWrite"]
