"""Device record store backed by the device resource API."""

from __future__ import annotations

from collections.abc import Mapping

from device_heartbeat.application.ports.device_store import DeviceRecordStorePort
from device_heartbeat.domain.exceptions import DeviceStoreError
from device_heartbeat.infrastructure.device_api.client import DeviceApiClient, DeviceApiError, odata_literal

DEVICE_RESOURCE = "device"


def build_update_filter(fields: Mapping[str, str], *, only_if_different: bool) -> tuple[str, dict[str, str]]:
    """Return the ``$filter`` expression and alias values for a conditional patch."""
    aliases: dict[str, str] = {}
    clause = "uuid eq @uuid"
    if only_if_different and fields:
        comparisons = []
        for index, (name, value) in enumerate(fields.items()):
            aliases[f"@f{index}"] = odata_literal(value)
            comparisons.append(f"{name} eq @f{index}")
        clause = f"{clause} and not({' and '.join(comparisons)})"
    return clause, aliases


class HttpDeviceRecordStore(DeviceRecordStorePort):
    """Patches device fields, filtering out records that already match."""

    def __init__(self, client: DeviceApiClient) -> None:
        self._client = client

    async def conditional_update(
        self,
        device_id: str,
        fields: Mapping[str, str],
        *,
        only_if_different: bool = True,
    ) -> None:
        if not fields:
            raise ValueError("fields must not be empty")
        clause, aliases = build_update_filter(fields, only_if_different=only_if_different)
        params = {"$filter": clause, "@uuid": odata_literal(device_id), **aliases}
        try:
            await self._client.patch(DEVICE_RESOURCE, params=params, body=dict(fields))
        except DeviceApiError as exc:
            raise DeviceStoreError(f"failed to update device {device_id}: {exc}") from exc


__all__ = ["HttpDeviceRecordStore", "build_update_filter"]
