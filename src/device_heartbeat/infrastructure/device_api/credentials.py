"""API key role checks against the device resource API."""

from __future__ import annotations

from device_heartbeat.application.ports.credentials import CredentialVerifierPort
from device_heartbeat.domain.exceptions import CredentialLookupError
from device_heartbeat.infrastructure.device_api.client import DeviceApiClient, DeviceApiError, PreparedQuery

DEVICE_API_KEY_ROLE = "device-api-key"

API_KEY_WITH_ROLE_QUERY = PreparedQuery(
    resource="api_key",
    options=(
        ("$select", "id"),
        ("$top", "1"),
        ("$filter", "key eq @key and api_key__has__role/any(khr:khr/role/any(r:r/name eq @role))"),
    ),
    aliases=("key", "role"),
)


class HttpCredentialVerifier(CredentialVerifierPort):
    def __init__(self, client: DeviceApiClient, *, role: str = DEVICE_API_KEY_ROLE) -> None:
        self._client = client
        self._role = role

    async def is_device_api_key(self, key: str) -> bool:
        try:
            rows = await self._client.get_rows(API_KEY_WITH_ROLE_QUERY, key=key, role=self._role)
        except DeviceApiError as exc:
            raise CredentialLookupError(f"failed to verify api key role {self._role}: {exc}") from exc
        return len(rows) > 0


__all__ = ["API_KEY_WITH_ROLE_QUERY", "DEVICE_API_KEY_ROLE", "HttpCredentialVerifier"]
