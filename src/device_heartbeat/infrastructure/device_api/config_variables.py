"""Configuration variable lookups against the device resource API."""

from __future__ import annotations

from collections.abc import Sequence
from functools import cache

from pydantic import BaseModel, ConfigDict, ValidationError

from device_heartbeat.application.ports.config_variables import ConfigVariable, ConfigVariableSourcePort
from device_heartbeat.domain.exceptions import ConfigLookupError
from device_heartbeat.infrastructure.device_api.client import (
    DeviceApiClient,
    DeviceApiError,
    PreparedQuery,
    odata_literal,
)


class _ConfigVariableRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    value: str


def _names_clause(names: tuple[str, ...]) -> str:
    return " or ".join(f"name eq {odata_literal(name)}" for name in names)


def _options(owner_filter: str, names: tuple[str, ...]) -> tuple[tuple[str, str], ...]:
    return (
        ("$select", "name,value"),
        ("$filter", f"{owner_filter} and ({_names_clause(names)})"),
        # the last value handed to the supervisor is the one it used
        ("$orderby", "name desc"),
        ("$top", "1"),
    )


@cache
def device_vars_query(names: tuple[str, ...]) -> PreparedQuery:
    return PreparedQuery(
        resource="device_config_variable",
        options=_options("device/uuid eq @uuid", names),
        aliases=("uuid",),
    )


@cache
def fleet_vars_query(names: tuple[str, ...]) -> PreparedQuery:
    return PreparedQuery(
        resource="application_config_variable",
        options=_options("application/any(a:a/owns__device/any(d:d/uuid eq @uuid))", names),
        aliases=("uuid",),
    )


class HttpConfigVariableSource(ConfigVariableSourcePort):
    def __init__(self, client: DeviceApiClient) -> None:
        self._client = client

    async def lookup_device_vars(self, device_id: str, names: Sequence[str]) -> Sequence[ConfigVariable]:
        return await self._lookup(device_vars_query(tuple(names)), device_id)

    async def lookup_fleet_vars(self, device_id: str, names: Sequence[str]) -> Sequence[ConfigVariable]:
        return await self._lookup(fleet_vars_query(tuple(names)), device_id)

    async def _lookup(self, query: PreparedQuery, device_id: str) -> tuple[ConfigVariable, ...]:
        try:
            rows = await self._client.get_rows(query, uuid=device_id)
            parsed = [_ConfigVariableRow.model_validate(row) for row in rows]
        except (DeviceApiError, ValidationError) as exc:
            raise ConfigLookupError(
                f"failed to read {query.resource} for device {device_id}: {exc}"
            ) from exc
        return tuple(ConfigVariable(name=row.name, value=row.value) for row in parsed)


__all__ = ["HttpConfigVariableSource", "device_vars_query", "fleet_vars_query"]
