"""Thin async HTTP client for the device resource API."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
from opentelemetry import trace
from opentelemetry.trace import SpanKind

logger = logging.getLogger("device_heartbeat.device_api")


def odata_literal(value: str) -> str:
    """Quote ``value`` as an OData string literal."""
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


@dataclass(frozen=True, slots=True)
class PreparedQuery:
    """Immutable resource query with ``@alias`` placeholders bound per call."""

    resource: str
    options: tuple[tuple[str, str], ...]
    aliases: tuple[str, ...] = ()

    def bind(self, **values: str) -> dict[str, str]:
        missing = [alias for alias in self.aliases if alias not in values]
        if missing:
            raise ValueError(f"missing values for query aliases: {', '.join(missing)}")
        params = dict(self.options)
        for alias in self.aliases:
            params[f"@{alias}"] = odata_literal(values[alias])
        return params


class DeviceApiError(RuntimeError):
    """Raised when the device API responds with an unexpected status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DeviceApiClient:
    """Authenticated ``httpx.AsyncClient`` wrapper scoped to one API version."""

    def __init__(
        self,
        *,
        base_url: str,
        api_token: str,
        api_version: str = "v6",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("device api base_url must not be empty")
        self._api_version = api_version.strip("/")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Accept": "application/json",
            },
        )

    def path(self, resource: str) -> str:
        return f"/{self._api_version}/{resource}"

    async def get_rows(self, query: PreparedQuery, **aliases: str) -> list[dict[str, Any]]:
        response = await self._request("GET", query.resource, params=query.bind(**aliases))
        if response.status_code != httpx.codes.OK:
            raise DeviceApiError(
                f"device api returned {response.status_code} for GET {query.resource}",
                status_code=response.status_code,
            )
        payload = response.json()
        rows = payload.get("d") if isinstance(payload, Mapping) else None
        if not isinstance(rows, list):
            raise DeviceApiError(f"device api returned an unexpected body for GET {query.resource}")
        return rows

    async def patch(self, resource: str, *, params: Mapping[str, str], body: Mapping[str, Any]) -> None:
        response = await self._request("PATCH", resource, params=params, json_payload=body)
        if response.status_code not in (httpx.codes.OK, httpx.codes.NO_CONTENT):
            raise DeviceApiError(
                f"device api returned {response.status_code} for PATCH {resource}",
                status_code=response.status_code,
            )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        resource: str,
        *,
        params: Mapping[str, str],
        json_payload: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        path = self.path(resource)
        tracer = trace.get_tracer("device_heartbeat.device_api")
        with tracer.start_as_current_span(
            "device_api.request",
            kind=SpanKind.CLIENT,
            attributes={"http.method": method, "http.target": path},
        ) as span:
            start = time.perf_counter()
            try:
                response = await self._client.request(method, path, params=params, json=json_payload)
            except httpx.HTTPError as exc:
                raise DeviceApiError(f"device api request failed for {method} {resource}: {exc!r}") from exc
            span.set_attribute("http.status_code", response.status_code)
            logger.debug(
                "device_api.request.complete",
                extra={
                    "data": {
                        "method": method,
                        "path": path,
                        "status_code": response.status_code,
                        "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                    }
                },
            )
            return response


__all__ = ["DeviceApiClient", "DeviceApiError", "PreparedQuery", "odata_literal"]
