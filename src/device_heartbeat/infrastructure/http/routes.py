"""HTTP route definitions for the heartbeat API."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from device_heartbeat.application.capture_activity import ActivitySignal, DeviceActivityCapture
from device_heartbeat.application.status import StatusProvider
from device_heartbeat.infrastructure.http.schemas import (
    HeartbeatAcceptedResponse,
    HeartbeatStatusResponse,
    QueueStatsModel,
)


@dataclass(frozen=True)
class HeartbeatRouteDeps:
    capture: DeviceActivityCapture
    status_provider: StatusProvider


def add_heartbeat_routes(app: FastAPI, dependency_provider: Callable[[], HeartbeatRouteDeps]) -> None:
    def get_dependencies() -> HeartbeatRouteDeps:
        return dependency_provider()

    device_key = HTTPBearer(scheme_name="DeviceApiKey", auto_error=False)

    def require_api_key(
        credentials: HTTPAuthorizationCredentials | None = Security(device_key),  # noqa: B008
    ) -> str:
        if credentials is None or not credentials.credentials:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing device api key")
        return credentials.credentials

    @app.post(
        "/v1/devices/{uuid}/heartbeat",
        status_code=status.HTTP_202_ACCEPTED,
        response_model=HeartbeatAcceptedResponse,
        description="Record activity for a device; liveness is captured in the background.",
    )
    async def heartbeat(
        uuid: str,
        background_tasks: BackgroundTasks,
        deps: HeartbeatRouteDeps = Depends(get_dependencies),  # noqa: B008
        api_key: str = Security(require_api_key),
    ) -> HeartbeatAcceptedResponse:
        background_tasks.add_task(deps.capture.handle, ActivitySignal(device_id=uuid, api_key=api_key))
        return HeartbeatAcceptedResponse(status="accepted", device_id=uuid)

    @app.get(
        "/v1/heartbeat/status",
        response_model=HeartbeatStatusResponse,
        description="Return a status snapshot of the heartbeat engine.",
    )
    def heartbeat_status(
        deps: HeartbeatRouteDeps = Depends(get_dependencies),  # noqa: B008
    ) -> HeartbeatStatusResponse:
        snapshot = deps.status_provider.snapshot()
        queue = snapshot["queue"]
        return HeartbeatStatusResponse(
            status=snapshot["status"],
            enabled=snapshot["enabled"],
            consumer_running=snapshot["consumer_running"],
            changes_applied=snapshot["changes_applied"],
            changes_failed=snapshot["changes_failed"],
            last_change_at=snapshot["last_change_at"],
            last_error=snapshot["last_error"],
            queue=QueueStatsModel(**queue) if queue is not None else None,
        )


__all__ = ["HeartbeatRouteDeps", "add_heartbeat_routes"]
