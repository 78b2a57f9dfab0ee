"""Entrypoint for running the heartbeat API service under uvicorn."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from device_heartbeat.infrastructure.http.middleware import request_logging_middleware
from device_heartbeat.infrastructure.http.routes import add_heartbeat_routes
from device_heartbeat.observability.logging import (
    configure_logging,
    enable_cloud_logging,
    init_logging,
    shutdown_logging,
)
from device_heartbeat.observability.tracing import configure_tracing
from device_heartbeat.runtime.bootstrap import RuntimeContext, build_runtime, close_runtime_resources
from device_heartbeat.runtime.settings import Settings

WORKER_STOP_TIMEOUT_SECONDS = 35.0


def _configure_observability(settings: Settings) -> None:
    if settings.observability.enable_cloud_logging:
        gcp_project = settings.observability.gcp_project_id
        if gcp_project is None:
            raise RuntimeError("Cloud logging enabled but no GCP project configured")
        enable_cloud_logging(gcp_project=gcp_project, cloud_log_labels={"service": "device-heartbeat"})
    else:
        configure_logging(gcp_project=settings.observability.gcp_project_id)


def create_app(runtime: RuntimeContext) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await runtime.manager.setup()
        runtime.consumer_worker.start()
        runtime.stats_worker.start()
        yield
        await runtime.stats_worker.stop(timeout=WORKER_STOP_TIMEOUT_SECONDS)
        await runtime.consumer_worker.stop(timeout=WORKER_STOP_TIMEOUT_SECONDS)
        await close_runtime_resources(runtime)
        shutdown_logging()

    app = FastAPI(title="Device Heartbeat API", version="0.1.0", lifespan=lifespan)
    app.middleware("http")(request_logging_middleware)
    add_heartbeat_routes(app, runtime.route_deps_provider)
    return app


def main() -> None:
    import uvicorn

    init_logging()
    configure_tracing(service_name="device-heartbeat")
    settings = Settings.load()
    _configure_observability(settings)
    runtime = build_runtime(settings)

    uvicorn.run(
        create_app(runtime),
        host=settings.listen_host,
        port=settings.port,
        timeout_graceful_shutdown=int(WORKER_STOP_TIMEOUT_SECONDS),
        # logging already setup
        log_config=None,
    )


__all__ = ["create_app", "main"]
