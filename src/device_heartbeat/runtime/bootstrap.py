"""Runtime wiring for the heartbeat service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from redis.asyncio import Redis

from device_heartbeat.application.capture_activity import DeviceActivityCapture
from device_heartbeat.application.heartbeat_manager import HeartbeatConfig, HeartbeatStateManager
from device_heartbeat.application.observers import HeartbeatObserverSet, LoggingHeartbeatObserver
from device_heartbeat.application.poll_interval import PollIntervalResolver
from device_heartbeat.application.ports.config_variables import ConfigVariableSourcePort
from device_heartbeat.application.ports.credentials import CredentialVerifierPort
from device_heartbeat.application.ports.device_store import DeviceRecordStorePort
from device_heartbeat.application.ports.liveness_cache import LivenessCachePort
from device_heartbeat.application.ports.transition_queue import TransitionQueuePort
from device_heartbeat.application.status import StatusProvider
from device_heartbeat.infrastructure.device_api.client import DeviceApiClient
from device_heartbeat.infrastructure.device_api.config_variables import HttpConfigVariableSource
from device_heartbeat.infrastructure.device_api.credentials import HttpCredentialVerifier
from device_heartbeat.infrastructure.device_api.device_store import HttpDeviceRecordStore
from device_heartbeat.infrastructure.http.routes import HeartbeatRouteDeps
from device_heartbeat.infrastructure.redis.liveness_cache import RedisLivenessCache
from device_heartbeat.infrastructure.redis.transition_queue import RedisTransitionQueue
from device_heartbeat.infrastructure.state.config_variables import InMemoryConfigVariables
from device_heartbeat.infrastructure.state.credentials import StaticCredentialVerifier
from device_heartbeat.infrastructure.state.device_store import InMemoryDeviceRecordStore
from device_heartbeat.infrastructure.state.liveness_cache import InMemoryLivenessCache
from device_heartbeat.infrastructure.state.transition_queue import InMemoryTransitionQueue
from device_heartbeat.runtime.heartbeat_worker import HeartbeatConsumerWorker, QueueStatsWorker
from device_heartbeat.runtime.settings import Settings

logger = logging.getLogger("device_heartbeat.runtime")


def _clock() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    """Aggregated runtime components for the heartbeat service."""

    settings: Settings
    redis_client: Redis | None
    device_api_client: DeviceApiClient | None
    cache: LivenessCachePort
    queue: TransitionQueuePort
    store: DeviceRecordStorePort
    variables: ConfigVariableSourcePort
    credentials: CredentialVerifierPort
    observers: HeartbeatObserverSet
    status_provider: StatusProvider
    manager: HeartbeatStateManager
    resolver: PollIntervalResolver
    capture: DeviceActivityCapture
    consumer_worker: HeartbeatConsumerWorker
    stats_worker: QueueStatsWorker
    route_deps_provider: Callable[[], HeartbeatRouteDeps]


@dataclass(frozen=True, slots=True)
class _StateBackend:
    redis_client: Redis | None
    cache: LivenessCachePort
    queue: TransitionQueuePort


@dataclass(frozen=True, slots=True)
class _DeviceApi:
    client: DeviceApiClient | None
    store: DeviceRecordStorePort
    variables: ConfigVariableSourcePort
    credentials: CredentialVerifierPort


def build_runtime(settings: Settings | None = None) -> RuntimeContext:
    """Construct the runtime context shared by the HTTP app and the workers."""
    resolved = settings or Settings.load()
    logger.info(
        "building heartbeat runtime",
        extra={"data": {"backend": resolved.heartbeat.backend, "enabled": resolved.heartbeat.enabled}},
    )

    backend = _build_state_backend(resolved)
    device_api = _build_device_api(resolved)

    status_provider = StatusProvider()
    status_provider.state.enabled = resolved.heartbeat.enabled
    observers = HeartbeatObserverSet([LoggingHeartbeatObserver(), status_provider])

    manager = HeartbeatStateManager(
        cache=backend.cache,
        queue=backend.queue,
        store=device_api.store,
        observer=observers,
        clock=_clock,
        config=_heartbeat_config(resolved),
    )
    resolver = PollIntervalResolver(
        variables=device_api.variables,
        default_interval_ms=resolved.heartbeat.default_supervisor_poll_interval_ms,
    )
    capture = DeviceActivityCapture(manager=manager, resolver=resolver, credentials=device_api.credentials)
    route_deps = HeartbeatRouteDeps(capture=capture, status_provider=status_provider)

    return RuntimeContext(
        settings=resolved,
        redis_client=backend.redis_client,
        device_api_client=device_api.client,
        cache=backend.cache,
        queue=backend.queue,
        store=device_api.store,
        variables=device_api.variables,
        credentials=device_api.credentials,
        observers=observers,
        status_provider=status_provider,
        manager=manager,
        resolver=resolver,
        capture=capture,
        consumer_worker=HeartbeatConsumerWorker(manager=manager, status_provider=status_provider),
        stats_worker=QueueStatsWorker(manager=manager),
        route_deps_provider=lambda: route_deps,
    )


def _heartbeat_config(settings: Settings) -> HeartbeatConfig:
    heartbeat = settings.heartbeat
    return HeartbeatConfig(
        enabled=heartbeat.enabled,
        grace_timeout_seconds=heartbeat.timeout_seconds,
        online_update_throttle=heartbeat.online_update_throttle,
        online_update_grace=timedelta(seconds=heartbeat.online_update_grace_seconds),
    )


def _build_state_backend(settings: Settings) -> _StateBackend:
    if settings.heartbeat.backend == "memory":
        logger.warning("using in-process liveness state; transitions are not shared across replicas")
        return _StateBackend(
            redis_client=None,
            cache=InMemoryLivenessCache(clock=_clock),
            queue=InMemoryTransitionQueue(clock=_clock),
        )

    client = Redis(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
        decode_responses=True,
    )
    return _StateBackend(
        redis_client=client,
        cache=RedisLivenessCache(client),
        queue=RedisTransitionQueue(client),
    )


def _build_device_api(settings: Settings) -> _DeviceApi:
    api = settings.device_api
    if not api.base_url:
        if settings.heartbeat.backend != "memory":
            raise RuntimeError("DEVICE_API_BASE_URL must be configured")
        logger.warning("DEVICE_API_BASE_URL not set; using in-process device records")
        return _DeviceApi(
            client=None,
            store=InMemoryDeviceRecordStore(),
            variables=InMemoryConfigVariables(),
            credentials=StaticCredentialVerifier(),
        )

    client = DeviceApiClient(
        base_url=api.base_url,
        api_token=api.api_token_value,
        api_version=api.api_version,
        timeout_seconds=api.timeout_seconds,
    )
    return _DeviceApi(
        client=client,
        store=HttpDeviceRecordStore(client),
        variables=HttpConfigVariableSource(client),
        credentials=HttpCredentialVerifier(client),
    )


async def close_runtime_resources(runtime: RuntimeContext) -> None:
    """Close the shared Redis and HTTP clients."""
    if runtime.device_api_client is not None:
        await runtime.device_api_client.aclose()
    if runtime.redis_client is not None:
        await runtime.redis_client.aclose()


__all__ = ["RuntimeContext", "build_runtime", "close_runtime_resources"]
