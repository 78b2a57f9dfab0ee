from __future__ import annotations

import asyncio

import pytest

from device_heartbeat.application.dto.transition import encode_transition
from device_heartbeat.application.status import StatusProvider
from device_heartbeat.domain.heartbeat import HeartbeatState
from device_heartbeat.runtime.heartbeat_worker import HeartbeatConsumerWorker, QueueStatsWorker
from tests.fixtures.fakes import build_harness

pytestmark = pytest.mark.anyio("asyncio")


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def test_consumer_applies_due_transitions_and_survives_failures() -> None:
    harness = build_harness(devices=("dev-1", "dev-2"))
    harness.queue.send_raw(encode_transition("dev-1", HeartbeatState.ONLINE))
    harness.queue.send_raw(encode_transition("dev-2", HeartbeatState.TIMEOUT))
    status = StatusProvider()
    worker = HeartbeatConsumerWorker(manager=harness.manager, status_provider=status, idle_delay_seconds=0.01)

    worker.start()
    assert status.state.consumer_running is True
    await _wait_until(lambda: harness.store.get_field("dev-2", "api_heartbeat_state") == "timeout")
    await worker.stop(timeout=1.0)

    assert worker.running is False
    assert status.state.consumer_running is False
    assert status.state.last_error is not None
    # the unexpected message is still leased, waiting for redelivery
    assert len(harness.queue) == 2


async def test_failing_transitions_do_not_delay_other_devices() -> None:
    harness = build_harness(devices=("dev-a", "dev-b"))
    for _ in range(3):
        harness.queue.send_raw(encode_transition("dev-a", HeartbeatState.ONLINE))
    harness.queue.send_raw(encode_transition("dev-b", HeartbeatState.TIMEOUT))
    status = StatusProvider()
    worker = HeartbeatConsumerWorker(manager=harness.manager, status_provider=status)

    worker.start()
    # well under a single idle delay
    await _wait_until(lambda: harness.store.get_field("dev-b", "api_heartbeat_state") == "timeout", timeout=0.5)
    await worker.stop(timeout=1.0)

    assert status.state.last_error is not None
    assert harness.store.get_field("dev-a", "api_heartbeat_state") == "unknown"


async def test_consumer_does_not_start_when_disabled() -> None:
    harness = build_harness(enabled=False)
    worker = HeartbeatConsumerWorker(manager=harness.manager)

    worker.start()

    assert worker.running is False
    await worker.stop()


async def test_stats_worker_publishes_periodically() -> None:
    harness = build_harness()
    worker = QueueStatsWorker(manager=harness.manager, interval_seconds=0.01)

    worker.start()
    await _wait_until(lambda: len(harness.observer.stats) >= 2)
    await worker.stop(timeout=1.0)

    assert harness.observer.stats[0].queue_depth == 0
