from __future__ import annotations

from datetime import timedelta

import pytest

from device_heartbeat.domain.exceptions import DeviceStoreError
from device_heartbeat.domain.heartbeat import CacheEntry, HeartbeatState, QueueStats
from device_heartbeat.infrastructure.state.config_variables import InMemoryConfigVariables
from device_heartbeat.infrastructure.state.credentials import StaticCredentialVerifier
from device_heartbeat.infrastructure.state.device_store import InMemoryDeviceRecordStore
from device_heartbeat.infrastructure.state.liveness_cache import InMemoryLivenessCache
from device_heartbeat.infrastructure.state.transition_queue import InMemoryTransitionQueue
from tests.fixtures.fakes import EPOCH, FakeClock

pytestmark = pytest.mark.anyio("asyncio")


async def test_queue_hides_messages_until_delay_elapses() -> None:
    clock = FakeClock()
    queue = InMemoryTransitionQueue(clock=clock)
    message_id = await queue.send("dev-1", HeartbeatState.TIMEOUT, 5)

    assert await queue.receive(30) is None
    clock.advance(5)
    message = await queue.receive(30)

    assert message is not None
    assert message.message_id == message_id
    assert message.receive_count == 1
    assert message.first_received_at == EPOCH + timedelta(seconds=5)


async def test_queue_lease_redelivers_after_visibility_timeout() -> None:
    clock = FakeClock()
    queue = InMemoryTransitionQueue(clock=clock)
    await queue.send("dev-1", HeartbeatState.OFFLINE, 0)

    first = await queue.receive(30)
    assert await queue.receive(30) is None
    clock.advance(30)
    second = await queue.receive(30)

    assert first is not None and second is not None
    assert second.message_id == first.message_id
    assert second.receive_count == 2
    assert second.first_received_at == first.first_received_at


async def test_queue_delivers_in_visibility_then_send_order() -> None:
    clock = FakeClock()
    queue = InMemoryTransitionQueue(clock=clock)
    late = await queue.send("dev-1", HeartbeatState.TIMEOUT, 2)
    a = await queue.send("dev-2", HeartbeatState.TIMEOUT, 1)
    b = await queue.send("dev-3", HeartbeatState.TIMEOUT, 1)
    clock.advance(2)

    received = [(await queue.receive(30)).message_id for _ in range(3)]  # type: ignore[union-attr]

    assert received == [a, b, late]


async def test_queue_delete_and_stats() -> None:
    clock = FakeClock()
    queue = InMemoryTransitionQueue(clock=clock)
    first = await queue.send("dev-1", HeartbeatState.TIMEOUT, 0)
    await queue.send("dev-2", HeartbeatState.TIMEOUT, 10)
    await queue.receive(30)

    assert await queue.stats() == QueueStats(msgs=2, hidden_msgs=2, total_sent=2, total_recv=1)
    assert await queue.delete(first) is True
    assert await queue.delete(first) is False
    assert len(queue) == 1


async def test_cache_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = InMemoryLivenessCache(clock=clock)
    entry = CacheEntry("msg-1", HeartbeatState.ONLINE, EPOCH)

    await cache.set("dev-1", entry, 10)
    clock.advance(9)
    assert await cache.get("dev-1") == entry
    clock.advance(1)
    assert await cache.get("dev-1") is None
    assert len(cache) == 0


async def test_cache_rejects_non_positive_ttl() -> None:
    cache = InMemoryLivenessCache(clock=FakeClock())

    with pytest.raises(ValueError):
        await cache.set("dev-1", CacheEntry("msg-1", HeartbeatState.ONLINE), 0)


async def test_device_store_skips_identical_values() -> None:
    store = InMemoryDeviceRecordStore()
    store.register("dev-1", api_heartbeat_state="online")

    await store.conditional_update("dev-1", {"api_heartbeat_state": "online"})
    await store.conditional_update("dev-1", {"api_heartbeat_state": "online"}, only_if_different=False)
    await store.conditional_update("dev-1", {"api_heartbeat_state": "timeout"})

    assert [write.applied for write in store.writes] == [False, True, True]
    assert store.get_field("dev-1", "api_heartbeat_state") == "timeout"


async def test_device_store_rejects_unknown_devices() -> None:
    with pytest.raises(DeviceStoreError):
        await InMemoryDeviceRecordStore().conditional_update("ghost", {"api_heartbeat_state": "online"})


async def test_config_variables_filter_by_name_and_fleet() -> None:
    variables = InMemoryConfigVariables()
    variables.set_device_var("dev-1", "BALENA_SUPERVISOR_POLL_INTERVAL", "1000")
    variables.set_device_var("dev-1", "UNRELATED", "x")
    variables.set_fleet_var("fleet", "RESIN_SUPERVISOR_POLL_INTERVAL", "2000")
    variables.assign("dev-1", "fleet")
    names = ("BALENA_SUPERVISOR_POLL_INTERVAL", "RESIN_SUPERVISOR_POLL_INTERVAL")

    device_rows = await variables.lookup_device_vars("dev-1", names)
    fleet_rows = await variables.lookup_fleet_vars("dev-1", names)

    assert [row.name for row in device_rows] == ["BALENA_SUPERVISOR_POLL_INTERVAL"]
    assert [row.value for row in fleet_rows] == ["2000"]
    assert await variables.lookup_fleet_vars("dev-2", names) == ()


async def test_static_credentials() -> None:
    verifier = StaticCredentialVerifier({"a"})
    verifier.add("b")

    assert await verifier.is_device_api_key("b") is True
    assert await verifier.is_device_api_key("c") is False
