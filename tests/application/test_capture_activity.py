from __future__ import annotations

import logging

import pytest

from device_heartbeat.application.capture_activity import ActivitySignal, DeviceActivityCapture
from device_heartbeat.application.poll_interval import PollIntervalResolver
from device_heartbeat.domain.exceptions import CredentialLookupError
from device_heartbeat.infrastructure.state.config_variables import InMemoryConfigVariables
from device_heartbeat.infrastructure.state.credentials import StaticCredentialVerifier
from tests.fixtures.fakes import EPOCH, build_harness

pytestmark = pytest.mark.anyio("asyncio")


class BrokenCredentials:
    async def is_device_api_key(self, key: str) -> bool:
        raise CredentialLookupError("api unavailable")


def _capture(harness, credentials=None, variables=None) -> DeviceActivityCapture:
    resolver = PollIntervalResolver(
        variables=variables or InMemoryConfigVariables(),
        default_interval_ms=2000,
    )
    return DeviceActivityCapture(
        manager=harness.manager,
        resolver=resolver,
        credentials=credentials or StaticCredentialVerifier({"device-key"}),
    )


async def test_device_key_request_is_captured_with_resolved_interval() -> None:
    harness = build_harness()
    capture = _capture(harness)

    captured = await capture.handle(ActivitySignal(device_id="dev-1", api_key="device-key"))

    assert captured is True
    assert harness.store.get_field("dev-1", "api_heartbeat_state") == "online"
    [message] = harness.queue.pending()
    assert (harness.queue.visible_at(message.message_id) - EPOCH).total_seconds() == 3


async def test_prefetched_config_overrides_lookup() -> None:
    harness = build_harness()
    capture = _capture(harness)

    await capture.handle(
        ActivitySignal(
            device_id="dev-1",
            api_key="device-key",
            prefetched_config={"RESIN_SUPERVISOR_POLL_INTERVAL": "60000"},
        )
    )

    [message] = harness.queue.pending()
    assert (harness.queue.visible_at(message.message_id) - EPOCH).total_seconds() == 90


@pytest.mark.parametrize("api_key", [None, "", "user-token"])
async def test_non_device_credentials_are_ignored(api_key: str | None) -> None:
    harness = build_harness()
    capture = _capture(harness)

    assert await capture.handle(ActivitySignal(device_id="dev-1", api_key=api_key)) is False
    assert harness.store.writes == []
    assert len(harness.queue) == 0


async def test_missing_device_id_is_ignored() -> None:
    harness = build_harness()

    assert await _capture(harness).handle(ActivitySignal(device_id="", api_key="device-key")) is False


async def test_disabled_tracking_skips_capture() -> None:
    harness = build_harness(enabled=False)

    assert await _capture(harness).handle(ActivitySignal(device_id="dev-1", api_key="device-key")) is False


async def test_capture_failures_are_logged_not_raised(caplog) -> None:
    harness = build_harness()
    caplog.set_level(logging.ERROR, logger="device_heartbeat.capture")

    captured = await _capture(harness, credentials=BrokenCredentials()).handle(
        ActivitySignal(device_id="dev-1", api_key="device-key")
    )

    assert captured is False
    record = next(r for r in caplog.records if r.name == "device_heartbeat.capture")
    assert record.data == {"device_id": "dev-1"}
    assert harness.store.writes == []


async def test_store_failure_does_not_escape() -> None:
    harness = build_harness(devices=())

    captured = await _capture(harness).handle(ActivitySignal(device_id="ghost", api_key="device-key"))

    assert captured is False
    assert harness.observer.changes[0].failed is True
