from __future__ import annotations

from datetime import timedelta

from device_heartbeat.application.status import StatusProvider
from device_heartbeat.domain.heartbeat import ChangeEvent, HeartbeatState, StatsEvent
from tests.fixtures.fakes import EPOCH


def test_status_snapshot_reflects_events() -> None:
    provider = StatusProvider()
    provider.state.enabled = True
    provider.state.consumer_running = True

    provider.on_change(ChangeEvent("dev-1", HeartbeatState.ONLINE, EPOCH, EPOCH))
    provider.on_change(
        ChangeEvent("dev-2", HeartbeatState.TIMEOUT, EPOCH, EPOCH + timedelta(seconds=1), RuntimeError("x"))
    )
    provider.on_stats(StatsEvent(5, 10, 7, 2, EPOCH, EPOCH))

    snapshot = provider.snapshot()

    assert snapshot["status"] == "running"
    assert snapshot["changes_applied"] == 1
    assert snapshot["changes_failed"] == 1
    assert snapshot["last_error"] == "dev-2: RuntimeError('x')"
    assert snapshot["last_change_at"] == (EPOCH + timedelta(seconds=1)).isoformat()
    assert snapshot["queue"] == {
        "queue_depth": 5,
        "hidden_messages": 2,
        "total_sent": 10,
        "total_received": 7,
        "collected_at": EPOCH.isoformat(),
    }


def test_status_snapshot_reports_disabled_and_idle() -> None:
    provider = StatusProvider()
    assert provider.snapshot()["status"] == "disabled"
    assert provider.snapshot()["queue"] is None

    provider.state.enabled = True
    assert provider.snapshot()["status"] == "idle"
