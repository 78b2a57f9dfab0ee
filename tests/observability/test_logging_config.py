from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

import pytest

from device_heartbeat.domain.heartbeat import HeartbeatState
from device_heartbeat.observability.logging import (
    CloudJsonSanitizer,
    ExtrasFormatter,
    OtelContextLogFilter,
    build_log_config,
)


def _record(data: object | None = None) -> logging.LogRecord:
    record = logging.LogRecord("device_heartbeat.state", logging.INFO, __file__, 1, "state changed", None, None)
    if data is not None:
        record.data = data
    return record


def test_formatter_appends_structured_data(monkeypatch) -> None:
    monkeypatch.delenv("K_SERVICE", raising=False)
    monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
    formatter = ExtrasFormatter("%(name)s: %(message)s")

    line = formatter.format(
        _record({"device_id": "dev-1", "state": HeartbeatState.ONLINE, "at": datetime(2025, 1, 1, tzinfo=UTC)})
    )

    assert line == (
        'device_heartbeat.state: state changed | data={"at":"2025-01-01T00:00:00+00:00",'
        '"device_id":"dev-1","state":"online"}'
    )


def test_formatter_emits_json_in_managed_runtimes(monkeypatch) -> None:
    monkeypatch.setenv("K_SERVICE", "device-heartbeat")

    payload = json.loads(ExtrasFormatter().format(_record({"device_id": "dev-1"})))

    assert payload["message"] == "state changed"
    assert payload["severity"] == "INFO"
    assert payload["logger"] == "device_heartbeat.state"
    assert payload["data"] == {"device_id": "dev-1"}


def test_cloud_sanitizer_mirrors_data_into_json_fields() -> None:
    record = _record({"error": RuntimeError("boom")})

    assert CloudJsonSanitizer().filter(record) is True
    assert record.json_fields == {"data": {"error": "RuntimeError('boom')"}}


def test_otel_filter_is_noop_without_active_span() -> None:
    record = _record()

    assert OtelContextLogFilter().filter(record) is True
    assert not hasattr(record, "json_fields")


def test_build_log_config_console_only() -> None:
    config = build_log_config()

    assert set(config["handlers"]) == {"console"}
    assert config["loggers"]["redis"]["handlers"] == ["console"]
    assert config["loggers"]["device_heartbeat.events"]["propagate"] is False


def test_build_log_config_requires_project_for_cloud_logging() -> None:
    with pytest.raises(RuntimeError):
        build_log_config(cloud_logging_enabled=True)
