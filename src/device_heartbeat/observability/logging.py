"""Logging setup: console formatter with structured extras, optional Cloud Logging export."""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from logging.config import dictConfig
from typing import Any

from google.cloud import logging as gcp_logging
from opentelemetry import baggage, trace

CLOUD_LOG_NAME = "device-heartbeat"

_PACKAGE_LOGGER = "device_heartbeat"

_EXTRA_LOGGERS: dict[str, dict[str, Any]] = {
    "device_heartbeat.events": {"level_env": "HEARTBEAT_EVENTS_LOG_LEVEL", "default": "INFO"},
    "device_heartbeat.device_api": {"level_env": "DEVICE_API_LOG_LEVEL", "default": "INFO"},
    "uvicorn": {"level_env": "UVICORN_LOG_LEVEL", "default": "INFO"},
    "uvicorn.error": {"level_env": "UVICORN_LOG_LEVEL", "default": "INFO"},
    "uvicorn.access": {"level_env": "UVICORN_ACCESS_LOG_LEVEL", "default": "WARNING"},
    "httpx": {"level_env": "HTTPX_LOG_LEVEL", "default": "WARNING"},
    "httpcore": {"level_env": "HTTPX_LOG_LEVEL", "default": "WARNING"},
    "redis": {"level_env": "REDIS_LOG_LEVEL", "default": "WARNING"},
}


def _level(env_var: str, default: str) -> str:
    return os.getenv(env_var, default).upper()


def _emit_json() -> bool:
    # managed runtimes parse one JSON object per line into structured payloads
    return bool(os.getenv("K_SERVICE") or os.getenv("KUBERNETES_SERVICE_HOST"))


class ExtrasFormatter(logging.Formatter):
    """Append the ``data`` extra to console lines, or emit a JSON payload in managed runtimes."""

    def format(self, record: logging.LogRecord) -> str:
        data = record.__dict__.get("data")
        if _emit_json():
            return json.dumps(_json_payload(record, data), sort_keys=True, separators=(",", ":"))

        formatted = super().format(record)
        if not data:
            return formatted
        encoded = json.dumps(_sanitize_for_json(data), sort_keys=True, separators=(",", ":"))
        return f"{formatted} | data={encoded}"


def _json_payload(record: logging.LogRecord, data: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "message": record.getMessage(),
        "severity": record.levelname,
        "logger": record.name,
        "timestamp": (
            f"{time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(record.created))}"
            f".{int(record.msecs):03d}Z"
        ),
    }
    if data:
        payload["data"] = _sanitize_for_json(data)
    if record.exc_info:
        payload["exception"] = logging.Formatter().formatException(record.exc_info)
    json_fields = record.__dict__.get("json_fields")
    if isinstance(json_fields, Mapping):
        for key, value in _sanitize_for_json(json_fields).items():
            payload.setdefault(key, value)
    return payload


class OtelContextLogFilter(logging.Filter):
    """Copy the active span ids and baggage into ``json_fields``."""

    def __init__(self, *, gcp_project_id: str | None = None) -> None:
        super().__init__()
        self._gcp_project_id = gcp_project_id.strip() if gcp_project_id else None

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        baggage_values = baggage.get_all()
        if not span_context.is_valid and not baggage_values:
            return True

        existing = record.__dict__.get("json_fields")
        json_fields = dict(existing) if isinstance(existing, Mapping) else {}
        otel: dict[str, Any] = {}
        if baggage_values:
            otel["baggage"] = {key: str(value) for key, value in baggage_values.items()}
        if span_context.is_valid:
            trace_id = f"{span_context.trace_id:032x}"
            span_id = f"{span_context.span_id:016x}"
            otel["trace_id"] = trace_id
            otel["span_id"] = span_id
            if self._gcp_project_id:
                json_fields.setdefault(
                    "logging.googleapis.com/trace", f"projects/{self._gcp_project_id}/traces/{trace_id}"
                )
                json_fields.setdefault("logging.googleapis.com/spanId", span_id)
        json_fields["otel"] = otel
        record.__dict__["json_fields"] = json_fields
        return True


class CloudJsonSanitizer(logging.Filter):
    """Make ``data`` serializable and mirror it into ``json_fields`` for Cloud Logging."""

    def filter(self, record: logging.LogRecord) -> bool:
        record_dict = record.__dict__
        if "data" not in record_dict:
            return True
        data = _sanitize_for_json(record_dict["data"])
        record_dict["data"] = data
        existing = record_dict.get("json_fields")
        json_fields = dict(existing) if isinstance(existing, Mapping) else {}
        json_fields.setdefault("data", data)
        record_dict["json_fields"] = json_fields
        return True


def build_log_config(
    *,
    cloud_logging_enabled: bool = False,
    gcp_project: str | None = None,
    cloud_log_name: str = CLOUD_LOG_NAME,
    cloud_log_labels: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a ``dictConfig`` mapping for the service."""
    handler_names = ["console"]
    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": "ext://sys.stdout",
            "filters": ["otel_context"],
        }
    }
    if cloud_logging_enabled:
        if not gcp_project:
            raise RuntimeError("GCP project required when cloud logging is enabled")
        handlers["cloud_logging"] = _cloud_logging_handler(gcp_project, cloud_log_name, cloud_log_labels)
        handler_names.append("cloud_logging")

    loggers = {
        name: {
            "level": _level(entry["level_env"], entry["default"]),
            "handlers": list(handler_names),
            "propagate": False,
        }
        for name, entry in _EXTRA_LOGGERS.items()
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "()": ExtrasFormatter,
                "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "filters": {
            "otel_context": {"()": OtelContextLogFilter, "gcp_project_id": gcp_project},
            "cloud_json_sanitizer": {"()": CloudJsonSanitizer},
        },
        "handlers": handlers,
        "root": {"level": _level("LOG_LEVEL", "INFO"), "handlers": list(handler_names)},
        "loggers": loggers,
    }


def _cloud_logging_handler(
    project: str,
    log_name: str,
    labels: Mapping[str, str] | None,
) -> dict[str, Any]:
    from google.cloud.logging_v2.resource import Resource

    client = gcp_logging.Client(project=project)  # type: ignore[no-untyped-call]
    return {
        "level": "INFO",
        "class": "google.cloud.logging_v2.handlers.handlers.CloudLoggingHandler",
        "client": client,
        "name": log_name,
        "resource": Resource("global", {"project_id": project}),
        "labels": dict(labels or {}),
        "formatter": "console",
        "filters": ["otel_context", "cloud_json_sanitizer"],
    }


def _sanitize_for_json(value: Any, depth: int = 8) -> Any:
    """Return a JSON-serializable copy; unknown objects become strings."""
    if depth <= 0:
        return "<depth_exceeded>"
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes len={len(value)}>"
    if isinstance(value, BaseException):
        return repr(value)
    if is_dataclass(value) and not isinstance(value, type):
        return _sanitize_for_json(asdict(value), depth - 1)
    if isinstance(value, Mapping):
        return {str(key): _sanitize_for_json(item, depth - 1) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_sanitize_for_json(item, depth - 1) for item in value]
    return str(value)


def configure_logging(
    *,
    cloud_logging_enabled: bool = False,
    gcp_project: str | None = None,
    cloud_log_labels: Mapping[str, str] | None = None,
) -> None:
    dictConfig(
        build_log_config(
            cloud_logging_enabled=cloud_logging_enabled,
            gcp_project=gcp_project,
            cloud_log_labels=cloud_log_labels,
        )
    )
    # service loggers inherit from the root unless configured explicitly
    logging.getLogger(_PACKAGE_LOGGER).setLevel(logging.NOTSET)


def init_logging() -> None:
    """Bootstrap console logging before settings are loaded."""
    configure_logging()


def enable_cloud_logging(*, gcp_project: str, cloud_log_labels: Mapping[str, str] | None = None) -> None:
    """Attach Cloud Logging on top of the console setup."""
    configure_logging(cloud_logging_enabled=True, gcp_project=gcp_project, cloud_log_labels=cloud_log_labels)


def shutdown_logging() -> None:
    """Flush and close Cloud Logging handlers so buffered entries are shipped."""
    from google.cloud.logging_v2.handlers.handlers import CloudLoggingHandler

    seen: set[int] = set()
    loggers = [logging.getLogger()]
    loggers.extend(
        logger for logger in logging.Logger.manager.loggerDict.values() if isinstance(logger, logging.Logger)
    )
    for logger in loggers:
        for handler in logger.handlers:
            if id(handler) in seen or not isinstance(handler, CloudLoggingHandler):
                continue
            seen.add(id(handler))
            handler.flush()  # type: ignore[no-untyped-call]
            handler.close()  # type: ignore[no-untyped-call]


__all__ = [
    "CloudJsonSanitizer",
    "ExtrasFormatter",
    "OtelContextLogFilter",
    "build_log_config",
    "configure_logging",
    "enable_cloud_logging",
    "init_logging",
    "shutdown_logging",
]
