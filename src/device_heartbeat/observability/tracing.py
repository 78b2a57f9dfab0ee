"""OpenTelemetry bootstrap."""

from __future__ import annotations

import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

_TRACING_CONFIGURED = False


def configure_tracing(*, service_name: str) -> None:
    """Install an OTLP span exporter when an endpoint is configured in the environment.

    Without ``OTEL_EXPORTER_OTLP_ENDPOINT`` (or the traces-specific variant) this
    is a no-op and spans go to the default no-op provider. Asking for an exporter
    through ``OTEL_TRACES_EXPORTER`` without an endpoint is a configuration error.
    """
    global _TRACING_CONFIGURED
    if _TRACING_CONFIGURED:
        return

    traces_exporter = (os.getenv("OTEL_TRACES_EXPORTER") or "").strip().lower()
    if traces_exporter == "none":
        _TRACING_CONFIGURED = True
        return

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        if traces_exporter:
            raise RuntimeError(
                "tracing enabled but no OTLP endpoint: set OTEL_EXPORTER_OTLP_ENDPOINT "
                "or OTEL_TRACES_EXPORTER=none"
            )
        _TRACING_CONFIGURED = True
        return

    resolved_name = (os.getenv("OTEL_SERVICE_NAME") or service_name).strip()
    if not resolved_name:
        raise RuntimeError("service_name must be a non-empty string")

    provider = TracerProvider(resource=Resource.create({"service.name": resolved_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    _TRACING_CONFIGURED = True


__all__ = ["configure_tracing"]
