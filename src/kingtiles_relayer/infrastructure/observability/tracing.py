"""OpenTelemetry bootstrap for the relayer."""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger("kingtiles_relayer.observability")

_TRACING_CONFIGURED = False


def configure_tracing(*, service_name: str) -> bool:
    """Install an OTLP exporter when an endpoint is configured; returns whether one was installed.

    Without ``OTEL_EXPORTER_OTLP_ENDPOINT`` (or the traces-specific variant) this
    is a no-op and spans stay non-recording. Setting ``OTEL_TRACES_EXPORTER``
    without an endpoint is a configuration error.
    """
    global _TRACING_CONFIGURED
    if _TRACING_CONFIGURED:
        return False

    exporter_name = (os.getenv("OTEL_TRACES_EXPORTER") or "").strip().lower()
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if exporter_name == "none" or (not endpoint and not exporter_name):
        _TRACING_CONFIGURED = True
        return False
    if not endpoint:
        raise RuntimeError(
            "OTEL_TRACES_EXPORTER is set but no OTLP endpoint is configured: set "
            "OTEL_EXPORTER_OTLP_ENDPOINT or OTEL_TRACES_EXPORTER=none"
        )

    resolved_name = (os.getenv("OTEL_SERVICE_NAME") or service_name).strip()
    if not resolved_name:
        raise RuntimeError("service_name must be a non-empty string")

    provider = TracerProvider(resource=Resource.create({"service.name": resolved_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    _TRACING_CONFIGURED = True
    logger.info("tracing configured", extra={"data": {"service_name": resolved_name, "endpoint": endpoint}})
    return True


__all__ = ["configure_tracing"]
