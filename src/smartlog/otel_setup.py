"""
OpenTelemetry configuration for HTTP request/response observability.

Provides a single `init_telemetry()` entry point that configures the trace
and metric pipelines used by :class:`smartlog.instruments.HttpInstruments`.

Supports:
  - Console exporters (development)
  - OTLP/gRPC exporters (production)
  - OTLP/HTTP exporters (when gRPC is not available)

Configuration is driven by arguments + environment variables:

  OTEL_EXPORTER_OTLP_ENDPOINT   - OTLP endpoint (e.g. http://localhost:4317)
  OTEL_EXPORTER_OTLP_HEADERS    - Extra headers (e.g. "Authorization=Bearer xxx")
  OTEL_SERVICE_NAME              - Overrides service_name argument
"""

from __future__ import annotations

import importlib
import os
from enum import Enum
from typing import Any, Optional

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter

from smartlog import __version__


class ExporterType(str, Enum):
    CONSOLE = "console"
    OTLP_GRPC = "otlp_grpc"
    OTLP_HTTP = "otlp_http"


# (module, class, pip package) per exporter backend and signal
_OTLP_EXPORTERS: dict[tuple[ExporterType, str], tuple[str, str, str]] = {
    (ExporterType.OTLP_GRPC, "traces"): (
        "opentelemetry.exporter.otlp.proto.grpc.trace_exporter",
        "OTLPSpanExporter",
        "opentelemetry-exporter-otlp-proto-grpc",
    ),
    (ExporterType.OTLP_GRPC, "metrics"): (
        "opentelemetry.exporter.otlp.proto.grpc.metric_exporter",
        "OTLPMetricExporter",
        "opentelemetry-exporter-otlp-proto-grpc",
    ),
    (ExporterType.OTLP_HTTP, "traces"): (
        "opentelemetry.exporter.otlp.proto.http.trace_exporter",
        "OTLPSpanExporter",
        "opentelemetry-exporter-otlp-proto-http",
    ),
    (ExporterType.OTLP_HTTP, "metrics"): (
        "opentelemetry.exporter.otlp.proto.http.metric_exporter",
        "OTLPMetricExporter",
        "opentelemetry-exporter-otlp-proto-http",
    ),
}


def init_telemetry(
    service_name: str = "smartlog",
    exporter: ExporterType = ExporterType.CONSOLE,
    otlp_endpoint: Optional[str] = None,
    otlp_headers: Optional[dict[str, str]] = None,
    metric_export_interval_ms: int = 10_000,
    env: Optional[str] = None,
) -> tuple[TracerProvider, MeterProvider]:
    """
    Initialize OpenTelemetry providers for traces and metrics.

    Args:
        service_name: Service name for the OTel resource.
        exporter: Which exporter backend to use.
        otlp_endpoint: OTLP endpoint. Falls back to OTEL_EXPORTER_OTLP_ENDPOINT env var.
        otlp_headers: OTLP headers. Falls back to OTEL_EXPORTER_OTLP_HEADERS env var.
        metric_export_interval_ms: How often to flush metrics.
        env: Deployment environment, recorded as ``deployment.environment``.

    Returns:
        Tuple of (TracerProvider, MeterProvider) for testing/shutdown access.
    """
    attributes: dict[str, Any] = {
        "service.name": os.environ.get("OTEL_SERVICE_NAME", service_name),
        "service.version": __version__,
        "telemetry.sdk.language": "python",
    }
    if env:
        attributes["deployment.environment"] = env
    resource = Resource.create(attributes)

    span_exporter: SpanExporter
    metric_exporter: MetricExporter
    if exporter == ExporterType.CONSOLE:
        span_exporter = ConsoleSpanExporter()
        metric_exporter = ConsoleMetricExporter()
    else:
        span_exporter = _create_otlp_exporter(exporter, "traces", otlp_endpoint, otlp_headers)
        metric_exporter = _create_otlp_exporter(exporter, "metrics", otlp_endpoint, otlp_headers)

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(tracer_provider)

    metric_reader = PeriodicExportingMetricReader(
        metric_exporter,
        export_interval_millis=metric_export_interval_ms,
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)

    return tracer_provider, meter_provider


def shutdown_telemetry(
    tracer_provider: TracerProvider,
    meter_provider: MeterProvider,
    timeout_ms: int = 5_000,
) -> None:
    """Flush and shut down providers. Call on process exit."""
    tracer_provider.force_flush(timeout_millis=timeout_ms)
    tracer_provider.shutdown()
    meter_provider.shutdown()


# --- OTLP exporter factory ---


def _resolve_endpoint(endpoint: Optional[str]) -> str:
    return endpoint or os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")


def _resolve_headers(headers: Optional[dict[str, str]]) -> Optional[dict[str, str]]:
    if headers:
        return headers
    raw = os.environ.get("OTEL_EXPORTER_OTLP_HEADERS")
    if not raw:
        return None
    parsed: dict[str, str] = {}
    for pair in raw.split(","):
        if "=" in pair:
            k, v = pair.split("=", 1)
            parsed[k.strip()] = v.strip()
    return parsed


def _create_otlp_exporter(
    exporter: ExporterType,
    signal: str,
    endpoint: Optional[str],
    headers: Optional[dict[str, str]],
) -> Any:
    module_name, class_name, package = _OTLP_EXPORTERS[(exporter, signal)]
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ImportError(
            f"OTLP exporter {exporter.value!r} requires '{package}'. "
            "Install with: pip install smartlog[otlp]"
        ) from e

    ep = _resolve_endpoint(endpoint)
    resolved_headers = _resolve_headers(headers)
    kwargs: dict[str, Any] = {}
    if exporter == ExporterType.OTLP_HTTP:
        suffix = f"/v1/{signal}"
        if not ep.endswith(suffix):
            ep = ep.rstrip("/") + suffix
        if resolved_headers:
            kwargs["headers"] = resolved_headers
    elif resolved_headers:
        # gRPC exporters take metadata as a sequence of pairs
        kwargs["headers"] = list(resolved_headers.items())
    kwargs["endpoint"] = ep
    return getattr(module, class_name)(**kwargs)
