"""
Shared test fixtures for smartlog tests.

OTel global providers can only be set once per process. We use session-scoped
setup for the providers and clear the in-memory exporter before each test.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Sequence

import pytest
from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    SimpleSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from smartlog.config import Config, LogConfig
from smartlog.instruments import HttpInstruments
from smartlog.log_setup import FieldLogger


class InMemorySpanExporter(SpanExporter):
    """Minimal in-memory exporter for test assertions."""

    def __init__(self) -> None:
        self._spans: list[ReadableSpan] = []
        self._lock = threading.Lock()

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        with self._lock:
            self._spans.extend(spans)
        return SpanExportResult.SUCCESS

    def get_finished_spans(self) -> list[ReadableSpan]:
        with self._lock:
            return list(self._spans)

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 0) -> bool:
        return True


# Module-level singletons, set once and reused across all tests
_span_exporter = InMemorySpanExporter()
_metric_reader = InMemoryMetricReader()
_otel_initialized = False


def _ensure_otel() -> None:
    global _otel_initialized
    if _otel_initialized:
        return
    resource = Resource.create({"service.name": "test"})

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(SimpleSpanProcessor(_span_exporter))
    trace.set_tracer_provider(tracer_provider)

    meter_provider = MeterProvider(resource=resource, metric_readers=[_metric_reader])
    metrics.set_meter_provider(meter_provider)

    _otel_initialized = True


def metric_total(reader: InMemoryMetricReader, name: str) -> float:
    """Sum every data point of a counter/histogram across all attribute sets."""
    data = reader.get_metrics_data()
    total = 0.0
    if data is None:
        return total
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name != name:
                    continue
                for point in metric.data.data_points:
                    total += getattr(point, "value", None) or getattr(point, "count", 0)
    return total


@pytest.fixture(autouse=True)
def _reset_exporter():
    """Clear collected spans before each test so tests are isolated."""
    _ensure_otel()
    _span_exporter.clear()
    yield


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """Access the shared in-memory span exporter."""
    return _span_exporter


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    """Access the shared in-memory metric reader."""
    return _metric_reader


@pytest.fixture
def instruments() -> HttpInstruments:
    return HttpInstruments(tracer_name="test-http", meter_name="test-http")


@pytest.fixture
def cfg() -> Config:
    """Config with no file or console sinks; records are captured with caplog."""
    return Config(
        service_name="test-service",
        env="test",
        log=LogConfig(filename="", console=False),
        redact_keys=["Authorization", "password", "Api-Key"],
        skip_paths=["/healthz"],
    )


@pytest.fixture
def field_logger(caplog: pytest.LogCaptureFixture) -> FieldLogger:
    """A FieldLogger whose records propagate to caplog."""
    caplog.set_level(logging.DEBUG, logger="smartlog.tests")
    return FieldLogger(logging.getLogger("smartlog.tests"), {"service": "test-service"})


def records_with(caplog: pytest.LogCaptureFixture, message: str) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.getMessage() == message]


def fields_of(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "fields", {})
