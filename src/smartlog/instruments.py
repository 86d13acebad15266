"""
OpenTelemetry spans and metrics for HTTP exchanges.

One span per exchange (server or client side) plus a request counter and a
duration histogram per side. Span attributes carry method, target, and
status only; bodies and headers stay in the (redacted) log records.

Thread-safe. Async-safe. The OTel SDK batches exports in background threads.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator, Optional

from opentelemetry import metrics, trace
from opentelemetry.trace import SpanKind, Status, StatusCode

SERVER = "server"
CLIENT = "client"

_SPAN_KINDS = {SERVER: SpanKind.SERVER, CLIENT: SpanKind.CLIENT}


class Exchange:
    """Outcome of one HTTP exchange, filled in while the span is open."""

    __slots__ = ("status_code",)

    def __init__(self) -> None:
        self.status_code: Optional[int] = None

    def set_status(self, status_code: int) -> None:
        self.status_code = status_code


class HttpInstruments:
    """
    Produces spans and metrics for the server middleware and client transport.

    Usage:
        instruments = HttpInstruments()
        with instruments.exchange(SERVER, "GET", "/orders") as exchange:
            ...
            exchange.set_status(200)
    """

    def __init__(self, tracer_name: str = "smartlog", meter_name: str = "smartlog") -> None:
        self._tracer = trace.get_tracer(tracer_name)
        meter = metrics.get_meter(meter_name)

        self._requests = {
            side: meter.create_counter(
                name=f"http.{side}.requests.total",
                description=f"Total HTTP {side} requests observed",
                unit="1",
            )
            for side in (SERVER, CLIENT)
        }
        self._durations = {
            side: meter.create_histogram(
                name=f"http.{side}.duration_ms",
                description=f"HTTP {side} request duration in milliseconds",
                unit="ms",
            )
            for side in (SERVER, CLIENT)
        }
        self._redactions = meter.create_counter(
            name="redaction.applied.total",
            description="JSON bodies passed through key redaction before logging",
            unit="1",
        )

    @contextmanager
    def exchange(self, side: str, method: str, target: str) -> Generator[Exchange, None, None]:
        """
        Open a span for one exchange and record metrics when it closes.

        Exceptions propagate; the span is marked ERROR and records them.
        A 5xx status also marks the span ERROR.
        """
        outcome = Exchange()
        start = time.perf_counter()
        with self._tracer.start_as_current_span(
            f"http.{side}.request",
            kind=_SPAN_KINDS[side],
            attributes={"http.method": method, "http.target": target},
        ) as span:
            try:
                yield outcome
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                attrs = {"http.method": method, "http.status_code": outcome.status_code or 0}
                if outcome.status_code is not None:
                    span.set_attribute("http.status_code", outcome.status_code)
                    if outcome.status_code >= 500:
                        span.set_status(Status(StatusCode.ERROR, f"HTTP {outcome.status_code}"))
                self._requests[side].add(1, attrs)
                self._durations[side].record(duration_ms, attrs)

    def record_redaction(self, side: str, part: str) -> None:
        """Count a JSON body that went through redaction (``part`` is request/response)."""
        self._redactions.add(1, {"http.side": side, "http.part": part})
