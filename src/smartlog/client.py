"""
Client-side request/response logging as httpx transports.

Usage:
    client = httpx.Client(transport=LoggingTransport(logger=log, redact_keys=["Api-Key"]))
    async_client = httpx.AsyncClient(transport=AsyncLoggingTransport(logger=log))

Inside a request handled by :class:`smartlog.server.ServerLoggingMiddleware`
the bound log id is forwarded as ``X-Request-ID`` so the downstream service
logs under the same correlation id.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Optional, Union

import httpx

from smartlog._http import latency_ms, loggable_headers, loggable_redacted_body, open_exchange
from smartlog.context import HEADER_LOG_ID, get_log_id
from smartlog.instruments import CLIENT, HttpInstruments
from smartlog.log_setup import FieldLogger, as_field_logger


class _ClientLogging:
    """Logging steps shared by the sync and async transports."""

    def __init__(
        self,
        logger: Union[logging.Logger, FieldLogger, None],
        redact_keys: Iterable[str],
        instruments: Optional[HttpInstruments],
    ) -> None:
        self._logger = as_field_logger(logger, __name__)
        self._redact_keys = list(redact_keys)
        self._instruments = instruments

    def _start(self, request: httpx.Request, body: bytes) -> FieldLogger:
        log = self._logger
        log_id = get_log_id()
        if log_id:
            request.headers[HEADER_LOG_ID] = log_id
            log = log.bind(log_id=log_id)

        log.info(
            "Client request sent",
            extra={
                "fields": {
                    "method": request.method,
                    "url": str(request.url),
                    "request": {
                        "headers": loggable_headers(request.headers.raw, self._redact_keys),
                        "body": loggable_redacted_body(body, self._redact_keys, self._instruments, CLIENT, "request"),
                    },
                }
            },
        )
        return log

    def _failed(self, log: FieldLogger, request: httpx.Request, start: float) -> None:
        log.error(
            "Client request failed",
            exc_info=True,
            extra={
                "fields": {
                    "method": request.method,
                    "url": str(request.url),
                    "latency_ms": latency_ms(start, time.perf_counter()),
                }
            },
        )

    def _finished(self, log: FieldLogger, request: httpx.Request, response: httpx.Response, start: float) -> None:
        log.info(
            "Client response received",
            extra={
                "fields": {
                    "method": request.method,
                    "url": str(request.url),
                    "status": response.status_code,
                    "latency_ms": latency_ms(start, time.perf_counter()),
                    "response": {
                        "body": loggable_redacted_body(
                            response.content, self._redact_keys, self._instruments, CLIENT, "response"
                        ),
                    },
                }
            },
        )


class LoggingTransport(_ClientLogging, httpx.BaseTransport):
    """Wraps another httpx transport and logs every exchange through it."""

    def __init__(
        self,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Union[logging.Logger, FieldLogger, None] = None,
        redact_keys: Iterable[str] = (),
        instruments: Optional[HttpInstruments] = None,
    ) -> None:
        super().__init__(logger, redact_keys, instruments)
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        start = time.perf_counter()
        log = self._start(request, request.read())

        with open_exchange(self._instruments, CLIENT, request.method, str(request.url)) as exchange:
            try:
                response = self._transport.handle_request(request)
                exchange.set_status(response.status_code)
                try:
                    # Buffer the body; the caller reads it back from the cache.
                    response.read()
                except Exception:
                    response.close()
                    raise
            except Exception:
                self._failed(log, request, start)
                raise

        self._finished(log, request, response, start)
        return response

    def close(self) -> None:
        self._transport.close()


class AsyncLoggingTransport(_ClientLogging, httpx.AsyncBaseTransport):
    """Async twin of :class:`LoggingTransport`."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Union[logging.Logger, FieldLogger, None] = None,
        redact_keys: Iterable[str] = (),
        instruments: Optional[HttpInstruments] = None,
    ) -> None:
        super().__init__(logger, redact_keys, instruments)
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        start = time.perf_counter()
        log = self._start(request, await request.aread())

        with open_exchange(self._instruments, CLIENT, request.method, str(request.url)) as exchange:
            try:
                response = await self._transport.handle_async_request(request)
                exchange.set_status(response.status_code)
                try:
                    await response.aread()
                except Exception:
                    await response.aclose()
                    raise
            except Exception:
                self._failed(log, request, start)
                raise

        self._finished(log, request, response, start)
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()
