"""
Server-side request/response logging for Starlette and FastAPI apps.

Usage:
    from starlette.middleware import Middleware

    cfg = Config.from_env()
    log = new_logger(cfg)
    app = Starlette(routes=..., middleware=[
        Middleware(ServerLoggingMiddleware, logger=log, cfg=cfg, instruments=HttpInstruments()),
    ])

For each request outside ``cfg.skip_paths`` two INFO records are written,
"Request received" and "Response sent", both carrying the request's
``log_id``. Headers and JSON bodies pass through key redaction first.
"""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator, Optional, Union

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from smartlog._http import latency_ms, loggable_headers, loggable_redacted_body, open_exchange
from smartlog.config import Config
from smartlog.context import HEADER_LOG_ID, bind_request, new_log_id
from smartlog.instruments import SERVER, HttpInstruments
from smartlog.log_setup import FieldLogger, as_field_logger


async def _replay(body: bytes) -> AsyncIterator[bytes]:
    yield body


class ServerLoggingMiddleware(BaseHTTPMiddleware):
    """Logs incoming HTTP requests and their responses."""

    def __init__(
        self,
        app: ASGIApp,
        logger: Union[logging.Logger, FieldLogger, None] = None,
        cfg: Optional[Config] = None,
        instruments: Optional[HttpInstruments] = None,
    ) -> None:
        super().__init__(app)
        cfg = cfg or Config()
        self._logger = as_field_logger(logger, __name__)
        self._redact_keys = list(cfg.redact_keys)
        self._skip_paths = frozenset(cfg.skip_paths)
        self._instruments = instruments

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in self._skip_paths:
            return await call_next(request)

        start = time.perf_counter()
        log_id = request.headers.get(HEADER_LOG_ID) or new_log_id()
        log = self._logger.bind(log_id=log_id)

        # Starlette caches the body so the endpoint can still read it.
        request_body = await request.body()
        log.info(
            "Request received",
            extra={
                "fields": {
                    "method": request.method,
                    "path": path,
                    "request": {
                        "headers": loggable_headers(request.headers.raw, self._redact_keys),
                        "body": loggable_redacted_body(
                            request_body, self._redact_keys, self._instruments, SERVER, "request"
                        ),
                    },
                }
            },
        )

        with bind_request(log_id, log), open_exchange(self._instruments, SERVER, request.method, path) as exchange:
            try:
                response = await call_next(request)
            except Exception:
                log.exception(
                    "Request failed",
                    extra={
                        "fields": {
                            "method": request.method,
                            "path": path,
                            "latency_ms": latency_ms(start, time.perf_counter()),
                        }
                    },
                )
                raise
            exchange.set_status(response.status_code)

            chunks = []
            async for chunk in response.body_iterator:  # type: ignore[attr-defined]
                chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
            response_body = b"".join(chunks)

        log.info(
            "Response sent",
            extra={
                "fields": {
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "latency_ms": latency_ms(start, time.perf_counter()),
                    "response": {
                        "body": loggable_redacted_body(
                            response_body, self._redact_keys, self._instruments, SERVER, "response"
                        ),
                    },
                }
            },
        )

        response.body_iterator = _replay(response_body)  # type: ignore[attr-defined]
        response.headers[HEADER_LOG_ID] = log_id
        return response
