"""
Request-scoped correlation state.

The server middleware binds a log id and a logger carrying that id for the
duration of a request. Code running inside the request (handlers, the
outgoing httpx transport, query tracing) picks them up from here, so every
record and every downstream call shares the same ``X-Request-ID``.

Backed by ``contextvars``: safe across threads and asyncio tasks.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

from smartlog.log_setup import FieldLogger

HEADER_LOG_ID = "X-Request-ID"

_log_id: ContextVar[Optional[str]] = ContextVar("smartlog_log_id", default=None)
_logger: ContextVar[Optional[FieldLogger]] = ContextVar("smartlog_logger", default=None)


def new_log_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def get_log_id() -> Optional[str]:
    """Return the log id bound to the current request, if any."""
    return _log_id.get()


def get_logger(default: FieldLogger) -> FieldLogger:
    """Return the request-scoped logger, or ``default`` outside a request."""
    return _logger.get() or default


@contextmanager
def bind_request(log_id: str, logger: Optional[FieldLogger] = None) -> Generator[str, None, None]:
    """Bind ``log_id`` (and optionally a logger) for the enclosed block."""
    id_token = _log_id.set(log_id)
    logger_token = _logger.set(logger) if logger is not None else None
    try:
        yield log_id
    finally:
        if logger_token is not None:
            _logger.reset(logger_token)
        _log_id.reset(id_token)
