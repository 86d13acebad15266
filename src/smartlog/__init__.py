"""
smartlog: HTTP request/response observability with key redaction.

Quick start::

    from smartlog import Config, ServerLoggingMiddleware, new_logger

    cfg = Config.from_env()
    log = new_logger(cfg)
    app.add_middleware(ServerLoggingMiddleware, logger=log, cfg=cfg)

Outgoing calls::

    client = httpx.Client(transport=LoggingTransport(logger=log, redact_keys=cfg.redact_keys))
"""

__version__ = "0.1.0"

from smartlog.client import AsyncLoggingTransport, LoggingTransport
from smartlog.config import Config, LogConfig, QueryConfig
from smartlog.context import HEADER_LOG_ID, bind_request, get_log_id, get_logger, new_log_id
from smartlog.errors import ConfigError, RecordNotFoundError, RedactionError, SmartlogError
from smartlog.instruments import HttpInstruments
from smartlog.log_setup import FieldLogger, JSONFormatter, log_fields, new_logger
from smartlog.otel_setup import ExporterType, init_telemetry, shutdown_telemetry
from smartlog.query_log import QueryLevel, QueryLogger, QueryResultLogger, TracedCursor
from smartlog.redaction import REDACTED, redact, redact_headers, redact_json_body
from smartlog.server import ServerLoggingMiddleware
from smartlog.truncation import NonObjectPolicy, bounded_serialize, canonical_json

__all__ = [
    # Redaction and truncation
    "REDACTED",
    "NonObjectPolicy",
    "bounded_serialize",
    "canonical_json",
    "redact",
    "redact_headers",
    "redact_json_body",
    # Configuration and logging
    "Config",
    "LogConfig",
    "QueryConfig",
    "FieldLogger",
    "JSONFormatter",
    "log_fields",
    "new_logger",
    # Correlation
    "HEADER_LOG_ID",
    "bind_request",
    "get_log_id",
    "get_logger",
    "new_log_id",
    # HTTP
    "AsyncLoggingTransport",
    "LoggingTransport",
    "ServerLoggingMiddleware",
    # Queries
    "QueryLevel",
    "QueryLogger",
    "QueryResultLogger",
    "TracedCursor",
    # Telemetry
    "ExporterType",
    "HttpInstruments",
    "init_telemetry",
    "shutdown_telemetry",
    # Errors
    "ConfigError",
    "RecordNotFoundError",
    "RedactionError",
    "SmartlogError",
]
