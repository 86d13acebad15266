"""
Logger construction: a JSON file sink with rotation plus a console sink.

Records carry structured fields next to the message. Fields bound on a
:class:`FieldLogger` (service, env, log_id, ...) are merged with the
per-call ``extra={"fields": {...}}`` and rendered by the formatters below.

Usage:
    log = new_logger(Config(service_name="orders", env="prod"))
    log.info("Request received", extra={"fields": {"method": "GET"}})
    log.bind(log_id="abc").warning("slow")
"""

from __future__ import annotations

import gzip
import json
import logging
import logging.handlers
import os
import shutil
import sys
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from smartlog.config import Config, LogConfig

_MB = 1024 * 1024


class FieldLogger(logging.LoggerAdapter):
    """LoggerAdapter that carries bound structured fields."""

    def __init__(self, logger: logging.Logger, fields: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(logger, {"fields": dict(fields or {})})

    @property
    def fields(self) -> dict[str, Any]:
        return self.extra["fields"]  # type: ignore[index]

    def bind(self, **fields: Any) -> "FieldLogger":
        """Return a child logger with ``fields`` added to the bound ones."""
        merged = dict(self.fields)
        merged.update(fields)
        return FieldLogger(self.logger, merged)

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        merged = dict(self.fields)
        merged.update(extra.get("fields") or {})
        extra["fields"] = merged
        kwargs["extra"] = extra
        return msg, kwargs


def as_field_logger(logger: Union[logging.Logger, FieldLogger, None], name: str = "smartlog") -> FieldLogger:
    """Wrap a plain ``logging.Logger`` (or None) so it accepts bound fields."""
    if isinstance(logger, FieldLogger):
        return logger
    return FieldLogger(logger or logging.getLogger(name))


def log_fields(logger: Union[logging.Logger, logging.LoggerAdapter], level: int, msg: str, **fields: Any) -> None:
    """Log ``msg`` at ``level`` with ``fields`` attached as structured fields."""
    logger.log(level, msg, extra={"fields": fields}, stacklevel=2)


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = getattr(record, "fields", None)
    return fields if isinstance(fields, dict) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: envelope keys first, then structured fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "caller": f"{os.path.basename(record.pathname)}:{record.lineno}",
            "message": record.getMessage(),
        }
        for key, value in _record_fields(record).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable line with the structured fields appended as JSON."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-8s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _record_fields(record)
        if fields:
            line = f"{line} {json.dumps(fields, default=str, ensure_ascii=False)}"
        return line


def _gzip_namer(name: str) -> str:
    return name + ".gz"


def _gzip_rotator(source: str, dest: str) -> None:
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)


def _file_handler(cfg: LogConfig) -> logging.Handler:
    directory = os.path.dirname(cfg.filename)
    if directory:
        os.makedirs(directory, exist_ok=True)

    handler: logging.handlers.BaseRotatingHandler
    if cfg.rotation_interval_hours > 0:
        handler = logging.handlers.TimedRotatingFileHandler(
            cfg.filename,
            when="h",
            interval=cfg.rotation_interval_hours,
            backupCount=cfg.max_backups,
            encoding="utf-8",
            utc=True,
        )
    else:
        handler = logging.handlers.RotatingFileHandler(
            cfg.filename,
            maxBytes=cfg.max_size_mb * _MB,
            backupCount=cfg.max_backups,
            encoding="utf-8",
        )
    if cfg.compression == "gzip":
        handler.namer = _gzip_namer
        handler.rotator = _gzip_rotator
    return handler


def new_logger(cfg: Config) -> FieldLogger:
    """
    Build the service logger described by ``cfg``.

    The underlying ``logging.Logger`` is ``smartlog.<service_name>``; it does
    not propagate to the root logger. Calling this again for the same service
    replaces its handlers rather than stacking new ones.

    Returns:
        A FieldLogger with ``service`` and ``env`` bound.
    """
    base = logging.getLogger(f"smartlog.{cfg.service_name}")
    for old in list(base.handlers):
        base.removeHandler(old)
        old.close()
    base.setLevel(logging.DEBUG)
    base.propagate = False

    if cfg.log.filename:
        file_handler = _file_handler(cfg.log)
        file_handler.setLevel(cfg.log.file_level.upper())
        file_handler.setFormatter(JSONFormatter())
        base.addHandler(file_handler)

    if cfg.log.console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(cfg.log.console_level.upper())
        console.setFormatter(ConsoleFormatter())
        base.addHandler(console)

    return FieldLogger(base, {"service": cfg.service_name, "env": cfg.env})
