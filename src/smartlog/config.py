"""
Configuration for loggers, HTTP middleware, and query tracing.

Plain dataclasses with defaults suitable for local development. Production
deployments usually build them with :meth:`Config.from_env`:

  SMARTLOG_SERVICE_NAME              - service name stamped on every record
  SMARTLOG_ENV                       - deployment environment
  SMARTLOG_REDACT_KEYS               - comma-separated keys to redact
  SMARTLOG_SKIP_PATHS                - comma-separated paths the server middleware ignores
  SMARTLOG_LOG_PATH                  - log file path ("" disables the file sink)
  SMARTLOG_LOG_MAX_SIZE_MB           - rotate after this many megabytes
  SMARTLOG_LOG_MAX_BACKUPS           - rotated files to keep
  SMARTLOG_LOG_COMPRESSION           - "gzip" or "none"
  SMARTLOG_LOG_ROTATION_INTERVAL_HOURS - time-based rotation (0 = size-based)
  SMARTLOG_LOG_CONSOLE               - also log to stdout
  SMARTLOG_QUERY_LEVEL               - silent | error | warn | info
  SMARTLOG_QUERY_SLOW_THRESHOLD_MS   - slow-query threshold (<=0 = 200 ms)
  SMARTLOG_QUERY_LOG_RESULT          - log query results
  SMARTLOG_QUERY_RESULT_MAX_BYTES    - byte budget for logged results (<=0 = unbounded)
  SMARTLOG_QUERY_IDENTITY_FIELD      - field kept first when truncating results
  SMARTLOG_QUERY_NON_OBJECT_POLICY   - "slice" or "placeholder"
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from smartlog.errors import ConfigError
from smartlog.truncation import IDENTITY_FIELD, NonObjectPolicy

_COMPRESSIONS = ("gzip", "none")
_QUERY_LEVELS = ("silent", "error", "warn", "info")


def _check_level(name: str, value: str) -> None:
    if not isinstance(logging.getLevelName(value.upper()), int):
        raise ConfigError(f"{name}: unknown log level {value!r}")


@dataclass
class LogConfig:
    """
    Log sink settings.

    Attributes:
        filename:                JSON log file. Empty string disables the file sink.
        max_size_mb:             Size-based rotation threshold.
        max_backups:             Rotated files kept on disk.
        compression:             "gzip" compresses rotated files; "none" keeps them as is.
        rotation_interval_hours: If > 0, rotate on this interval instead of by size.
        console:                 Also write human-readable records to stdout.
        console_level:           Minimum level for the console sink.
        file_level:              Minimum level for the file sink.
    """

    filename: str = "logs/app.log"
    max_size_mb: int = 100
    max_backups: int = 3
    compression: str = "gzip"
    rotation_interval_hours: int = 0
    console: bool = True
    console_level: str = "DEBUG"
    file_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.compression not in _COMPRESSIONS:
            raise ConfigError(f"log.compression must be one of {_COMPRESSIONS}, got {self.compression!r}")
        if self.max_size_mb <= 0:
            raise ConfigError("log.max_size_mb must be positive")
        if self.max_backups < 0:
            raise ConfigError("log.max_backups must not be negative")
        _check_level("log.console_level", self.console_level)
        _check_level("log.file_level", self.file_level)


@dataclass
class QueryConfig:
    """
    Query tracing and result logging.

    Attributes:
        level:                   silent | error | warn | info.
        slow_query_threshold_ms: Queries slower than this log at WARNING. <= 0 uses 200 ms.
        log_query_result:        Emit a DEBUG record with each query's result.
        log_result_max_bytes:    Byte budget for logged results. <= 0 is unbounded.
        identity_field:          Field always kept (first) when a result is truncated.
        non_object_policy:       How over-budget non-object results are cut.
    """

    level: str = "info"
    slow_query_threshold_ms: int = 0
    log_query_result: bool = False
    log_result_max_bytes: int = 0
    identity_field: str = IDENTITY_FIELD
    non_object_policy: NonObjectPolicy = NonObjectPolicy.SLICE

    def __post_init__(self) -> None:
        self.level = self.level.lower()
        if self.level not in _QUERY_LEVELS:
            raise ConfigError(f"query.level must be one of {_QUERY_LEVELS}, got {self.level!r}")
        try:
            self.non_object_policy = NonObjectPolicy(self.non_object_policy)
        except ValueError as e:
            raise ConfigError(f"query.non_object_policy: {e}") from e


@dataclass
class Config:
    service_name: str = "smartlog"
    env: str = "development"
    log: LogConfig = field(default_factory=LogConfig)
    redact_keys: list[str] = field(default_factory=list)
    skip_paths: list[str] = field(default_factory=list)
    query: QueryConfig = field(default_factory=QueryConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, prefix: str = "SMARTLOG_") -> "Config":
        """Build a Config from environment variables, falling back to defaults."""
        env = _Env(os.environ if environ is None else environ, prefix)
        log_defaults = LogConfig()
        query_defaults = QueryConfig()

        return cls(
            service_name=env.get_str("SERVICE_NAME", cls.service_name),
            env=env.get_str("ENV", cls.env),
            redact_keys=env.get_list("REDACT_KEYS"),
            skip_paths=env.get_list("SKIP_PATHS"),
            log=LogConfig(
                filename=env.get_str("LOG_PATH", log_defaults.filename),
                max_size_mb=env.get_int("LOG_MAX_SIZE_MB", log_defaults.max_size_mb),
                max_backups=env.get_int("LOG_MAX_BACKUPS", log_defaults.max_backups),
                compression=env.get_str("LOG_COMPRESSION", log_defaults.compression),
                rotation_interval_hours=env.get_int("LOG_ROTATION_INTERVAL_HOURS", log_defaults.rotation_interval_hours),
                console=env.get_bool("LOG_CONSOLE", log_defaults.console),
                console_level=env.get_str("LOG_CONSOLE_LEVEL", log_defaults.console_level),
                file_level=env.get_str("LOG_FILE_LEVEL", log_defaults.file_level),
            ),
            query=QueryConfig(
                level=env.get_str("QUERY_LEVEL", query_defaults.level),
                slow_query_threshold_ms=env.get_int("QUERY_SLOW_THRESHOLD_MS", query_defaults.slow_query_threshold_ms),
                log_query_result=env.get_bool("QUERY_LOG_RESULT", query_defaults.log_query_result),
                log_result_max_bytes=env.get_int("QUERY_RESULT_MAX_BYTES", query_defaults.log_result_max_bytes),
                identity_field=env.get_str("QUERY_IDENTITY_FIELD", query_defaults.identity_field),
                non_object_policy=env.get_str("QUERY_NON_OBJECT_POLICY", query_defaults.non_object_policy.value),
            ),
        )


class _Env:
    """Typed, prefixed lookups over an environment mapping."""

    _TRUE = {"1", "true", "yes", "on"}
    _FALSE = {"0", "false", "no", "off"}

    def __init__(self, environ: Mapping[str, str], prefix: str) -> None:
        self._environ = environ
        self._prefix = prefix

    def _raw(self, name: str) -> Optional[str]:
        return self._environ.get(self._prefix + name)

    def get_str(self, name: str, default: str) -> str:
        raw = self._raw(name)
        return default if raw is None else raw.strip()

    def get_int(self, name: str, default: int) -> int:
        raw = self._raw(name)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigError(f"{self._prefix}{name} must be an integer, got {raw!r}") from e

    def get_bool(self, name: str, default: bool) -> bool:
        raw = self._raw(name)
        if raw is None or not raw.strip():
            return default
        lowered = raw.strip().lower()
        if lowered in self._TRUE:
            return True
        if lowered in self._FALSE:
            return False
        raise ConfigError(f"{self._prefix}{name} must be a boolean, got {raw!r}")

    def get_list(self, name: str) -> list[str]:
        raw = self._raw(name)
        if not raw:
            return []
        return [item.strip() for item in raw.split(",") if item.strip()]
