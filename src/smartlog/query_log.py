"""
Database query tracing and result logging.

Three pieces:
  - QueryLogger:       classifies each executed statement as failed, slow, or
                       normal and logs it with latency, row count, and SQL.
  - QueryResultLogger: logs what a query returned, truncated to a byte
                       budget by :func:`smartlog.truncation.bounded_serialize`.
  - TracedCursor:      a DB-API 2.0 cursor wrapper that feeds both.

Usage:
    cfg = Config.from_env()
    log = new_logger(cfg)
    cursor = TracedCursor(
        conn.cursor(),
        QueryLogger(log, cfg.query),
        QueryResultLogger(log, cfg.query),
    )
    cursor.execute("SELECT * FROM users WHERE id = ?", (1,))
    cursor.fetchone()

Both loggers prefer the request-scoped logger when one is bound, so query
records share the request's log id.
"""

from __future__ import annotations

import copy
import logging
import time
from enum import IntEnum
from typing import Any, Callable, Optional, Sequence, Union

from smartlog.config import QueryConfig
from smartlog.context import get_logger
from smartlog.errors import ConfigError, RecordNotFoundError
from smartlog.log_setup import FieldLogger, as_field_logger, log_fields
from smartlog.truncation import bounded_serialize

DEFAULT_SLOW_QUERY_THRESHOLD = 0.2  # seconds


class QueryLevel(IntEnum):
    SILENT = 1
    ERROR = 2
    WARN = 3
    INFO = 4


def parse_level(name: str) -> QueryLevel:
    """Map a config level name to a QueryLevel; unknown names raise ConfigError."""
    try:
        return QueryLevel[name.upper()]
    except KeyError:
        raise ConfigError(f"unknown query level {name!r}") from None


class QueryLogger:
    """
    Logs executed statements.

    ``trace`` is the hook a driver integration calls after every statement:
      - level SILENT: nothing is logged;
      - an error (other than "record not found"): "Query Trace" at ERROR;
      - slower than the threshold: "Query Trace (Slow Query)" at WARNING;
      - otherwise: "Query Trace" at INFO.
    """

    def __init__(
        self,
        logger: Union[logging.Logger, FieldLogger, None],
        cfg: Optional[QueryConfig] = None,
        not_found_errors: tuple[type[BaseException], ...] = (RecordNotFoundError,),
    ) -> None:
        cfg = cfg or QueryConfig()
        self.logger = as_field_logger(logger, __name__)
        self.level = parse_level(cfg.level)
        if cfg.slow_query_threshold_ms > 0:
            self.slow_threshold = cfg.slow_query_threshold_ms / 1000
        else:
            self.slow_threshold = DEFAULT_SLOW_QUERY_THRESHOLD
        self._not_found_errors = not_found_errors

    def log_mode(self, level: QueryLevel) -> "QueryLogger":
        """Return a copy of this logger at ``level``."""
        clone = copy.copy(self)
        clone.level = level
        return clone

    def info(self, msg: str, *data: Any) -> None:
        if self.level >= QueryLevel.INFO:
            log_fields(self._log(), logging.INFO, msg, data=list(data))

    def warn(self, msg: str, *data: Any) -> None:
        if self.level >= QueryLevel.WARN:
            log_fields(self._log(), logging.WARNING, msg, data=list(data))

    def error(self, msg: str, *data: Any) -> None:
        if self.level >= QueryLevel.ERROR:
            log_fields(self._log(), logging.ERROR, msg, data=list(data))

    def trace(
        self,
        begin: float,
        fc: Callable[[], tuple[str, int]],
        err: Optional[BaseException] = None,
    ) -> None:
        """
        Log one executed statement.

        Args:
            begin: ``time.perf_counter()`` taken before the statement ran.
            fc: Returns ``(sql, rows_affected)``; only called when logging.
            err: The exception the statement raised, if any.
        """
        if self.level <= QueryLevel.SILENT:
            return

        elapsed = time.perf_counter() - begin
        sql, rows = fc()
        fields: dict[str, Any] = {
            "latency_ms": round(elapsed * 1000, 3),
            "rows": rows,
            "sql": sql,
        }

        log = self._log()
        if err is not None and not isinstance(err, self._not_found_errors):
            fields["error"] = f"{type(err).__name__}: {err}"
            log_fields(log, logging.ERROR, "Query Trace", **fields)
        elif elapsed > self.slow_threshold:
            log_fields(log, logging.WARNING, "Query Trace (Slow Query)", **fields)
        else:
            log_fields(log, logging.INFO, "Query Trace", **fields)

    def _log(self) -> FieldLogger:
        return get_logger(self.logger)


class QueryResultLogger:
    """Logs query results at DEBUG, bounded to ``cfg.log_result_max_bytes``."""

    def __init__(self, logger: Union[logging.Logger, FieldLogger, None], cfg: Optional[QueryConfig] = None) -> None:
        self.logger = as_field_logger(logger, __name__)
        self.cfg = cfg or QueryConfig()

    @property
    def enabled(self) -> bool:
        return self.cfg.log_query_result

    def log_result(self, dest: Any) -> None:
        if not self.enabled:
            return

        log = get_logger(self.logger)
        try:
            result = bounded_serialize(
                dest,
                self.cfg.log_result_max_bytes,
                self.cfg.identity_field,
                non_object=self.cfg.non_object_policy,
            )
        except (TypeError, ValueError) as e:
            log_fields(log, logging.WARNING, "Failed to serialize query result", error=str(e))
            return

        log_fields(log, logging.DEBUG, "Query Result", result=result.decode("utf-8", errors="replace"))


class TracedCursor:
    """
    DB-API 2.0 cursor wrapper that traces statements and logs fetched rows.

    Rows are handed to the result logger as ``{column: value}`` dicts when the
    cursor exposes ``description``. Attributes not defined here delegate to
    the wrapped cursor.
    """

    def __init__(
        self,
        cursor: Any,
        query_logger: QueryLogger,
        result_logger: Optional[QueryResultLogger] = None,
    ) -> None:
        self._cursor = cursor
        self._query_logger = query_logger
        self._result_logger = result_logger

    def execute(self, operation: str, *args: Any) -> "TracedCursor":
        self._traced(self._cursor.execute, operation, args)
        return self

    def executemany(self, operation: str, seq_of_parameters: Sequence[Any]) -> "TracedCursor":
        self._traced(self._cursor.executemany, operation, (seq_of_parameters,))
        return self

    def fetchone(self) -> Any:
        row = self._cursor.fetchone()
        if row is not None and self._logs_results:
            self._result_logger.log_result(self._as_record(row))  # type: ignore[union-attr]
        return row

    def fetchmany(self, size: Optional[int] = None) -> list[Any]:
        rows = self._cursor.fetchmany() if size is None else self._cursor.fetchmany(size)
        if self._logs_results:
            self._result_logger.log_result([self._as_record(r) for r in rows])  # type: ignore[union-attr]
        return rows

    def fetchall(self) -> list[Any]:
        rows = self._cursor.fetchall()
        if self._logs_results:
            self._result_logger.log_result([self._as_record(r) for r in rows])  # type: ignore[union-attr]
        return rows

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cursor, name)

    def __iter__(self) -> Any:
        return iter(self._cursor)

    @property
    def _logs_results(self) -> bool:
        return self._result_logger is not None and self._result_logger.enabled

    def _traced(self, call: Callable[..., Any], operation: str, args: tuple[Any, ...]) -> None:
        begin = time.perf_counter()
        try:
            call(operation, *args)
        except Exception as e:
            self._query_logger.trace(begin, lambda: (operation, -1), e)
            raise
        self._query_logger.trace(begin, lambda: (operation, self._cursor.rowcount))

    def _as_record(self, row: Any) -> Any:
        description = self._cursor.description
        if not description:
            return row
        return {column[0]: value for column, value in zip(description, row)}
