"""Exception hierarchy for smartlog."""

from __future__ import annotations


class SmartlogError(Exception):
    """Base class for every error raised by smartlog."""


class ConfigError(SmartlogError, ValueError):
    """A configuration value is missing, malformed, or out of range."""


class RedactionError(SmartlogError):
    """A redacted document could not be re-encoded (strict mode only)."""


class RecordNotFoundError(SmartlogError, LookupError):
    """A query matched no rows. Query tracing treats this as a normal outcome."""
