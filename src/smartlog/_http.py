"""Helpers shared by the server middleware and the client transport."""

from __future__ import annotations

import json
from contextlib import nullcontext
from typing import Any, ContextManager, Optional

from smartlog.instruments import Exchange, HttpInstruments
from smartlog.redaction import HeaderPairs, group_header_pairs, redact_headers, redact_json_body


def loggable_body(body: bytes) -> Any:
    """Embed JSON bodies as values, anything else as text. Empty is None."""
    if not body:
        return None
    try:
        return json.loads(body)
    except (ValueError, RecursionError):
        return body.decode("utf-8", errors="replace")


def loggable_headers(raw: HeaderPairs, keys: list[str]) -> dict[str, list[str]]:
    return dict(redact_headers(group_header_pairs(raw), keys))


def loggable_redacted_body(
    body: bytes,
    keys: list[str],
    instruments: Optional[HttpInstruments],
    side: str,
    part: str,
) -> Any:
    redacted = redact_json_body(body, keys)
    if instruments is not None and redacted is not body:
        instruments.record_redaction(side, part)
    return loggable_body(redacted)  # type: ignore[arg-type]


def open_exchange(
    instruments: Optional[HttpInstruments], side: str, method: str, target: str
) -> ContextManager[Exchange]:
    if instruments is None:
        return nullcontext(Exchange())
    return instruments.exchange(side, method, target)


def latency_ms(start: float, end: float) -> int:
    return int((end - start) * 1000)
