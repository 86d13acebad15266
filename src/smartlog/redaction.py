"""
Payload hygiene: key-based redaction of headers and JSON bodies.

Controls what ends up in request/response log records. A single configured
key list is applied to both header maps and JSON bodies with the same
matching policy: exact key name, compared case-insensitively. Values are
replaced with a constant placeholder; nothing is hashed or pattern-matched.

Every function here is pure. Inputs are never mutated and an empty key set
is the identity transform (the input object itself is returned).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Iterable, Sequence, Union

from smartlog.errors import RedactionError

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

HeaderMap = dict[str, list[str]]
HeaderPairs = Iterable[tuple[Union[str, bytes], Union[str, bytes]]]


def normalize_keys(keys: Iterable[str]) -> frozenset[str]:
    """Lower-case a key list once so lookups are a plain set membership test."""
    return frozenset(k.lower() for k in keys)


def redact(doc: dict[str, Any], keys: Iterable[str]) -> dict[str, Any]:
    """
    Recursively redact ``keys`` in a parsed JSON object.

    Returns a new dict; never mutates the input. Matching keys have their
    value replaced by ``"[REDACTED]"`` whatever its type, and the subtree
    under them is not visited. Lists are walked one level: dict elements are
    redacted, every other element is carried over as is.

    An empty ``keys`` returns ``doc`` itself.
    """
    if not keys:
        return doc
    return _redact_object(doc, normalize_keys(keys))


def _redact_object(data: dict[str, Any], key_set: frozenset[str]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in key_set:
            result[key] = REDACTED
        elif isinstance(value, dict):
            result[key] = _redact_object(value, key_set)
        elif isinstance(value, list):
            result[key] = [_redact_object(item, key_set) if isinstance(item, dict) else item for item in value]
        else:
            result[key] = value
    return result


def group_header_pairs(pairs: HeaderPairs) -> HeaderMap:
    """
    Group raw ``(name, value)`` header pairs into a multi-valued map.

    Names are grouped case-insensitively; the first spelling seen is kept.
    Byte pairs (ASGI scopes, httpx ``Headers.raw``) are decoded as latin-1.
    """
    grouped: HeaderMap = {}
    spelling: dict[str, str] = {}
    for raw_name, raw_value in pairs:
        name = raw_name.decode("latin-1") if isinstance(raw_name, bytes) else raw_name
        value = raw_value.decode("latin-1") if isinstance(raw_value, bytes) else raw_value
        canonical = spelling.setdefault(name.lower(), name)
        grouped.setdefault(canonical, []).append(value)
    return grouped


def redact_headers(
    headers: Union[Mapping[str, Sequence[str]], HeaderPairs],
    keys: Iterable[str],
) -> Union[Mapping[str, Sequence[str]], HeaderMap]:
    """
    Redact a header map one level deep.

    A matching header's whole value list becomes ``["[REDACTED]"]``.
    Non-matching value lists are shared with the input, not copied.
    Accepts either a mapping of name to value list or raw header pairs.
    An empty ``keys`` returns ``headers`` itself.
    """
    if not keys:
        return headers
    key_set = normalize_keys(keys)
    source = headers if isinstance(headers, Mapping) else group_header_pairs(headers)

    redacted: HeaderMap = {}
    for name, values in source.items():
        if name.lower() in key_set:
            redacted[name] = [REDACTED]
        else:
            redacted[name] = values  # type: ignore[assignment]
    return redacted


def redact_json_body(
    body: Union[bytes, str],
    keys: Iterable[str],
    *,
    strict: bool = False,
) -> Union[bytes, str]:
    """
    Redact a serialized JSON object body.

    Anything that is not a JSON object (empty body, malformed JSON, a
    top-level array or scalar, binary payloads) is returned unchanged. This
    is the expected path for non-JSON traffic, not an error.

    Documents nested deeper than the interpreter's recursion limit are
    treated like malformed JSON when parsing fails on them.

    If the parsed document cannot be redacted or re-encoded the original body
    is returned, so the log record is kept at the cost of the redaction
    guarantee. Pass ``strict=True`` to raise :class:`RedactionError` instead
    and let the caller drop the record.
    """
    if not keys or not body:
        return body

    try:
        data = json.loads(body)
    except (ValueError, RecursionError):
        return body
    if not isinstance(data, dict):
        return body

    try:
        redacted = redact(data, keys)
        encoded = json.dumps(redacted, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError, RecursionError) as exc:
        if strict:
            raise RedactionError("redacted body could not be re-encoded") from exc
        logger.debug("Falling back to unredacted body: %s", exc)
        return body

    return encoded if isinstance(body, str) else encoded.encode("utf-8")
