"""
Size-bounded serialization of structured results.

``bounded_serialize`` renders a value as compact JSON and, when the result
exceeds a byte budget, rebuilds it from a subset of its top-level fields so
the output stays a valid JSON object:

  1. the identity field (e.g. a row's primary key) goes in first, always,
     even if it alone exceeds the budget;
  2. the remaining fields follow in ascending key order, greedily, until the
     next field would push the running size over the budget.

The running size starts at 2 (``{}``) and each field adds the length of
``{"key":value}`` minus one byte. That approximates the cost of merging the
fragments into one object; it is kept as is so that output is reproducible.

Values that do not decode to a JSON object cannot be trimmed field by field.
See :class:`NonObjectPolicy` for what happens to them.
"""

from __future__ import annotations

import dataclasses
import datetime
import json
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Union

IDENTITY_FIELD = "ID"


class NonObjectPolicy(str, Enum):
    """How an over-budget value that is not a JSON object is cut down."""

    # Raw byte slice of the serialization; may not be valid JSON.
    SLICE = "slice"
    # A JSON string noting the original size; always valid JSON.
    PLACEHOLDER = "placeholder"


def _encode_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (datetime.datetime, datetime.date, datetime.time)):
        return obj.isoformat()
    if isinstance(obj, (Decimal, uuid.UUID)):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")
    if hasattr(obj, "__dict__"):
        return {k: v for k, v in vars(obj).items() if not k.startswith("_")}
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_json(value: Any) -> bytes:
    """
    Compact UTF-8 JSON for ``value``.

    Dataclasses, plain objects (public attributes), dates, decimals, UUIDs,
    sets and bytes are converted on the way. Raises ``TypeError`` for other
    unsupported objects and ``ValueError`` for NaN/Infinity.
    """
    return json.dumps(
        value,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_encode_default,
    ).encode("utf-8")


def _field_size(key: str, value: Any) -> int:
    return len(canonical_json({key: value})) - 1


def bounded_serialize(
    value: Any,
    budget: int,
    identity_field: str = IDENTITY_FIELD,
    *,
    non_object: Union[NonObjectPolicy, str] = NonObjectPolicy.SLICE,
) -> bytes:
    """
    Serialize ``value`` to JSON of at most ``budget`` bytes (best effort).

    Two results may exceed ``budget``: an object whose identity field alone
    is larger, and the ``PLACEHOLDER`` string for a non-object value when
    ``budget`` is smaller than the placeholder itself.

    Args:
        value: Any JSON-serializable value, dataclass, or plain object.
        budget: Byte cap. ``0`` or negative means unbounded.
        identity_field: Exact (case-sensitive) name of the field that is
            always kept and always emitted first.
        non_object: Policy for over-budget values that are not objects.

    Returns:
        The full serialization when it fits, otherwise a truncated object.
    """
    encoded = canonical_json(value)
    if budget <= 0 or len(encoded) <= budget:
        return encoded

    # Work on the decoded view: ``value`` may be an arbitrary object.
    data = json.loads(encoded)
    if not isinstance(data, dict):
        return _truncate_non_object(encoded, budget, NonObjectPolicy(non_object))

    truncated: dict[str, Any] = {}
    size = 2
    if identity_field in data:
        truncated[identity_field] = data[identity_field]
        size += _field_size(identity_field, data[identity_field])

    for key in sorted(k for k in data if k != identity_field):
        cost = _field_size(key, data[key])
        if size + cost > budget:
            break
        truncated[key] = data[key]
        size += cost

    return canonical_json(truncated)


def _truncate_non_object(encoded: bytes, budget: int, policy: NonObjectPolicy) -> bytes:
    if policy is NonObjectPolicy.PLACEHOLDER:
        return canonical_json(f"[TRUNCATED non-object result: {len(encoded)} bytes]")
    return encoded[:budget]
