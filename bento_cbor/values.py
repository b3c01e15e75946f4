"""
bento_cbor.values
=================

The value model shared by both conversion directions.

A decoded document is a tree of plain Python objects as produced by `cbor2`
(CBOR side) or `json` (JSON side). `kind_of` classifies every node into a
closed set of kinds so each walker can dispatch exhaustively:

  NULL, BOOL, NUMBER, TEXT, BYTES, SEQUENCE, MAPPING   -- shared data model
  TAG, SIMPLE, UNDEFINED, SEMANTIC                      -- CBOR-only carriers

SEMANTIC covers the objects cbor2 builds from well-known tags (datetimes,
decimals, fractions, UUIDs, IP addresses, regexes, MIME messages, sets).

Map keys reaching JSON must be text; `key_to_text` is the single, total rule
that turns any key into text, and `put_key` applies the collision policy when
two keys end up with the same text.
"""

from __future__ import annotations

import base64
import datetime as _dt
import ipaddress
import json
import math
import re
import uuid
from collections.abc import Mapping
from decimal import Decimal
from email.message import Message as _MimeMessage
from enum import Enum
from fractions import Fraction
from typing import Any, Dict

from cbor2 import CBORSimpleValue, CBORTag, undefined

from .errors import DecodeError


class ValueKind(str, Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"
    BYTES = "bytes"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    TAG = "tag"
    SIMPLE = "simple"
    UNDEFINED = "undefined"
    SEMANTIC = "semantic"


# Kinds that exist in JSON's data model.
JSON_KINDS = frozenset(
    {
        ValueKind.NULL,
        ValueKind.BOOL,
        ValueKind.NUMBER,
        ValueKind.TEXT,
        ValueKind.SEQUENCE,
        ValueKind.MAPPING,
    }
)

_SEMANTIC_TYPES = (
    _dt.datetime,
    _dt.date,
    Decimal,
    Fraction,
    uuid.UUID,
    ipaddress.IPv4Address,
    ipaddress.IPv6Address,
    ipaddress.IPv4Network,
    ipaddress.IPv6Network,
    ipaddress.IPv4Interface,
    ipaddress.IPv6Interface,
    re.Pattern,
    _MimeMessage,
    set,
    frozenset,
)


class KeyCollision(str, Enum):
    """What to do when two keys of one map stringify to the same text."""

    LAST_WINS = "last_wins"
    ERROR = "error"


def kind_of(value: Any) -> ValueKind:
    """Classify `value`; raises TypeError for objects outside the value model."""
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BYTES
    # CBORSimpleValue is a namedtuple; test it before sequences
    if isinstance(value, CBORSimpleValue):
        return ValueKind.SIMPLE
    if isinstance(value, CBORTag):
        return ValueKind.TAG
    if value is undefined:
        return ValueKind.UNDEFINED
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    if isinstance(value, _SEMANTIC_TYPES):
        return ValueKind.SEMANTIC
    raise TypeError(f"unsupported value type: {type(value).__name__}")


def is_json_kind(value: Any) -> bool:
    try:
        return kind_of(value) in JSON_KINDS
    except TypeError:
        return False


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def float_to_text(f: float) -> str:
    if math.isnan(f):
        return "NaN"
    if math.isinf(f):
        return "Infinity" if f > 0 else "-Infinity"
    return repr(f)


def key_to_text(key: Any) -> str:
    """
    Canonical text for a map key.

    text     -> itself              bool  -> "true" / "false"
    int      -> decimal             null  -> "null"
    float    -> shortest repr       bytes -> standard base64
    sequence / mapping -> compact JSON of the key (inner keys stringified too)

    Anything else in the CBOR-only kinds is rendered through its JSON form.
    """
    kind = kind_of(key)
    if kind is ValueKind.TEXT:
        return key
    if kind is ValueKind.BOOL:
        return "true" if key else "false"
    if kind is ValueKind.NULL or kind is ValueKind.UNDEFINED:
        return "null"
    if kind is ValueKind.NUMBER:
        return str(key) if isinstance(key, int) else float_to_text(key)
    if kind is ValueKind.BYTES:
        return base64.b64encode(bytes(key)).decode("ascii")
    if kind is ValueKind.SIMPLE:
        return str(key.value)
    if kind is ValueKind.SEMANTIC:
        return key_to_text(semantic_to_json(key))
    return json.dumps(
        _key_json(key),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=True,
    )


def _key_json(value: Any) -> Any:
    # JSON-shaped view of a composite key, used only to build its text.
    kind = kind_of(value)
    if kind is ValueKind.SEQUENCE:
        return [_key_json(v) for v in value]
    if kind is ValueKind.MAPPING:
        return {key_to_text(k): _key_json(v) for k, v in value.items()}
    if kind is ValueKind.TAG:
        return {"tag": value.tag, "value": _key_json(value.value)}
    if kind is ValueKind.SEMANTIC:
        return _key_json(semantic_to_json(value))
    if kind is ValueKind.UNDEFINED:
        return None
    if kind in (ValueKind.BYTES, ValueKind.SIMPLE):
        return key_to_text(value)
    return value


def put_key(out: Dict[str, Any], key: str, value: Any, policy: KeyCollision, *, original: Any = None) -> None:
    """Insert into a string-keyed map under the collision policy."""
    if key in out and policy is KeyCollision.ERROR:
        raise DecodeError(
            "map keys collide after conversion to text",
            key=key,
            original_key=repr(original) if original is not None else key,
        )
    out[key] = value


# ---------------------------------------------------------------------------
# CBOR-only semantic values
# ---------------------------------------------------------------------------


def semantic_to_json(value: Any) -> Any:
    """JSON-model rendering of objects cbor2 builds from well-known tags."""
    if isinstance(value, (_dt.datetime, _dt.date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, Fraction):
        return float(value)
    if isinstance(value, re.Pattern):
        return value.pattern
    if isinstance(value, _MimeMessage):
        return value.as_string()
    if isinstance(value, (set, frozenset)):
        # sets have no wire order; sort for stable output
        return sorted(value, key=key_to_text)
    return str(value)


__all__ = [
    "ValueKind",
    "JSON_KINDS",
    "KeyCollision",
    "kind_of",
    "is_json_kind",
    "float_to_text",
    "key_to_text",
    "put_key",
    "semantic_to_json",
]
