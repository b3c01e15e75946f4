"""
bento_cbor.codec
================

CBOR and JSON codecs bound to one CodecConfiguration.

- CBOR: `cbor2` (loads/dumps with options derived from the configuration).
- JSON: stdlib `json`, compact output, strict input (no NaN/Infinity literals,
  no numbers outside the float range).

Decode pipeline (CBOR → JSON):

    cbor2.loads ─► indefinite-length check ─► resolve_cbor_tree ─► normalize_for_json ─► json.dumps

`resolve_cbor_tree` applies the decode policy: byte strings become text or int
arrays, byte-string map keys are coerced (or rejected), tags/simple values and
cbor2's semantic objects are mapped onto JSON kinds, nesting depth is bounded.
The bridge then only has to stringify the remaining non-text keys.

Encode pipeline (JSON → CBOR):

    json.loads ─► prepare_for_cbor ─► (string → byte-string demotion) ─► cbor2.dumps

A CborCodec holds only immutable state and calls the module-level cbor2
functions with fresh buffers, so one instance can serve concurrent callers.
"""

from __future__ import annotations

import base64
import json
import math
from io import BytesIO
from types import MappingProxyType
from typing import Any, Dict, Optional

import cbor2

from .bridge import normalize_for_json, prepare_for_cbor
from .config import (
    BytesRepresentation,
    CodecConfiguration,
    IndefiniteLength,
    MapKeyBytes,
    MapRepresentation,
    StringEncoding,
)
from .errors import ConfigurationError, DecodeError, SerializationError
from .values import ValueKind, key_to_text, kind_of, put_key, semantic_to_json

# Major types that may carry an indefinite length (RFC 8949 §3.2).
_INDEFINITE_MAJORS = (2, 3, 4, 5)


def find_indefinite_length(data: bytes) -> Optional[int]:
    """
    Offset of the first indefinite-length header inside the first data item of
    `data`, or None if the item only uses definite lengths.

    Only item heads are walked (RFC 8949 §3); the payload is expected to have
    been accepted by cbor2 already.
    """
    n = len(data)
    pos = 0
    pending = 1
    while pending:
        if pos >= n:
            raise DecodeError("truncated CBOR item", payload=data, offset=pos)
        ib = data[pos]
        major, ai = ib >> 5, ib & 0x1F
        start = pos
        pos += 1
        pending -= 1
        if ai == 31:
            if major in _INDEFINITE_MAJORS:
                return start
            raise DecodeError("unexpected break marker", payload=data, offset=start)
        if ai < 24:
            arg = ai
        elif ai <= 27:
            size = 1 << (ai - 24)
            if pos + size > n:
                raise DecodeError("truncated CBOR item", payload=data, offset=start)
            arg = int.from_bytes(data[pos : pos + size], "big")
            pos += size
        else:
            raise DecodeError("reserved additional information value", payload=data, offset=start)

        if major in (2, 3):
            pos += arg
        elif major == 4:
            pending += arg
        elif major == 5:
            pending += 2 * arg
        elif major == 6:
            pending += 1
    return None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name!r}")


def _finite_float(text: str) -> float:
    f = float(text)
    if math.isinf(f):
        raise ValueError(f"number {text!r} is out of float range")
    return f


class CborCodec:
    """CBOR/JSON conversion under one immutable configuration."""

    def __init__(self, config: Optional[CodecConfiguration] = None) -> None:
        self.config = config if config is not None else CodecConfiguration()
        self._enc = MappingProxyType(self.config.encoder_options())
        self._dec = MappingProxyType(self.config.decoder_options())
        self._probe()

    def _probe(self) -> None:
        # Let cbor2 reject option combinations up front, before any message.
        try:
            cbor2.CBOREncoder(BytesIO(), **self._enc)
            cbor2.CBORDecoder(BytesIO(b""), **self._dec)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"cbor2 rejected codec options: {e}",
                encoder=dict(self._enc),
                decoder=dict(self._dec),
            ) from e

    # ------------------------------------------------------------------
    # CBOR → JSON
    # ------------------------------------------------------------------

    def decode_cbor(self, data: bytes) -> Any:
        """Decode the first CBOR data item of `data` into cbor2's object tree."""
        data = bytes(data)
        try:
            tree = cbor2.loads(data, **self._dec)
        except (cbor2.CBORDecodeError, ValueError, TypeError, RecursionError) as e:
            raise DecodeError(f"failed to decode CBOR: {e}", payload=data) from e
        if self.config.indefinite_length is IndefiniteLength.FORBIDDEN:
            offset = find_indefinite_length(data)
            if offset is not None:
                raise DecodeError("indefinite-length item not allowed", payload=data, offset=offset)
        return tree

    def resolve_cbor_tree(self, tree: Any) -> Any:
        """Map CBOR-only values and byte-string keys onto the JSON model."""
        return self._resolve(tree, 0)

    def to_json_tree(self, data: bytes) -> Any:
        data = bytes(data)
        tree = self.decode_cbor(data)
        try:
            tree = self.resolve_cbor_tree(tree)
            if self.config.map_representation is MapRepresentation.ANY_KEYS:
                tree = normalize_for_json(tree, on_collision=self.config.key_collision)
        except DecodeError as e:
            _with_payload(e, data)
            raise
        return tree

    def dump_json(self, tree: Any) -> bytes:
        try:
            text = json.dumps(tree, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
            return text.encode("utf-8")
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationError(f"failed to convert CBOR to JSON: {e}") from e

    def cbor_to_json(self, data: bytes) -> bytes:
        return self.dump_json(self.to_json_tree(data))

    # ------------------------------------------------------------------
    # JSON → CBOR
    # ------------------------------------------------------------------

    def parse_json(self, data: bytes) -> Any:
        data = bytes(data)
        try:
            return json.loads(data.decode("utf-8"), parse_float=_finite_float, parse_constant=_reject_constant)
        except (ValueError, RecursionError) as e:
            raise DecodeError(f"failed to parse JSON: {e}", payload=data) from e

    def encode_cbor(self, tree: Any) -> bytes:
        try:
            if self.config.string_encoding is StringEncoding.BYTE_STRING:
                tree = _strings_to_bytes(tree)
            return cbor2.dumps(tree, **self._enc)
        except (cbor2.CBOREncodeError, TypeError, ValueError, RecursionError) as e:
            raise SerializationError(f"failed to encode JSON to CBOR: {e}") from e

    def json_to_cbor(self, data: bytes) -> bytes:
        return self.encode_cbor(prepare_for_cbor(self.parse_json(data)))

    # ------------------------------------------------------------------
    # Decode-side resolution
    # ------------------------------------------------------------------

    def _resolve(self, value: Any, depth: int) -> Any:
        try:
            kind = kind_of(value)
        except TypeError as e:
            raise DecodeError(f"unsupported decoded value: {e}") from e

        if kind in (ValueKind.SEQUENCE, ValueKind.MAPPING, ValueKind.TAG):
            depth += 1
            if depth > self.config.max_depth:
                raise DecodeError(
                    f"exceeded max nested level {self.config.max_depth}",
                    max_depth=self.config.max_depth,
                )

        if kind is ValueKind.BYTES:
            return self._bytes_value(bytes(value))
        if kind is ValueKind.SEQUENCE:
            return [self._resolve(v, depth) for v in value]
        if kind is ValueKind.MAPPING:
            return self._resolve_map(value, depth)
        if kind is ValueKind.TAG:
            return {"tag": value.tag, "value": self._resolve(value.value, depth)}
        if kind is ValueKind.SIMPLE:
            return value.value
        if kind is ValueKind.UNDEFINED:
            return None
        if kind is ValueKind.SEMANTIC:
            return self._resolve(semantic_to_json(value), depth)
        return value

    def _resolve_map(self, m: Any, depth: int) -> Dict[Any, Any]:
        out: Dict[Any, Any] = {}
        for k, v in m.items():
            key = self._resolve_key(k)
            val = self._resolve(v, depth)
            if isinstance(key, str):
                put_key(out, key, val, self.config.key_collision, original=k)
            else:
                # numbers/bools/null: stringified later by the bridge
                out[key] = val
        return out

    def _resolve_key(self, key: Any) -> Any:
        kind = kind_of(key)
        if kind is ValueKind.TEXT:
            return key
        if kind is ValueKind.BYTES:
            return self._bytes_key(bytes(key))
        if self.config.map_representation is MapRepresentation.STRING_KEYS:
            raise DecodeError(
                "map key is not a text string",
                key_kind=kind,
                map_representation=self.config.map_representation,
            )
        if kind in (ValueKind.NUMBER, ValueKind.BOOL, ValueKind.NULL):
            return key
        # composite and CBOR-only keys are not hashable once resolved; take their text now
        return key_to_text(key)

    def _bytes_value(self, b: bytes) -> Any:
        rep = self.config.byte_string_representation
        if rep is BytesRepresentation.BASE64:
            return base64.b64encode(b).decode("ascii")
        if rep is BytesRepresentation.BASE64URL:
            return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")
        if rep is BytesRepresentation.HEX:
            return b.hex()
        if rep is BytesRepresentation.TEXT:
            return b.decode("utf-8", errors="replace")
        return list(b)

    def _bytes_key(self, b: bytes) -> str:
        policy = self.config.map_key_byte_string
        if policy is MapKeyBytes.FORBIDDEN:
            raise DecodeError("byte string map keys are not allowed", key_preview=b[:32].hex())
        if policy is MapKeyBytes.BASE64:
            return base64.b64encode(b).decode("ascii")
        if policy is MapKeyBytes.HEX:
            return b.hex()
        return b.decode("utf-8", errors="replace")


def _with_payload(err: DecodeError, data: bytes) -> DecodeError:
    if not err.payload:
        err.payload = data
        err.data.update(DecodeError(payload=data).data)
    return err


def _strings_to_bytes(tree: Any) -> Any:
    if isinstance(tree, str):
        return tree.encode("utf-8")
    if isinstance(tree, list):
        return [_strings_to_bytes(v) for v in tree]
    if isinstance(tree, dict):
        return {_strings_to_bytes(k): _strings_to_bytes(v) for k, v in tree.items()}
    return tree


__all__ = ["CborCodec", "find_indefinite_length"]
