"""
bento_cbor — errors
-------------------

A small, consistent error system for the CBOR processor.

Design goals
------------
- One root `CborProcessorError` with machine-friendly `code` and optional `data`.
- Three concrete subclasses matching the failure classes a host must route:
    * ConfigurationError  — bad options at construction (fatal to startup)
    * DecodeError         — input payload is not valid CBOR / JSON (per message)
    * SerializationError  — the target encoder refused the converted tree
- Safe JSON representation (`to_dict`) suitable for logs and dead-letter metadata.
- Nothing here is retryable: the same input fails the same way every time.

This module uses only stdlib so it can be imported before anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

# Bytes of an offending payload kept in the error's JSON view.
PAYLOAD_PREVIEW_BYTES = 64


class ErrorCode(str, Enum):
    INTERNAL = "CBOR/INTERNAL"
    CONFIG = "CBOR/CONFIG"
    DECODE = "CBOR/DECODE"
    SERIALIZATION = "CBOR/SERIALIZATION"


@dataclass(eq=False)
class CborProcessorError(Exception):
    """
    Root error for the processor.

    Attributes
    ----------
    code: str
        Machine-stable error code (see ErrorCode).
    message: str
        Human hint suitable for logs.
    data: dict
        Optional machine data (option names, sizes, previews). JSON-serializable.
    retryable: bool
        Always False for this package; kept so hosts can route uniformly.
    cause: Optional[BaseException]
        Wrapped original exception; not included in equality comparison.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(f"{self.code}: {self.message}")

    def with_context(self, **ctx: Any) -> "CborProcessorError":
        """Return a copy with extra context merged into `data` (does not mutate)."""
        clone = _clone(self)
        clone.data = {**self.data, **{k: _coerce_json(v) for k, v in ctx.items()}}
        return clone

    def with_cause(self, exc: BaseException) -> "CborProcessorError":
        """Attach/replace the causal exception (returns a new instance)."""
        clone = _clone(self)
        clone.cause = exc
        return clone

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs and message metadata."""
        out: Dict[str, Any] = {
            "code": str(self.code.value if isinstance(self.code, Enum) else self.code),
            "message": self.message,
            "data": _coerce_json(self.data),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def __str__(self) -> str:
        code = self.code.value if isinstance(self.code, Enum) else self.code
        parts = [f"{code}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


class ConfigurationError(CborProcessorError):
    """Invalid or unsupported option value/combination at construction time."""

    def __init__(self, message: str = "invalid configuration", **data: Any) -> None:
        super().__init__(code=ErrorCode.CONFIG, message=message, data=_jsonmap(data))


class DecodeError(CborProcessorError):
    """
    Input bytes are not a valid document for the source format.

    The raw payload is kept on `.payload` for diagnostics; `data` carries a
    bounded hex preview so the JSON view stays small.
    """

    def __init__(self, message: str = "failed to decode payload", *, payload: bytes = b"", **data: Any) -> None:
        payload = bytes(payload or b"")
        fields = _jsonmap(data)
        fields.setdefault("payload_size", len(payload))
        if payload:
            fields.setdefault("payload_preview", payload[:PAYLOAD_PREVIEW_BYTES].hex())
        super().__init__(code=ErrorCode.DECODE, message=message, data=fields)
        self.payload = payload


class SerializationError(CborProcessorError):
    """The converted tree could not be written by the target encoder."""

    def __init__(self, message: str = "failed to serialize value", **data: Any) -> None:
        super().__init__(code=ErrorCode.SERIALIZATION, message=message, data=_jsonmap(data))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _clone(err: CborProcessorError) -> CborProcessorError:
    clone = Exception.__new__(type(err))
    clone.__dict__.update(err.__dict__)
    clone.data = dict(err.data)
    clone.args = err.args
    return clone


def _jsonmap(m: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in m.items()}


def _coerce_json(v: Any) -> Any:
    if isinstance(v, Enum):
        return v.value
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    if isinstance(v, Mapping):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set, frozenset)):
        return [_coerce_json(x) for x in v]
    return str(v)


def _preview(v: Any, limit: int = 80) -> str:
    s = repr(v)
    return s if len(s) <= limit else s[: limit - 3] + "..."


__all__ = [
    "ErrorCode",
    "CborProcessorError",
    "ConfigurationError",
    "DecodeError",
    "SerializationError",
    "PAYLOAD_PREVIEW_BYTES",
]
