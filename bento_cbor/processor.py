"""
bento_cbor.processor
====================

The `cbor` pipeline processor.

A host hands the processor one message at a time; the processor replaces the
message payload with its converted form and returns it as a one-message
batch, or raises a typed error for the host's per-message failure routing.

Operators (chosen once, at construction):

- to_json    CBOR payload  → JSON payload
- from_json  JSON payload  → CBOR payload

Example pipeline block:

    pipeline:
      processors:
        - cbor:
            operator: to_json
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .codec import CborCodec
from .config import CodecConfiguration, Operator, ProcessorConfig, parse_enum
from .errors import DecodeError, SerializationError
from .logging import get_logger, with_fields
from .metrics import (
    OUTCOME_DECODE_ERROR,
    OUTCOME_SERIALIZATION_ERROR,
    ProcessorMetrics,
    get_metrics,
)

log = get_logger(__name__)

ConvertFn = Callable[[bytes], bytes]


@dataclass
class Message:
    """A host message: raw payload plus free-form metadata."""

    payload: bytes = b""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def as_bytes(self) -> bytes:
        return self.payload

    def set_bytes(self, data: bytes) -> None:
        self.payload = bytes(data)

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    def set_meta(self, key: str, value: Any) -> None:
        self.metadata[key] = value


MessageBatch = List[Message]


def _operator_fn(codec: CborCodec, operator: Operator) -> ConvertFn:
    if operator is Operator.TO_JSON:
        return codec.cbor_to_json
    return codec.json_to_cbor


class CborProcessor:
    """
    Converts message payloads between CBOR and JSON.

    Construction resolves the operator and builds the codec; either failing
    raises ConfigurationError and no processor exists. After that the instance
    is read-only and can be shared by concurrent workers.
    """

    def __init__(
        self,
        operator: Operator | str = Operator.TO_JSON,
        codec: Optional[CodecConfiguration] = None,
        *,
        metrics: Optional[ProcessorMetrics] = None,
    ) -> None:
        self.operator = parse_enum(Operator, operator, option="operator")
        self.codec = CborCodec(codec)
        self._convert = _operator_fn(self.codec, self.operator)
        self._metrics = metrics if metrics is not None else get_metrics()
        self._log = with_fields(log, operator=self.operator)
        self._log.info("cbor processor ready", extra={"codec": self.codec.config.to_dict()})

    @classmethod
    def from_config(cls, conf: ProcessorConfig, *, metrics: Optional[ProcessorMetrics] = None) -> "CborProcessor":
        return cls(conf.operator, conf.codec, metrics=metrics)

    @property
    def config(self) -> CodecConfiguration:
        return self.codec.config

    def convert(self, payload: bytes) -> bytes:
        """Convert one payload; raises DecodeError / SerializationError."""
        data = bytes(payload)
        with self._metrics.time_message(operator=self.operator.value, bytes_in=len(data)) as obs:
            try:
                out = self._convert(data)
            except DecodeError:
                obs.fail(OUTCOME_DECODE_ERROR)
                raise
            except SerializationError:
                obs.fail(OUTCOME_SERIALIZATION_ERROR)
                raise
            obs.ok(bytes_out=len(out))
        return out

    def process(self, msg: Message, ctx: Any = None) -> MessageBatch:
        msg.set_bytes(self.convert(msg.as_bytes()))
        return [msg]

    def close(self, ctx: Any = None) -> None:
        self._log.debug("cbor processor closed")


__all__ = ["Message", "MessageBatch", "CborProcessor"]
