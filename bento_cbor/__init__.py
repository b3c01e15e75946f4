"""
bento_cbor — CBOR ⇄ JSON processor for message pipelines.

Public responsibilities:
- Decode CBOR payloads into JSON, normalizing map keys to text.
- Encode JSON payloads as CBOR under a configurable codec policy.
- Register the `cbor` processor with the plugin registry on import.

    from bento_cbor import CborProcessor, Message

    proc = CborProcessor("to_json")
    [out] = proc.process(Message(cbor_bytes))
"""

from __future__ import annotations

from .version import __version__
from .config import CodecConfiguration, Operator, PRESETS, ProcessorConfig, load_codec_config
from .errors import CborProcessorError, ConfigurationError, DecodeError, SerializationError
from .bridge import normalize_for_json, prepare_for_cbor
from .values import KeyCollision, ValueKind, key_to_text
from .codec import CborCodec
from .processor import CborProcessor, Message
from . import registry

__all__ = [
    "__version__",
    "CodecConfiguration",
    "Operator",
    "PRESETS",
    "ProcessorConfig",
    "load_codec_config",
    "CborProcessorError",
    "ConfigurationError",
    "DecodeError",
    "SerializationError",
    "normalize_for_json",
    "prepare_for_cbor",
    "KeyCollision",
    "ValueKind",
    "key_to_text",
    "CborCodec",
    "CborProcessor",
    "Message",
    "registry",
]
