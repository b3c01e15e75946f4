"""
bento_cbor configuration.

Two layers:

- CodecConfiguration: the policy under which cbor2 resolves the places where
  CBOR's data model and JSON's disagree (byte strings, map keys,
  indefinite-length items, key order). Built once per processor, frozen, and
  shared read-only by every message the processor handles.

- ProcessorConfig: the per-processor block of a pipeline file
  (operator + preset + codec overrides).

Precedence for codec options (highest first):
    1) explicit overrides passed to `load_codec_config()`
    2) environment variables (BENTO_CBOR_*)
    3) preset (BENTO_CBOR_PRESET or the `preset` argument)
    4) built-in defaults

Environment variables (all optional):

  BENTO_CBOR_PRESET=lenient|deterministic
  BENTO_CBOR_BYTE_STRING_REPRESENTATION=base64|base64url|hex|text|array
  BENTO_CBOR_STRING_ENCODING=text|byte_string
  BENTO_CBOR_MAP_KEY_BYTE_STRING=forbidden|text|base64|hex
  BENTO_CBOR_MAP_REPRESENTATION=any_keys|string_keys
  BENTO_CBOR_INDEFINITE_LENGTH=allowed|forbidden
  BENTO_CBOR_SORTING=none|canonical
  BENTO_CBOR_KEY_COLLISION=last_wins|error
  BENTO_CBOR_INVALID_UTF8=reject|replace
  BENTO_CBOR_MAX_DEPTH=32

Pipeline files are YAML (PyYAML) or JSON:

    pipeline:
      processors:
        - cbor:
            operator: from_json
            preset: deterministic
            codec:
              sorting: canonical
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

import yaml

from .errors import ConfigurationError
from .values import KeyCollision

ENV_PREFIX = "BENTO_CBOR_"

# Nesting bounds accepted for max_depth. The upper bound keeps the recursive
# tree walkers well inside the interpreter's recursion limit.
MIN_DEPTH = 4
MAX_DEPTH = 512
DEFAULT_MAX_DEPTH = 32


class Operator(str, Enum):
    TO_JSON = "to_json"
    FROM_JSON = "from_json"


class BytesRepresentation(str, Enum):
    BASE64 = "base64"
    BASE64URL = "base64url"
    HEX = "hex"
    TEXT = "text"
    ARRAY = "array"


class StringEncoding(str, Enum):
    TEXT = "text"
    BYTE_STRING = "byte_string"


class MapKeyBytes(str, Enum):
    FORBIDDEN = "forbidden"
    TEXT = "text"
    BASE64 = "base64"
    HEX = "hex"


class MapRepresentation(str, Enum):
    ANY_KEYS = "any_keys"
    STRING_KEYS = "string_keys"


class IndefiniteLength(str, Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"


class Sorting(str, Enum):
    NONE = "none"
    CANONICAL = "canonical"


class InvalidUTF8(str, Enum):
    REJECT = "reject"
    REPLACE = "replace"


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, *, option: str) -> E:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, Enum):
        value = value.value
    try:
        return enum_cls(str(value))
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"invalid value {value!r} for {option}; expected one of: {allowed}",
            option=option,
            value=str(value),
        ) from None


# ------------------------------
# Codec configuration
# ------------------------------


@dataclass(frozen=True)
class CodecConfiguration:
    byte_string_representation: BytesRepresentation = BytesRepresentation.BASE64
    string_encoding: StringEncoding = StringEncoding.TEXT
    map_key_byte_string: MapKeyBytes = MapKeyBytes.TEXT
    map_representation: MapRepresentation = MapRepresentation.ANY_KEYS
    indefinite_length: IndefiniteLength = IndefiniteLength.ALLOWED
    sorting: Sorting = Sorting.NONE
    key_collision: KeyCollision = KeyCollision.LAST_WINS
    invalid_utf8: InvalidUTF8 = InvalidUTF8.REJECT
    max_depth: int = DEFAULT_MAX_DEPTH

    def __post_init__(self) -> None:
        # Accept the plain string value for every enum field; normalize in place.
        for f in fields(self):
            if f.name == "max_depth":
                continue
            enum_cls = _ENUM_FIELDS[f.name]
            object.__setattr__(self, f.name, parse_enum(enum_cls, getattr(self, f.name), option=f.name))
        object.__setattr__(self, "max_depth", _parse_depth(self.max_depth))

    # ---- constructors ----

    @classmethod
    def preset(cls, name: str) -> "CodecConfiguration":
        try:
            return PRESETS[str(name).strip().lower()]
        except KeyError:
            raise ConfigurationError(
                f"unknown codec preset {name!r}; expected one of: {', '.join(PRESETS)}",
                option="preset",
                value=str(name),
            ) from None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base: Optional["CodecConfiguration"] = None) -> "CodecConfiguration":
        """Overlay `data` (snake_case option names) on `base` (defaults if None)."""
        unknown = sorted(set(data) - set(_ENUM_FIELDS) - {"max_depth"})
        if unknown:
            raise ConfigurationError(f"unknown codec option(s): {', '.join(unknown)}", options=unknown)
        return replace(base or cls(), **dict(data))

    def with_overrides(self, **overrides: Any) -> "CodecConfiguration":
        return CodecConfiguration.from_mapping(overrides, base=self)

    def to_dict(self) -> Dict[str, Any]:
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in asdict(self).items()}

    # ---- cbor2 option views ----

    def encoder_options(self) -> Dict[str, Any]:
        """Keyword arguments for cbor2.dumps / CBOREncoder."""
        return {"canonical": self.sorting is Sorting.CANONICAL}

    def decoder_options(self) -> Dict[str, Any]:
        """Keyword arguments for cbor2.loads / CBORDecoder."""
        return {"str_errors": "replace" if self.invalid_utf8 is InvalidUTF8.REPLACE else "strict"}


_ENUM_FIELDS: Dict[str, Type[Enum]] = {
    "byte_string_representation": BytesRepresentation,
    "string_encoding": StringEncoding,
    "map_key_byte_string": MapKeyBytes,
    "map_representation": MapRepresentation,
    "indefinite_length": IndefiniteLength,
    "sorting": Sorting,
    "key_collision": KeyCollision,
    "invalid_utf8": InvalidUTF8,
}


def _parse_depth(value: Any) -> int:
    try:
        depth = int(str(value).strip(), 0) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"max_depth must be an integer, got {value!r}", option="max_depth") from None
    if isinstance(value, bool) or not (MIN_DEPTH <= depth <= MAX_DEPTH):
        raise ConfigurationError(
            f"max_depth must be in [{MIN_DEPTH}, {MAX_DEPTH}], got {value!r}",
            option="max_depth",
            value=str(value),
        )
    return depth


PRESETS: Dict[str, CodecConfiguration] = {
    # Preferred unsorted encoding; byte-string map keys decode as raw text.
    "lenient": CodecConfiguration(),
    # Canonical key order, definite lengths only, text-only map keys.
    "deterministic": CodecConfiguration(
        map_key_byte_string=MapKeyBytes.FORBIDDEN,
        map_representation=MapRepresentation.STRING_KEYS,
        indefinite_length=IndefiniteLength.FORBIDDEN,
        sorting=Sorting.CANONICAL,
    ),
}
DEFAULT_PRESET = "lenient"


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name in list(_ENUM_FIELDS) + ["max_depth"]:
        v = env.get(ENV_PREFIX + name.upper())
        if v is not None and v.strip() != "":
            out[name] = v.strip()
    return out


def resolve_preset_name(preset: Optional[str] = None, *, env: Optional[Mapping[str, str]] = None) -> str:
    """Explicit preset, else BENTO_CBOR_PRESET, else the default."""
    env = os.environ if env is None else env
    return preset or env.get(ENV_PREFIX + "PRESET") or DEFAULT_PRESET


def load_codec_config(
    preset: Optional[str] = None,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CodecConfiguration:
    """
    Build a CodecConfiguration from preset → environment → explicit overrides.
    `env` defaults to os.environ; pass {} to ignore the environment.
    """
    env = os.environ if env is None else env
    cfg = CodecConfiguration.preset(resolve_preset_name(preset, env=env))
    env_vals = _env_overrides(env)
    if env_vals:
        cfg = CodecConfiguration.from_mapping(env_vals, base=cfg)
    if overrides:
        cfg = CodecConfiguration.from_mapping({k: v for k, v in overrides.items() if v is not None}, base=cfg)
    return cfg


# ------------------------------
# Processor / pipeline configuration
# ------------------------------


@dataclass(frozen=True)
class ProcessorConfig:
    operator: Operator = Operator.TO_JSON
    preset: str = DEFAULT_PRESET
    codec: CodecConfiguration = field(default_factory=CodecConfiguration)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]], *, env: Optional[Mapping[str, str]] = None) -> "ProcessorConfig":
        data = dict(data or {})
        unknown = sorted(set(data) - {"operator", "preset", "codec"})
        if unknown:
            raise ConfigurationError(f"unknown processor field(s): {', '.join(unknown)}", fields=unknown)
        operator = parse_enum(Operator, data.get("operator", Operator.TO_JSON.value), option="operator")
        codec_block = data.get("codec") or {}
        if not isinstance(codec_block, Mapping):
            raise ConfigurationError("'codec' must be a mapping of option names to values", option="codec")
        preset = resolve_preset_name(str(data.get("preset") or "") or None, env=env)
        codec = load_codec_config(preset, overrides=codec_block, env=env)
        return cls(operator=operator, preset=preset, codec=codec)


def _read_config_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(text) or {}
        return json.loads(text or "{}")
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigurationError(f"cannot parse config file {str(path)!r}: {e}", path=str(path)) from e


def load_pipeline_file(path: str | Path, *, env: Optional[Mapping[str, str]] = None) -> List[ProcessorConfig]:
    """
    Read `pipeline.processors` from a YAML/JSON file and return the cbor
    processor configs in order. Any other processor kind is rejected.
    """
    p = Path(path).expanduser()
    if not p.is_file():
        raise ConfigurationError(f"config file not found: {str(p)!r}", path=str(p))
    doc = _read_config_file(p)
    pipeline = doc.get("pipeline") if isinstance(doc, Mapping) else None
    processors = pipeline.get("processors") if isinstance(pipeline, Mapping) else None
    if not isinstance(processors, list) or not processors:
        raise ConfigurationError("config has no pipeline.processors list", path=str(p))

    out: List[ProcessorConfig] = []
    for i, entry in enumerate(processors):
        if not isinstance(entry, Mapping) or len(entry) != 1:
            raise ConfigurationError(f"pipeline.processors[{i}] must be a single-key mapping", index=i)
        (kind, block), = entry.items()
        if kind != "cbor":
            raise ConfigurationError(f"unsupported processor {kind!r} at pipeline.processors[{i}]", index=i)
        if block is not None and not isinstance(block, Mapping):
            raise ConfigurationError(f"pipeline.processors[{i}].cbor must be a mapping", index=i)
        out.append(ProcessorConfig.from_mapping(block, env=env))
    return out


__all__ = [
    "Operator",
    "BytesRepresentation",
    "StringEncoding",
    "MapKeyBytes",
    "MapRepresentation",
    "IndefiniteLength",
    "Sorting",
    "InvalidUTF8",
    "KeyCollision",
    "CodecConfiguration",
    "ProcessorConfig",
    "PRESETS",
    "DEFAULT_PRESET",
    "MIN_DEPTH",
    "MAX_DEPTH",
    "parse_enum",
    "resolve_preset_name",
    "load_codec_config",
    "load_pipeline_file",
]
