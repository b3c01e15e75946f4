"""
bento_cbor.registry

- A tiny registry that maps processor name → (ConfigSpec, constructor).
- The built-in `cbor` processor is registered when `bento_cbor` is imported.

Constructors
------------
A constructor is a callable:

    def ctor(conf: ProcessorConfig) -> CborProcessor: ...

It must raise ConfigurationError on bad configuration; a processor that fails
to build is never handed to the host.

Config specs
------------
`ConfigSpec` documents a processor's fields for the host (name, kind,
allowed values, default) and validates a raw config block before the
constructor runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

from .config import PRESETS, Operator, ProcessorConfig
from .errors import ConfigurationError
from .processor import CborProcessor


class Constructor(Protocol):
    def __call__(self, conf: ProcessorConfig) -> CborProcessor: ...


@dataclass(frozen=True)
class FieldSpec:
    name: str
    description: str
    kind: str = "string"
    options: Tuple[str, ...] = ()
    default: Any = None


@dataclass(frozen=True)
class ConfigSpec:
    summary: str
    description: str = ""
    categories: Tuple[str, ...] = ()
    fields: Tuple[FieldSpec, ...] = ()
    examples: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def validate(self, raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Check enum fields and fill defaults; returns a new dict."""
        data = dict(raw or {})
        unknown = sorted(set(data) - set(self.field_names()))
        if unknown:
            raise ConfigurationError(f"unknown field(s): {', '.join(unknown)}", fields=unknown)
        for f in self.fields:
            if f.name not in data or data[f.name] is None:
                if f.default is not None:
                    data[f.name] = f.default
                continue
            if f.options and str(data[f.name]) not in f.options:
                raise ConfigurationError(
                    f"field {f.name!r}: {data[f.name]!r} is not one of {', '.join(f.options)}",
                    field=f.name,
                    value=str(data[f.name]),
                )
        return data


CBOR_CONFIG_SPEC = ConfigSpec(
    summary="Converts message payloads between CBOR and JSON.",
    description=(
        "CBOR is a binary data format designed for small message size that supports "
        "the JSON data model. The to_json operator decodes CBOR payloads into JSON; "
        "from_json encodes JSON payloads as CBOR using the configured codec policy."
    ),
    categories=("Parsing", "Format"),
    fields=(
        FieldSpec(
            "operator",
            "The operator to execute, to_json|from_json",
            options=tuple(o.value for o in Operator),
            default=Operator.TO_JSON.value,
        ),
        FieldSpec(
            "preset",
            "Named codec policy to start from (default: BENTO_CBOR_PRESET, else lenient)",
            options=tuple(PRESETS),
        ),
        FieldSpec("codec", "Per-option codec overrides", kind="object"),
    ),
    examples=(
        ("Convert CBOR to JSON", "pipeline:\n  processors:\n    - cbor:\n        operator: to_json\n"),
        ("Convert JSON to CBOR", "pipeline:\n  processors:\n    - cbor:\n        operator: from_json\n"),
    ),
)


_PROCESSORS: Dict[str, Tuple[ConfigSpec, Constructor]] = {}


def register_processor(name: str, spec: ConfigSpec, ctor: Constructor) -> None:
    if name in _PROCESSORS:
        raise ConfigurationError(f"processor {name!r} is already registered", processor=name)
    _PROCESSORS[name] = (spec, ctor)


def is_registered(name: str) -> bool:
    return name in _PROCESSORS


def registered() -> Tuple[str, ...]:
    return tuple(sorted(_PROCESSORS))


def get_spec(name: str) -> ConfigSpec:
    return _lookup(name)[0]


def build_processor(name: str, raw: Optional[Mapping[str, Any]] = None, *, env: Optional[Mapping[str, str]] = None) -> CborProcessor:
    """Validate `raw` against the processor's ConfigSpec and construct it."""
    spec, ctor = _lookup(name)
    conf = ProcessorConfig.from_mapping(spec.validate(raw), env=env)
    return ctor(conf)


def _lookup(name: str) -> Tuple[ConfigSpec, Constructor]:
    try:
        return _PROCESSORS[name]
    except KeyError:
        raise ConfigurationError(f"no processor registered as {name!r}", processor=name) from None


def _register_builtin() -> None:
    if not is_registered("cbor"):
        register_processor("cbor", CBOR_CONFIG_SPEC, CborProcessor.from_config)


_register_builtin()


__all__ = [
    "FieldSpec",
    "ConfigSpec",
    "CBOR_CONFIG_SPEC",
    "register_processor",
    "is_registered",
    "registered",
    "get_spec",
    "build_processor",
]
