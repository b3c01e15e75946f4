"""
bento-cbor — convert payloads between CBOR and JSON from the shell.

Reads one payload from FILE (or stdin when FILE is omitted or "-") and writes
the converted payload to --out (or stdout). Codec options start from a preset
and can be overridden per flag; BENTO_CBOR_* environment variables sit between
the two.

Exit codes:
  0  converted
  1  payload could not be decoded / encoded
  2  invalid configuration

Examples:
  bento-cbor from-json --preset deterministic < doc.json > doc.cbor
  bento-cbor to-json doc.cbor
  bento-cbor to-json --bytes hex --out doc.json doc.cbor
  bento-cbor run --config pipeline.yaml < doc.json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional

import typer

from .. import logging as blog
from ..config import (
    PRESETS,
    CodecConfiguration,
    Operator,
    load_codec_config,
    load_pipeline_file,
)
from ..errors import CborProcessorError, ConfigurationError, DecodeError, SerializationError
from ..processor import CborProcessor
from ..version import get_version

log = blog.get_logger(__name__)

app = typer.Typer(
    name="bento-cbor",
    help="Convert message payloads between CBOR and JSON",
    no_args_is_help=True,
    add_completion=False,
)

EXIT_PAYLOAD = 1
EXIT_CONFIG = 2


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Log level for the bento_cbor loggers",
        envvar="BENTO_CBOR_LOG_LEVEL",
    ),
    log_json: Optional[bool] = typer.Option(
        None,
        "--log-json/--log-text",
        help="Log as JSON lines or text (default: text on a TTY, JSON otherwise)",
    ),
) -> None:
    """
    bento-cbor: CBOR ⇄ JSON payload conversion.
    """
    blog.configure(json=log_json, level=log_level)
    blog.clear_context()
    blog.bind(component="cli")


# ----------------------------
# helpers
# ----------------------------


def _read_input(input_file: Optional[Path]) -> bytes:
    if input_file is None or str(input_file) == "-":
        return sys.stdin.buffer.read()
    try:
        return input_file.read_bytes()
    except OSError as e:
        typer.echo(f"Error: cannot read {input_file}: {e}", err=True)
        raise typer.Exit(EXIT_PAYLOAD)


def _write_output(data: bytes, out: Optional[Path]) -> None:
    if out is None:
        typer.echo(data, nl=False)
        return
    try:
        out.write_bytes(data)
    except OSError as e:
        typer.echo(f"Error: cannot write {out}: {e}", err=True)
        raise typer.Exit(EXIT_PAYLOAD)


def _codec_from_flags(
    preset: Optional[str],
    *,
    sorting: Optional[str] = None,
    byte_strings: Optional[str] = None,
    map_keys: Optional[str] = None,
    indefinite: Optional[str] = None,
    max_depth: Optional[int] = None,
) -> CodecConfiguration:
    overrides: Dict[str, Any] = {
        "sorting": sorting,
        "byte_string_representation": byte_strings,
        "map_representation": map_keys,
        "indefinite_length": indefinite,
        "max_depth": max_depth,
    }
    return load_codec_config(preset, overrides=overrides)


def _run(processors: List[CborProcessor], payload: bytes) -> bytes:
    with blog.trace_scope():
        try:
            for proc in processors:
                payload = proc.convert(payload)
        except (DecodeError, SerializationError) as e:
            log.debug("conversion failed", extra={"error": e.to_dict()})
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(EXIT_PAYLOAD)
    return payload


def _build(operator: Operator, codec: CodecConfiguration) -> CborProcessor:
    try:
        return CborProcessor(operator, codec)
    except ConfigurationError as e:
        _config_exit(e)


def _config_exit(e: CborProcessorError) -> NoReturn:
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(EXIT_CONFIG)


def _convert(
    operator: Operator,
    input_file: Optional[Path],
    out: Optional[Path],
    preset: Optional[str],
    **flags: Any,
) -> None:
    try:
        codec = _codec_from_flags(preset, **flags)
    except ConfigurationError as e:
        _config_exit(e)
    proc = _build(operator, codec)
    _write_output(_run([proc], _read_input(input_file)), out)


# ----------------------------
# commands
# ----------------------------

_INPUT = typer.Argument(None, help="Input file (default: stdin)")
_OUT = typer.Option(None, "--out", "-o", help="Write output here instead of stdout")
_PRESET = typer.Option(None, "--preset", "-p", help="Codec preset (lenient, deterministic)", envvar="BENTO_CBOR_PRESET")
_MAX_DEPTH = typer.Option(None, "--max-depth", help="Maximum nesting depth of decoded CBOR")


@app.command("to-json")
def to_json(
    input_file: Optional[Path] = _INPUT,
    out: Optional[Path] = _OUT,
    preset: Optional[str] = _PRESET,
    byte_strings: Optional[str] = typer.Option(
        None, "--bytes", help="Byte-string rendering: base64, base64url, hex, text, array"
    ),
    map_keys: Optional[str] = typer.Option(
        None, "--map-keys", help="Accepted map keys: any_keys, string_keys"
    ),
    indefinite: Optional[str] = typer.Option(
        None, "--indefinite", help="Indefinite-length items: allowed, forbidden"
    ),
    max_depth: Optional[int] = _MAX_DEPTH,
) -> None:
    """
    Decode a CBOR payload and print it as JSON.
    """
    _convert(
        Operator.TO_JSON,
        input_file,
        out,
        preset,
        byte_strings=byte_strings,
        map_keys=map_keys,
        indefinite=indefinite,
        max_depth=max_depth,
    )


@app.command("from-json")
def from_json(
    input_file: Optional[Path] = _INPUT,
    out: Optional[Path] = _OUT,
    preset: Optional[str] = _PRESET,
    sorting: Optional[str] = typer.Option(None, "--sorting", help="Map key order: none, canonical"),
) -> None:
    """
    Encode a JSON payload as CBOR.
    """
    _convert(Operator.FROM_JSON, input_file, out, preset, sorting=sorting)


@app.command("run")
def run(
    config: Path = typer.Option(..., "--config", "-c", help="Pipeline file (YAML or JSON)"),
    input_file: Optional[Path] = _INPUT,
    out: Optional[Path] = _OUT,
) -> None:
    """
    Pass one payload through every cbor processor of a pipeline file, in order.
    """
    try:
        confs = load_pipeline_file(config)
        processors = [CborProcessor.from_config(c) for c in confs]
    except ConfigurationError as e:
        _config_exit(e)
    log.info("pipeline loaded", extra={"config": str(config), "processors": len(processors)})
    _write_output(_run(processors, _read_input(input_file)), out)


@app.command("presets")
def presets() -> None:
    """
    Print the built-in codec presets as JSON.
    """
    doc = {name: cfg.to_dict() for name, cfg in PRESETS.items()}
    typer.echo(json.dumps(doc, indent=2, sort_keys=True))


@app.command("version")
def version() -> None:
    """
    Print the package version.
    """
    typer.echo(get_version())


def main(argv: Optional[List[str]] = None) -> None:
    app(args=argv, prog_name="bento-cbor")


if __name__ == "__main__":
    main()
