"""
CLI tests: conversion in both directions, pipeline files, exit codes.
"""

from __future__ import annotations

import json
from pathlib import Path

import cbor2
import pytest
import typer.testing

from bento_cbor import __version__
from bento_cbor.cli.main import app

runner = typer.testing.CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("BENTO_CBOR_PRESET", "BENTO_CBOR_SORTING", "BENTO_CBOR_LOG_LEVEL", "BENTO_CBOR_MAX_DEPTH"):
        monkeypatch.delenv(name, raising=False)


class TestBasics:
    def test_help(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "to-json" in result.stdout
        assert "from-json" in result.stdout

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert result.stdout.strip() == __version__

    def test_presets(self) -> None:
        result = runner.invoke(app, ["presets"])
        assert result.exit_code == 0
        doc = json.loads(result.stdout)
        assert set(doc) == {"lenient", "deterministic"}
        assert doc["deterministic"]["sorting"] == "canonical"


class TestConvert:
    def test_from_json_stdin(self) -> None:
        result = runner.invoke(app, ["from-json"], input='{"b":1,"a":[true,null]}')
        assert result.exit_code == 0
        assert result.stdout_bytes == cbor2.dumps({"b": 1, "a": [True, None]})

    def test_from_json_canonical(self) -> None:
        result = runner.invoke(app, ["from-json", "--sorting", "canonical"], input='{"bb":1,"a":2}')
        assert result.exit_code == 0
        assert result.stdout_bytes == cbor2.dumps({"a": 2, "bb": 1})

    def test_to_json_stdin(self) -> None:
        result = runner.invoke(app, ["to-json"], input=cbor2.dumps({1: b"\x01\x02"}))
        assert result.exit_code == 0
        assert result.stdout_bytes == b'{"1":"AQI="}'

    def test_to_json_bytes_flag_and_files(self, tmp_path: Path) -> None:
        src = tmp_path / "doc.cbor"
        dst = tmp_path / "doc.json"
        src.write_bytes(cbor2.dumps({"b": b"\xca\xfe"}))
        result = runner.invoke(app, ["to-json", "--bytes", "hex", "--out", str(dst), str(src)])
        assert result.exit_code == 0
        assert dst.read_bytes() == b'{"b":"cafe"}'

    def test_deterministic_rejects_indefinite(self) -> None:
        result = runner.invoke(app, ["to-json", "--preset", "deterministic"], input=b"\x9f\x01\xff")
        assert result.exit_code == 1

    def test_malformed_cbor_exit_code(self) -> None:
        result = runner.invoke(app, ["to-json"], input=b"\x82\x01")
        assert result.exit_code == 1

    def test_malformed_json_exit_code(self) -> None:
        result = runner.invoke(app, ["from-json"], input="{nope")
        assert result.exit_code == 1

    def test_bad_preset_exit_code(self) -> None:
        result = runner.invoke(app, ["from-json", "--preset", "fastest"], input="{}")
        assert result.exit_code == 2

    def test_bad_option_exit_code(self) -> None:
        result = runner.invoke(app, ["to-json", "--bytes", "base32"], input=cbor2.dumps(b"x"))
        assert result.exit_code == 2

    def test_missing_input_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["to-json", str(tmp_path / "absent.cbor")])
        assert result.exit_code == 1

    def test_unwritable_output_file(self, tmp_path: Path) -> None:
        dst = tmp_path / "no-such-dir" / "doc.json"
        result = runner.invoke(app, ["to-json", "--out", str(dst)], input=cbor2.dumps([1]))
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert not dst.exists()


class TestRun:
    def test_pipeline_round_trip(self, tmp_path: Path) -> None:
        cfg = tmp_path / "pipeline.yaml"
        cfg.write_text(
            "pipeline:\n"
            "  processors:\n"
            "    - cbor:\n"
            "        operator: from_json\n"
            "        preset: deterministic\n"
            "    - cbor:\n"
            "        operator: to_json\n",
            encoding="utf-8",
        )
        doc = {"message": "Hello CBOR World", "numbers": [1, 2, 3, 4, 5]}
        result = runner.invoke(app, ["run", "--config", str(cfg)], input=json.dumps(doc))
        assert result.exit_code == 0
        assert json.loads(result.stdout_bytes) == doc

    def test_bad_pipeline_exit_code(self, tmp_path: Path) -> None:
        cfg = tmp_path / "pipeline.yaml"
        cfg.write_text("pipeline:\n  processors:\n    - cbor:\n        operator: to_xml\n", encoding="utf-8")
        result = runner.invoke(app, ["run", "--config", str(cfg)], input="{}")
        assert result.exit_code == 2
