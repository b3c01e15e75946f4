from __future__ import annotations

import json

import cbor2
import pytest
from prometheus_client import CollectorRegistry

from bento_cbor.config import Operator, ProcessorConfig
from bento_cbor.errors import ConfigurationError, DecodeError, SerializationError
from bento_cbor.metrics import ProcessorMetrics
from bento_cbor.processor import CborProcessor, Message

SCENARIO = b'{"message":"Hello CBOR World","numbers":[1,2,3,4,5],"nested":{"boolean":true,"null_value":null}}'


@pytest.fixture()
def metrics() -> ProcessorMetrics:
    return ProcessorMetrics(CollectorRegistry())


@pytest.mark.parametrize("preset", ["lenient", "deterministic"])
def test_end_to_end_scenario(preset, metrics):
    to_cbor = CborProcessor.from_config(
        ProcessorConfig.from_mapping({"operator": "from_json", "preset": preset}, env={}), metrics=metrics
    )
    to_json = CborProcessor.from_config(
        ProcessorConfig.from_mapping({"operator": "to_json", "preset": preset}, env={}), metrics=metrics
    )
    blob = to_cbor.convert(SCENARIO)
    assert cbor2.loads(blob) == json.loads(SCENARIO)
    assert json.loads(to_json.convert(blob)) == json.loads(SCENARIO)


def test_lenient_scenario_is_byte_identical(metrics):
    blob = CborProcessor("from_json", metrics=metrics).convert(SCENARIO)
    assert CborProcessor("to_json", metrics=metrics).convert(blob) == SCENARIO


@pytest.mark.parametrize("value", [True, False, None, "text", ""])
def test_scalar_round_trip(value, metrics):
    to_cbor = CborProcessor(Operator.FROM_JSON, metrics=metrics)
    to_json = CborProcessor(Operator.TO_JSON, metrics=metrics)
    blob = to_cbor.convert(json.dumps(value).encode())
    assert cbor2.loads(blob) == value
    assert json.loads(to_json.convert(cbor2.dumps(value))) == value


@pytest.mark.parametrize("operator", ["to_yaml", "", "TO-JSON", "TO_JSON", " to_json", "From_Json"])
def test_unknown_operator_fails_construction(operator, metrics):
    with pytest.raises(ConfigurationError):
        CborProcessor(operator, metrics=metrics)


def test_process_replaces_payload_and_keeps_metadata(metrics):
    proc = CborProcessor("to_json", metrics=metrics)
    msg = Message(cbor2.dumps({"a": [1, 2]}), {"source": "kafka"})
    batch = proc.process(msg)
    assert batch == [msg]
    assert batch[0] is msg
    assert msg.as_bytes() == b'{"a":[1,2]}'
    assert msg.get_meta("source") == "kafka"


def test_process_failure_leaves_message_untouched(metrics):
    proc = CborProcessor("to_json", metrics=metrics)
    msg = Message(b"\x82\x01")
    with pytest.raises(DecodeError) as ei:
        proc.process(msg)
    assert ei.value.payload == b"\x82\x01"
    assert msg.as_bytes() == b"\x82\x01"


def test_batch_of_messages_is_independent(metrics):
    proc = CborProcessor("from_json", metrics=metrics)
    msgs = [Message(b'{"i":1}'), Message(b"{broken"), Message(b"[true]")]
    results = []
    for m in msgs:
        try:
            proc.process(m)
            results.append("ok")
        except DecodeError:
            results.append("error")
    assert results == ["ok", "error", "ok"]
    assert cbor2.loads(msgs[2].as_bytes()) == [True]


def test_metrics_are_recorded(metrics):
    proc = CborProcessor("to_json", metrics=metrics)
    payload = cbor2.dumps([1, 2, 3])
    out = proc.convert(payload)
    with pytest.raises(DecodeError):
        proc.convert(b"")

    assert metrics.sample("bento_cbor_messages_total", operator="to_json", outcome="ok") == 1.0
    assert metrics.sample("bento_cbor_messages_total", operator="to_json", outcome="decode_error") == 1.0
    assert metrics.sample("bento_cbor_bytes_total", operator="to_json", direction="in") == len(payload)
    assert metrics.sample("bento_cbor_bytes_total", operator="to_json", direction="out") == len(out)
    assert metrics.sample("bento_cbor_message_duration_seconds_count", operator="to_json") == 2.0


def test_serialization_error_outcome(metrics):
    proc = CborProcessor("to_json", metrics=metrics)
    with pytest.raises(SerializationError):
        proc.convert(cbor2.dumps(float("inf")))
    assert metrics.sample("bento_cbor_messages_total", operator="to_json", outcome="serialization_error") == 1.0


def test_config_property_and_close(metrics):
    proc = CborProcessor("from_json", metrics=metrics)
    assert proc.config.sorting.value == "none"
    proc.close()
