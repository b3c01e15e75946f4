from __future__ import annotations

import datetime as dt
import json

import cbor2
import pytest
from cbor2 import CBORSimpleValue, CBORTag

from bento_cbor.codec import CborCodec, find_indefinite_length
from bento_cbor.config import CodecConfiguration
from bento_cbor.errors import DecodeError, SerializationError

CALIBRATION = [
    13,
    254,
    -257,
    65534,
    -70123,
    2147483648,
    -9223372036854775808,
    18446744073709551615,
]


def lenient(**overrides) -> CborCodec:
    return CborCodec(CodecConfiguration.preset("lenient").with_overrides(**overrides))


def deterministic(**overrides) -> CborCodec:
    return CborCodec(CodecConfiguration.preset("deterministic").with_overrides(**overrides))


def nested_lists(depth: int):
    v: list = []
    for _ in range(depth - 1):
        v = [v]
    return v


# ---------------------------------------------------------------------------
# CBOR → JSON
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("n", CALIBRATION)
def test_integer_widths_are_exact(n):
    out = lenient().cbor_to_json(cbor2.dumps(n))
    assert out == str(n).encode()
    assert json.loads(out) == n


def test_calibration_set_inside_document():
    out = lenient().cbor_to_json(cbor2.dumps({"n": CALIBRATION}))
    assert json.loads(out) == {"n": CALIBRATION}


def test_output_is_compact_and_utf8():
    out = lenient().cbor_to_json(cbor2.dumps({"greeting": "héllo", "list": [1, 2]}))
    assert out == '{"greeting":"héllo","list":[1,2]}'.encode("utf-8")


@pytest.mark.parametrize(
    "rep,expected",
    [
        ("base64", "AQI="),
        ("base64url", "AQI"),
        ("hex", "0102"),
        ("array", [1, 2]),
    ],
)
def test_byte_string_representation(rep, expected):
    out = lenient(byte_string_representation=rep).cbor_to_json(cbor2.dumps({"b": b"\x01\x02"}))
    assert json.loads(out) == {"b": expected}


def test_byte_string_as_text():
    out = lenient(byte_string_representation="text").cbor_to_json(cbor2.dumps(b"abc"))
    assert json.loads(out) == "abc"


@pytest.mark.parametrize(
    "policy,expected",
    [("text", "ab"), ("base64", "YWI="), ("hex", "6162")],
)
def test_byte_string_map_keys(policy, expected):
    out = lenient(map_key_byte_string=policy).cbor_to_json(cbor2.dumps({b"ab": 1}))
    assert json.loads(out) == {expected: 1}


def test_byte_string_map_keys_forbidden():
    with pytest.raises(DecodeError):
        lenient(map_key_byte_string="forbidden").cbor_to_json(cbor2.dumps({b"ab": 1}))


def test_non_text_keys_stringified():
    data = cbor2.dumps({1: "a", -2: "b", False: "c", None: "d", 1.5: "e", "f": {2: [3]}})
    assert json.loads(lenient().cbor_to_json(data)) == {
        "1": "a",
        "-2": "b",
        "false": "c",
        "null": "d",
        "1.5": "e",
        "f": {"2": [3]},
    }


def test_composite_keys_stringified():
    # {[1, 2]: "z"}
    data = bytes.fromhex("a1820102617a")
    assert json.loads(lenient().cbor_to_json(data)) == {"[1,2]": "z"}


def test_key_collision_last_wins_in_wire_order():
    # {1: "int", "1": "text"}
    data = bytes.fromhex("a20163696e7461316474657874")
    out = lenient().cbor_to_json(data)
    assert out == b'{"1":"text"}'


def test_key_collision_error_policy():
    data = bytes.fromhex("a20163696e7461316474657874")
    with pytest.raises(DecodeError) as ei:
        lenient(key_collision="error").cbor_to_json(data)
    assert ei.value.payload == data


def test_string_keys_rejects_non_text_key():
    with pytest.raises(DecodeError):
        deterministic().cbor_to_json(cbor2.dumps({1: "a"}))


def test_string_keys_accepts_text_keys():
    assert deterministic().cbor_to_json(cbor2.dumps({"a": {"b": 1}})) == b'{"a":{"b":1}}'


def test_tags_and_simple_values():
    tree = [CBORTag(4000, "x"), CBORSimpleValue(16), cbor2.undefined]
    out = lenient().cbor_to_json(cbor2.dumps(tree))
    assert json.loads(out) == [{"tag": 4000, "value": "x"}, 16, None]


def test_semantic_tag_datetime():
    when = dt.datetime(2020, 1, 1, tzinfo=dt.timezone.utc)
    out = lenient().cbor_to_json(cbor2.dumps({"at": when}))
    assert json.loads(out) == {"at": "2020-01-01T00:00:00+00:00"}


def test_indefinite_length_allowed_by_default():
    assert lenient().cbor_to_json(b"\x9f\x01\xff") == b"[1]"


@pytest.mark.parametrize(
    "data",
    [
        b"\x9f\x01\xff",  # array
        b"\xbf\x61\x61\x01\xff",  # map
        b"\x7f\x61\x61\xff",  # text
        b"\x82\x01\x9f\xff",  # nested array
    ],
)
def test_indefinite_length_forbidden(data):
    with pytest.raises(DecodeError):
        lenient(indefinite_length="forbidden").cbor_to_json(data)


def test_find_indefinite_length_offsets():
    assert find_indefinite_length(b"\x9f\x01\xff") == 0
    assert find_indefinite_length(b"\x82\x01\x9f\xff") == 2
    assert find_indefinite_length(b"\xc1\x5f\x41\x61\xff") == 1
    assert find_indefinite_length(bytes.fromhex("a1616182010203")) is None
    assert find_indefinite_length(cbor2.dumps([1.5, "abc", b"xy", {"k": [None, True]}])) is None


def test_max_depth():
    codec = lenient(max_depth=32)
    assert json.loads(codec.cbor_to_json(cbor2.dumps(nested_lists(32)))) == nested_lists(32)
    with pytest.raises(DecodeError) as ei:
        codec.cbor_to_json(cbor2.dumps(nested_lists(33)))
    assert ei.value.data["max_depth"] == 32


def test_invalid_utf8_reject_and_replace():
    data = b"\x62\xff\xfe"
    with pytest.raises(DecodeError):
        lenient().cbor_to_json(data)
    assert json.loads(lenient(invalid_utf8="replace").cbor_to_json(data)) == "\ufffd\ufffd"


@pytest.mark.parametrize("data", [b"", b"\x82\x01", b"\x1c", b"\x62\x61"])
def test_malformed_cbor_raises_decode_error(data):
    with pytest.raises(DecodeError) as ei:
        lenient().cbor_to_json(data)
    assert ei.value.payload == data


def test_nan_cannot_be_written_as_json():
    with pytest.raises(SerializationError):
        lenient().cbor_to_json(cbor2.dumps(float("nan")))


# ---------------------------------------------------------------------------
# JSON → CBOR
# ---------------------------------------------------------------------------


def test_from_json_preserves_key_order():
    out = lenient().json_to_cbor(b'{"bb":1,"a":2}')
    assert out == cbor2.dumps({"bb": 1, "a": 2})


def test_from_json_canonical_sorting():
    out = lenient(sorting="canonical").json_to_cbor(b'{"bb":1,"a":2}')
    assert out == cbor2.dumps({"a": 2, "bb": 1})


def test_from_json_byte_string_encoding():
    out = lenient(string_encoding="byte_string").json_to_cbor(b'{"k":["v",1]}')
    assert cbor2.loads(out) == {b"k": [b"v", 1]}


@pytest.mark.parametrize("n", CALIBRATION)
def test_from_json_integers(n):
    assert cbor2.loads(lenient().json_to_cbor(str(n).encode())) == n


@pytest.mark.parametrize(
    "data",
    [b"", b"{", b'{"a":}', b"NaN", b"[Infinity]", b"\xff\xfe", b"[1e400]", b"-1e400"],
)
def test_malformed_json_raises_decode_error(data):
    with pytest.raises(DecodeError) as ei:
        lenient().json_to_cbor(data)
    assert ei.value.payload == data


def test_codec_is_reusable():
    codec = deterministic()
    for i in range(3):
        blob = codec.json_to_cbor(json.dumps({"i": i}).encode())
        assert codec.cbor_to_json(blob) == json.dumps({"i": i}, separators=(",", ":")).encode()


def test_large_but_finite_json_numbers_round_trip():
    codec = lenient()
    blob = codec.json_to_cbor(b"[1e308,-2.5e-300,123456789012345678901234567890]")
    assert json.loads(codec.cbor_to_json(blob)) == [1e308, -2.5e-300, 123456789012345678901234567890]
