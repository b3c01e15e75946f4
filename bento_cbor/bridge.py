"""
bento_cbor.bridge
=================

Value-model bridge between CBOR and JSON trees.

- normalize_for_json(tree) -> tree
    Every map key becomes text (see values.key_to_text), at any depth.
    Sequences are rewritten in place, order preserved; tuples become lists.
    Scalars are returned unchanged. Byte strings and other CBOR-only values
    must already have been resolved by the decode configuration
    (codec.resolve_cbor_tree); the bridge only deals with keys.

- prepare_for_cbor(tree) -> tree
    JSON's model is a subset of what cbor2 encodes, so this is the identity.
    It walks the tree once to make sure nothing outside the JSON model slipped
    in and hands back the very same object.
"""

from __future__ import annotations

from typing import Any, Dict

from .errors import SerializationError
from .values import JSON_KINDS, KeyCollision, ValueKind, key_to_text, kind_of, put_key


def normalize_for_json(tree: Any, *, on_collision: KeyCollision = KeyCollision.LAST_WINS) -> Any:
    """
    Return `tree` with every mapping rebuilt under text keys.

    Keys that collide after stringification follow `on_collision`; with
    LAST_WINS the later entry (in iteration order, i.e. wire order for decoded
    CBOR) supplies the value and the key keeps its first position.
    """
    kind = kind_of(tree)
    if kind is ValueKind.MAPPING:
        out: Dict[str, Any] = {}
        for k, v in tree.items():
            put_key(out, key_to_text(k), normalize_for_json(v, on_collision=on_collision), on_collision, original=k)
        return out
    if kind is ValueKind.SEQUENCE:
        if isinstance(tree, list):
            for i, v in enumerate(tree):
                tree[i] = normalize_for_json(v, on_collision=on_collision)
            return tree
        return [normalize_for_json(v, on_collision=on_collision) for v in tree]
    return tree


def prepare_for_cbor(tree: Any) -> Any:
    _check_json_model(tree)
    return tree


def _check_json_model(tree: Any) -> None:
    try:
        kind = kind_of(tree)
    except TypeError as e:
        raise SerializationError(str(e), type=type(tree).__name__) from e
    if kind not in JSON_KINDS:
        raise SerializationError("value outside the JSON data model", kind=kind)
    if kind is ValueKind.MAPPING:
        for k, v in tree.items():
            if not isinstance(k, str):
                raise SerializationError("JSON object key is not text", key=repr(k))
            _check_json_model(v)
    elif kind is ValueKind.SEQUENCE:
        for v in tree:
            _check_json_model(v)


__all__ = ["normalize_for_json", "prepare_for_cbor"]
