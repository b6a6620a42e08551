from __future__ import annotations

import json
from itertools import permutations

import pytest

from stream_router.engine.fingerprint import decode_payload, fingerprint, resolve_field
from stream_router.errors import DecodeError, FieldNotFoundError, UnsupportedDepthError

PAYLOAD = json.dumps(
    {"fieldA": "v1", "sub": {"fieldB": "v2", "n": 3}, "flag": True, "tags": ["x", "y"]}
).encode("utf-8")


def test_fingerprint_matches_documented_format() -> None:
    payload = b'{"fieldA":"v1","sub":{"fieldB":"v2"}}'
    assert (
        fingerprint(payload, ["fieldA", "sub.fieldB"])
        == '[{"path":"fieldA","value":"v1"},{"path":"sub.fieldB","value":"v2"}]'
    )


def test_fingerprint_is_order_independent() -> None:
    fields = ["sub.n", "fieldA", "tags", "flag", "sub.fieldB"]
    results = {fingerprint(PAYLOAD, list(order)) for order in permutations(fields)}
    assert len(results) == 1


def test_fingerprint_ignores_payload_key_order() -> None:
    first = b'{"a": 1, "obj": {"x": 1, "y": 2}}'
    second = b'{"obj": {"y": 2, "x": 1}, "a": 1}'
    assert fingerprint(first, ["obj", "a"]) == fingerprint(second, ["a", "obj"])


def test_fingerprint_accepts_text_and_keeps_non_ascii() -> None:
    result = fingerprint('{"name": "Zoë"}', ["name"])
    assert result == '[{"path":"name","value":"Zoë"}]'


def test_fingerprint_duplicate_paths_are_kept() -> None:
    result = fingerprint(b'{"a": 1}', ["a", "a"])
    assert result == '[{"path":"a","value":1},{"path":"a","value":1}]'


def test_fingerprint_differs_on_value_change() -> None:
    other = b'{"fieldA":"v1","sub":{"fieldB":"other"}}'
    assert fingerprint(PAYLOAD, ["fieldA", "sub.fieldB"]) != fingerprint(other, ["fieldA", "sub.fieldB"])


@pytest.mark.parametrize("fields", [["missing"], ["fieldA", "missing"], ["missing", "sub.fieldB"]])
def test_fingerprint_missing_top_level_field(fields: list[str]) -> None:
    with pytest.raises(FieldNotFoundError) as excinfo:
        fingerprint(PAYLOAD, fields)
    assert excinfo.value.path == "missing"


def test_fingerprint_missing_nested_field() -> None:
    with pytest.raises(FieldNotFoundError) as excinfo:
        fingerprint(PAYLOAD, ["fieldA", "sub.absent"])
    assert excinfo.value.reason == "not found"


@pytest.mark.parametrize("path", ["nope.fieldB", "fieldA.inner", "tags.x"])
def test_fingerprint_missing_nested_object(path: str) -> None:
    with pytest.raises(FieldNotFoundError) as excinfo:
        fingerprint(PAYLOAD, [path])
    assert excinfo.value.reason == "missing nested object"


def test_fingerprint_rejects_deep_paths() -> None:
    with pytest.raises(UnsupportedDepthError):
        fingerprint(b'{"a": {"b": {"c": 1}}}', ["a.b.c"])


@pytest.mark.parametrize("payload", [b"not json", b"[1, 2]", b'"text"', b"\xff\xfe", None])
def test_decode_errors(payload) -> None:
    with pytest.raises(DecodeError):
        fingerprint(payload, ["a"])


def test_resolve_field_returns_null_values() -> None:
    document = decode_payload(b'{"a": null, "b": {"c": null}}')
    assert resolve_field(document, "a") is None
    assert resolve_field(document, "b.c") is None


def test_fingerprint_treats_integral_floats_as_integers() -> None:
    as_int = b'{"id": 1, "sub": {"fieldB": [2, {"n": 3}]}}'
    as_float = b'{"id": 1.0, "sub": {"fieldB": [2.0, {"n": 3.0}]}}'
    fields = ["id", "sub.fieldB"]
    assert fingerprint(as_int, fields) == fingerprint(as_float, fields)
    assert fingerprint(as_float, ["id"]) == '[{"path":"id","value":1}]'
    assert fingerprint(b'{"id": 1.5}', ["id"]) == '[{"path":"id","value":1.5}]'
    assert fingerprint(b'{"id": true}', ["id"]) != fingerprint(b'{"id": 1}', ["id"])
