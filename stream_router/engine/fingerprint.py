"""Canonical fingerprints over selected payload fields."""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from ..errors import DecodeError, FieldNotFoundError, UnsupportedDepthError

MAX_FIELD_DEPTH = 2


def decode_payload(payload: bytes | str | None) -> dict[str, Any]:
    """Decode a record value into a JSON object."""

    if payload is None:
        raise DecodeError("payload is empty")
    try:
        text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        document = json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise DecodeError(f"invalid JSON payload: {exc}") from exc
    if not isinstance(document, dict):
        raise DecodeError(f"payload must be a JSON object, got {type(document).__name__}")
    return document


def split_path(path: str) -> list[str]:
    parts = path.split(".")
    if len(parts) > MAX_FIELD_DEPTH:
        raise UnsupportedDepthError(path)
    return parts


def resolve_field(document: Mapping[str, Any], path: str) -> Any:
    """Return the value addressed by a one- or two-level dotted path."""

    parts = split_path(path)
    if len(parts) == 1:
        if parts[0] in document:
            return document[parts[0]]
        raise FieldNotFoundError(path)
    child = document.get(parts[0])
    if not isinstance(child, dict):
        raise FieldNotFoundError(path, "missing nested object")
    if parts[1] in child:
        return child[parts[1]]
    raise FieldNotFoundError(path)


def normalize_numbers(value: Any) -> Any:
    """Collapse integral floats to ints so 1 and 1.0 encode identically."""

    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: normalize_numbers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [normalize_numbers(item) for item in value]
    return value


def canonical_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def fingerprint_document(document: Mapping[str, Any], fields: Sequence[str]) -> str:
    entries = [{"path": field, "value": normalize_numbers(resolve_field(document, field))} for field in fields]
    # sorted() is stable, so a path requested twice keeps its relative order
    entries = sorted(entries, key=lambda entry: entry["path"])
    return canonical_json(entries)


def fingerprint(payload: bytes | str | None, fields: Sequence[str]) -> str:
    """Compute the order-independent fingerprint of ``payload``.

    The result is the JSON array of ``{"path", "value"}`` pairs sorted by path,
    serialised without whitespace and with sorted object keys, so two payloads
    resolving to the same values yield byte-identical strings regardless of the
    order ``fields`` were given in.
    """

    return fingerprint_document(decode_payload(payload), fields)


__all__ = [
    "MAX_FIELD_DEPTH",
    "canonical_json",
    "decode_payload",
    "fingerprint",
    "fingerprint_document",
    "normalize_numbers",
    "resolve_field",
    "split_path",
]
