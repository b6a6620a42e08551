"""Per-route decision strategies built on the fingerprint engine."""

from __future__ import annotations

from typing import Any, Sequence

from .fingerprint import canonical_json, decode_payload, fingerprint, normalize_numbers, resolve_field
from .match_store import MatchStore

DEFAULT_MATCH_FIELD = "data.isn"


class Matcher:
    """Bind one route's fingerprint fields to the shared match store."""

    def __init__(self, route_id: str, fields: Sequence[str], store: MatchStore) -> None:
        self.route_id = route_id
        self.fields = tuple(fields)
        self.store = store

    def process_reference(self, payload: bytes | str | None) -> bool:
        """Fingerprint a reference payload and remember it; True if new."""

        return self.store.add(self.route_id, fingerprint(payload, self.fields))

    def should_forward(self, payload: bytes | str | None) -> bool:
        return self.store.contains(self.route_id, fingerprint(payload, self.fields))

    def size(self) -> int:
        return self.store.size(self.route_id)


def scalar_text(value: Any) -> str:
    """Render a payload value the way allow-list entries are written."""

    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    value = normalize_numbers(value)
    if isinstance(value, int):
        return str(value)
    return canonical_json(value)


def match_allow_list(
    payload: bytes | str | None,
    allowed: Sequence[str],
    field: str = DEFAULT_MATCH_FIELD,
) -> tuple[bool, str]:
    """Check ``field`` of the payload against a literal allow-list.

    An empty allow-list matches every record without decoding it. Returns the
    decision together with the stringified field value.
    """

    if not allowed:
        return True, ""
    value = scalar_text(resolve_field(decode_payload(payload), field))
    return value in allowed, value


__all__ = ["DEFAULT_MATCH_FIELD", "Matcher", "match_allow_list", "scalar_text"]
