"""Save and load route -> values snapshots as indented JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Sequence

from ..errors import PersistenceError


def save(path: Path | str | None, snapshot: Mapping[str, Sequence[str]]) -> Path:
    if not path or not str(path).strip():
        raise PersistenceError("snapshot path is empty")
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({route: list(values) for route, values in snapshot.items()}, indent=2, ensure_ascii=False)
        target.write_text(payload, encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        raise PersistenceError(f"save snapshot {target}: {exc}") from exc
    return target


def load(path: Path | str | None) -> dict[str, list[str]]:
    if not path or not str(path).strip():
        raise PersistenceError("snapshot path is empty")
    source = Path(path)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"load snapshot {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise PersistenceError(f"snapshot {source} must contain a mapping")
    snapshot: dict[str, list[str]] = {}
    for route, values in data.items():
        if not isinstance(values, list) or not all(isinstance(item, str) for item in values):
            raise PersistenceError(f"snapshot {source}: route {route!r} must map to a list of strings")
        snapshot[route] = values
    return snapshot


__all__ = ["load", "save"]
