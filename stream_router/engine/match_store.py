"""In-memory fingerprint registry partitioned by route."""

from __future__ import annotations

from threading import Lock
from typing import Dict, Set


class MatchStore:
    """Remember fingerprints per route.

    Each route owns an independent set; nothing is ever removed and the store
    lives only as long as the process.
    """

    def __init__(self) -> None:
        self._values: Dict[str, Set[str]] = {}
        self._lock = Lock()

    def add(self, route: str, fingerprint: str) -> bool:
        """Insert ``fingerprint`` for ``route``; return True if it was new."""

        with self._lock:
            fingerprints = self._values.setdefault(route, set())
            if fingerprint in fingerprints:
                return False
            fingerprints.add(fingerprint)
            return True

    def contains(self, route: str, fingerprint: str) -> bool:
        with self._lock:
            fingerprints = self._values.get(route)
            return fingerprints is not None and fingerprint in fingerprints

    def size(self, route: str) -> int:
        with self._lock:
            return len(self._values.get(route, ()))

    def routes(self) -> list[str]:
        with self._lock:
            return sorted(self._values)

    def snapshot(self) -> dict[str, list[str]]:
        """Return a sorted copy of every route's fingerprints."""

        with self._lock:
            return {route: sorted(values) for route, values in self._values.items()}


__all__ = ["MatchStore"]
