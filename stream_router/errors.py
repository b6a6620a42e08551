"""Exception taxonomy shared by the router components."""

from __future__ import annotations


class RouterError(Exception):
    """Base class for every error raised by stream-router."""


class ConfigError(RouterError):
    """Configuration could not be read or failed validation."""


class FingerprintError(RouterError):
    """A payload could not be turned into a fingerprint."""


class DecodeError(FingerprintError):
    """Payload is not a JSON object."""


class FieldNotFoundError(FingerprintError):
    """A requested field path is absent from the payload."""

    def __init__(self, path: str, reason: str = "not found") -> None:
        super().__init__(f"field {path} {reason}")
        self.path = path
        self.reason = reason


class UnsupportedDepthError(FingerprintError):
    """A field path nests deeper than two levels."""

    def __init__(self, path: str) -> None:
        super().__init__(f"field {path} depth unsupported")
        self.path = path


class TransportError(RouterError):
    """Failure reported by the message transport."""


class TransportReadError(TransportError):
    """Reading from a source stream failed; fatal to the reading route."""


class TransportWriteError(TransportError):
    """Publishing a record failed; the record is dropped."""


class RouteCancelled(RouterError):
    """The shared cancellation event fired while a route was blocked."""


class EndOfStream(RouterError):
    """A finite source has no more records."""


class PersistenceError(RouterError):
    """Snapshot save/load failed."""


__all__ = [
    "ConfigError",
    "DecodeError",
    "EndOfStream",
    "FieldNotFoundError",
    "FingerprintError",
    "PersistenceError",
    "RouteCancelled",
    "RouterError",
    "TransportError",
    "TransportReadError",
    "TransportWriteError",
    "UnsupportedDepthError",
]
