"""Stream source/sink contracts consumed by the route dispatcher."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from threading import Event


@dataclass(slots=True)
class Record:
    """A single message read from, or written to, a stream."""

    value: bytes | None
    key: bytes | None = None
    headers: list[tuple[str, bytes]] = field(default_factory=list)
    timestamp: datetime | None = None
    topic: str | None = None
    partition: int | None = None
    offset: int | None = None

    def clone(self) -> "Record":
        """Copy key, value, headers and timestamp for republishing.

        Position fields belong to the source stream and are dropped.
        """

        return Record(
            value=None if self.value is None else bytes(self.value),
            key=None if self.key is None else bytes(self.key),
            headers=[(name, bytes(value)) for name, value in self.headers],
            timestamp=self.timestamp,
        )


class StreamSource(ABC):
    """Ordered, possibly unbounded, supply of records."""

    @abstractmethod
    def read_next(self, cancel: Event) -> Record:
        """Block until the next record is available.

        Raises ``RouteCancelled`` once ``cancel`` is set, ``EndOfStream`` when a
        finite source is exhausted and ``TransportReadError`` on failure.
        """

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


class StreamSink(ABC):
    """Publisher bound to a single destination topic."""

    topic: str

    @abstractmethod
    def publish(self, record: Record, cancel: Event) -> None:
        """Publish and wait for acknowledgement.

        Raises ``TransportWriteError`` on failure and ``RouteCancelled`` if
        ``cancel`` fires while waiting.
        """

    @abstractmethod
    def close(self) -> None:
        """Flush pending records and release resources."""


__all__ = ["Record", "StreamSink", "StreamSource"]
