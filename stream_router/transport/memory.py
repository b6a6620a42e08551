"""In-process source/sink used for replays and tests."""

from __future__ import annotations

from queue import Empty, Queue
from threading import Event, Lock
from typing import Iterable

from ..errors import EndOfStream, RouteCancelled, TransportWriteError
from .base import Record, StreamSink, StreamSource

_CLOSED = object()


class MemorySource(StreamSource):
    """Queue-backed source; blocks until fed, ends after ``finish()``."""

    def __init__(self, records: Iterable[Record] = (), poll_interval: float = 0.05) -> None:
        self.poll_interval = poll_interval
        self._queue: Queue = Queue()
        self._offset = 0
        for record in records:
            self.feed(record)

    @classmethod
    def from_values(cls, values: Iterable[bytes | str], topic: str = "memory") -> "MemorySource":
        source = cls()
        for value in values:
            data = value.encode("utf-8") if isinstance(value, str) else value
            source.feed(Record(value=data, topic=topic))
        source.finish()
        return source

    def feed(self, record: Record) -> None:
        if record.offset is None:
            record.offset = self._offset
        self._offset += 1
        self._queue.put(record)

    def finish(self) -> None:
        self._queue.put(_CLOSED)

    def read_next(self, cancel: Event) -> Record:
        while not cancel.is_set():
            try:
                item = self._queue.get(timeout=self.poll_interval)
            except Empty:
                continue
            if item is _CLOSED:
                # leave the marker for any later reader
                self._queue.put(_CLOSED)
                raise EndOfStream("memory source exhausted")
            return item
        raise RouteCancelled("read cancelled")

    def close(self) -> None:
        self.finish()


class MemorySink(StreamSink):
    """Collect published records in a list."""

    def __init__(self, topic: str, fail_with: str | None = None) -> None:
        self.topic = topic
        self.fail_with = fail_with
        self.records: list[Record] = []
        self.closed = False
        self._lock = Lock()

    def publish(self, record: Record, cancel: Event) -> None:
        if cancel.is_set():
            raise RouteCancelled("publish cancelled")
        if self.fail_with:
            raise TransportWriteError(self.fail_with)
        with self._lock:
            self.records.append(record)

    def close(self) -> None:
        self.closed = True


__all__ = ["MemorySink", "MemorySource"]
