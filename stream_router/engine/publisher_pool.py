"""Lazily created, shared publishers keyed by destination topic."""

from __future__ import annotations

from threading import Lock
from typing import Callable, Dict

import structlog

from ..errors import TransportWriteError
from ..transport import KafkaSettings, KafkaSink, StreamSink

SinkFactory = Callable[[str], StreamSink]


class PublisherPool:
    """Hand out one reusable sink per destination topic."""

    def __init__(self, settings: KafkaSettings | None = None, factory: SinkFactory | None = None) -> None:
        if factory is None:
            if settings is None:
                raise ValueError("PublisherPool requires Kafka settings or a sink factory")
            factory = lambda topic: KafkaSink(settings, topic)  # noqa: E731
        self._factory = factory
        self._sinks: Dict[str, StreamSink] = {}
        self._lock = Lock()
        self.logger = structlog.get_logger("stream_router").bind(component="publisher_pool")

    def get(self, topic: str) -> StreamSink:
        with self._lock:
            sink = self._sinks.get(topic)
            if sink is None:
                try:
                    sink = self._factory(topic)
                except Exception as exc:  # noqa: BLE001
                    self.logger.error("publisher_create_failed", topic=topic, error=str(exc))
                    raise TransportWriteError(f"create publisher {topic}: {exc}") from exc
                self._sinks[topic] = sink
                self.logger.info("publisher_created", topic=topic)
            return sink

    def topics(self) -> list[str]:
        with self._lock:
            return list(self._sinks)

    def close(self) -> None:
        """Close every sink; re-raise the first failure after trying them all."""

        first_error: TransportWriteError | None = None
        with self._lock:
            for topic, sink in self._sinks.items():
                try:
                    sink.close()
                except Exception as exc:  # noqa: BLE001
                    self.logger.error("publisher_close_failed", topic=topic, error=str(exc))
                    if first_error is None:
                        first_error = TransportWriteError(f"close publisher {topic}: {exc}")
                        first_error.__cause__ = exc
            self._sinks.clear()
        if first_error is not None:
            raise first_error


__all__ = ["PublisherPool", "SinkFactory"]
