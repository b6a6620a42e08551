"""Kafka adapters for the stream source/sink contracts (confluent-kafka)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Event
from typing import Any, Sequence
import time

import structlog
from confluent_kafka import TIMESTAMP_NOT_AVAILABLE, Consumer, KafkaError, KafkaException, Producer

from ..errors import ConfigError, RouteCancelled, TransportReadError, TransportWriteError
from .base import Record, StreamSink, StreamSource

logger = structlog.get_logger("stream_router.transport")


@dataclass(frozen=True)
class KafkaSettings:
    bootstrap_servers: str
    client_id: str = "stream-router"
    group_id: str = "stream-router"
    commit_interval_ms: int = 1000
    poll_timeout: float = 0.5
    publish_timeout: float = 15.0
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_username: str | None = None
    sasl_password: str | None = None


def _strip_scheme(value: str) -> str:
    v = value.strip()
    for prefix in ("SASL_SSL://", "PLAINTEXT://", "SSL://"):
        if v.upper().startswith(prefix):
            return v[len(prefix) :]
    return v


def _bootstrap(settings: KafkaSettings) -> str:
    servers = [_strip_scheme(part) for part in settings.bootstrap_servers.split(",") if part.strip()]
    if not servers:
        raise ConfigError("Kafka bootstrap servers missing")
    return ",".join(servers)


def _common_conf(settings: KafkaSettings) -> dict[str, Any]:
    conf: dict[str, Any] = {
        "bootstrap.servers": _bootstrap(settings),
        "client.id": settings.client_id,
        "security.protocol": settings.security_protocol,
    }
    if settings.sasl_username:
        conf["sasl.mechanism"] = settings.sasl_mechanism
        conf["sasl.username"] = settings.sasl_username
        conf["sasl.password"] = settings.sasl_password or ""
    return conf


def producer_conf(settings: KafkaSettings) -> dict[str, Any]:
    conf = _common_conf(settings)
    conf.update(
        {
            "acks": "all",
            # librdkafka has no least-bytes balancer; random spreads load across partitions
            "partitioner": "random",
            "request.timeout.ms": max(1000, int(settings.publish_timeout * 1000)),
        }
    )
    return conf


def consumer_conf(settings: KafkaSettings, group_id: str) -> dict[str, Any]:
    conf = _common_conf(settings)
    conf.update(
        {
            "group.id": group_id,
            "enable.auto.commit": True,
            "auto.commit.interval.ms": max(0, int(settings.commit_interval_ms)),
            "auto.offset.reset": "earliest",
        }
    )
    return conf


def _record_timestamp(timestamp: tuple[int, int]) -> datetime | None:
    ts_type, ts_ms = timestamp
    if ts_type == TIMESTAMP_NOT_AVAILABLE or ts_ms is None or ts_ms <= 0:
        return None
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)


def _to_record(msg: Any) -> Record:
    headers = [(name, value if value is not None else b"") for name, value in (msg.headers() or [])]
    return Record(
        value=msg.value(),
        key=msg.key(),
        headers=headers,
        timestamp=_record_timestamp(msg.timestamp()),
        topic=msg.topic(),
        partition=msg.partition(),
        offset=msg.offset(),
    )


class KafkaSource(StreamSource):
    """Consumer-group subscription over one or more topics."""

    def __init__(self, settings: KafkaSettings, topics: Sequence[str], group_id: str) -> None:
        if not topics:
            raise ConfigError("KafkaSource requires at least one topic")
        self.settings = settings
        self.topics = list(topics)
        self.group_id = group_id
        self._consumer = Consumer(consumer_conf(settings, group_id))
        self._consumer.subscribe(self.topics)

    def read_next(self, cancel: Event) -> Record:
        while not cancel.is_set():
            try:
                msg = self._consumer.poll(self.settings.poll_timeout)
            except KafkaException as exc:
                raise TransportReadError(f"poll failed on {','.join(self.topics)}: {exc}") from exc
            if msg is None:
                continue
            err = msg.error()
            if err is not None:
                if err.code() == KafkaError._PARTITION_EOF:
                    continue
                raise TransportReadError(f"read failed on {msg.topic()}: {err}")
            return _to_record(msg)
        raise RouteCancelled("read cancelled")

    def close(self) -> None:
        try:
            self._consumer.close()
        except (KafkaException, RuntimeError) as exc:
            logger.warning("consumer_close_failed", group_id=self.group_id, error=str(exc))


class KafkaSink(StreamSink):
    """Synchronous producer bound to one topic; waits for the delivery report."""

    def __init__(self, settings: KafkaSettings, topic: str) -> None:
        if not topic:
            raise ConfigError("KafkaSink requires a topic")
        self.settings = settings
        self.topic = topic
        self._producer = Producer(producer_conf(settings))

    def publish(self, record: Record, cancel: Event) -> None:
        delivered = Event()
        delivery: dict[str, Any] = {}

        def _on_delivery(err, msg) -> None:
            delivery["error"] = err
            delivery["message"] = msg
            delivered.set()

        kwargs: dict[str, Any] = {
            "topic": self.topic,
            "value": record.value,
            "key": record.key,
            "on_delivery": _on_delivery,
        }
        if record.headers:
            kwargs["headers"] = list(record.headers)
        if record.timestamp is not None:
            kwargs["timestamp"] = int(record.timestamp.timestamp() * 1000)
        try:
            self._producer.produce(**kwargs)
        except (BufferError, KafkaException) as exc:
            raise TransportWriteError(f"produce to {self.topic} failed: {exc}") from exc

        deadline = time.monotonic() + max(0.1, self.settings.publish_timeout)
        while not delivered.is_set():
            if cancel.is_set():
                raise RouteCancelled("publish cancelled")
            self._producer.poll(0.1)
            if not delivered.is_set() and time.monotonic() >= deadline:
                raise TransportWriteError(f"publish to {self.topic} timed out")
        err = delivery.get("error")
        if err is not None:
            raise TransportWriteError(f"publish to {self.topic} failed: {err}")

    def close(self) -> None:
        remaining = self._producer.flush(max(0.1, self.settings.publish_timeout))
        if remaining:
            raise TransportWriteError(f"{remaining} records to {self.topic} undelivered at close")


__all__ = [
    "KafkaSettings",
    "KafkaSink",
    "KafkaSource",
    "consumer_conf",
    "producer_conf",
]
