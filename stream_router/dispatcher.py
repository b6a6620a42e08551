"""Route units wiring sources, matching strategies and the publisher pool."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from threading import Event
from typing import Callable, Iterable, Sequence

import structlog

from .config import MatchStrategy, RouteConfig, RouterConfig
from .engine import MatchStore, Matcher, PublisherPool, RouteWorkers, match_allow_list
from .errors import (
    EndOfStream,
    FingerprintError,
    PersistenceError,
    RouteCancelled,
    TransportReadError,
    TransportWriteError,
)
from .infra import snapshot
from .logging_conf import configure_logging, route_logger
from .transport import KafkaSource, Record, StreamSource

SourceFactory = Callable[[RouteConfig, Sequence[str], str], StreamSource]


def _close_sources(sources: Iterable[StreamSource]) -> None:
    for source in sources:
        try:
            source.close()
        except Exception as exc:  # noqa: BLE001
            structlog.get_logger("stream_router").warning("source_close_failed", error=str(exc))


@dataclass(slots=True)
class RouteStats:
    """Counters reported by one unit when it stops."""

    route: str
    role: str
    received: int = 0
    forwarded: int = 0
    unmatched: int = 0
    skipped: int = 0
    publish_failed: int = 0
    references_added: int = 0
    references_duplicate: int = 0
    stop_reason: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


class _StreamUnit:
    """Read-evaluate loop shared by source dispatchers and reference ingestors."""

    role = "unit"

    def __init__(
        self,
        route: RouteConfig,
        source: StreamSource,
        cancel: Event,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.route = route
        self.route_name = route.display_name()
        self.source = source
        self.cancel = cancel
        self.logger = (logger or route_logger(self.route_name)).bind(role=self.role)
        self.stats = RouteStats(route=self.route_name, role=self.role)

    @property
    def name(self) -> str:
        return f"{self.route_name}:{self.role}"

    def run(self) -> RouteStats:
        self._on_start()
        try:
            while True:
                try:
                    record = self.source.read_next(self.cancel)
                except RouteCancelled:
                    self.stats.stop_reason = "cancelled"
                    break
                except EndOfStream:
                    self.stats.stop_reason = "end_of_stream"
                    break
                except TransportReadError as exc:
                    self.stats.stop_reason = "read_error"
                    self.logger.error("route_stopped", error=str(exc))
                    break
                self.stats.received += 1
                try:
                    self.handle(record)
                except RouteCancelled:
                    self.stats.stop_reason = "cancelled"
                    break
        except Exception as exc:  # noqa: BLE001
            self.stats.stop_reason = "crashed"
            self.logger.error("unit_crashed", error=str(exc), exc_info=exc)
        finally:
            self.source.close()
        self.logger.info("unit_finished", **self.stats.as_dict())
        return self.stats

    def _on_start(self) -> None:
        return

    def handle(self, record: Record) -> None:
        raise NotImplementedError


class RouteDispatcher(_StreamUnit):
    """Evaluate source records and forward the matching ones."""

    role = "source"

    def __init__(
        self,
        route: RouteConfig,
        source: StreamSource,
        publishers: PublisherPool,
        store: MatchStore,
        cancel: Event,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        super().__init__(route, source, cancel, logger)
        self.publishers = publishers
        self.matcher: Matcher | None = None
        if route.strategy is MatchStrategy.FINGERPRINT:
            self.matcher = Matcher(self.route_name, route.fields, store)

    def _on_start(self) -> None:
        self.logger.info(
            "route_listening",
            sources=",".join(self.route.source_topics),
            destination=self.route.destination_topic,
            strategy=self.route.strategy.value,
        )

    def matches(self, record: Record) -> tuple[bool, str]:
        """Apply the route's strategy; FingerprintError propagates to the caller."""

        if self.matcher is not None:
            return self.matcher.should_forward(record.value), ""
        return match_allow_list(record.value, self.route.match_values, self.route.match_field)

    def handle(self, record: Record) -> None:
        try:
            matched, value = self.matches(record)
        except FingerprintError as exc:
            self.stats.skipped += 1
            self.logger.warning("record_skipped", offset=record.offset, topic=record.topic, error=str(exc))
            return
        if not matched:
            self.stats.unmatched += 1
            return

        try:
            sink = self.publishers.get(self.route.destination_topic)
            sink.publish(record.clone(), self.cancel)
        except TransportWriteError as exc:
            self.stats.publish_failed += 1
            self.logger.error(
                "publish_failed",
                offset=record.offset,
                destination=self.route.destination_topic,
                error=str(exc),
            )
            return
        self.stats.forwarded += 1
        self.logger.info(
            "record_forwarded",
            offset=record.offset,
            value=value or None,
            destination=self.route.destination_topic,
        )


class ReferenceIngestor(_StreamUnit):
    """Feed a route's reference stream into the match store."""

    role = "reference"

    def __init__(
        self,
        route: RouteConfig,
        source: StreamSource,
        store: MatchStore,
        cancel: Event,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        super().__init__(route, source, cancel, logger)
        self.matcher = Matcher(self.route_name, route.fields, store)

    def _on_start(self) -> None:
        self.logger.info("reference_listening", sources=",".join(self.route.reference_topics))

    def handle(self, record: Record) -> None:
        try:
            added = self.matcher.process_reference(record.value)
        except FingerprintError as exc:
            self.stats.skipped += 1
            self.logger.warning("reference_skipped", offset=record.offset, topic=record.topic, error=str(exc))
            return
        if added:
            self.stats.references_added += 1
            self.logger.debug("reference_added", offset=record.offset, size=self.matcher.size())
        else:
            self.stats.references_duplicate += 1


class Router:
    """Run one unit per route until cancelled, then release shared resources."""

    def __init__(
        self,
        config: RouterConfig,
        *,
        store: MatchStore | None = None,
        publishers: PublisherPool | None = None,
        source_factory: SourceFactory | None = None,
        cancel: Event | None = None,
    ) -> None:
        self.config = config
        self.store = store or MatchStore()
        self.publishers = publishers or PublisherPool(config.kafka_settings())
        self.source_factory = source_factory or self._kafka_source
        self.cancel = cancel or Event()
        self.workers = RouteWorkers()
        self.logger = configure_logging().bind(component="router")

    def _kafka_source(self, route: RouteConfig, topics: Sequence[str], group_id: str) -> StreamSource:
        return KafkaSource(self.config.kafka_settings(), topics, group_id)

    def select_routes(self, names: Iterable[str] | None = None) -> list[RouteConfig]:
        wanted = [name for name in (names or []) if name]
        if not wanted:
            return list(self.config.routes)
        return [self.config.route(name) for name in wanted]

    def build_units(self, routes: Sequence[RouteConfig]) -> list[_StreamUnit]:
        """Open every source for ``routes``; on failure close the ones already opened."""

        units: list[_StreamUnit] = []
        opened: list[StreamSource] = []
        try:
            for route in routes:
                if route.reference_topics:
                    source = self.source_factory(
                        route, route.reference_topics, self.config.consumer_group(route, "reference")
                    )
                    opened.append(source)
                    units.append(ReferenceIngestor(route, source, self.store, self.cancel))
                source = self.source_factory(route, route.source_topics, self.config.consumer_group(route))
                opened.append(source)
                units.append(RouteDispatcher(route, source, self.publishers, self.store, self.cancel))
        except Exception as exc:
            self.logger.error("router_start_failed", opened=len(opened), error=str(exc))
            _close_sources(opened)
            raise
        return units

    def run(self, route_names: Iterable[str] | None = None) -> list[RouteStats]:
        routes = self.select_routes(route_names)
        results: dict[str, object] = {}
        try:
            units = self.build_units(routes)
            self.logger.info("router_starting", routes=[route.display_name() for route in routes], units=len(units))
            for index, unit in enumerate(units):
                try:
                    self.workers.start(unit.name, unit.run)
                except Exception:
                    _close_sources(pending.source for pending in units[index:])
                    raise
            results = self.workers.join()
        finally:
            self.cancel.set()
            self.workers.shutdown()
            self._shutdown()
        return [result for result in results.values() if isinstance(result, RouteStats)]

    def stop(self) -> None:
        self.logger.info("router_stopping")
        self.cancel.set()

    def _shutdown(self) -> None:
        try:
            self.publishers.close()
        except TransportWriteError as exc:
            self.logger.error("close_publishers_failed", error=str(exc))
        if self.config.snapshot_path is not None:
            try:
                path = snapshot.save(self.config.snapshot_path, self.store.snapshot())
                self.logger.info("snapshot_written", path=str(path))
            except PersistenceError as exc:
                self.logger.error("snapshot_failed", error=str(exc))


__all__ = ["ReferenceIngestor", "RouteDispatcher", "RouteStats", "Router"]
