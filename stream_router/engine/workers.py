"""Dedicated worker threads, one per route unit."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Callable, Dict, TypeVar

import structlog

T = TypeVar("T")


class RouteWorkers:
    """Run every unit on its own single-thread executor and join them together."""

    def __init__(self) -> None:
        self._executors: Dict[str, ThreadPoolExecutor] = {}
        self._futures: Dict[str, Future] = {}
        self._lock = Lock()
        self.logger = structlog.get_logger("stream_router").bind(component="workers")

    def start(self, unit_name: str, target: Callable[[], T]) -> Future:
        with self._lock:
            if unit_name in self._executors:
                raise ValueError(f"Unit already started: {unit_name}")
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"route-{unit_name}")
            self._executors[unit_name] = executor
            future = executor.submit(target)
            self._futures[unit_name] = future
            return future

    def running(self) -> list[str]:
        with self._lock:
            return [name for name, future in self._futures.items() if not future.done()]

    def join(self, timeout: float | None = None) -> Dict[str, object]:
        """Wait for every unit; map unit name to its result or raised exception."""

        with self._lock:
            futures = dict(self._futures)
        wait(futures.values(), timeout=timeout)
        results: Dict[str, object] = {}
        for name, future in futures.items():
            if not future.done():
                continue
            exc = future.exception()
            if exc is not None:
                self.logger.error("unit_crashed", unit=name, error=str(exc), exc_info=exc)
                results[name] = exc
            else:
                results[name] = future.result()
        return results

    def shutdown(self) -> None:
        with self._lock:
            for executor in self._executors.values():
                executor.shutdown(wait=False)
            self._executors.clear()
            self._futures.clear()


__all__ = ["RouteWorkers"]
