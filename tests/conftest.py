"""Pytest configuration providing shared route/config fixtures."""

from __future__ import annotations

from pathlib import Path
from threading import Event
from typing import Any, Callable, Iterable

import pytest

from stream_router.config import ConfigLocator, ConfigRepository, RouteConfig, RouterConfig


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("STREAM_ROUTER_HOME", str(tmp_path))
    for name in ("STREAM_ROUTER_BROKERS", "STREAM_ROUTER_CLIENT_ID", "STREAM_ROUTER_GROUP_ID"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def cancel() -> Event:
    return Event()


@pytest.fixture
def sample_route_config() -> Callable[..., RouteConfig]:
    def _builder(**overrides: Any) -> RouteConfig:
        base: dict[str, Any] = {
            "name": "orders",
            "source_topics": ["orders.raw"],
            "destination_topic": "orders.filtered",
        }
        base.update(overrides)
        return RouteConfig(**base)

    return _builder


@pytest.fixture
def sample_router_config(sample_route_config) -> Callable[..., RouterConfig]:
    def _builder(routes: list[RouteConfig] | None = None, **overrides: Any) -> RouterConfig:
        base: dict[str, Any] = {
            "brokers": ["localhost:9092"],
            "client_id": "test-router",
            "group_id": "test-group",
            "poll_timeout": 0.05,
            "routes": routes if routes is not None else [sample_route_config()],
        }
        base.update(overrides)
        return RouterConfig(**base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> Iterable[ConfigRepository]:
    locator = ConfigLocator(project_root=tmp_path)
    yield ConfigRepository(locator)
