"""Configuration loading helpers for stream-router."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import RouteConfig, RouterConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
DEFAULT_CONFIG_PATH = Path("config") / "config.yaml"
HOME_ENV = "STREAM_ROUTER_HOME"

# environment variable -> RouterConfig field
ENV_OVERRIDES = {
    "STREAM_ROUTER_BROKERS": "brokers",
    "STREAM_ROUTER_CLIENT_ID": "client_id",
    "STREAM_ROUTER_GROUP_ID": "group_id",
}


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the project home."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self, path: Path | str | None = None) -> Path:
        candidate = Path(path) if path else DEFAULT_CONFIG_PATH
        if not candidate.is_absolute():
            candidate = self.project_root / candidate
        return candidate

    def resolve(self, path: Path) -> Path:
        return path if path.is_absolute() else (self.project_root / path).resolve()


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()

    def load(self, path: Path | str | None = None) -> RouterConfig:
        config_path = self.locator.config_path(path)
        if config_path.suffix not in CONFIG_EXTENSIONS:
            raise ConfigError(f"Unsupported configuration format: {config_path.suffix}")
        if not config_path.exists():
            raise ConfigError(f"Configuration not found: {config_path}")
        try:
            payload = _read_file(config_path)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read {config_path}: {exc}") from exc
        payload.update(self._env_overrides())
        return self.validate(payload)

    def validate(self, payload: dict) -> RouterConfig:
        try:
            config = RouterConfig.model_validate(payload)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc
        if config.snapshot_path is not None:
            config = config.model_copy(update={"snapshot_path": self.locator.resolve(config.snapshot_path)})
        return config

    def save(self, config: RouterConfig, path: Path | str | None = None) -> Path:
        config_path = self.locator.config_path(path)
        _write_file(config_path, config.model_dump(mode="json", exclude_none=True))
        return config_path

    @staticmethod
    def _env_overrides() -> dict:
        overrides = {}
        for env_name, field in ENV_OVERRIDES.items():
            value = (os.environ.get(env_name) or "").strip()
            if value:
                overrides[field] = value
        return overrides


def example_config() -> RouterConfig:
    """Configuration written by ``stream-router init``."""

    return RouterConfig(
        brokers=["localhost:9092"],
        routes=[
            RouteConfig(
                name="orders",
                source_topics=["orders.raw"],
                destination_topic="orders.filtered",
                match_values=["123", "456"],
            ),
            RouteConfig(
                name="correlated",
                source_topics=["payments.raw"],
                reference_topics=["payments.reference"],
                destination_topic="payments.matched",
                fields=["fieldA", "sub.fieldB"],
            ),
        ],
    )


__all__ = [
    "CONFIG_EXTENSIONS",
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_CONFIG_PATH",
    "example_config",
]
